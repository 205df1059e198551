# ==============================================
# 📁 cli/sdk_client_factory.py
# ==============================================
import logging
from typing import Optional

from deliveryflow.sdk import DeliveryFlowClient
from .cli_config import cli_config_instance

logger = logging.getLogger(__name__)
_sdk_client_instance: Optional[DeliveryFlowClient] = None


def get_sdk_client() -> DeliveryFlowClient:
    """Returns the shared DeliveryFlowClient, creating it from CLIConfig on first use."""
    global _sdk_client_instance
    if _sdk_client_instance is None:
        _sdk_client_instance = DeliveryFlowClient(
            base_url=cli_config_instance.api_base_url,
            api_key=cli_config_instance.api_key,
        )
        logger.debug(f"SDK client initialized for CLI, targeting: {cli_config_instance.api_base_url}")
    return _sdk_client_instance


async def close_sdk_client():
    global _sdk_client_instance
    if _sdk_client_instance:
        try:
            await _sdk_client_instance.close()
        finally:
            _sdk_client_instance = None
