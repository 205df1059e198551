# ========================================
# 📁 cli/cli_config.py
# ========================================
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:8000"


class CLIConfig:
    def __init__(self):
        self.api_base_url: Optional[str] = os.getenv("DELIVERYFLOW_API_BASE_URL")
        self.api_key: Optional[str] = os.getenv("DELIVERYFLOW_API_KEY")

        if not self.api_base_url:
            logger.info(f"DELIVERYFLOW_API_BASE_URL not set. CLI will use {DEFAULT_API_BASE_URL}.")
            self.api_base_url = DEFAULT_API_BASE_URL


cli_config_instance = CLIConfig()
