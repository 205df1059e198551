# ============================
# 📁 shared/app_config.py
# ============================
import os
import logging
from typing import Optional, Any, List

logger = logging.getLogger(__name__)


class AppConfig:
    def __init__(self):
        # Core infrastructure
        self.redis_url: Optional[str] = os.getenv("REDIS_URL")
        self.otel_exporter_otlp_traces_endpoint: Optional[str] = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")

        # General application settings
        self.environment: str = os.getenv("APP_ENV", "development").lower()
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.service_name: str = os.getenv("SERVICE_NAME", "deliveryflow")

        # API / SDK
        self.api_base_url: Optional[str] = os.getenv("DELIVERYFLOW_API_BASE_URL")
        self.api_key: Optional[str] = os.getenv("DELIVERYFLOW_API_KEY")

        # Source collaborator (None falls back to the pipeline defaults)
        self.github_api_url: str = os.getenv("DELIVERYFLOW_GITHUB_API_URL", "https://api.github.com")
        self.source_owner: Optional[str] = os.getenv("DELIVERYFLOW_SOURCE_OWNER")
        self.source_repo: Optional[str] = os.getenv("DELIVERYFLOW_SOURCE_REPO")
        self.source_branch: Optional[str] = os.getenv("DELIVERYFLOW_SOURCE_BRANCH")
        self.source_secret_name: Optional[str] = os.getenv("DELIVERYFLOW_SOURCE_SECRET_NAME")

        # Pipeline shape
        self.pipeline_name: Optional[str] = os.getenv("DELIVERYFLOW_PIPELINE_NAME")
        self.unit_test_only: bool = self._get_bool_env("DELIVERYFLOW_UNIT_TEST_ONLY", False)
        self.with_docker_build: bool = self._get_bool_env("DELIVERYFLOW_WITH_DOCKER_BUILD", False)
        self.with_blue_green_deploy: bool = self._get_bool_env("DELIVERYFLOW_WITH_BLUE_GREEN_DEPLOY", False)
        self.with_dashboard_and_alerts: bool = self._get_bool_env("DELIVERYFLOW_WITH_DASHBOARD_AND_ALERTS", False)

        # Execution behaviour
        self.production_fleet: Optional[str] = os.getenv("DELIVERYFLOW_PRODUCTION_FLEET")
        self.health_check_url: Optional[str] = os.getenv("DELIVERYFLOW_HEALTH_CHECK_URL")
        self.health_sample_interval_seconds: float = self._get_float_env("DELIVERYFLOW_HEALTH_SAMPLE_INTERVAL_SECONDS", 10.0)
        self.stage_timeout_seconds: Optional[float] = self._get_float_env("DELIVERYFLOW_STAGE_TIMEOUT_SECONDS", 3 * 60 * 60)
        self.collaborator_retry_attempts: int = self._get_int_env("DELIVERYFLOW_COLLABORATOR_RETRY_ATTEMPTS", 3)
        self.persist_artifacts: bool = self._get_bool_env("DELIVERYFLOW_PERSIST_ARTIFACTS", False)
        self.require_production_approval: bool = self._get_bool_env("DELIVERYFLOW_REQUIRE_PRODUCTION_APPROVAL", False)

        # Notification channels
        self.slack_webhook_url: Optional[str] = os.getenv("DELIVERYFLOW_SLACK_WEBHOOK_URL")
        self.smtp_host: Optional[str] = os.getenv("DELIVERYFLOW_SMTP_HOST")
        self.smtp_port: int = self._get_int_env("DELIVERYFLOW_SMTP_PORT", 25)
        self.alert_email_from: str = os.getenv("DELIVERYFLOW_ALERT_EMAIL_FROM", "deliveryflow@localhost")
        self.alert_email_to: List[str] = self._get_list_env("DELIVERYFLOW_ALERT_EMAIL_TO")

        self._validate_critical_configs()

    def _get_bool_env(self, var_name: str, default: bool) -> bool:
        val = os.getenv(var_name)
        if val is None:
            return default
        return val.lower() in ["true", "1", "t", "y", "yes"]

    def _get_int_env(self, var_name: str, default: int) -> int:
        val = os.getenv(var_name)
        if val is None or val.strip() == "":
            return default
        try:
            return int(val)
        except ValueError:
            logger.warning(f"{var_name}='{val}' is not an integer. Using default {default}.")
            return default

    def _get_float_env(self, var_name: str, default: float) -> float:
        val = os.getenv(var_name)
        if val is None or val.strip() == "":
            return default
        try:
            return float(val)
        except ValueError:
            logger.warning(f"{var_name}='{val}' is not a number. Using default {default}.")
            return default

    def _get_list_env(self, var_name: str) -> List[str]:
        val = os.getenv(var_name, "")
        return [item.strip() for item in val.split(",") if item.strip()]

    def _validate_critical_configs(self):
        if not self.redis_url:
            logger.info("REDIS_URL is not set. Pipeline state-change events will not be published.")
        if self.with_blue_green_deploy and not self.health_check_url:
            logger.warning("Blue/green deploy enabled but DELIVERYFLOW_HEALTH_CHECK_URL is not set.")
        if self.collaborator_retry_attempts < 1:
            logger.warning("DELIVERYFLOW_COLLABORATOR_RETRY_ATTEMPTS must be >= 1. Using 1.")
            self.collaborator_retry_attempts = 1

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        return getattr(self, key, default)


app_config = AppConfig()
