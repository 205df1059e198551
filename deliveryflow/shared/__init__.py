from .app_config import AppConfig, app_config
from .app_logger import get_app_logger
from .utils import utc_now_iso, new_id, message_summary

__all__ = ["AppConfig", "app_config", "get_app_logger", "utc_now_iso", "new_id", "message_summary"]
