# ============================
# 📁 shared/app_logger.py
# ============================
import logging
import os
import sys
from typing import Dict, Optional

_loggers: Dict[str, logging.Logger] = {}


def get_app_logger(name: str, service_name_override: Optional[str] = None) -> logging.Logger:
    """
    Retrieves or creates a standardized logger instance named 'service_name.name'.
    Level comes from LOG_LEVEL; output goes to stderr so stdout stays free for command output.
    """
    effective_service_name = service_name_override or os.getenv("SERVICE_NAME", "deliveryflow")
    logger_full_name = f"{effective_service_name}.{name}" if name != effective_service_name else effective_service_name

    if logger_full_name in _loggers:
        return _loggers[logger_full_name]

    logger_instance = logging.getLogger(logger_full_name)

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    numeric_log_level = getattr(logging, log_level_str, logging.INFO)
    logger_instance.setLevel(numeric_log_level)

    # Only attach our handler once; otherwise basicConfig handlers would duplicate output.
    if not logger_instance.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter(
            f"%(asctime)s - %(levelname)-8s - [{effective_service_name}] - %(name)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger_instance.addHandler(handler)
        logger_instance.propagate = False

    _loggers[logger_full_name] = logger_instance
    return logger_instance
