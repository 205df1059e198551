import json
import uuid
import datetime
import logging
from typing import Any

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision and a trailing Z."""
    now = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    return now.isoformat(timespec="milliseconds") + "Z"


def new_id(prefix: str = "") -> str:
    value = str(uuid.uuid4())
    return f"{prefix}-{value}" if prefix else value


def message_summary(event_data: Any, max_len: int = 100) -> str:
    try:
        if isinstance(event_data, dict):
            summary = json.dumps(event_data, default=str)
        elif isinstance(event_data, bytes):
            summary = event_data.decode("utf-8", errors="replace")
        else:
            summary = str(event_data)
    except TypeError:
        summary = f"Non-serializable event data of type {type(event_data)}"
    return summary[:max_len - 3] + "..." if len(summary) > max_len else summary
