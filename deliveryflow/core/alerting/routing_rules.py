from typing import Dict, Optional

from deliveryflow.interfaces.types.events import AlertEvent

SEVERITY_BY_REASON: Dict[str, str] = {
    "ExecutionFailed": "high",
    "CollaboratorUnavailable": "high",
    "HealthRegression": "critical",
    "ApprovalRejected": "info",
    "AbortRequested": "warning",
    "MissingArtifact": "high",
}


def get_severity(reason: str) -> str:
    """Returns the severity label for an alert reason."""
    return SEVERITY_BY_REASON.get(reason, "warning")


def format_alert_message(event: AlertEvent, prefix: Optional[str] = None) -> str:
    severity = get_severity(event["reason"]).upper()
    location = event.get("pipeline_name") or "unknown pipeline"
    if event.get("stage_name"):
        location += f" / {event['stage_name']}"
    message = f"[{severity}] {event['reason']} in {location}"
    if event.get("execution_id"):
        message += f" (execution {event['execution_id']})"
    if event.get("detail"):
        message += f": {event['detail']}"
    return f"{prefix} {message}" if prefix else message
