# ==========================================
# 📁 interfaces/types/events.py
# ==========================================
from typing import TypedDict, Optional

from deliveryflow.shared.utils import utc_now_iso
from .common import AlertReason, ExecutionStatus


class AlertEvent(TypedDict):
    event_type: str  # "AlertEvent"
    execution_id: Optional[str]
    pipeline_name: Optional[str]
    stage_name: Optional[str]
    reason: str  # AlertReason value
    detail: Optional[str]
    timestamp: str


class PipelineStateChangeEvent(TypedDict):
    event_type: str  # "PipelineStateChangeEvent"
    pipeline_name: str
    execution_id: str
    state: str  # ExecutionStatus value
    stage_name: Optional[str]
    timestamp: str


def make_alert_event(reason: AlertReason,
                     execution_id: Optional[str] = None,
                     pipeline_name: Optional[str] = None,
                     stage_name: Optional[str] = None,
                     detail: Optional[str] = None) -> AlertEvent:
    return AlertEvent(
        event_type="AlertEvent",
        execution_id=execution_id,
        pipeline_name=pipeline_name,
        stage_name=stage_name,
        reason=AlertReason(reason).value,
        detail=detail,
        timestamp=utc_now_iso(),
    )


def make_state_change_event(pipeline_name: str, execution_id: str, state: ExecutionStatus,
                            stage_name: Optional[str] = None) -> PipelineStateChangeEvent:
    return PipelineStateChangeEvent(
        event_type="PipelineStateChangeEvent",
        pipeline_name=pipeline_name,
        execution_id=execution_id,
        state=ExecutionStatus(state).value,
        stage_name=stage_name,
        timestamp=utc_now_iso(),
    )
