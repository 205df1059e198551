# =========================
# 📁 sdk/models.py
# =========================
from typing import Any, Dict, List, Optional, TypedDict


class SDKStageOutcome(TypedDict):
    stage_name: str
    status: str
    error_kind: Optional[str]
    detail: Optional[str]
    started_at: Optional[str]
    completed_at: Optional[str]


class SDKArtifact(TypedDict):
    artifact_id: str
    name: str
    producing_stage: str
    payload_ref: str
    created_at: str


class SDKExecutionStatus(TypedDict):
    execution_id: str
    pipeline_name: str
    status: str  # Running | WaitingApproval | Succeeded | Failed | Aborted
    current_stage_index: int
    current_stage: Optional[str]
    stage_outcomes: List[SDKStageOutcome]
    artifacts: List[SDKArtifact]
    started_at: str
    updated_at: str
    completed_at: Optional[str]
    termination_reason: Optional[str]
    error_message: Optional[str]


class SDKStage(TypedDict):
    name: str
    kind: str
    inputs: List[str]
    output: Optional[str]
    deploy_strategy: str


class SDKPipelineDefinition(TypedDict):
    name: str
    stages: List[SDKStage]
    features: Dict[str, bool]


class SDKApprovalRequest(TypedDict):
    key: str
    description: str
    opened_at: str


class SDKStartExecutionResponse(TypedDict):
    execution_id: str
    pipeline_name: str
    status: str
    message: Optional[str]


SDKPayload = Dict[str, Any]
