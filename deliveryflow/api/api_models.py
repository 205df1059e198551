# ================================================
# 📁 api/api_models.py
# ================================================
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from deliveryflow.core.orchestrator import Execution
from deliveryflow.interfaces.types.pipeline import PipelineDefinition

# --- Request Models ---

class ApprovalDecisionRequest(BaseModel):
    approved: bool
    approver: Optional[str] = None


class AbortRequest(BaseModel):
    reason: Optional[str] = None


# --- Response Models ---

class StageModel(BaseModel):
    name: str
    kind: str
    inputs: List[str] = []
    output: Optional[str] = None
    deploy_strategy: str
    commands: List[str] = []


class PipelineDefinitionModel(BaseModel):
    name: str
    stages: List[StageModel]
    features: Dict[str, bool]

    @classmethod
    def from_definition(cls, definition: PipelineDefinition) -> "PipelineDefinitionModel":
        return cls(
            name=definition.name,
            stages=[
                StageModel(
                    name=stage.name,
                    kind=stage.kind.value,
                    inputs=list(stage.inputs),
                    output=stage.output,
                    deploy_strategy=stage.deploy_strategy.value,
                    commands=list(stage.commands),
                )
                for stage in definition.stages
            ],
            features=definition.features.model_dump(),
        )


class StageOutcomeModel(BaseModel):
    stage_name: str
    status: str
    error_kind: Optional[str] = None
    detail: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


class ArtifactModel(BaseModel):
    artifact_id: str
    name: str
    producing_stage: str
    payload_ref: str
    created_at: str
    metadata: Dict[str, Any] = {}


class ExecutionStatusModel(BaseModel):
    execution_id: str
    pipeline_name: str
    status: str
    current_stage_index: int
    current_stage: Optional[str] = None
    stage_outcomes: List[StageOutcomeModel] = []
    artifacts: List[ArtifactModel] = []
    started_at: str
    updated_at: str
    completed_at: Optional[str] = None
    termination_reason: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_execution(cls, execution: Execution, definition: PipelineDefinition) -> "ExecutionStatusModel":
        stage_names = definition.stage_names()
        index = execution.current_stage_index
        return cls(
            execution_id=execution.execution_id,
            pipeline_name=execution.pipeline_name,
            status=execution.status.value,
            current_stage_index=index,
            current_stage=stage_names[index] if index < len(stage_names) else None,
            stage_outcomes=[
                StageOutcomeModel(**execution.stage_outcomes[name].model_dump(mode="json")) for name in stage_names
            ],
            artifacts=[
                ArtifactModel(**artifact.model_dump(include=set(ArtifactModel.model_fields)))
                for artifact in execution.artifacts.values()
            ],
            started_at=execution.started_at,
            updated_at=execution.updated_at,
            completed_at=execution.completed_at,
            termination_reason=execution.termination_reason.value if execution.termination_reason else None,
            error_message=execution.error_message,
        )


class StartExecutionResponse(BaseModel):
    execution_id: str
    pipeline_name: str
    status: str
    message: Optional[str] = None


class ApprovalRequestModel(BaseModel):
    key: str
    description: str = ""
    opened_at: str


class WebhookResponse(BaseModel):
    accepted: bool
    message: str
    execution_id: Optional[str] = None
