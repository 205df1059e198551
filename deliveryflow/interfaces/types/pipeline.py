# ==================================
# 📁 interfaces/types/pipeline.py
# ==================================
"""
Pipeline domain types: stage definitions, the pipeline definition itself,
artifacts handed from stage to stage and per-stage outcomes.
"""
from typing import Any, Dict, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from deliveryflow.core.exceptions import DefinitionError
from .common import DeployStrategy, StageErrorKind, StageKind, StageStatus


class Stage(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    kind: StageKind
    inputs: Tuple[str, ...] = ()
    output: Optional[str] = None
    commands: Tuple[str, ...] = ()
    deploy_strategy: DeployStrategy = DeployStrategy.DIRECT
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_approval(self) -> bool:
        return self.kind == StageKind.APPROVAL

    @property
    def is_blue_green(self) -> bool:
        return self.kind == StageKind.DEPLOY and self.deploy_strategy == DeployStrategy.BLUE_GREEN


class PipelineFeatures(BaseModel):
    model_config = ConfigDict(frozen=True)

    unit_test_only: bool = False
    with_docker_build: bool = False
    with_blue_green_deploy: bool = False
    with_dashboard_and_alerts: bool = False


def validate_stage_graph(pipeline_name: str, stages: Sequence[Stage]) -> None:
    """Raises DefinitionError unless the stages form a runnable, linear pipeline."""
    if not stages:
        raise DefinitionError(f"Pipeline '{pipeline_name}' declares no stages")

    seen_names: Set[str] = set()
    available_outputs: Set[str] = set()
    for stage in stages:
        if stage.name in seen_names:
            raise DefinitionError(f"Stage name '{stage.name}' repeats in pipeline '{pipeline_name}'", stage=stage.name)
        seen_names.add(stage.name)

        if stage.deploy_strategy == DeployStrategy.BLUE_GREEN and stage.kind != StageKind.DEPLOY:
            raise DefinitionError("Only Deploy stages may use the blue_green strategy", stage=stage.name)

        for ref in stage.inputs:
            if ref not in available_outputs:
                raise DefinitionError(
                    f"Input '{ref}' is not produced by any earlier stage", stage=stage.name
                )

        if stage.is_approval:
            if stage.output:
                raise DefinitionError("Approval stages do not produce artifacts", stage=stage.name)
            continue

        if not stage.output:
            raise DefinitionError("Stage must declare an output artifact name", stage=stage.name)
        if stage.kind != StageKind.SOURCE and not stage.inputs:
            raise DefinitionError(f"{stage.kind.value} stage requires at least one input artifact", stage=stage.name)
        if stage.output in available_outputs:
            raise DefinitionError(f"Output artifact '{stage.output}' is declared twice", stage=stage.name)
        available_outputs.add(stage.output)


class PipelineDefinition(BaseModel):
    """Ordered, immutable sequence of stages. Validated on construction."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    stages: Tuple[Stage, ...]
    features: PipelineFeatures = Field(default_factory=PipelineFeatures)

    @model_validator(mode="after")
    def _check_stage_graph(self) -> "PipelineDefinition":
        # DefinitionError is not a ValueError, so pydantic lets it through untouched.
        validate_stage_graph(self.name, self.stages)
        return self

    def stage_names(self) -> Tuple[str, ...]:
        return tuple(stage.name for stage in self.stages)

    def get_stage(self, name: str) -> Stage:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)


class Artifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    artifact_id: str
    name: str
    producing_stage: str
    execution_id: str
    created_at: str
    payload_ref: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StageOutcome(BaseModel):
    stage_name: str
    status: StageStatus = StageStatus.PENDING
    error_kind: Optional[str] = None
    detail: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


class StageError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: StageErrorKind
    detail: str = ""


class StageResult(BaseModel):
    """What a stage produced: a payload reference on success, a StageError otherwise."""

    model_config = ConfigDict(frozen=True)

    payload_ref: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[StageError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, payload_ref: str, metadata: Optional[Dict[str, Any]] = None) -> "StageResult":
        return cls(payload_ref=payload_ref, metadata=metadata or {})

    @classmethod
    def failure(cls, kind: StageErrorKind, detail: str) -> "StageResult":
        return cls(error=StageError(kind=kind, detail=detail))
