# ==================================
# 📁 interfaces/types/deployment.py
# ==================================
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from deliveryflow.shared.utils import new_id
from .common import AlertReason, DeploymentState

HealthPredicate = Callable[[], Awaitable[bool]]


class TrafficShiftStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    percentage: int = Field(gt=0, le=100)
    hold_seconds: float = Field(ge=0)


def validate_traffic_schedule(schedule: Sequence[TrafficShiftStep]) -> None:
    if not schedule:
        raise ValueError("traffic schedule must contain at least one step")
    previous = 0
    for step in schedule:
        if step.percentage <= previous:
            raise ValueError(
                f"traffic percentages must strictly increase (got {step.percentage} after {previous})"
            )
        previous = step.percentage
    if previous != 100:
        raise ValueError("the final traffic step must shift 100% to green")


class DeploymentPlan(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    deployment_id: str = Field(default_factory=lambda: new_id("deploy"))
    target_fleet: str = Field(min_length=1)
    image_uri: str
    schedule: Tuple[TrafficShiftStep, ...]
    health_check: HealthPredicate
    # Rollback fires once this many consecutive samples report unhealthy.
    max_unhealthy_samples: int = Field(default=1, ge=1)
    sample_interval_seconds: float = Field(default=10.0, gt=0)
    require_approval: bool = False
    retain_blue_as_standby: bool = False
    execution_id: Optional[str] = None
    pipeline_name: Optional[str] = None
    stage_name: Optional[str] = None

    @field_validator("schedule")
    @classmethod
    def _check_schedule(cls, schedule: Tuple[TrafficShiftStep, ...]) -> Tuple[TrafficShiftStep, ...]:
        validate_traffic_schedule(schedule)
        return schedule


class DeploymentResult(BaseModel):
    deployment_id: str
    target_fleet: str
    state: DeploymentState
    reason: Optional[AlertReason] = None
    detail: Optional[str] = None
    failed_step: Optional[int] = None
    blue_weight: int
    green_weight: int
    history: List[str] = Field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.state == DeploymentState.COMPLETED
