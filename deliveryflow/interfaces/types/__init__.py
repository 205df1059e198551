# ==================================
# 📁 interfaces/types/__init__.py
# ==================================
from .common import (
    StageKind, DeployStrategy, ExecutionStatus, TERMINAL_STATUSES, StageStatus,
    StageErrorKind, AlertReason, DeploymentState,
)
from .pipeline import (
    Stage, PipelineFeatures, PipelineDefinition, validate_stage_graph,
    Artifact, StageOutcome, StageError, StageResult,
)
from .deployment import (
    HealthPredicate, TrafficShiftStep, validate_traffic_schedule, DeploymentPlan, DeploymentResult,
)
from .events import AlertEvent, PipelineStateChangeEvent, make_alert_event, make_state_change_event
