# ==================================
# 📁 interfaces/types/common.py
# ==================================
from enum import Enum


class StageKind(str, Enum):
    SOURCE = "Source"
    BUILD = "Build"
    TEST = "Test"
    CONTAINER_BUILD = "ContainerBuild"
    DEPLOY = "Deploy"
    APPROVAL = "Approval"


class DeployStrategy(str, Enum):
    DIRECT = "direct"
    BLUE_GREEN = "blue_green"


class ExecutionStatus(str, Enum):
    RUNNING = "Running"
    WAITING_APPROVAL = "WaitingApproval"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    ABORTED = "Aborted"


TERMINAL_STATUSES = frozenset({ExecutionStatus.SUCCEEDED, ExecutionStatus.FAILED, ExecutionStatus.ABORTED})


class StageStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    ABORTED = "Aborted"


class StageErrorKind(str, Enum):
    EXECUTION_FAILED = "ExecutionFailed"
    COLLABORATOR_UNAVAILABLE = "CollaboratorUnavailable"


class AlertReason(str, Enum):
    EXECUTION_FAILED = "ExecutionFailed"
    COLLABORATOR_UNAVAILABLE = "CollaboratorUnavailable"
    HEALTH_REGRESSION = "HealthRegression"
    APPROVAL_REJECTED = "ApprovalRejected"
    ABORT_REQUESTED = "AbortRequested"
    MISSING_ARTIFACT = "MissingArtifact"


class DeploymentState(str, Enum):
    AWAITING_APPROVAL = "AwaitingApproval"
    INITIATED = "Initiated"
    SHIFTING_TRAFFIC = "ShiftingTraffic"
    VALIDATING = "Validating"
    ROLLING_BACK = "RollingBack"
    COMPLETED = "Completed"
    ABORTED = "Aborted"
