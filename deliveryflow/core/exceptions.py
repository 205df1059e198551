import httpx


class DeliveryFlowError(Exception):
    def __init__(self, message: str, execution_id: str = "", stage: str = ""):
        super().__init__(message)
        self.execution_id = execution_id
        self.stage = stage

    def __str__(self):
        context = f" [Execution: {self.execution_id}, Stage: {self.stage}]" if self.execution_id or self.stage else ""
        return f"{type(self).__name__}: {self.args[0]}{context}"


class DefinitionError(DeliveryFlowError):
    """Malformed stage graph. Fatal, rejected before any stage runs."""


class MissingArtifactError(DefinitionError):
    def __init__(self, artifact_name: str, execution_id: str = "", stage: str = ""):
        super().__init__(f"Artifact '{artifact_name}' is not available", execution_id=execution_id, stage=stage)
        self.artifact_name = artifact_name


class ExecutionNotFoundError(DeliveryFlowError):
    pass


class ExecutionInProgressError(DeliveryFlowError):
    """Raised when a pipeline already has a non-terminal execution."""


class InvalidExecutionStateError(DeliveryFlowError):
    pass


class CollaboratorUnavailableError(DeliveryFlowError):
    """An external collaborator could not be reached. Eligible for stage-level retry."""


class CollaboratorFailedError(DeliveryFlowError):
    """An external collaborator was reached and reported failure."""


class DeploymentInProgressError(DeliveryFlowError):
    def __init__(self, fleet: str):
        super().__init__(f"A blue/green deployment is already running for fleet '{fleet}'")
        self.fleet = fleet


class ApprovalNotPendingError(DeliveryFlowError):
    pass


# Conditions that mean "collaborator unreachable" rather than "collaborator said no".
TRANSIENT_COLLABORATOR_ERRORS = (
    CollaboratorUnavailableError,
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
)
