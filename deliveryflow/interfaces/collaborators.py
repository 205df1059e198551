# ==========================================
# 📁 interfaces/collaborators.py
# ==========================================
"""
Structural interfaces for the external systems the engine triggers and observes.
The engine never implements these; it only calls them.
"""
from typing import Any, Dict, List, Optional, Protocol, TypedDict

from .types.events import AlertEvent
from .types.pipeline import Artifact


class SourcePayload(TypedDict):
    payload_ref: str
    revision_id: str


class BuildResult(TypedDict):
    exit_status: int
    output_ref: Optional[str]
    logs: Optional[str]


class SourceCollaborator(Protocol):
    async def pull(self, repository: str, branch: str, credential: Optional[str]) -> SourcePayload:
        ...


class BuildCollaborator(Protocol):
    async def execute(self, commands: List[str], input_artifact: Artifact,
                      compute_profile: Dict[str, Any]) -> BuildResult:
        ...


class ContainerRegistryCollaborator(Protocol):
    async def push(self, image_ref: str, tag: str) -> str:
        """Returns the pushed image URI."""
        ...


class DeployTarget(Protocol):
    async def deploy(self, image_uri: str) -> Any:
        """Returns a truthy acknowledgment when the service update was accepted."""
        ...


class TrafficRouter(Protocol):
    """Production deploy target fronted by a weighted load balancer."""

    async def deploy_green(self, fleet: str, image_uri: str) -> None:
        ...

    async def set_traffic_weights(self, fleet: str, blue: int, green: int) -> None:
        ...

    async def promote_green(self, fleet: str, retain_blue: bool) -> None:
        ...

    async def discard_green(self, fleet: str) -> None:
        ...


class NotificationChannel(Protocol):
    async def send(self, message: str, event: AlertEvent) -> None:
        ...


class SecretResolver(Protocol):
    def resolve(self, name: str) -> Optional[str]:
        ...
