# ===================================================
# 📁 tests/unit/fakes.py
# ===================================================
from typing import Iterable, List, Optional, Tuple


class FakeSource:
    def __init__(self, revision: str = "3f2a9c1d", error: Optional[Exception] = None):
        self.revision = revision
        self.error = error
        self.calls: List[Tuple[str, str, Optional[str]]] = []

    async def pull(self, repository, branch, credential):
        self.calls.append((repository, branch, credential))
        if self.error:
            raise self.error
        return {"payload_ref": f"s3://sources/{self.revision}.tar.gz", "revision_id": self.revision}


class FakeBuilder:
    """Exits non-zero for any command listed in failing_commands."""

    def __init__(self, failing_commands: Iterable[str] = (), error: Optional[Exception] = None):
        self.failing_commands = set(failing_commands)
        self.error = error
        self.calls: List[List[str]] = []
        self.profiles: List[dict] = []

    async def execute(self, commands, input_artifact, compute_profile):
        self.calls.append(list(commands))
        self.profiles.append(dict(compute_profile))
        if self.error:
            raise self.error
        if self.failing_commands.intersection(commands):
            return {"exit_status": 1, "output_ref": None, "logs": "1 failing test"}
        return {"exit_status": 0, "output_ref": None, "logs": "ok"}


class FakeRegistry:
    def __init__(self):
        self.pushed: List[Tuple[str, str]] = []

    async def push(self, image_ref, tag):
        self.pushed.append((image_ref, tag))
        return f"registry.example.com/{image_ref}:{tag}"


class FakeDeployTarget:
    def __init__(self, acknowledgment="service-update-accepted"):
        self.acknowledgment = acknowledgment
        self.deployed: List[str] = []

    async def deploy(self, image_uri):
        self.deployed.append(image_uri)
        return self.acknowledgment


class FakeTrafficRouter:
    """Raises `error` when asked to send fail_at_green percent to green; fail_rollback breaks the return to blue."""

    def __init__(self, fail_at_green: Optional[int] = None, error: Optional[Exception] = None,
                 fail_rollback: bool = False):
        self.fail_at_green = fail_at_green
        self.error = error or ConnectionError("load balancer unreachable")
        self.fail_rollback = fail_rollback
        self.weights: List[Tuple[int, int]] = []
        self.green_images: List[str] = []
        self.promoted: List[bool] = []
        self.discarded = 0

    @property
    def current(self) -> Tuple[int, int]:
        return self.weights[-1] if self.weights else (100, 0)

    async def deploy_green(self, fleet, image_uri):
        self.green_images.append(image_uri)

    async def set_traffic_weights(self, fleet, blue, green):
        if green == self.fail_at_green:
            raise self.error
        if self.fail_rollback and (blue, green) == (100, 0):
            raise ConnectionError("load balancer unreachable during rollback")
        self.weights.append((blue, green))

    async def promote_green(self, fleet, retain_blue):
        self.promoted.append(retain_blue)

    async def discard_green(self, fleet):
        self.discarded += 1


class HealthProbe:
    """Reports unhealthy while green carries one of the given percentages."""

    def __init__(self, router: FakeTrafficRouter, unhealthy_at_green: Iterable[int] = ()):
        self.router = router
        self.unhealthy_at_green = set(unhealthy_at_green)
        self.samples = 0

    async def __call__(self) -> bool:
        self.samples += 1
        return self.router.current[1] not in self.unhealthy_at_green


class RecordingChannel:
    def __init__(self):
        self.events = []
        self.messages = []

    async def send(self, message, event):
        self.messages.append(message)
        self.events.append(event)


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


