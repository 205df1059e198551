# ===================================================
# 📁 tests/unit/conftest.py
# ===================================================
from typing import Optional

import pytest

from deliveryflow.core.alerting import AlertRouter
from deliveryflow.core.approval import ApprovalGate
from deliveryflow.core.artifact_store import ArtifactStore
from deliveryflow.core.blue_green import BlueGreenController
from deliveryflow.core.orchestrator import Orchestrator
from deliveryflow.core.pipeline_config import RunConfig
from deliveryflow.core.stage_executor import Collaborators, StageExecutor

from fakes import (
    FakeBuilder,
    FakeDeployTarget,
    FakeRegistry,
    FakeSource,
    FakeTrafficRouter,
    RecordingChannel,
    RecordingSleep,
)


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def builder():
    return FakeBuilder()


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def deploy_target():
    return FakeDeployTarget()


@pytest.fixture
def traffic_router():
    return FakeTrafficRouter()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def alert_channel():
    return RecordingChannel()


@pytest.fixture
def alert_router(alert_channel):
    router = AlertRouter()
    router.register_channel("recording", alert_channel)
    return router


@pytest.fixture
def collaborators(source, builder, registry, deploy_target):
    return Collaborators(source=source, builder=builder, registry=registry, deploy_target=deploy_target)


@pytest.fixture
def make_orchestrator(alert_router, fake_sleep):
    """Factory: builds an Orchestrator wired to the recording alert router and a no-wait sleep."""

    def _make(collaborators: Collaborators, traffic_router: Optional[FakeTrafficRouter] = None,
              health_check=None, config: Optional[RunConfig] = None, event_bus=None,
              sleep=None) -> Orchestrator:
        gate = ApprovalGate()
        blue_green = None
        if traffic_router is not None:
            blue_green = BlueGreenController(traffic_router, alert_router=alert_router, approval_gate=gate,
                                             sleep=sleep or fake_sleep)
        return Orchestrator(
            StageExecutor(collaborators),
            artifact_store=ArtifactStore(),
            approval_gate=gate,
            blue_green=blue_green,
            alert_router=alert_router,
            event_bus=event_bus,
            health_check=health_check,
            default_config=config or RunConfig(),
        )

    return _make
