# ===================================================
# 📁 tests/unit/test_blue_green_controller.py
# ===================================================
import asyncio

import pytest

from deliveryflow.core.approval import ApprovalGate
from deliveryflow.core.blue_green import BlueGreenController
from deliveryflow.core.exceptions import CollaboratorFailedError, DeploymentInProgressError
from deliveryflow.core.pipeline_config import get_default_traffic_schedule
from deliveryflow.interfaces.types.common import AlertReason, DeploymentState
from deliveryflow.interfaces.types.deployment import DeploymentPlan, TrafficShiftStep

from fakes import FakeTrafficRouter, HealthProbe

IMAGE = "registry.example.com/app:3f2a9c1d"


def _plan(health_check, **overrides) -> DeploymentPlan:
    values = dict(
        target_fleet="production",
        image_uri=IMAGE,
        schedule=get_default_traffic_schedule(),
        health_check=health_check,
        sample_interval_seconds=10.0,
        execution_id="exec-1",
        pipeline_name="CICD_Pipeline",
        stage_name="Deploy-Production",
    )
    values.update(overrides)
    return DeploymentPlan(**values)


async def _wait_until(condition, attempts: int = 100):
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.fixture
def controller(traffic_router, alert_router, fake_sleep):
    return BlueGreenController(traffic_router, alert_router=alert_router, sleep=fake_sleep)


@pytest.mark.asyncio
async def test_healthy_five_step_schedule_completes(controller, traffic_router, fake_sleep, alert_router,
                                                    alert_channel):
    probe = HealthProbe(traffic_router)

    result = await controller.deploy(_plan(probe))

    assert result.state == DeploymentState.COMPLETED
    assert (result.blue_weight, result.green_weight) == (0, 100)
    assert traffic_router.green_images == [IMAGE]
    assert traffic_router.weights == [(90, 10), (75, 25), (50, 50), (25, 75), (0, 100)]
    assert traffic_router.promoted == [False]
    # 60 s holds sampled at 0, 10, ..., 60 s
    assert probe.samples == 5 * 7
    assert sum(fake_sleep.calls) == pytest.approx(5 * 60.0)
    assert result.history[0] == "Initiated"
    assert result.history[-1] == "Completed"
    assert not controller.is_active("production")
    await alert_router.drain()
    assert alert_channel.events == []


@pytest.mark.asyncio
async def test_unhealthy_at_third_step_rolls_back(controller, traffic_router, alert_router, alert_channel):
    result = await controller.deploy(_plan(HealthProbe(traffic_router, unhealthy_at_green={50})))

    assert result.state == DeploymentState.ABORTED
    assert result.reason == AlertReason.HEALTH_REGRESSION
    assert result.failed_step == 3
    assert (result.blue_weight, result.green_weight) == (100, 0)
    assert traffic_router.weights == [(90, 10), (75, 25), (50, 50), (100, 0)]
    assert traffic_router.discarded == 1
    assert traffic_router.promoted == []
    assert "RollingBack(3)" in result.history

    await alert_router.drain()
    assert [e["reason"] for e in alert_channel.events] == ["HealthRegression"]
    assert alert_channel.events[0]["execution_id"] == "exec-1"


@pytest.mark.asyncio
@pytest.mark.parametrize("unhealthy_step", [1, 2, 4, 5])
async def test_any_unhealthy_step_ends_with_blue_serving_everything(controller, traffic_router, unhealthy_step):
    percentages = [10, 25, 50, 75, 100]
    probe = HealthProbe(traffic_router, unhealthy_at_green={percentages[unhealthy_step - 1]})

    result = await controller.deploy(_plan(probe))

    assert result.state == DeploymentState.ABORTED
    assert result.failed_step == unhealthy_step
    assert traffic_router.current == (100, 0)


@pytest.mark.asyncio
async def test_rollback_trigger_counts_consecutive_unhealthy_samples(controller, traffic_router):
    answers = iter([False, True, False, False])

    async def flaky():
        return next(answers, True)

    result = await controller.deploy(_plan(
        flaky, schedule=(TrafficShiftStep(percentage=100, hold_seconds=40),), max_unhealthy_samples=2,
    ))

    assert result.state == DeploymentState.ABORTED
    assert result.reason == AlertReason.HEALTH_REGRESSION


@pytest.mark.asyncio
async def test_isolated_unhealthy_sample_below_trigger_does_not_roll_back(controller, traffic_router):
    answers = iter([False, True, False, True])

    async def flaky():
        return next(answers, True)

    result = await controller.deploy(_plan(
        flaky, schedule=(TrafficShiftStep(percentage=100, hold_seconds=30),), max_unhealthy_samples=2,
    ))

    assert result.completed


@pytest.mark.asyncio
async def test_raising_health_predicate_counts_as_unhealthy(controller, traffic_router):
    async def broken():
        raise RuntimeError("probe crashed")

    result = await controller.deploy(_plan(broken))

    assert result.reason == AlertReason.HEALTH_REGRESSION
    assert result.failed_step == 1
    assert traffic_router.current == (100, 0)


@pytest.mark.asyncio
async def test_router_failure_rolls_back_as_collaborator_unavailable(alert_router, alert_channel, fake_sleep):
    router = FakeTrafficRouter(fail_at_green=25)
    controller = BlueGreenController(router, alert_router=alert_router, sleep=fake_sleep)

    result = await controller.deploy(_plan(HealthProbe(router)))

    assert result.reason == AlertReason.COLLABORATOR_UNAVAILABLE
    assert result.failed_step == 2
    assert router.current == (100, 0)
    await alert_router.drain()
    assert [e["reason"] for e in alert_channel.events] == ["CollaboratorUnavailable"]


@pytest.mark.asyncio
async def test_retain_blue_as_standby_is_passed_to_promotion(controller, traffic_router):
    await controller.deploy(_plan(HealthProbe(traffic_router), retain_blue_as_standby=True))
    assert traffic_router.promoted == [True]


@pytest.mark.asyncio
async def test_approval_gates_entry_into_initiated(traffic_router, alert_router, fake_sleep):
    gate = ApprovalGate()
    controller = BlueGreenController(traffic_router, alert_router=alert_router, approval_gate=gate, sleep=fake_sleep)

    task = asyncio.create_task(controller.deploy(_plan(HealthProbe(traffic_router), require_approval=True)))
    await _wait_until(lambda: gate.is_pending("deployment:production"))
    assert traffic_router.green_images == []

    controller.approve("production", True, approver="ops")
    result = await task

    assert result.completed
    assert result.history[:2] == ["AwaitingApproval", "Initiated"]


@pytest.mark.asyncio
async def test_rejected_deployment_aborts_without_touching_traffic(traffic_router, alert_router, alert_channel,
                                                                   fake_sleep):
    gate = ApprovalGate()
    controller = BlueGreenController(traffic_router, alert_router=alert_router, approval_gate=gate, sleep=fake_sleep)

    task = asyncio.create_task(controller.deploy(_plan(HealthProbe(traffic_router), require_approval=True)))
    await _wait_until(lambda: gate.is_pending("deployment:production"))
    controller.approve("production", False, approver="ops")
    result = await task

    assert result.reason == AlertReason.APPROVAL_REJECTED
    assert traffic_router.weights == []
    assert traffic_router.green_images == []
    await alert_router.drain()
    assert [e["reason"] for e in alert_channel.events] == ["ApprovalRejected"]


@pytest.mark.asyncio
async def test_one_deployment_per_fleet(traffic_router, alert_router, fake_sleep):
    gate = ApprovalGate()
    controller = BlueGreenController(traffic_router, alert_router=alert_router, approval_gate=gate, sleep=fake_sleep)
    probe = HealthProbe(traffic_router)

    first = asyncio.create_task(controller.deploy(_plan(probe, require_approval=True)))
    await _wait_until(lambda: controller.is_active("production"))

    with pytest.raises(DeploymentInProgressError):
        await controller.deploy(_plan(probe))

    other_fleet = await controller.deploy(_plan(probe, target_fleet="canary"))
    assert other_fleet.completed

    assert controller.cancel("production", reason="superseded")
    result = await first
    assert result.reason == AlertReason.ABORT_REQUESTED
    assert not controller.is_active("production")


@pytest.mark.asyncio
async def test_cancel_interrupts_validation_wait(traffic_router, alert_router, alert_channel):
    # real sleep: the 10 s sample wait must be cut short by the cancel
    controller = BlueGreenController(traffic_router, alert_router=alert_router)

    task = asyncio.create_task(controller.deploy(_plan(HealthProbe(traffic_router))))
    await _wait_until(lambda: traffic_router.weights)
    assert controller.cancel("production", reason="operator abort")

    result = await asyncio.wait_for(task, timeout=5)

    assert result.state == DeploymentState.ABORTED
    assert result.reason == AlertReason.ABORT_REQUESTED
    assert result.detail == "operator abort"
    assert traffic_router.current == (100, 0)
    await alert_router.drain()
    assert [e["reason"] for e in alert_channel.events] == ["AbortRequested"]


def test_cancel_unknown_fleet_returns_false(controller):
    assert controller.cancel("nowhere") is False


@pytest.mark.asyncio
async def test_health_is_sampled_again_when_the_hold_ends(controller, traffic_router, fake_sleep):
    # healthy until 55 s into the hold; only a sample at the end of the hold sees it
    async def degrades_late():
        return sum(fake_sleep.calls) < 55

    result = await controller.deploy(_plan(
        degrades_late, schedule=(TrafficShiftStep(percentage=100, hold_seconds=60),),
    ))

    assert result.state == DeploymentState.ABORTED
    assert result.reason == AlertReason.HEALTH_REGRESSION
    assert sum(fake_sleep.calls) == pytest.approx(60.0)
    assert traffic_router.current == (100, 0)
    assert traffic_router.promoted == []


@pytest.mark.asyncio
async def test_uneven_hold_ends_with_a_sample(controller, traffic_router, fake_sleep):
    probe = HealthProbe(traffic_router)

    await controller.deploy(_plan(probe, schedule=(TrafficShiftStep(percentage=100, hold_seconds=25),)))

    assert fake_sleep.calls == [10.0, 10.0, 5.0]
    assert probe.samples == 4


@pytest.mark.asyncio
async def test_rejected_weight_update_rolls_back_as_execution_failed(alert_router, alert_channel, fake_sleep):
    router = FakeTrafficRouter(fail_at_green=25, error=CollaboratorFailedError("load balancer rejected weights"))
    controller = BlueGreenController(router, alert_router=alert_router, sleep=fake_sleep)

    result = await controller.deploy(_plan(HealthProbe(router)))

    assert result.state == DeploymentState.ABORTED
    assert result.reason == AlertReason.EXECUTION_FAILED
    assert result.failed_step == 2
    assert router.current == (100, 0)
    assert router.discarded == 1
    assert not controller.is_active("production")
    await alert_router.drain()
    assert [e["reason"] for e in alert_channel.events] == ["ExecutionFailed"]


@pytest.mark.asyncio
async def test_green_deploy_error_aborts_before_any_traffic_moves(alert_router, fake_sleep):
    class BrokenGreenRouter(FakeTrafficRouter):
        async def deploy_green(self, fleet, image_uri):
            raise RuntimeError("image pull denied")

    router = BrokenGreenRouter()
    controller = BlueGreenController(router, alert_router=alert_router, sleep=fake_sleep)

    result = await controller.deploy(_plan(HealthProbe(router)))

    assert result.reason == AlertReason.EXECUTION_FAILED
    assert "image pull denied" in result.detail
    assert router.weights == [(100, 0)]
    assert router.discarded == 0


@pytest.mark.asyncio
async def test_failed_rollback_is_reported_in_detail(alert_router, alert_channel, fake_sleep):
    router = FakeTrafficRouter(fail_rollback=True)
    controller = BlueGreenController(router, alert_router=alert_router, sleep=fake_sleep)

    result = await controller.deploy(_plan(HealthProbe(router, unhealthy_at_green={50})))

    assert result.state == DeploymentState.ABORTED
    assert result.reason == AlertReason.HEALTH_REGRESSION
    assert "rollback incomplete" in result.detail
    # blue was never restored, so the result reports the weights actually live
    assert (result.blue_weight, result.green_weight) == (50, 50)
    assert not controller.is_active("production")
    await alert_router.drain()
    assert [e["reason"] for e in alert_channel.events] == ["HealthRegression"]
    assert "rollback incomplete" in alert_channel.events[0]["detail"]
