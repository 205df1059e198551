# ============================================
# 📁 core/blue_green/controller.py
# ============================================
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from deliveryflow.core.approval import ApprovalGate
from deliveryflow.core.exceptions import (
    TRANSIENT_COLLABORATOR_ERRORS,
    DeploymentInProgressError,
)
from deliveryflow.core.observability.tracing import get_tracer, mark_span, start_trace_span
from deliveryflow.interfaces.collaborators import TrafficRouter
from deliveryflow.interfaces.types.common import AlertReason, DeploymentState
from deliveryflow.interfaces.types.deployment import DeploymentPlan, DeploymentResult
from deliveryflow.interfaces.types.events import make_alert_event

logger = logging.getLogger(__name__)
tracer = get_tracer("blue_green")

Sleep = Callable[[float], Awaitable[None]]


class _Interrupted(Exception):
    """Internal signal: the deployment must roll back for `reason`."""

    def __init__(self, reason: AlertReason, detail: str, step: Optional[int] = None):
        super().__init__(detail)
        self.reason = reason
        self.detail = detail
        self.step = step


@dataclass
class _ActiveDeployment:
    plan: DeploymentPlan
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    cancel_reason: Optional[str] = None
    history: List[str] = field(default_factory=list)
    weights: Tuple[int, int] = (100, 0)
    green_deployed: bool = False

    def enter(self, state: DeploymentState, step: Optional[int] = None) -> None:
        label = state.value if step is None else f"{state.value}({step})"
        self.history.append(label)
        logger.info(f"Deployment {self.plan.deployment_id} on '{self.plan.target_fleet}': {label}")


class BlueGreenController:
    """
    Shifts live traffic from the blue fleet to a freshly deployed green fleet
    following the plan's schedule, and rolls back on health regression,
    router failure or an external cancel.

    At most one deployment runs per target fleet.
    """

    def __init__(self, traffic_router: TrafficRouter, alert_router=None,
                 approval_gate: Optional[ApprovalGate] = None, sleep: Optional[Sleep] = None):
        self.traffic_router = traffic_router
        self.alert_router = alert_router
        self.approval_gate = approval_gate or ApprovalGate()
        self._sleep = sleep or asyncio.sleep
        self._active: Dict[str, _ActiveDeployment] = {}

    @staticmethod
    def approval_key(fleet: str) -> str:
        return f"deployment:{fleet}"

    def is_active(self, fleet: str) -> bool:
        return fleet in self._active

    async def deploy(self, plan: DeploymentPlan) -> DeploymentResult:
        fleet = plan.target_fleet
        if fleet in self._active:
            raise DeploymentInProgressError(fleet)
        active = _ActiveDeployment(plan=plan)
        self._active[fleet] = active

        try:
            with start_trace_span(tracer, "blue_green.deploy", fleet=fleet, image_uri=plan.image_uri,
                                  execution_id=plan.execution_id) as span:
                result = await self._run(active)
                mark_span(span, result.completed, result.detail)
                return result
        finally:
            self._active.pop(fleet, None)

    def cancel(self, fleet: str, reason: str = "abort requested") -> bool:
        """Interrupts the deployment on `fleet`. Returns False when nothing is running there."""
        active = self._active.get(fleet)
        if active is None:
            return False
        active.cancel_reason = reason
        active.cancel_event.set()
        self.approval_gate.cancel(self.approval_key(fleet), reason=reason)
        logger.warning(f"Cancel requested for deployment on '{fleet}': {reason}")
        return True

    def approve(self, fleet: str, approved: bool, approver: Optional[str] = None):
        return self.approval_gate.resolve(self.approval_key(fleet), approved, approver)

    # --- State machine ---

    async def _run(self, active: _ActiveDeployment) -> DeploymentResult:
        plan = active.plan

        if plan.require_approval:
            active.enter(DeploymentState.AWAITING_APPROVAL)
            decision = await self.approval_gate.wait(
                self.approval_key(plan.target_fleet), f"Promote {plan.image_uri} to '{plan.target_fleet}'"
            )
            if decision.cancelled:
                return self._abort(active, AlertReason.ABORT_REQUESTED, decision.reason or "abort requested")
            if not decision.approved:
                return self._abort(
                    active, AlertReason.APPROVAL_REJECTED,
                    f"Deployment rejected by {decision.approver or 'unknown'}",
                )

        try:
            await self._initiate(active)
            for index, step in enumerate(plan.schedule, start=1):
                if active.cancel_event.is_set():
                    raise _Interrupted(AlertReason.ABORT_REQUESTED, active.cancel_reason or "abort requested", index)
                active.enter(DeploymentState.SHIFTING_TRAFFIC, index)
                await self._set_weights(active, 100 - step.percentage, step.percentage, index)
                active.enter(DeploymentState.VALIDATING, index)
                await self._validate(active, index, step.hold_seconds)
        except _Interrupted as interrupted:
            return await self._roll_back(active, interrupted)

        return await self._complete(active)

    async def _initiate(self, active: _ActiveDeployment) -> None:
        plan = active.plan
        active.enter(DeploymentState.INITIATED)
        try:
            await self.traffic_router.deploy_green(plan.target_fleet, plan.image_uri)
        except TRANSIENT_COLLABORATOR_ERRORS as e:
            raise _Interrupted(AlertReason.COLLABORATOR_UNAVAILABLE, f"Green deployment failed: {e}") from e
        except Exception as e:
            raise _Interrupted(AlertReason.EXECUTION_FAILED, f"Green deployment failed: {e}") from e
        active.green_deployed = True

    async def _set_weights(self, active: _ActiveDeployment, blue: int, green: int, step: int) -> None:
        try:
            await self.traffic_router.set_traffic_weights(active.plan.target_fleet, blue, green)
        except TRANSIENT_COLLABORATOR_ERRORS as e:
            raise _Interrupted(
                AlertReason.COLLABORATOR_UNAVAILABLE, f"Traffic shift to {green}% failed: {e}", step
            ) from e
        except Exception as e:
            raise _Interrupted(AlertReason.EXECUTION_FAILED, f"Traffic shift to {green}% failed: {e}", step) from e
        active.weights = (blue, green)

    async def _validate(self, active: _ActiveDeployment, step: int, hold_seconds: float) -> None:
        """Samples health at the start of the hold, every interval, and once more when the hold ends."""
        plan = active.plan
        unhealthy_streak = 0
        elapsed = 0.0
        ticks = 0
        while True:
            if await self._sample_health(plan):
                unhealthy_streak = 0
            else:
                unhealthy_streak += 1
                logger.warning(
                    f"Deployment {plan.deployment_id}: unhealthy sample at step {step} "
                    f"({unhealthy_streak}/{plan.max_unhealthy_samples})."
                )
                if unhealthy_streak >= plan.max_unhealthy_samples:
                    raise _Interrupted(
                        AlertReason.HEALTH_REGRESSION,
                        f"Health regression at step {step} with green at {active.weights[1]}%",
                        step,
                    )
            if elapsed >= hold_seconds:
                return
            ticks += 1
            next_sample_at = min(hold_seconds, ticks * plan.sample_interval_seconds)
            if await self._pause(active, next_sample_at - elapsed):
                raise _Interrupted(AlertReason.ABORT_REQUESTED, active.cancel_reason or "abort requested", step)
            elapsed = next_sample_at

    @staticmethod
    async def _sample_health(plan: DeploymentPlan) -> bool:
        try:
            return bool(await plan.health_check())
        except Exception as e:
            logger.warning(f"Health check for '{plan.target_fleet}' raised {type(e).__name__}: {e}")
            return False

    async def _pause(self, active: _ActiveDeployment, seconds: float) -> bool:
        """Sleeps for `seconds` unless cancelled first. Returns True when cancelled."""
        if active.cancel_event.is_set():
            return True
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        canceller = asyncio.ensure_future(active.cancel_event.wait())
        try:
            await asyncio.wait({sleeper, canceller}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, canceller):
                if not task.done():
                    task.cancel()
        return active.cancel_event.is_set()

    async def _roll_back(self, active: _ActiveDeployment, interrupted: _Interrupted) -> DeploymentResult:
        plan = active.plan
        active.enter(DeploymentState.ROLLING_BACK, interrupted.step)
        detail = interrupted.detail
        try:
            await self.traffic_router.set_traffic_weights(plan.target_fleet, 100, 0)
            active.weights = (100, 0)
            if active.green_deployed:
                await self.traffic_router.discard_green(plan.target_fleet)
        except Exception as e:
            logger.error(f"Rollback of deployment {plan.deployment_id} on '{plan.target_fleet}' failed: {e}")
            detail = f"{detail}; rollback incomplete: {e}"
        return self._abort(active, interrupted.reason, detail, interrupted.step)

    async def _complete(self, active: _ActiveDeployment) -> DeploymentResult:
        plan = active.plan
        detail = None
        try:
            await self.traffic_router.promote_green(plan.target_fleet, plan.retain_blue_as_standby)
        except Exception as e:
            # Green already serves 100%; blue is simply left running.
            logger.error(f"Promoting green on '{plan.target_fleet}' failed: {e}")
            detail = f"green serving 100% but blue was not released: {e}"
        active.enter(DeploymentState.COMPLETED)
        return self._result(active, DeploymentState.COMPLETED, detail=detail)

    def _abort(self, active: _ActiveDeployment, reason: AlertReason, detail: str,
               step: Optional[int] = None) -> DeploymentResult:
        plan = active.plan
        active.enter(DeploymentState.ABORTED)
        logger.error(f"Deployment {plan.deployment_id} on '{plan.target_fleet}' aborted ({reason.value}): {detail}")
        if self.alert_router is not None:
            self.alert_router.publish(make_alert_event(
                reason,
                execution_id=plan.execution_id,
                pipeline_name=plan.pipeline_name,
                stage_name=plan.stage_name,
                detail=detail,
            ))
        return self._result(active, DeploymentState.ABORTED, reason=reason, detail=detail, step=step)

    @staticmethod
    def _result(active: _ActiveDeployment, state: DeploymentState, reason: Optional[AlertReason] = None,
                detail: Optional[str] = None, step: Optional[int] = None) -> DeploymentResult:
        return DeploymentResult(
            deployment_id=active.plan.deployment_id,
            target_fleet=active.plan.target_fleet,
            state=state,
            reason=reason,
            detail=detail,
            failed_step=step,
            blue_weight=active.weights[0],
            green_weight=active.weights[1],
            history=list(active.history),
        )
