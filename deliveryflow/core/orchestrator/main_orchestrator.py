# ============================================
# 📁 core/orchestrator/main_orchestrator.py
# ============================================
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from deliveryflow.core.approval import ApprovalGate
from deliveryflow.core.artifact_store import ArtifactStore
from deliveryflow.core.blue_green import BlueGreenController
from deliveryflow.core.exceptions import (
    DeploymentInProgressError,
    ExecutionInProgressError,
    ExecutionNotFoundError,
    InvalidExecutionStateError,
    MissingArtifactError,
)
from deliveryflow.core.observability.metrics import PipelineMetrics
from deliveryflow.core.observability.tracing import mark_span
from deliveryflow.core.pipeline_config import RunConfig
from deliveryflow.core.stage_executor import StageContext, StageExecutor
from deliveryflow.interfaces.types.common import (
    AlertReason,
    DeploymentState,
    ExecutionStatus,
    StageErrorKind,
    StageStatus,
)
from deliveryflow.interfaces.types.deployment import DeploymentPlan, HealthPredicate
from deliveryflow.interfaces.types.events import make_alert_event, make_state_change_event
from deliveryflow.interfaces.types.pipeline import (
    Artifact,
    PipelineDefinition,
    Stage,
    StageOutcome,
    StageResult,
    validate_stage_graph,
)
from deliveryflow.shared.utils import new_id, utc_now_iso
from .state import Execution
from .trace_utils import start_stage_span

logger = logging.getLogger(__name__)


@dataclass
class _ExecutionRecord:
    execution: Execution
    definition: PipelineDefinition
    config: RunConfig
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    abort_requested: bool = False
    abort_reason: Optional[str] = None
    active_fleet: Optional[str] = None
    created_monotonic: float = field(default_factory=time.monotonic)
    dispatched: bool = False


class Orchestrator:
    """
    Drives executions of pipeline definitions.

    Stages run strictly in declared order. A successful stage stores its artifact
    and advancement continues until an Approval stage (WaitingApproval) or the end
    of the pipeline (Succeeded). Failed stages end the run; the orchestrator
    itself never retries.

    Only one non-terminal execution may exist per pipeline name.
    """

    def __init__(self,
                 stage_executor: StageExecutor,
                 artifact_store: Optional[ArtifactStore] = None,
                 approval_gate: Optional[ApprovalGate] = None,
                 blue_green: Optional[BlueGreenController] = None,
                 alert_router=None,
                 event_bus=None,
                 metrics: Optional[PipelineMetrics] = None,
                 health_check: Optional[HealthPredicate] = None,
                 default_config: Optional[RunConfig] = None):
        self.stage_executor = stage_executor
        self.artifact_store = artifact_store or ArtifactStore()
        self.approval_gate = approval_gate or ApprovalGate()
        self.blue_green = blue_green
        self.alert_router = alert_router
        self.event_bus = event_bus
        self.metrics = metrics
        self.health_check = health_check
        self.default_config = default_config or RunConfig()

        self._records: Dict[str, _ExecutionRecord] = {}
        self._active_by_pipeline: Dict[str, str] = {}

    @staticmethod
    def approval_key(execution_id: str) -> str:
        return f"execution:{execution_id}"

    # --- Public contract ---

    async def start(self, definition: PipelineDefinition, config: Optional[RunConfig] = None) -> str:
        execution_id = self.create_execution(definition, config)
        await self.advance(execution_id)
        return execution_id

    def create_execution(self, definition: PipelineDefinition, config: Optional[RunConfig] = None) -> str:
        """Validates the definition and registers a Running execution at stage 0 without advancing it."""
        validate_stage_graph(definition.name, definition.stages)

        active_id = self._active_by_pipeline.get(definition.name)
        if active_id and not self._records[active_id].execution.is_terminal:
            raise ExecutionInProgressError(
                f"Pipeline '{definition.name}' already has a running execution", execution_id=active_id
            )

        now = utc_now_iso()
        execution = Execution(
            execution_id=new_id("exec"),
            pipeline_name=definition.name,
            stage_outcomes={stage.name: StageOutcome(stage_name=stage.name) for stage in definition.stages},
            started_at=now,
            updated_at=now,
        )
        record = _ExecutionRecord(execution=execution, definition=definition, config=config or self.default_config)
        if record.config.persist_artifacts:
            self.artifact_store.persist(execution.execution_id)
        self._records[execution.execution_id] = record
        self._active_by_pipeline[definition.name] = execution.execution_id

        logger.info(f"Execution {execution.execution_id} of pipeline '{definition.name}' created "
                    f"with {len(definition.stages)} stage(s).")
        self._publish_state(record)
        return execution.execution_id

    async def advance(self, execution_id: str) -> ExecutionStatus:
        record = self._get_record(execution_id)
        async with record.lock:
            execution = record.execution
            if execution.is_terminal or execution.status == ExecutionStatus.WAITING_APPROVAL:
                return execution.status

            stages = record.definition.stages
            while True:
                if record.abort_requested:
                    self._terminate(record, ExecutionStatus.ABORTED, AlertReason.ABORT_REQUESTED,
                                    record.abort_reason)
                    break
                if execution.current_stage_index >= len(stages):
                    self._terminate(record, ExecutionStatus.SUCCEEDED)
                    break
                stage = stages[execution.current_stage_index]
                if stage.is_approval:
                    self._open_approval(record, stage)
                    break
                if not await self._run_stage(record, stage):
                    break
                execution.current_stage_index += 1

            return execution.status

    async def resolve_approval(self, execution_id: str, approved: bool,
                               approver: Optional[str] = None) -> ExecutionStatus:
        record = self._get_record(execution_id)
        execution = record.execution

        if record.active_fleet and self.blue_green:
            key = self.blue_green.approval_key(record.active_fleet)
            if self.blue_green.approval_gate.is_pending(key):
                stage = record.definition.stages[execution.current_stage_index]
                if approved:
                    self._set_status(record, ExecutionStatus.RUNNING, stage.name)
                self.blue_green.approve(record.active_fleet, approved, approver)
                # The deployment runs inside the advance that holds the lock.
                async with record.lock:
                    return execution.status

        if execution.status != ExecutionStatus.WAITING_APPROVAL:
            raise InvalidExecutionStateError(
                f"Execution is {execution.status.value}, not waiting for approval", execution_id=execution_id
            )

        stage = record.definition.stages[execution.current_stage_index]
        key = self.approval_key(execution_id)
        if self.approval_gate.is_pending(key):
            self.approval_gate.resolve(key, approved, approver)
        outcome = execution.stage_outcomes[stage.name]
        outcome.completed_at = utc_now_iso()

        if not approved:
            outcome.status = StageStatus.ABORTED
            outcome.detail = f"Rejected by {approver or 'unknown'}"
            self._terminate(record, ExecutionStatus.ABORTED, AlertReason.APPROVAL_REJECTED, outcome.detail,
                            stage_name=stage.name)
            return execution.status

        outcome.status = StageStatus.SUCCEEDED
        outcome.detail = f"Approved by {approver or 'unknown'}"
        execution.current_stage_index += 1
        self._set_status(record, ExecutionStatus.RUNNING, stage.name)
        return await self.advance(execution_id)

    def get_status(self, execution_id: str) -> Execution:
        return self._get_record(execution_id).execution.model_copy(deep=True)

    def list_executions(self, pipeline_name: Optional[str] = None) -> List[Execution]:
        return [
            record.execution.model_copy(deep=True)
            for record in self._records.values()
            if pipeline_name is None or record.execution.pipeline_name == pipeline_name
        ]

    def active_execution_id(self, pipeline_name: str) -> Optional[str]:
        execution_id = self._active_by_pipeline.get(pipeline_name)
        if execution_id and not self._records[execution_id].execution.is_terminal:
            return execution_id
        return None

    async def abort(self, execution_id: str, reason: Optional[str] = None) -> ExecutionStatus:
        """
        External abort. A waiting approval is cancelled immediately; a running
        execution stops before its next stage, and an in-flight blue/green
        deployment is rolled back.
        """
        record = self._get_record(execution_id)
        execution = record.execution
        reason = reason or "abort requested"
        if execution.is_terminal:
            return execution.status

        logger.warning(f"Execution {execution_id}: abort requested ({reason}).")
        if execution.status == ExecutionStatus.WAITING_APPROVAL and not record.active_fleet:
            stage = record.definition.stages[execution.current_stage_index]
            self.approval_gate.cancel(self.approval_key(execution_id), reason=reason)
            outcome = execution.stage_outcomes[stage.name]
            outcome.status = StageStatus.ABORTED
            outcome.detail = reason
            outcome.completed_at = utc_now_iso()
            self._terminate(record, ExecutionStatus.ABORTED, AlertReason.ABORT_REQUESTED, reason,
                            stage_name=stage.name)
            return execution.status

        record.abort_requested = True
        record.abort_reason = reason
        if record.active_fleet and self.blue_green:
            self.blue_green.cancel(record.active_fleet, reason)
        if not record.lock.locked():
            return await self.advance(execution_id)
        return execution.status

    # --- Stage handling ---

    async def _run_stage(self, record: _ExecutionRecord, stage: Stage) -> bool:
        """Runs one stage. Returns True when advancement may continue."""
        execution = record.execution
        outcome = execution.stage_outcomes[stage.name]

        try:
            inputs = self.artifact_store.resolve(execution.execution_id, stage.inputs)
        except MissingArtifactError as e:
            outcome.status = StageStatus.FAILED
            outcome.error_kind = AlertReason.MISSING_ARTIFACT.value
            outcome.detail = e.args[0]
            outcome.completed_at = utc_now_iso()
            self._terminate(record, ExecutionStatus.FAILED, AlertReason.MISSING_ARTIFACT, e.args[0],
                            stage_name=stage.name)
            return False

        outcome.status = StageStatus.RUNNING
        outcome.started_at = utc_now_iso()
        self._touch(record)
        if not record.dispatched:
            record.dispatched = True
            if self.metrics:
                self.metrics.record_queue_duration(execution.pipeline_name, time.monotonic() - record.created_monotonic)

        started = time.monotonic()
        with start_stage_span(execution.execution_id, execution.pipeline_name, stage) as span:
            if stage.is_blue_green:
                proceed = await self._run_blue_green(record, stage, inputs)
                mark_span(span, proceed, outcome.detail)
                return proceed
            result = await self._execute(record, stage, inputs)
            mark_span(span, result.succeeded, result.error.detail if result.error else None)

        if self.metrics:
            self.metrics.record_stage(execution.pipeline_name, stage.name, stage.kind, result.succeeded,
                                      time.monotonic() - started)
        outcome.completed_at = utc_now_iso()

        if not result.succeeded:
            outcome.status = StageStatus.FAILED
            outcome.error_kind = result.error.kind.value
            outcome.detail = result.error.detail
            self._terminate(record, ExecutionStatus.FAILED, AlertReason(result.error.kind.value),
                            result.error.detail, stage_name=stage.name)
            return False

        self._store_output(record, stage, result)
        outcome.status = StageStatus.SUCCEEDED
        logger.info(f"Execution {execution.execution_id}: stage '{stage.name}' succeeded.")
        return True

    async def _execute(self, record: _ExecutionRecord, stage: Stage, inputs: Sequence[Artifact]) -> StageResult:
        execution = record.execution
        context = StageContext(execution.execution_id, execution.pipeline_name, record.config)
        timeout = record.config.stage_timeout_seconds
        try:
            return await asyncio.wait_for(self.stage_executor.run(stage, inputs, context), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Execution {execution.execution_id}: stage '{stage.name}' timed out after {timeout}s.")
            return StageResult.failure(StageErrorKind.COLLABORATOR_UNAVAILABLE, f"Stage timed out after {timeout}s")
        except Exception as e:
            logger.error(f"Execution {execution.execution_id}: unhandled error in stage '{stage.name}': {e}",
                         exc_info=True)
            return StageResult.failure(StageErrorKind.EXECUTION_FAILED, f"Unhandled error: {e}")

    async def _run_blue_green(self, record: _ExecutionRecord, stage: Stage, inputs: Sequence[Artifact]) -> bool:
        execution = record.execution
        outcome = execution.stage_outcomes[stage.name]
        if self.blue_green is None or self.health_check is None:
            missing = "traffic router" if self.blue_green is None else "health check"
            return self._fail_stage(record, stage, StageErrorKind.COLLABORATOR_UNAVAILABLE,
                                    f"No {missing} configured for blue/green deploy")

        config = record.config
        fleet = stage.parameters.get("fleet") or config.production_fleet
        plan = DeploymentPlan(
            target_fleet=fleet,
            image_uri=inputs[0].payload_ref,
            schedule=config.traffic_schedule,
            health_check=self.health_check,
            max_unhealthy_samples=config.max_unhealthy_samples,
            sample_interval_seconds=config.health_sample_interval_seconds,
            require_approval=bool(stage.parameters.get("require_approval", config.require_production_approval)),
            retain_blue_as_standby=config.retain_blue_as_standby,
            execution_id=execution.execution_id,
            pipeline_name=execution.pipeline_name,
            stage_name=stage.name,
        )

        record.active_fleet = fleet
        if plan.require_approval:
            # The controller blocks on its own gate before touching traffic.
            self._set_status(record, ExecutionStatus.WAITING_APPROVAL, stage.name)
        try:
            result = await self.blue_green.deploy(plan)
        except DeploymentInProgressError as e:
            return self._fail_stage(record, stage, StageErrorKind.EXECUTION_FAILED, e.args[0])
        except Exception as e:
            logger.error(f"Execution {execution.execution_id}: blue/green deploy of '{fleet}' raised: {e}",
                         exc_info=True)
            return self._fail_stage(record, stage, StageErrorKind.EXECUTION_FAILED, f"Unhandled error: {e}")
        finally:
            record.active_fleet = None

        outcome.completed_at = utc_now_iso()
        if result.state == DeploymentState.COMPLETED:
            self._store_output(record, stage, StageResult.success(
                plan.image_uri,
                {"deployment_id": result.deployment_id, "fleet": fleet, "history": result.history},
            ))
            outcome.status = StageStatus.SUCCEEDED
            outcome.detail = result.detail
            return True

        # A deployment that did not complete was rolled back; the controller has already alerted.
        outcome.status = StageStatus.ABORTED
        outcome.error_kind = result.reason.value if result.reason else None
        outcome.detail = result.detail
        self._terminate(record, ExecutionStatus.ABORTED, result.reason, result.detail,
                        stage_name=stage.name, alert=False)
        return False

    def _fail_stage(self, record: _ExecutionRecord, stage: Stage, kind: StageErrorKind, detail: str) -> bool:
        outcome = record.execution.stage_outcomes[stage.name]
        outcome.status = StageStatus.FAILED
        outcome.error_kind = kind.value
        outcome.detail = detail
        outcome.completed_at = utc_now_iso()
        self._terminate(record, ExecutionStatus.FAILED, AlertReason(kind.value), detail, stage_name=stage.name)
        return False

    def _store_output(self, record: _ExecutionRecord, stage: Stage, result: StageResult) -> None:
        execution = record.execution
        artifact = self.artifact_store.put(
            execution.execution_id, stage.output, stage.name, result.payload_ref, result.metadata
        )
        execution.artifacts[artifact.name] = artifact

    def _open_approval(self, record: _ExecutionRecord, stage: Stage) -> None:
        execution = record.execution
        outcome = execution.stage_outcomes[stage.name]
        outcome.status = StageStatus.RUNNING
        outcome.started_at = utc_now_iso()
        description = stage.parameters.get(
            "description", f"Approve stage '{stage.name}' of pipeline '{execution.pipeline_name}'"
        )
        self.approval_gate.open(self.approval_key(execution.execution_id), description)
        self._set_status(record, ExecutionStatus.WAITING_APPROVAL, stage.name)

    # --- State transitions ---

    def _get_record(self, execution_id: str) -> _ExecutionRecord:
        record = self._records.get(execution_id)
        if record is None:
            raise ExecutionNotFoundError(f"Execution '{execution_id}' not found", execution_id=execution_id)
        return record

    def _touch(self, record: _ExecutionRecord) -> None:
        record.execution.updated_at = utc_now_iso()

    def _set_status(self, record: _ExecutionRecord, status: ExecutionStatus, stage_name: Optional[str] = None) -> None:
        execution = record.execution
        previous = execution.status
        execution.status = status
        self._touch(record)
        logger.info(f"Execution {execution.execution_id}: {previous.value} -> {status.value}"
                    + (f" at stage '{stage_name}'" if stage_name else ""))
        self._publish_state(record, stage_name)

    def _terminate(self, record: _ExecutionRecord, status: ExecutionStatus,
                   reason: Optional[AlertReason] = None, detail: Optional[str] = None,
                   stage_name: Optional[str] = None, alert: bool = True) -> None:
        execution = record.execution
        execution.completed_at = utc_now_iso()
        execution.termination_reason = reason
        if status != ExecutionStatus.SUCCEEDED:
            execution.error_message = detail or (reason.value if reason else None)
        self._set_status(record, status, stage_name)

        if self._active_by_pipeline.get(execution.pipeline_name) == execution.execution_id:
            del self._active_by_pipeline[execution.pipeline_name]
        self.artifact_store.discard(execution.execution_id)
        if self.metrics:
            self.metrics.record_execution(execution.pipeline_name, status)
        if alert and reason is not None and self.alert_router is not None:
            self.alert_router.publish(make_alert_event(
                reason,
                execution_id=execution.execution_id,
                pipeline_name=execution.pipeline_name,
                stage_name=stage_name,
                detail=detail,
            ))

    def _publish_state(self, record: _ExecutionRecord, stage_name: Optional[str] = None) -> None:
        if self.event_bus is None:
            return
        execution = record.execution
        self.event_bus.publish_state_change(
            make_state_change_event(execution.pipeline_name, execution.execution_id, execution.status, stage_name)
        )
