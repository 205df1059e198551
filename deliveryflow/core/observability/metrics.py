# ============================================
# 📁 core/observability/metrics.py
# ============================================
import logging
from typing import Optional

from opentelemetry import metrics

from deliveryflow.interfaces.types.common import ExecutionStatus, StageKind

logger = logging.getLogger(__name__)

BUILD_KINDS = frozenset({StageKind.BUILD, StageKind.TEST, StageKind.CONTAINER_BUILD})


class PipelineMetrics:
    """
    Build and pipeline metrics emitted through the OpenTelemetry metrics API.
    Dashboards read these; the engine never reads them back.
    """

    def __init__(self, meter: Optional[metrics.Meter] = None):
        self._meter = meter or metrics.get_meter("deliveryflow.pipeline")
        self.build_succeeded = self._meter.create_counter(
            "pipeline.build.succeeded", unit="1", description="Build, test and container build stages that succeeded")
        self.build_failed = self._meter.create_counter(
            "pipeline.build.failed", unit="1", description="Build, test and container build stages that failed")
        self.build_duration = self._meter.create_histogram(
            "pipeline.build.duration", unit="s", description="Duration of build-type stages")
        self.queue_duration = self._meter.create_histogram(
            "pipeline.queue.duration", unit="s", description="Time from execution start to first stage dispatch")
        self.source_checkout_duration = self._meter.create_histogram(
            "pipeline.source.checkout.duration", unit="s", description="Duration of source pulls")
        self.executions_finished = self._meter.create_counter(
            "pipeline.executions.finished", unit="1", description="Executions reaching a terminal state")

    def record_stage(self, pipeline_name: str, stage_name: str, kind: StageKind, succeeded: bool,
                     duration_seconds: float) -> None:
        attributes = {"pipeline": pipeline_name, "stage": stage_name, "kind": kind.value}
        if kind == StageKind.SOURCE:
            self.source_checkout_duration.record(duration_seconds, attributes)
            return
        if kind not in BUILD_KINDS:
            return
        (self.build_succeeded if succeeded else self.build_failed).add(1, attributes)
        self.build_duration.record(duration_seconds, attributes)

    def record_queue_duration(self, pipeline_name: str, duration_seconds: float) -> None:
        self.queue_duration.record(duration_seconds, {"pipeline": pipeline_name})

    def record_execution(self, pipeline_name: str, status: ExecutionStatus) -> None:
        self.executions_finished.add(1, {"pipeline": pipeline_name, "status": status.value})
        logger.debug(f"Metrics: execution of '{pipeline_name}' finished with {status.value}.")
