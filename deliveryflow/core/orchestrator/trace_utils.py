"""
trace_utils.py

Span helpers for orchestration: one span per stage dispatch.
"""
from contextlib import contextmanager
from typing import Iterator

from opentelemetry import trace

from deliveryflow.core.observability.tracing import get_tracer, start_trace_span
from deliveryflow.interfaces.types.pipeline import Stage

_tracer = get_tracer("orchestrator")


@contextmanager
def start_stage_span(execution_id: str, pipeline_name: str, stage: Stage) -> Iterator[trace.Span]:
    with start_trace_span(
        _tracer,
        f"stage.{stage.kind.value.lower()}",
        **{
            "pipeline.name": pipeline_name,
            "pipeline.execution_id": execution_id,
            "stage.name": stage.name,
            "stage.kind": stage.kind.value,
            "stage.deploy_strategy": stage.deploy_strategy.value,
        },
    ) as span:
        yield span
