from .tracing import setup_tracing, get_tracer, start_trace_span, mark_span
from .metrics import PipelineMetrics

__all__ = ["setup_tracing", "get_tracer", "start_trace_span", "mark_span", "PipelineMetrics"]
