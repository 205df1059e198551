# ===================================================
# 📁 api/main.py
# ===================================================
"""
HTTP surface of the engine.

Run with: uvicorn deliveryflow.api.main:create_default_app --factory
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from fastapi import BackgroundTasks, Body, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from deliveryflow import __version__
from deliveryflow.core.exceptions import (
    DefinitionError,
    DeliveryFlowError,
    ExecutionInProgressError,
    ExecutionNotFoundError,
    InvalidExecutionStateError,
)
from deliveryflow.core.observability.tracing import get_tracer, setup_tracing, start_trace_span
from deliveryflow.core.orchestrator import Orchestrator
from deliveryflow.core.pipeline_config import RunConfig
from deliveryflow.interfaces.types.pipeline import PipelineDefinition
from deliveryflow.shared.app_config import app_config
from deliveryflow.shared.utils import utc_now_iso
from .api_models import (
    AbortRequest,
    ApprovalDecisionRequest,
    ApprovalRequestModel,
    ExecutionStatusModel,
    PipelineDefinitionModel,
    StartExecutionResponse,
    WebhookResponse,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer("api")

_STATUS_BY_ERROR = (
    (ExecutionNotFoundError, 404),
    (DefinitionError, 422),
    (ExecutionInProgressError, 409),
    (InvalidExecutionStateError, 409),
)


def _status_for(error: DeliveryFlowError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(orchestrator: Orchestrator, definitions: Sequence[PipelineDefinition],
               run_config: Optional[RunConfig] = None) -> FastAPI:
    app = FastAPI(
        title="deliveryflow API",
        description="Start, inspect, approve and abort delivery pipeline executions.",
        version=__version__,
    )
    pipelines: Dict[str, PipelineDefinition] = {definition.name: definition for definition in definitions}
    config = run_config or orchestrator.default_config

    @app.exception_handler(DeliveryFlowError)
    async def _engine_error_handler(request: Request, exc: DeliveryFlowError):
        status_code = _status_for(exc)
        logger.warning(f"API {request.method} {request.url.path} -> {status_code}: {exc}")
        return JSONResponse(status_code=status_code, content={"detail": exc.args[0], "error": type(exc).__name__})

    def _definition(name: str) -> PipelineDefinition:
        definition = pipelines.get(name)
        if definition is None:
            raise HTTPException(status_code=404, detail=f"Pipeline '{name}' not found")
        return definition

    def _execution_model(execution_id: str) -> ExecutionStatusModel:
        execution = orchestrator.get_status(execution_id)
        return ExecutionStatusModel.from_execution(execution, pipelines[execution.pipeline_name])

    def _start(definition: PipelineDefinition, background_tasks: BackgroundTasks) -> str:
        execution_id = orchestrator.create_execution(definition, config)
        background_tasks.add_task(orchestrator.advance, execution_id)
        return execution_id

    # === API Endpoints ===

    @app.get("/api/health", tags=["Health"])
    async def health_check():
        event_bus = orchestrator.event_bus
        return {
            "service_name": app_config.service_name,
            "status": "healthy",
            "timestamp": utc_now_iso(),
            "environment": app_config.environment,
            "event_bus": "connected" if event_bus is not None and event_bus.connected else "disabled",
        }

    @app.get("/api/pipelines", response_model=List[PipelineDefinitionModel], tags=["Pipelines"])
    async def list_pipelines():
        return [PipelineDefinitionModel.from_definition(definition) for definition in pipelines.values()]

    @app.get("/api/pipelines/{pipeline_name}", response_model=PipelineDefinitionModel, tags=["Pipelines"])
    async def get_pipeline(pipeline_name: str):
        return PipelineDefinitionModel.from_definition(_definition(pipeline_name))

    @app.post("/api/pipelines/{pipeline_name}/executions", response_model=StartExecutionResponse,
              status_code=202, tags=["Executions"])
    async def start_execution(pipeline_name: str, background_tasks: BackgroundTasks):
        definition = _definition(pipeline_name)
        with start_trace_span(_tracer, "api.start_execution", pipeline=pipeline_name):
            execution_id = _start(definition, background_tasks)
        logger.info(f"API: execution {execution_id} of '{pipeline_name}' accepted.")
        return StartExecutionResponse(
            execution_id=execution_id,
            pipeline_name=pipeline_name,
            status=orchestrator.get_status(execution_id).status.value,
            message="Execution accepted.",
        )

    @app.get("/api/executions", response_model=List[ExecutionStatusModel], tags=["Executions"])
    async def list_executions(pipeline: Optional[str] = None):
        return [
            ExecutionStatusModel.from_execution(execution, pipelines[execution.pipeline_name])
            for execution in orchestrator.list_executions(pipeline)
        ]

    @app.get("/api/executions/{execution_id}", response_model=ExecutionStatusModel, tags=["Executions"])
    async def get_execution(execution_id: str):
        return _execution_model(execution_id)

    @app.post("/api/executions/{execution_id}/approval", response_model=ExecutionStatusModel, tags=["Executions"])
    async def resolve_approval(execution_id: str, decision: ApprovalDecisionRequest):
        with start_trace_span(_tracer, "api.resolve_approval", execution_id=execution_id, approved=decision.approved):
            await orchestrator.resolve_approval(execution_id, decision.approved, decision.approver)
        return _execution_model(execution_id)

    @app.post("/api/executions/{execution_id}/abort", response_model=ExecutionStatusModel, tags=["Executions"])
    async def abort_execution(execution_id: str, body: Optional[AbortRequest] = None):
        await orchestrator.abort(execution_id, body.reason if body else None)
        return _execution_model(execution_id)

    @app.get("/api/approvals", response_model=List[ApprovalRequestModel], tags=["Approvals"])
    async def list_pending_approvals():
        return [ApprovalRequestModel(**request.model_dump()) for request in orchestrator.approval_gate.pending()]

    @app.post("/api/webhooks/source/{pipeline_name}", response_model=WebhookResponse, tags=["Webhooks"])
    async def source_push_webhook(pipeline_name: str, response: Response, background_tasks: BackgroundTasks,
                                  payload: Dict[str, Any] = Body(...)):
        definition = _definition(pipeline_name)
        ref = payload.get("ref", "")
        branch = ref.rsplit("refs/heads/", 1)[-1] if ref else ""
        if branch != config.source.branch:
            logger.info(f"Webhook for '{pipeline_name}': ignoring push to '{branch or ref}'.")
            return WebhookResponse(accepted=False, message=f"Push to '{branch}' does not trigger this pipeline")

        execution_id = _start(definition, background_tasks)
        response.status_code = 202
        logger.info(f"Webhook for '{pipeline_name}': push {str(payload.get('after', ''))[:12]} "
                    f"started execution {execution_id}.")
        return WebhookResponse(accepted=True, message="Execution started", execution_id=execution_id)

    return app


def create_default_app() -> FastAPI:
    """Builds the API from AppConfig. Non-source collaborators must be supplied by the deployment."""
    from deliveryflow.bootstrap import build_orchestrator
    from deliveryflow.core.pipeline_builder import build_pipeline_definition, features_from_config

    logging.basicConfig(level=app_config.log_level,
                        format=f"%(asctime)s - %(levelname)s - [{app_config.service_name}] - %(name)s - %(message)s")
    setup_tracing(app_config.service_name, app_config.otel_exporter_otlp_traces_endpoint)

    orchestrator = build_orchestrator(app_config)
    definition = build_pipeline_definition(
        features_from_config(app_config),
        name=app_config.pipeline_name,
        production_fleet=orchestrator.default_config.production_fleet,
    )
    return create_app(orchestrator, [definition])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("deliveryflow.api.main:create_default_app", factory=True, host="0.0.0.0", port=8000, log_config=None)
