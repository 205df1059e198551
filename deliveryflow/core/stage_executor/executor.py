# ============================================
# 📁 core/stage_executor/executor.py
# ============================================
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from deliveryflow.core.exceptions import (
    TRANSIENT_COLLABORATOR_ERRORS,
    CollaboratorFailedError,
    CollaboratorUnavailableError,
)
from deliveryflow.core.pipeline_config import RunConfig
from deliveryflow.interfaces.collaborators import (
    BuildCollaborator,
    ContainerRegistryCollaborator,
    DeployTarget,
    SourceCollaborator,
)
from deliveryflow.interfaces.types.common import StageErrorKind, StageKind
from deliveryflow.interfaces.types.pipeline import Artifact, Stage, StageResult

logger = logging.getLogger(__name__)

MAX_LOG_TAIL = 500


@dataclass
class Collaborators:
    source: Optional[SourceCollaborator] = None
    builder: Optional[BuildCollaborator] = None
    registry: Optional[ContainerRegistryCollaborator] = None
    deploy_target: Optional[DeployTarget] = None


@dataclass(frozen=True)
class StageContext:
    execution_id: str
    pipeline_name: str
    config: RunConfig


class StageExecutor:
    """
    Runs one stage against its input artifacts by delegating to the collaborator
    matching the stage kind. Holds no state between calls.

    Unreachable collaborators are retried up to `retry_attempts` times; a
    collaborator that answers with a failure is never retried.
    """

    def __init__(self, collaborators: Collaborators, retry_attempts: int = 1,
                 retry_wait: Optional[Any] = None):
        self.collaborators = collaborators
        self.retry_attempts = max(1, retry_attempts)
        self.retry_wait = retry_wait if retry_wait is not None else wait_exponential(multiplier=1, min=2, max=60)
        self._handlers: Dict[StageKind, Callable[[Stage, Sequence[Artifact], StageContext], Awaitable[StageResult]]] = {
            StageKind.SOURCE: self._run_source,
            StageKind.BUILD: self._run_build,
            StageKind.TEST: self._run_build,
            StageKind.CONTAINER_BUILD: self._run_container_build,
            StageKind.DEPLOY: self._run_deploy,
        }

    async def run(self, stage: Stage, input_artifacts: Sequence[Artifact], context: StageContext) -> StageResult:
        handler = self._handlers.get(stage.kind)
        if handler is None or stage.is_blue_green:
            return StageResult.failure(
                StageErrorKind.EXECUTION_FAILED,
                f"{stage.kind.value} stage '{stage.name}' is not executable by the stage executor",
            )

        missing = self._missing_collaborator(stage.kind)
        if missing:
            logger.error(f"Execution {context.execution_id}: no {missing} collaborator configured for stage '{stage.name}'.")
            return StageResult.failure(StageErrorKind.COLLABORATOR_UNAVAILABLE, f"No {missing} collaborator configured")

        logger.info(f"Execution {context.execution_id}: running {stage.kind.value} stage '{stage.name}'.")
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=self.retry_wait,
                retry=retry_if_exception_type(CollaboratorUnavailableError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await self._call(handler, stage, input_artifacts, context)
        except CollaboratorUnavailableError as e:
            logger.error(f"Execution {context.execution_id}: stage '{stage.name}' collaborator unavailable: {e.args[0]}")
            return StageResult.failure(StageErrorKind.COLLABORATOR_UNAVAILABLE, e.args[0])
        except CollaboratorFailedError as e:
            logger.error(f"Execution {context.execution_id}: stage '{stage.name}' failed: {e.args[0]}")
            return StageResult.failure(StageErrorKind.EXECUTION_FAILED, e.args[0])
        raise AssertionError("unreachable: retry loop exited without a result")

    async def _call(self, handler, stage: Stage, inputs: Sequence[Artifact], context: StageContext) -> StageResult:
        """Normalizes collaborator exceptions into our two failure kinds."""
        try:
            return await handler(stage, inputs, context)
        except (CollaboratorUnavailableError, CollaboratorFailedError):
            raise
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 429 or status_code >= 500:
                raise CollaboratorUnavailableError(f"Collaborator returned HTTP {status_code}") from e
            raise CollaboratorFailedError(f"Collaborator rejected the request with HTTP {status_code}") from e
        except TRANSIENT_COLLABORATOR_ERRORS as e:
            raise CollaboratorUnavailableError(f"Collaborator unreachable: {e}") from e

    def _missing_collaborator(self, kind: StageKind) -> Optional[str]:
        required = {
            StageKind.SOURCE: ("source", self.collaborators.source),
            StageKind.BUILD: ("build", self.collaborators.builder),
            StageKind.TEST: ("build", self.collaborators.builder),
            StageKind.DEPLOY: ("deploy", self.collaborators.deploy_target),
        }
        if kind == StageKind.CONTAINER_BUILD:
            if self.collaborators.builder is None:
                return "build"
            if self.collaborators.registry is None:
                return "container registry"
            return None
        label, collaborator = required[kind]
        return label if collaborator is None else None

    # --- Per-kind handlers ---

    async def _run_source(self, stage: Stage, inputs: Sequence[Artifact], context: StageContext) -> StageResult:
        source = context.config.source
        branch = stage.parameters.get("branch", source.branch)
        credential = source.credential.get_secret_value() if source.credential else None
        payload = await self.collaborators.source.pull(source.repository, branch, credential)
        return StageResult.success(
            payload["payload_ref"],
            {"revision_id": payload["revision_id"], "repository": source.repository, "branch": branch},
        )

    async def _execute_commands(self, stage: Stage, inputs: Sequence[Artifact], context: StageContext):
        compute_profile = context.config.compute.model_dump()
        compute_profile.update(stage.parameters.get("compute", {}))
        result = await self.collaborators.builder.execute(list(stage.commands), inputs[0], compute_profile)
        if result["exit_status"] != 0:
            logs = (result.get("logs") or "")[-MAX_LOG_TAIL:]
            raise CollaboratorFailedError(f"exit status {result['exit_status']}" + (f": {logs}" if logs else ""))
        return result

    async def _run_build(self, stage: Stage, inputs: Sequence[Artifact], context: StageContext) -> StageResult:
        result = await self._execute_commands(stage, inputs, context)
        return StageResult.success(
            result.get("output_ref") or inputs[0].payload_ref,
            {"revision_id": inputs[0].metadata.get("revision_id")},
        )

    async def _run_container_build(self, stage: Stage, inputs: Sequence[Artifact], context: StageContext) -> StageResult:
        result = await self._execute_commands(stage, inputs, context)
        image_ref = result.get("output_ref") or stage.parameters.get("image", "app")
        tag = inputs[0].metadata.get("revision_id") or stage.parameters.get("tag", "latest")
        image_uri = await self.collaborators.registry.push(image_ref, tag)
        return StageResult.success(image_uri, {"tag": tag, "revision_id": inputs[0].metadata.get("revision_id")})

    async def _run_deploy(self, stage: Stage, inputs: Sequence[Artifact], context: StageContext) -> StageResult:
        image_uri = inputs[0].payload_ref
        acknowledgment = await self.collaborators.deploy_target.deploy(image_uri)
        if not acknowledgment:
            raise CollaboratorFailedError(f"Deploy target did not acknowledge service update for {image_uri}")
        return StageResult.success(image_uri, {"acknowledgment": acknowledgment})
