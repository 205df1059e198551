# ===================================================
# 📁 tests/unit/test_stage_executor.py
# ===================================================
import httpx
import pytest
from tenacity import wait_none

from deliveryflow.core.exceptions import CollaboratorUnavailableError
from deliveryflow.core.pipeline_config import RunConfig
from deliveryflow.core.stage_executor import Collaborators, StageContext, StageExecutor
from deliveryflow.interfaces.types.common import DeployStrategy, StageErrorKind, StageKind
from deliveryflow.interfaces.types.pipeline import Artifact, Stage

from fakes import FakeBuilder, FakeDeployTarget, FakeSource

CONTEXT = StageContext(execution_id="exec-1", pipeline_name="CICD_Pipeline", config=RunConfig())


def _artifact(name="source_output", payload_ref="s3://sources/abc.tar.gz", **metadata):
    return Artifact(artifact_id=f"artifact-{name}", name=name, producing_stage="Source", execution_id="exec-1",
                    created_at="2024-01-01T00:00:00.000Z", payload_ref=payload_ref,
                    metadata=metadata or {"revision_id": "abc"})


SOURCE = Stage(name="Source", kind=StageKind.SOURCE, output="source_output")
TEST = Stage(name="Unit-Test", kind=StageKind.TEST, inputs=("source_output",), output="report",
             commands=("npm ci", "npm test"))
DOCKER = Stage(name="Docker-Build", kind=StageKind.CONTAINER_BUILD, inputs=("source_output",), output="image",
               commands=("docker build -t app:latest .",))
DEPLOY = Stage(name="Deploy-Test", kind=StageKind.DEPLOY, inputs=("image",), output="deployment")


@pytest.mark.asyncio
async def test_source_pull_uses_run_config(source):
    executor = StageExecutor(Collaborators(source=source))

    result = await executor.run(SOURCE, [], CONTEXT)

    assert result.succeeded
    assert result.payload_ref == "s3://sources/3f2a9c1d.tar.gz"
    assert result.metadata["revision_id"] == "3f2a9c1d"
    assert source.calls == [("devops-v7/tarea3-lab4-continuous-delivery", "main", None)]


@pytest.mark.asyncio
async def test_test_stage_passes_commands_and_compute_profile(builder):
    executor = StageExecutor(Collaborators(builder=builder))

    result = await executor.run(TEST, [_artifact()], CONTEXT)

    assert result.succeeded
    assert builder.calls == [["npm ci", "npm test"]]
    assert builder.profiles[0]["build_image"] == "STANDARD_7_0"
    assert builder.profiles[0]["privileged"] is True


@pytest.mark.asyncio
async def test_non_zero_exit_is_execution_failed():
    executor = StageExecutor(Collaborators(builder=FakeBuilder(failing_commands={"npm test"})))

    result = await executor.run(TEST, [_artifact()], CONTEXT)

    assert not result.succeeded
    assert result.error.kind == StageErrorKind.EXECUTION_FAILED
    assert "exit status 1" in result.error.detail
    assert "1 failing test" in result.error.detail


@pytest.mark.asyncio
async def test_container_build_pushes_image_tagged_with_revision(builder, registry):
    executor = StageExecutor(Collaborators(builder=builder, registry=registry))

    result = await executor.run(DOCKER, [_artifact(revision_id="abc")], CONTEXT)

    assert result.payload_ref == "registry.example.com/app:abc"
    assert registry.pushed == [("app", "abc")]


@pytest.mark.asyncio
async def test_deploy_without_acknowledgment_fails():
    executor = StageExecutor(Collaborators(deploy_target=FakeDeployTarget(acknowledgment=None)))

    result = await executor.run(DEPLOY, [_artifact("image", "registry.example.com/app:abc")], CONTEXT)

    assert result.error.kind == StageErrorKind.EXECUTION_FAILED


@pytest.mark.asyncio
async def test_missing_collaborator_is_unavailable():
    result = await StageExecutor(Collaborators()).run(SOURCE, [], CONTEXT)
    assert result.error.kind == StageErrorKind.COLLABORATOR_UNAVAILABLE


@pytest.mark.asyncio
async def test_blue_green_and_approval_stages_are_not_executable(deploy_target):
    executor = StageExecutor(Collaborators(deploy_target=deploy_target))
    blue_green = DEPLOY.model_copy(update={"deploy_strategy": DeployStrategy.BLUE_GREEN})
    approval = Stage(name="Gate", kind=StageKind.APPROVAL)

    assert (await executor.run(blue_green, [_artifact("image")], CONTEXT)).error.kind == \
        StageErrorKind.EXECUTION_FAILED
    assert (await executor.run(approval, [], CONTEXT)).error.kind == StageErrorKind.EXECUTION_FAILED
    assert deploy_target.deployed == []


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ConnectionError("refused"),
    TimeoutError(),
    CollaboratorUnavailableError("busy"),
    httpx.ConnectError("no route"),
])
async def test_unreachable_collaborator_is_unavailable(error):
    executor = StageExecutor(Collaborators(source=FakeSource(error=error)))
    result = await executor.run(SOURCE, [], CONTEXT)
    assert result.error.kind == StageErrorKind.COLLABORATOR_UNAVAILABLE


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, kind", [
    (503, StageErrorKind.COLLABORATOR_UNAVAILABLE),
    (429, StageErrorKind.COLLABORATOR_UNAVAILABLE),
    (403, StageErrorKind.EXECUTION_FAILED),
])
async def test_http_status_errors_are_classified(status_code, kind):
    request = httpx.Request("GET", "https://scm.example.com")
    error = httpx.HTTPStatusError("boom", request=request, response=httpx.Response(status_code, request=request))
    executor = StageExecutor(Collaborators(source=FakeSource(error=error)))

    result = await executor.run(SOURCE, [], CONTEXT)

    assert result.error.kind == kind


@pytest.mark.asyncio
async def test_unavailable_collaborator_is_retried_then_succeeds():
    class FlakySource(FakeSource):
        async def pull(self, repository, branch, credential):
            if len(self.calls) < 2:
                self.calls.append((repository, branch, credential))
                raise ConnectionError("reset by peer")
            return await super().pull(repository, branch, credential)

    source = FlakySource()
    executor = StageExecutor(Collaborators(source=source), retry_attempts=3, retry_wait=wait_none())

    result = await executor.run(SOURCE, [], CONTEXT)

    assert result.succeeded
    assert len(source.calls) == 3


@pytest.mark.asyncio
async def test_failed_collaborator_is_never_retried():
    builder = FakeBuilder(failing_commands={"npm test"})
    executor = StageExecutor(Collaborators(builder=builder), retry_attempts=3, retry_wait=wait_none())

    await executor.run(TEST, [_artifact()], CONTEXT)

    assert len(builder.calls) == 1
