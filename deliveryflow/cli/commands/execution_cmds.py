# ================================================
# 📁 cli/commands/execution_cmds.py
# ================================================
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import typer
from typing_extensions import Annotated

from deliveryflow.sdk import DeliveryFlowClient, DeliveryFlowSDKError
from ..sdk_client_factory import close_sdk_client, get_sdk_client

logger = logging.getLogger(__name__)
app = typer.Typer(name="executions", help="Start and steer pipeline executions through the API.")


def _run_sdk_call(action: str, call: Callable[[DeliveryFlowClient], Awaitable[Any]]) -> None:
    async def _run():
        try:
            return await call(get_sdk_client())
        finally:
            await close_sdk_client()

    try:
        result = asyncio.run(_run())
    except DeliveryFlowSDKError as e:
        logger.debug(f"CLI error while trying to {action}: {e}", exc_info=True)
        typer.secho(f"Error while trying to {action}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(result, indent=2))


@app.command("start")
def start_execution_cmd(pipeline: Annotated[str, typer.Argument(help="Pipeline name.")]):
    """Starts a new execution of a pipeline."""
    _run_sdk_call("start the execution", lambda client: client.start_execution(pipeline))


@app.command("status")
def execution_status_cmd(execution_id: Annotated[str, typer.Argument(help="Execution ID.")]):
    """Shows the state of an execution, stage by stage."""
    _run_sdk_call("get the execution status", lambda client: client.get_execution(execution_id))


@app.command("approve")
def approve_execution_cmd(
    execution_id: Annotated[str, typer.Argument(help="Execution ID.")],
    approver: Annotated[Optional[str], typer.Option(help="Who approves.")] = None,
):
    """Approves the pending approval of an execution."""
    _run_sdk_call("approve", lambda client: client.resolve_approval(execution_id, True, approver))


@app.command("reject")
def reject_execution_cmd(
    execution_id: Annotated[str, typer.Argument(help="Execution ID.")],
    approver: Annotated[Optional[str], typer.Option(help="Who rejects.")] = None,
):
    """Rejects the pending approval of an execution, aborting it."""
    _run_sdk_call("reject", lambda client: client.resolve_approval(execution_id, False, approver))


@app.command("abort")
def abort_execution_cmd(
    execution_id: Annotated[str, typer.Argument(help="Execution ID.")],
    reason: Annotated[Optional[str], typer.Option(help="Reason recorded with the abort.")] = None,
):
    """Aborts a running or waiting execution."""
    _run_sdk_call("abort", lambda client: client.abort_execution(execution_id, reason))


@app.command("approvals")
def pending_approvals_cmd():
    """Lists approvals waiting for a decision."""
    _run_sdk_call("list pending approvals", lambda client: client.list_pending_approvals())
