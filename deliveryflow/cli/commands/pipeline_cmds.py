# ================================================
# 📁 cli/commands/pipeline_cmds.py
# ================================================
import json
import logging
from typing import Optional

import typer
from typing_extensions import Annotated

from deliveryflow.core.exceptions import DefinitionError
from deliveryflow.core.pipeline_builder import build_pipeline_definition
from deliveryflow.interfaces.types.pipeline import PipelineFeatures

logger = logging.getLogger(__name__)
app = typer.Typer(name="pipeline", help="Render pipeline definitions.")


@app.command("show")
def show_pipeline_cmd(
    name: Annotated[Optional[str], typer.Option(help="Pipeline name (defaults to CICD_Pipeline).")] = None,
    unit_test_only: Annotated[bool, typer.Option("--unit-test-only", help="Source and unit tests only.")] = False,
    docker_build: Annotated[bool, typer.Option("--docker-build", help="Add docker build and test deploy.")] = False,
    blue_green: Annotated[bool, typer.Option("--blue-green", help="Add approved blue/green production deploy.")] = False,
    dashboard_and_alerts: Annotated[bool, typer.Option("--dashboard-and-alerts",
                                                       help="Enable metrics and alert channels.")] = False,
    fleet: Annotated[Optional[str], typer.Option(help="Production fleet for the blue/green stage.")] = None,
):
    """Prints the stage sequence the engine would run for the given features."""
    features = PipelineFeatures(
        unit_test_only=unit_test_only,
        with_docker_build=docker_build,
        with_blue_green_deploy=blue_green,
        with_dashboard_and_alerts=dashboard_and_alerts,
    )
    try:
        definition = build_pipeline_definition(features, name=name, production_fleet=fleet)
    except DefinitionError as e:
        typer.secho(f"Invalid pipeline: {e.args[0]}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    typer.echo(json.dumps(definition.model_dump(mode="json"), indent=2))
