# ====================================
# 📁 cli/main.py
# ====================================
import logging
import os
import sys

import typer

from .commands import execution_cmds, pipeline_cmds

CLI_LOG_LEVEL_STR = os.getenv("LOG_LEVEL", "WARNING").upper()
numeric_log_level = getattr(logging, CLI_LOG_LEVEL_STR, logging.WARNING)

# Logs go to stderr so stdout carries command output only.
logging.basicConfig(
    level=numeric_log_level,
    format="%(asctime)s [%(levelname)-8s] %(name)-25s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)
logging.getLogger("httpx").setLevel(logging.WARNING)

app = typer.Typer(
    name="deliveryflow",
    help="deliveryflow CLI - render delivery pipelines and drive their executions.",
    no_args_is_help=True,
    add_completion=False,
)
app.add_typer(pipeline_cmds.app, name="pipeline")
app.add_typer(execution_cmds.app, name="executions")


@app.callback()
def main_cli_setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose DEBUG logging."),
):
    """
    deliveryflow CLI entry point. Global options are handled here.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger(__name__).debug("Verbose (DEBUG) logging enabled.")


if __name__ == "__main__":
    app()
