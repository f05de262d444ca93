"""Slotboard CLI entry point (WI_0023, WI_0034, WI_0037, WI_0040, WI_0041)."""

from __future__ import annotations

import importlib.metadata
from pathlib import Path
from typing import Annotated, Optional

import typer

from slotboard.cli.add import add_cmd
from slotboard.cli.init import init_cmd
from slotboard.cli.move import move_cmd
from slotboard.cli.project import log_flags
from slotboard.cli.status import status_cmd
from slotboard.logging_setup import setup_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("slotboard")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"slotboard {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="slotboard",
    help=(
        "Slotboard — content scheduling calendar.\n\n"
        "  slotboard add     Add a card to the pool.\n"
        "  slotboard move    Schedule a card on a day, or send it back to the pool."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR). Overrides slotboard.yaml."),
    ] = None,
    log_json: Annotated[
        Optional[Path],
        typer.Option("--log-json", help="Also write JSON log lines to this file. Overrides slotboard.yaml."),
    ] = None,
) -> None:
    """Slotboard — content scheduling calendar."""
    try:
        setup_logging(log_level or "WARNING", json_file=log_json)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level")
    # Project commands re-apply logging once slotboard.yaml is loaded.
    log_flags.level = log_level
    log_flags.json_file = log_json


app.command("init")(init_cmd)
app.command("add")(add_cmd)
app.command("move")(move_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed slotboard version."""
    typer.echo(f"slotboard {_installed_version()}")


if __name__ == "__main__":
    app()
