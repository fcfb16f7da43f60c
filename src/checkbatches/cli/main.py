import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich import print
from rich.console import Console
from rich.table import Table

from checkbatches.checker import CheckReport
from checkbatches.exceptions import ConfigurationError
from checkbatches.handler import run_once
from checkbatches.utils.logging import setup_logging

app = typer.Typer(no_args_is_help=True)


def print_report(report: CheckReport, dry_run: bool):
    table = Table("Metric", "Count", title="Batch check" + (" (dry run)" if dry_run else ""))
    table.add_row("Waiting batches", str(report.candidates))
    table.add_row("Completed batches", str(report.eligible))
    table.add_row("Chunks", str(report.chunks))
    table.add_row("Messages delivered", f"[green]{report.delivered}[/green]")
    table.add_row("Messages dropped", f"[red]{report.dropped}[/red]" if report.dropped else "0")
    table.add_row("Serialization failures", str(report.serialization_failures))
    console = Console()
    console.print(table)


@app.command(name="run")
def run(
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Check batches but do not send any message to the queue",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Enable debug logs"),
    ] = False,
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Render logs as JSON lines"),
    ] = False,
):
    """Check waiting batches once and announce the completed ones"""
    load_dotenv(override=False)
    setup_logging(level=logging.DEBUG if verbose else logging.INFO, json_logs=json_logs)
    try:
        report = run_once(dry_run=dry_run)
    except ConfigurationError as error:
        print(f"[red]Configuration error:[/red] {error}")
        raise typer.Exit(1)
    print_report(report, dry_run=dry_run)


@app.command()
def version():
    """Get the version of the package"""
    try:
        typer.echo(package_version("checkbatches"))
    except PackageNotFoundError:
        typer.echo("unknown")
    raise typer.Exit()
