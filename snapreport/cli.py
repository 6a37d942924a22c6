#!/usr/bin/env python3
"""
snapreport CLI - Screenshot Test Reporting Tool

Usage:
    snapreport replay <events.jsonl> [OPTIONS]
    snapreport validate <events.jsonl>
    snapreport --version
"""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .events import EventType
from .parsing import ReporterConfig, load_config, load_events
from .plugin import create_reporter
from .reporting import InvalidStateError, ReportSink, Status

app = typer.Typer(
    name="snapreport",
    help="📸 snapreport - Screenshot Test Reporting Tool",
    add_completion=False,
)
console = Console()


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def version_callback(value: bool):
    if value:
        console.print(f"📸 snapreport v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True,
        help="Show version and exit"
    ),
):
    """
    📸 snapreport - Screenshot Test Reporting Tool

    Build Allure-style reports from test-runner events and screenshot diffs.
    """
    pass


def configure_logging(level: LogLevel) -> None:
    logging.basicConfig(
        level=level.value.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def summary_table(sink: ReportSink) -> Table:
    counts = sink.count_by_status()
    table = Table(title="Report")
    table.add_column("Status", style="cyan")
    table.add_column("Tests", justify="right")
    styles = {
        Status.PASSED: "green",
        Status.FAILED: "red",
        Status.BROKEN: "yellow",
        Status.SKIPPED: "dim",
    }
    for status in Status:
        table.add_row(f"[{styles[status]}]{status.value}[/{styles[status]}]", str(counts[status]))
    table.add_row("groups", str(len(sink.groups)))
    return table


@app.command()
def replay(
    events_file: Path = typer.Argument(
        ...,
        help="Path to the JSON Lines event log",
        exists=True,
        readable=True,
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Reporter config YAML",
        exists=True,
        readable=True,
    ),
    results_dir: Optional[Path] = typer.Option(
        None, "--results-dir", "-o",
        help="Override the results directory"
    ),
    update_refs: bool = typer.Option(
        False, "--update-refs",
        help="Reference update run (reporting is skipped)"
    ),
    log_level: LogLevel = typer.Option(
        LogLevel.WARNING, "--log-level", "-l",
        case_sensitive=False,
        help="Logging level"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Only show errors and final status"
    ),
):
    """
    Replay a recorded event log into a report.

    Exits with code 1 if any test failed, broke, or the log is invalid.
    """
    configure_logging(log_level)

    config = ReporterConfig()
    if config_file is not None:
        config, validation = load_config(config_file)
        if not validation.is_valid:
            console.print(f"\n[red]❌ Invalid config:[/red]")
            console.print(str(validation))
            raise typer.Exit(code=1)
    if results_dir is not None:
        config.target_dir = str(results_dir)

    argv = ["--update-refs"] if update_refs else []
    reconciler = create_reporter(config, argv=argv)
    if reconciler is None:
        if not quiet:
            console.print("⏭️  Reporter disabled, nothing to do")
        raise typer.Exit(code=0)

    events, validation = load_events(events_file)
    if not validation.is_valid:
        console.print(f"\n[red]❌ Invalid event log:[/red]")
        console.print(str(validation))
        raise typer.Exit(code=1)

    if not quiet:
        console.print(f"\n📄 Replaying {len(events)} events from {events_file}")

    try:
        sink = asyncio.run(reconciler.consume(events))
    except InvalidStateError as e:
        console.print(f"\n[red]❌ Inconsistent event sequence:[/red] {e}")
        raise typer.Exit(code=1)

    if not quiet:
        console.print()
        console.print(summary_table(sink))
        console.print(f"\n📁 Results written to: {config.target_dir}")

    counts = sink.count_by_status()
    if counts[Status.FAILED] or counts[Status.BROKEN]:
        raise typer.Exit(code=1)
    raise typer.Exit(code=0)


@app.command()
def validate(
    events_file: Path = typer.Argument(
        ...,
        help="Path to the JSON Lines event log",
        exists=True,
        readable=True,
    ),
):
    """
    Validate an event log without building a report.
    """
    console.print(f"\n📄 Validating: {events_file}")

    events, validation = load_events(events_file)

    if validation.is_valid:
        console.print(f"\n[green]✅ Valid event log[/green]")

        table = Table(title="Events")
        table.add_column("Event", style="cyan")
        table.add_column("Count", justify="right")
        for event_type in EventType:
            count = sum(1 for e in events if e.type == event_type)
            if count:
                table.add_row(event_type.value, str(count))

        console.print()
        console.print(table)
        raise typer.Exit(code=0)
    else:
        console.print(f"\n[red]❌ Validation failed:[/red]")
        console.print(str(validation))
        raise typer.Exit(code=1)


@app.command()
def info():
    """
    Show information about snapreport.
    """
    console.print(f"""
📸 [bold]snapreport[/bold] v{__version__}

Screenshot Test Reporting Tool

[bold]Features:[/bold]
  • Suite / test report tree from runner events
  • First-failure-wins status resolution and retry deduplication
  • Each screenshot comparison reported as its own test
  • Diff manifests (expected / actual / diff) for the report UI
  • Allure-style results directory

[bold]Quick Start:[/bold]
  snapreport replay run.jsonl --config snapreport.yaml
  snapreport validate run.jsonl
""")


if __name__ == "__main__":
    app()
