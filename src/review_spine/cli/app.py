"""
Root Typer application for the review-spine CLI.
"""

from __future__ import annotations

import time

import typer
from typer import Typer

from review_spine import __version__
from review_spine.cli.utils import console, open_manager, output

app = Typer(
    name="review-spine",
    help="review-spine: content review routing and archival.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"review-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Run intake, routing and archive jobs."""


# ── One-shot cycles ──────────────────────────────────────────────────────


@app.command("intake")
def intake(as_json: bool = typer.Option(False, "--json", help="Output as JSON")) -> None:
    """Run one intake cycle."""
    with open_manager() as manager:
        report = manager.trigger_intake()
    output(report, as_json=as_json, title="Intake cycle")


@app.command("route")
def route(as_json: bool = typer.Option(False, "--json", help="Output as JSON")) -> None:
    """Run one status-routing cycle."""
    with open_manager() as manager:
        report = manager.trigger_routing()
    output(report, as_json=as_json, title="Routing cycle")


@app.command("archive")
def archive(
    sprint: str = typer.Argument(..., help="Sprint name; the folder is created as {prefix}{sprint}"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Archive closed rows and their files for SPRINT."""
    with open_manager() as manager:
        batch = manager.run_archive(sprint)
    if as_json:
        output(batch, as_json=True)
    else:
        console.print(batch.summary, markup=False, highlight=False)
    if batch.has_failures:
        raise typer.Exit(code=1)


# ── Long-running ─────────────────────────────────────────────────────────


@app.command("run")
def run() -> None:
    """Start the intake and router loops until interrupted."""
    with open_manager() as manager:
        status = manager.start()
        console.print("[bold green]review-spine running[/bold green] (Ctrl+C to stop)")
        output(status["loops"], title="Loops")
        try:
            while True:
                time.sleep(1.0)
        except KeyboardInterrupt:
            console.print("[yellow]Stopping (waiting for in-flight cycles)...[/yellow]")


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the review-spine REST API server."""
    import uvicorn

    from review_spine.core.settings import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    console.print(f"[bold green]Starting review-spine API[/bold green] on {host}:{port}")
    uvicorn.run(
        "review_spine.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=log_level,
    )


# ── Inspection ───────────────────────────────────────────────────────────


@app.command("logs")
def logs(
    errors: bool = typer.Option(False, "--errors", help="Show the error log instead"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max entries"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show recent processing (or error) log entries, newest first."""
    with open_manager() as manager:
        entries = manager.error_logs(limit=limit) if errors else manager.processing_logs(limit=limit)
    output(entries, as_json=as_json, title="Error log" if errors else "Processing log")


@app.command("stats")
def stats(as_json: bool = typer.Option(False, "--json", help="Output as JSON")) -> None:
    """Show processing counts per action and status."""
    with open_manager() as manager:
        rows = manager.processing_stats()
    output(rows, as_json=as_json, title="Processing stats")
