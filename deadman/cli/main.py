"""
DEADMAN CLI Main Entry Point

The main Typer application that assembles all command groups.
"""

from pathlib import Path
from typing import Annotated, Optional

import structlog
import typer
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from deadman import __version__
from deadman.cli.common import (
    build_engine,
    console,
    format_interval,
    run_with_engine,
    set_store_path,
    store_path,
)
from deadman.config import settings
from deadman.engine import HeartbeatEngine
from deadman.log import configure_logging
from deadman.models import Monitor, ScanReport

logger = structlog.get_logger(__name__)

# Create the main app
app = typer.Typer(
    name="deadman",
    help="DEADMAN - dead-man's-switch heartbeat monitoring and alerting",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(
            Panel(
                Text.from_markup(
                    f"[bold cyan]DEADMAN[/bold cyan] v{__version__}\n"
                    "[dim]Dead-man's-switch heartbeat monitoring[/dim]"
                ),
                title="Version",
                border_style="cyan",
            )
        )
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    store: Annotated[
        Optional[Path],
        typer.Option(
            "--store",
            "-s",
            help="JSON store file (default: $DEADMAN_STORE_PATH or ~/.deadman/store.json).",
        ),
    ] = None,
) -> None:
    """
    DEADMAN - Dead-man's-switch heartbeat monitor

    Monitors expect a heartbeat every interval. Silent monitors raise an
    alarm that is sent to every notification of their group.
    """
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_json)
    set_store_path(store)


# Import and register sub-commands
from deadman.cli.monitor import app as monitor_app
from deadman.cli.notify import app as notify_app, group_app

app.add_typer(monitor_app, name="monitor", help="Manage heartbeat monitors")
app.add_typer(group_app, name="group", help="Manage monitor groups")
app.add_typer(notify_app, name="notify", help="Manage notification channels")


@app.command()
def ack(
    uuid: Annotated[str, typer.Argument(help="Monitor UUID")],
) -> None:
    """Send a heartbeat for a monitor and clear its alarm."""
    async def _ack(engine: HeartbeatEngine) -> Monitor:
        return await engine.acknowledge(uuid)

    monitor = run_with_engine(_ack)
    console.print(f"[green]✓ Heartbeat recorded for {monitor.name} ({monitor.uuid})[/green]")


@app.command()
def suppress(
    uuid: Annotated[str, typer.Argument(help="Monitor UUID")],
) -> None:
    """Silence a monitor's alarm without recording a heartbeat."""
    async def _suppress(engine: HeartbeatEngine) -> Monitor:
        return await engine.suppress(uuid)

    monitor = run_with_engine(_suppress)
    console.print(
        f"[yellow]Alarm suppressed for {monitor.name} ({monitor.uuid}).[/yellow] "
        "[dim]It re-alarms on the next scan if still overdue.[/dim]"
    )


@app.command()
def scan() -> None:
    """Run one evaluation pass now."""
    async def _scan(engine: HeartbeatEngine) -> ScanReport:
        return await engine.trigger_scan_once()

    report = run_with_engine(_scan)

    table = Table(title="Scan Report", show_header=False, border_style="cyan")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Evaluated", str(report.evaluated))
    table.add_row("Triggered", ", ".join(report.triggered) or "-")
    table.add_row("Still alarming", ", ".join(report.still_alarming) or "-")
    table.add_row("Failures", str(len(report.failures)))
    table.add_row("Duration", f"{report.duration_seconds:.2f}s")
    console.print(table)

    for uuid, error in report.failures.items():
        console.print(f"[red]✗ {uuid}: {error}[/red]")
    if report.error:
        console.print(f"[red]Scan failed: {report.error}[/red]")
        raise typer.Exit(1)


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Bind address")] = settings.host,
    port: Annotated[int, typer.Option(help="Bind port")] = settings.port,
) -> None:
    """Serve the HTTP API and run periodic scans."""
    import uvicorn

    from deadman.api.main import create_app

    console.print(
        f"[cyan]Serving on {host}:{port}, scanning every "
        f"{format_interval(settings.scan_interval_seconds)} "
        f"(store: {store_path()})[/cyan]"
    )
    uvicorn.run(create_app(engine=build_engine()), host=host, port=port, log_config=None)


@app.command()
def info() -> None:
    """Show information about DEADMAN."""
    table = Table(title="DEADMAN Information", show_header=False, border_style="cyan")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Version", __version__)
    table.add_row("Store", str(store_path()))
    table.add_row("Scan interval", format_interval(settings.scan_interval_seconds))
    table.add_row("Delivery timeout", f"{settings.delivery_timeout_seconds}s")

    console.print(table)


if __name__ == "__main__":
    app()
