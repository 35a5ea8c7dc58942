"""
Monitor CLI Commands

Commands for managing heartbeat monitors.
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from deadman.cli.common import console, format_interval, parse_interval, run_with_engine
from deadman.engine import HeartbeatEngine
from deadman.models import AlarmState, HistoryStatus, Monitor

app = typer.Typer(
    name="monitor",
    help="Manage heartbeat monitors",
    no_args_is_help=True,
)

_STATE_STYLE = {
    AlarmState.NORMAL: "[green]●[/green] normal",
    AlarmState.ALARM: "[red]✗[/red] alarm",
}

_HISTORY_STYLE = {
    HistoryStatus.TRIGGERED: "red",
    HistoryStatus.RESET: "green",
    HistoryStatus.SUPPRESSED: "yellow",
}


@app.command("create")
def create_monitor(
    name: Annotated[str, typer.Argument(help="Monitor name")],
    group: Annotated[str, typer.Option("--group", "-g", help="Group ID")],
    owner: Annotated[str, typer.Option("--owner", "-o", help="Owner ID")] = "cli",
    interval: Annotated[
        str,
        typer.Option(
            "--interval",
            "-i",
            help="Maximum allowed silence (e.g., 90, 30s, 5m, 1h)",
        ),
    ] = "5m",
    uuid: Annotated[str, typer.Option("--uuid", help="Explicit monitor UUID")] = "",
    disabled: Annotated[
        bool,
        typer.Option("--disabled", help="Create the monitor without scanning it"),
    ] = False,
) -> None:
    """
    Create a new heartbeat monitor.

    Examples:
        deadman monitor create backups -g <group-id> -i 1d
        deadman monitor create cron-job -g <group-id> -i 10m --uuid my-cron
    """
    try:
        interval_seconds = parse_interval(interval)
    except ValueError:
        console.print(f"[red]Invalid interval: {interval}[/red]")
        raise typer.Exit(1)

    async def _create(engine: HeartbeatEngine) -> Monitor:
        return await engine.monitors.create(
            name=name,
            owner_id=owner,
            group_id=group,
            interval_seconds=interval_seconds,
            enabled=not disabled,
            uuid=uuid or None,
        )

    monitor = run_with_engine(_create)

    console.print(Panel(
        f"[green]✓ Monitor created successfully[/green]\n\n"
        f"[cyan]UUID:[/cyan] {monitor.uuid}\n"
        f"[cyan]Name:[/cyan] {monitor.name}\n"
        f"[cyan]Group:[/cyan] {monitor.group_id}\n"
        f"[cyan]Interval:[/cyan] {format_interval(monitor.interval_seconds)}\n"
        f"[cyan]Heartbeat URL:[/cyan] /ack/{monitor.uuid}",
        title="New Monitor",
        border_style="green",
    ))


@app.command("list")
def list_monitors() -> None:
    """List all monitors."""
    async def _list(engine: HeartbeatEngine) -> list[Monitor]:
        return await engine.monitors.list()

    monitors = run_with_engine(_list)
    if not monitors:
        console.print("[dim]No monitors found.[/dim]")
        return

    table = Table(title="Monitors", border_style="cyan")
    table.add_column("UUID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Group", style="dim")
    table.add_column("State", justify="center")
    table.add_column("Interval")
    table.add_column("Last Heartbeat")
    table.add_column("Enabled", justify="center")

    for monitor in monitors:
        table.add_row(
            monitor.uuid,
            monitor.name[:30],
            monitor.group_id[:12],
            _STATE_STYLE.get(monitor.state, monitor.state.value),
            format_interval(monitor.interval_seconds),
            monitor.last_heartbeat.strftime("%Y-%m-%d %H:%M:%S UTC")
            if monitor.last_heartbeat
            else "[dim]never[/dim]",
            "yes" if monitor.enabled else "[dim]no[/dim]",
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(monitors)} monitors[/dim]")


@app.command("show")
def show_monitor(
    uuid: Annotated[str, typer.Argument(help="Monitor UUID")],
    history: Annotated[
        int,
        typer.Option("--history", "-n", help="Number of history entries to show"),
    ] = 10,
) -> None:
    """Show a monitor and its recent alarm history."""
    async def _get(engine: HeartbeatEngine) -> Monitor:
        return await engine.monitors.get(uuid)

    monitor = run_with_engine(_get)

    content = Text()
    content.append("UUID: ", style="cyan")
    content.append(f"{monitor.uuid}\n")
    content.append("Name: ", style="cyan")
    content.append(f"{monitor.name}\n")
    content.append("Owner: ", style="cyan")
    content.append(f"{monitor.owner_id}\n")
    content.append("Group: ", style="cyan")
    content.append(f"{monitor.group_id}\n")
    content.append("State: ", style="cyan")
    content.append(
        f"{monitor.state.value}\n",
        style="red" if monitor.alarm_state else "green",
    )
    content.append("Interval: ", style="cyan")
    content.append(f"{format_interval(monitor.interval_seconds)}\n")
    content.append("Last Heartbeat: ", style="cyan")
    content.append(
        f"{monitor.last_heartbeat.isoformat() if monitor.last_heartbeat else 'never'}\n"
    )

    console.print(Panel(content, title=monitor.name, border_style="cyan"))

    if monitor.history:
        table = Table(title="History", border_style="dim")
        table.add_column("Timestamp")
        table.add_column("Status")
        for entry in monitor.history[-history:]:
            color = _HISTORY_STYLE.get(entry.status, "white")
            table.add_row(
                entry.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"),
                f"[{color}]{entry.status.value}[/{color}]",
            )
        console.print(table)


@app.command("delete")
def delete_monitor(
    uuid: Annotated[str, typer.Argument(help="Monitor UUID")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
) -> None:
    """Delete a monitor."""
    if not force:
        typer.confirm(f"Delete monitor {uuid}?", abort=True)

    async def _delete(engine: HeartbeatEngine) -> None:
        await engine.monitors.delete(uuid)

    run_with_engine(_delete)
    console.print(f"[green]✓ Monitor {uuid} deleted[/green]")
