"""
Notification CLI Commands

Commands for groups and the notification channels attached to them.
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from deadman.cli.common import console, run_with_engine
from deadman.engine import HeartbeatEngine
from deadman.models import (
    ChannelType,
    DiscordChannelConfig,
    DispatchReport,
    Group,
    Notification,
)

group_app = typer.Typer(
    name="group",
    help="Manage monitor groups",
    no_args_is_help=True,
)

app = typer.Typer(
    name="notify",
    help="Manage notification channels",
    no_args_is_help=True,
)


@group_app.command("create")
def create_group(
    name: Annotated[str, typer.Argument(help="Group name")],
    owner: Annotated[str, typer.Option("--owner", "-o", help="Owner ID")] = "cli",
) -> None:
    """Create a group."""
    async def _create(engine: HeartbeatEngine) -> Group:
        return await engine.groups.create(name=name, owner_id=owner)

    group = run_with_engine(_create)
    console.print(f"[green]✓ Group created:[/green] {group.id} ({group.name})")


@group_app.command("update")
def update_group(
    group_id: Annotated[str, typer.Argument(help="Group ID")],
    name: Annotated[str, typer.Option("--name", "-n", help="New group name")],
    owner: Annotated[str, typer.Option("--owner", "-o", help="Owner ID")] = "cli",
) -> None:
    """Rename a group."""
    async def _update(engine: HeartbeatEngine) -> Group:
        return await engine.groups.update(group_id, name=name, owner_id=owner)

    group = run_with_engine(_update)
    console.print(f"[green]✓ Group updated:[/green] {group.id} ({group.name})")


@group_app.command("list")
def list_groups() -> None:
    """List all groups."""
    async def _list(engine: HeartbeatEngine) -> list[Group]:
        return await engine.groups.list()

    groups = run_with_engine(_list)
    if not groups:
        console.print("[dim]No groups found.[/dim]")
        return

    table = Table(title="Groups", border_style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Owner")
    for group in groups:
        table.add_row(group.id, group.name, group.owner_id)
    console.print(table)


@app.command("create")
def create_notification(
    name: Annotated[str, typer.Argument(help="Notification name")],
    group: Annotated[
        list[str],
        typer.Option("--group", "-g", help="Group ID (repeatable)"),
    ],
    channel: Annotated[
        str,
        typer.Option("--type", "-t", help="Channel type: logger, discord"),
    ] = "logger",
    content: Annotated[str, typer.Option(help="Logger message prefix")] = "",
    webhook_url: Annotated[str, typer.Option(help="Discord webhook URL")] = "",
    owner: Annotated[str, typer.Option("--owner", "-o", help="Owner ID")] = "cli",
) -> None:
    """
    Create a notification channel.

    Examples:
        deadman notify create ops-log -g <group-id> --content "on-call"
        deadman notify create ops-discord -g <group-id> -t discord --webhook-url https://...
    """
    if channel == ChannelType.DISCORD.value:
        config = {"webhookUrl": webhook_url}
    else:
        config = {"content": content}

    async def _create(engine: HeartbeatEngine) -> Notification:
        return await engine.notifications.create(
            name=name,
            owner_id=owner,
            group_ids=group,
            channel=channel,
            config=config,
        )

    notification = run_with_engine(_create)
    console.print(Panel(
        f"[green]✓ Notification created successfully[/green]\n\n"
        f"[cyan]ID:[/cyan] {notification.id}\n"
        f"[cyan]Type:[/cyan] {notification.channel.value}\n"
        f"[cyan]Groups:[/cyan] {', '.join(notification.group_ids)}",
        title="New Notification",
        border_style="green",
    ))


@app.command("list")
def list_notifications() -> None:
    """List all notification channels."""
    async def _list(engine: HeartbeatEngine) -> list[Notification]:
        return await engine.notifications.list()

    notifications = run_with_engine(_list)
    if not notifications:
        console.print("[dim]No notifications found.[/dim]")
        return

    table = Table(title="Notifications", border_style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Groups", style="dim")
    table.add_column("Target")

    for notification in notifications:
        config = notification.config
        if isinstance(config, DiscordChannelConfig):
            target = config.webhook_url[:40]
        else:
            target = config.content[:40] or "[dim]-[/dim]"
        table.add_row(
            notification.id,
            notification.name,
            notification.channel.value,
            ", ".join(g[:12] for g in notification.group_ids),
            target,
        )
    console.print(table)


@app.command("test")
def test_notification(
    notification_id: Annotated[str, typer.Argument(help="Notification ID")],
) -> None:
    """Send a sample alert through one notification."""
    async def _test(engine: HeartbeatEngine) -> DispatchReport:
        return await engine.send_test_alert(notification_id)

    report = run_with_engine(_test)
    if report.failed:
        for failure in report.failed:
            console.print(f"[red]✗ Delivery failed ({failure.channel}): {failure.error}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Test alert delivered via {notification_id}[/green]")
