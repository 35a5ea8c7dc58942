"""
Shared CLI helpers.

Every command builds its engine from the store path chosen in the root
callback, so separate invocations see the same monitors.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import typer
from rich.console import Console

from deadman.config import settings
from deadman.engine import HeartbeatEngine
from deadman.errors import DeadmanError
from deadman.store import InMemoryRepository

console = Console()

T = TypeVar("T")

DEFAULT_STORE_PATH = Path.home() / ".deadman" / "store.json"

_state: dict[str, Any] = {"store_path": None}


def set_store_path(path: Path | None) -> None:
    _state["store_path"] = path


def store_path() -> Path:
    return _state["store_path"] or settings.store_path or DEFAULT_STORE_PATH


def build_engine() -> HeartbeatEngine:
    """Engine backed by the CLI's JSON store."""
    return HeartbeatEngine(repository=InMemoryRepository(store_path()))


def run_with_engine(action: Callable[[HeartbeatEngine], Awaitable[T]]) -> T:
    """
    Run an async action against a fresh engine.

    Typed errors are printed and turned into exit code 1.
    """
    async def _main() -> T:
        engine = build_engine()
        try:
            return await action(engine)
        finally:
            await engine.stop()

    try:
        return asyncio.run(_main())
    except DeadmanError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def parse_interval(interval: str) -> int:
    """Parse interval string (e.g., '90', '30s', '5m', '2h', '1d') to seconds."""
    interval = interval.lower().strip()

    if interval.endswith("s"):
        return int(interval[:-1])
    elif interval.endswith("m"):
        return int(interval[:-1]) * 60
    elif interval.endswith("h"):
        return int(interval[:-1]) * 60 * 60
    elif interval.endswith("d"):
        return int(interval[:-1]) * 60 * 60 * 24
    else:
        # Assume seconds
        return int(interval)


def format_interval(seconds: int) -> str:
    """Format seconds as human-readable interval."""
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes, remaining = divmod(seconds, 60)
        return f"{minutes}m {remaining}s" if remaining else f"{minutes}m"
    elif seconds < 86400:
        hours, remaining = divmod(seconds, 3600)
        remaining //= 60
        return f"{hours}h {remaining}m" if remaining else f"{hours}h"
    else:
        days, remaining = divmod(seconds, 86400)
        remaining //= 3600
        return f"{days}d {remaining}h" if remaining else f"{days}d"
