"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from deadman.config import Settings
from deadman.engine import HeartbeatEngine
from deadman.models import AlertContext, Group, Monitor
from deadman.notifications.runner import NotificationRunner
from deadman.store import InMemoryRepository

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at T0."""
    return FakeClock()


@pytest.fixture
def repository() -> InMemoryRepository:
    """Fresh memory-only repository for each test."""
    return InMemoryRepository()


@pytest.fixture
def alert_logger() -> MagicMock:
    """Logger receiving Logger-channel alerts."""
    return MagicMock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short timeouts for tests."""
    return Settings(
        scan_interval_seconds=60,
        delivery_timeout_seconds=1.0,
        shutdown_grace_seconds=1.0,
        store_path=None,
    )


@pytest.fixture
def engine(
    repository: InMemoryRepository,
    clock: FakeClock,
    alert_logger: MagicMock,
    test_settings: Settings,
) -> HeartbeatEngine:
    """Engine over the test repository and frozen clock."""
    return HeartbeatEngine(
        repository=repository,
        runner=NotificationRunner(alert_logger=alert_logger),
        config=test_settings,
        clock=clock,
    )


@pytest.fixture
def alert_context() -> AlertContext:
    """Sample alert for runner tests."""
    return AlertContext(
        monitor_uuid="monitor-1",
        monitor_name="API Uptime",
        group_id="group-1",
        missed_for_seconds=120,
        triggered_at=datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def seed(repository: InMemoryRepository):
    """Store a group (if missing) and a monitor in the test repository."""

    async def _seed(
        uuid: str = "m1",
        group_id: str = "g1",
        interval_seconds: int = 60,
        last_heartbeat: datetime | None = None,
        **kwargs,
    ) -> Monitor:
        if not await repository.group_exists(group_id):
            await repository.create_group(
                Group(id=group_id, name=f"group {group_id}", owner_id="u1")
            )
        monitor = Monitor(
            uuid=uuid,
            name=kwargs.pop("name", f"monitor {uuid}"),
            owner_id="u1",
            group_id=group_id,
            interval_seconds=interval_seconds,
            last_heartbeat=last_heartbeat,
            **kwargs,
        )
        return await repository.create_monitor(monitor)

    return _seed
