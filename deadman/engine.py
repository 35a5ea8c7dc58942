"""
Heartbeat Engine

Wires the repository, state machine, scanner, dispatcher and scheduler
together and exposes the operations used by the CLI and the HTTP API.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog

from deadman.config import Settings, settings as default_settings
from deadman.heartbeat.alarm import AlarmStateMachine, Clock
from deadman.heartbeat.scanner import HeartbeatScanner
from deadman.heartbeat.scheduler import HeartbeatScheduler
from deadman.instrumentation import Instrumentation
from deadman.models import AlertContext, DispatchReport, Group, Monitor, ScanReport, utcnow
from deadman.notifications.dispatcher import NotificationDispatcher
from deadman.notifications.runner import NotificationRunner
from deadman.services import GroupService, MonitorService, NotificationService
from deadman.store import HeartbeatRepository, InMemoryRepository

logger = structlog.get_logger(__name__)


class HeartbeatEngine:
    """
    The alerting core with its collaborators passed in explicitly.

    Usage:
        engine = HeartbeatEngine(repository=InMemoryRepository())
        await engine.start()          # periodic scans
        await engine.acknowledge(uuid)
        await engine.stop()           # waits for an in-flight scan
    """

    def __init__(
        self,
        repository: HeartbeatRepository | None = None,
        runner: NotificationRunner | None = None,
        config: Settings | None = None,
        clock: Clock = utcnow,
        instrumentation: Instrumentation | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            repository: Storage (in-memory, persisted to ``store_path`` if None)
            runner: Channel delivery (built from config if None)
            config: Settings, the module-level settings if None
            clock: Returns the current aware UTC time
            instrumentation: Optional hooks for tracing/metrics
            http_client: Client used by the runner for webhooks
        """
        self.config = config or default_settings
        self.repository = repository or InMemoryRepository(self.config.store_path)
        self.runner = runner or NotificationRunner(
            http_client=http_client,
            timeout=self.config.http_timeout_seconds,
        )

        self.dispatcher = NotificationDispatcher(
            self.repository,
            self.runner,
            delivery_timeout=self.config.delivery_timeout_seconds,
            instrumentation=instrumentation,
        )
        self.alarm = AlarmStateMachine(self.repository, clock=clock)
        self.scanner = HeartbeatScanner(
            self.repository,
            self.alarm,
            self.dispatcher,
            clock=clock,
            instrumentation=instrumentation,
        )
        self.scheduler = HeartbeatScheduler(
            self.scanner,
            interval_seconds=self.config.scan_interval_seconds,
        )

        self.groups = GroupService(self.repository)
        self.monitors = MonitorService(self.repository, self.groups, self.alarm)
        self.notifications = NotificationService(self.repository, self.groups)
        self._clock = clock

    async def seed(self) -> Group:
        """Make sure the default group exists."""
        return await self.groups.ensure_default_group(
            name=self.config.default_group_name,
            owner_id=self.config.default_owner_id,
        )

    async def start(self) -> None:
        """Seed the default group and start periodic scanning."""
        await self.seed()
        await self.scheduler.start()

    async def stop(self, grace_seconds: float | None = None) -> None:
        """
        Stop scanning and release resources.

        An in-flight scan, including its dispatches, gets ``grace_seconds``
        to finish before the HTTP client is closed.
        """
        grace = grace_seconds if grace_seconds is not None else self.config.shutdown_grace_seconds
        await self.scheduler.stop()

        if self.scanner.is_scanning:
            logger.info("Waiting for in-flight scan", grace_seconds=grace)
            try:
                await asyncio.wait_for(self.scanner.wait_idle(), timeout=grace)
            except asyncio.TimeoutError:
                logger.warning("Scan still running at shutdown", grace_seconds=grace)

        await self.runner.close()

    async def trigger_scan_once(self) -> ScanReport:
        """Run one evaluation pass now, after any pass already in flight."""
        return await self.scanner.scan_once(wait=True)

    async def acknowledge(self, uuid: str) -> Monitor:
        """Record a heartbeat for a monitor."""
        return await self.alarm.acknowledge(uuid)

    async def suppress(self, uuid: str) -> Monitor:
        """Silence a monitor's alarm without recording a heartbeat."""
        return await self.alarm.suppress(uuid)

    async def dispatch_group_alert(self, group_id: str, context: AlertContext) -> DispatchReport:
        """Fan an alert out to every notification of a group."""
        return await self.dispatcher.dispatch_group_alert(group_id, context)

    async def send_test_alert(self, notification_id: str) -> DispatchReport:
        """Deliver a sample alert through a single notification."""
        notification = await self.notifications.get(notification_id)
        group_id = notification.group_ids[0]
        context = AlertContext(
            monitor_uuid="test-monitor",
            monitor_name="Test monitor",
            group_id=group_id,
            missed_for_seconds=0,
            triggered_at=self._clock(),
        )
        return await self.dispatcher.deliver_all(group_id, [notification], context)


# Global engine instance
_engine: HeartbeatEngine | None = None


def get_engine() -> HeartbeatEngine:
    """Get the global engine instance."""
    global _engine
    if _engine is None:
        _engine = HeartbeatEngine()
    return _engine


def reset_engine() -> None:
    """Drop the global engine instance."""
    global _engine
    _engine = None
