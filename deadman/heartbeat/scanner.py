"""
Heartbeat Scanner

One evaluation pass over all monitors: detect missed heartbeats, raise
alarms and dispatch alerts on the Normal -> Alarm edge.
"""

from __future__ import annotations

import asyncio

import structlog

from deadman.errors import ScanError
from deadman.heartbeat.alarm import AlarmStateMachine, Clock
from deadman.instrumentation import NOOP, Instrumentation, emit
from deadman.models import AlertContext, Monitor, ScanReport, utcnow
from deadman.notifications.dispatcher import NotificationDispatcher
from deadman.store import HeartbeatRepository

logger = structlog.get_logger(__name__)


class HeartbeatScanner:
    """
    Evaluates every monitor for missed heartbeats.

    Only one pass runs at a time. The scanner never clears an alarm; that is
    left to an explicit acknowledge.
    """

    def __init__(
        self,
        repository: HeartbeatRepository,
        alarm: AlarmStateMachine,
        dispatcher: NotificationDispatcher,
        clock: Clock = utcnow,
        instrumentation: Instrumentation | None = None,
    ) -> None:
        """
        Initialize the scanner.

        Args:
            repository: Source of monitors
            alarm: State machine used to raise alarms
            dispatcher: Fan-out for newly raised alarms
            clock: Returns the current aware UTC time
            instrumentation: Optional hooks for tracing/metrics
        """
        self._repository = repository
        self._alarm = alarm
        self._dispatcher = dispatcher
        self._clock = clock
        self._instrumentation = instrumentation or NOOP
        self._scan_lock = asyncio.Lock()
        # Alerts whose dispatch raised, keyed by monitor uuid
        self._undelivered: dict[str, AlertContext] = {}

    @property
    def is_scanning(self) -> bool:
        """Check if a pass is in flight."""
        return self._scan_lock.locked()

    async def wait_idle(self) -> None:
        """Wait until the in-flight pass, if any, has finished."""
        async with self._scan_lock:
            pass

    async def scan_once(self, wait: bool = True) -> ScanReport:
        """
        Run one evaluation pass.

        Args:
            wait: If a pass is already running, wait for it and then run
                  (True) or return a skipped report straight away (False)

        Returns:
            What the pass evaluated, triggered and failed on
        """
        if not wait and self._scan_lock.locked():
            logger.warning("Previous scan still running, skipping tick")
            return ScanReport(skipped=True, finished_at=self._clock())

        async with self._scan_lock:
            return await self._scan()

    async def _scan(self) -> ScanReport:
        report = ScanReport(started_at=self._clock())
        emit(self._instrumentation.scan_started)

        try:
            monitors = await self._repository.list_enabled_monitors()
        except Exception as e:
            logger.error("Error running monitor scan", error=str(e))
            report.error = str(e)
            monitors = []
        else:
            enabled = {monitor.uuid for monitor in monitors}
            for uuid in list(self._undelivered):
                if uuid not in enabled:
                    del self._undelivered[uuid]

        for monitor in monitors:
            try:
                outcome = await self._evaluate(monitor, report)
            except Exception as e:
                error = ScanError(monitor.uuid, e)
                logger.error(
                    "Monitor evaluation failed",
                    monitor_uuid=monitor.uuid,
                    error=str(e),
                )
                report.failures[monitor.uuid] = str(error)
                outcome = "failed"
            report.evaluated += 1
            emit(self._instrumentation.monitor_evaluated, monitor.uuid, outcome)

        report.finished_at = self._clock()
        logger.info(
            "Scan complete",
            evaluated=report.evaluated,
            triggered=len(report.triggered),
            failures=len(report.failures),
            duration_seconds=round(report.duration_seconds, 3),
        )
        emit(self._instrumentation.scan_finished, report)
        return report

    async def _evaluate(self, monitor: Monitor, report: ScanReport) -> str:
        """Evaluate one monitor and return the outcome name."""
        if not monitor.enabled:
            return "skipped"

        now = self._clock()
        missed = monitor.missed_seconds(now)

        if not monitor.is_overdue(now):
            self._undelivered.pop(monitor.uuid, None)
            return "ok"

        if monitor.alarm_state:
            logger.debug(
                "Monitor still in alarm state",
                monitor_uuid=monitor.uuid,
                missed_seconds=missed,
            )
            report.still_alarming.append(monitor.uuid)
            pending = self._undelivered.get(monitor.uuid)
            if pending is not None:
                logger.info("Retrying undelivered alert", monitor_uuid=monitor.uuid)
                await self._dispatch(pending)
                return "redispatched"
            return "alarming"

        updated = await self._alarm.trigger(monitor)
        if updated is None:
            return "skipped"

        logger.warning(
            "Alarm triggered for monitor",
            monitor_uuid=monitor.uuid,
            missed_seconds="Infinity" if missed is None else missed,
        )
        report.triggered.append(monitor.uuid)

        context = AlertContext(
            monitor_uuid=monitor.uuid,
            monitor_name=monitor.name,
            group_id=monitor.group_id,
            missed_for_seconds=missed,
            triggered_at=now,
        )
        await self._dispatch(context)
        return "triggered"

    async def _dispatch(self, context: AlertContext) -> None:
        """
        Hand an alert to the dispatcher.

        If the dispatcher raises, the alert is kept and retried on the next
        pass for as long as the monitor stays in alarm.
        """
        self._undelivered[context.monitor_uuid] = context
        await self._dispatcher.dispatch_group_alert(context.group_id, context)
        self._undelivered.pop(context.monitor_uuid, None)
