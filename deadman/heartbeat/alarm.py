"""
Alarm State Machine

Normal/Alarm transitions for a single monitor and its history log.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable

import structlog

from deadman.errors import NotFoundError
from deadman.models import AlarmState, HistoryEntry, HistoryStatus, Monitor, utcnow
from deadman.store import UNSET, HeartbeatRepository

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

# Target state of each recorded transition
TRANSITIONS: dict[HistoryStatus, AlarmState] = {
    HistoryStatus.TRIGGERED: AlarmState.ALARM,
    HistoryStatus.RESET: AlarmState.NORMAL,
    HistoryStatus.SUPPRESSED: AlarmState.NORMAL,
}


class AlarmStateMachine:
    """
    Applies alarm transitions to monitors.

    This is the only writer of ``Monitor.state`` and ``Monitor.history``.
    Each transition appends exactly one history entry and persists it in the
    same write as the state change. Transitions on one monitor are serialized
    by a per-uuid lock; different monitors never wait on each other.
    """

    def __init__(self, repository: HeartbeatRepository, clock: Clock = utcnow) -> None:
        self._repository = repository
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, uuid: str) -> asyncio.Lock:
        """Lock guarding writes to one monitor."""
        lock = self._locks.get(uuid)
        if lock is None:
            lock = self._locks[uuid] = asyncio.Lock()
        return lock

    def forget(self, uuid: str) -> None:
        """Drop the lock of a deleted monitor."""
        self._locks.pop(uuid, None)

    async def trigger(self, monitor: Monitor) -> Monitor | None:
        """
        Raise the alarm for a monitor observed as overdue.

        The transition only applies if the stored monitor is still enabled, in
        the Normal state and has the same last heartbeat as ``monitor``. If a
        heartbeat or another transition landed in between, nothing is written.

        Args:
            monitor: The monitor as read by the scanner

        Returns:
            The updated monitor, or None if the stored record had moved on

        Raises:
            NotFoundError: If the monitor was deleted
        """
        async with self.lock(monitor.uuid):
            current = await self._repository.find_monitor_by_uuid(monitor.uuid)
            if current is None:
                raise NotFoundError("Monitor", monitor.uuid)

            if (
                current.alarm_state
                or not current.enabled
                or current.last_heartbeat != monitor.last_heartbeat
            ):
                logger.debug(
                    "Trigger skipped, monitor changed since it was read",
                    monitor_uuid=monitor.uuid,
                    state=current.state.value,
                )
                return None

            return await self._apply(current, HistoryStatus.TRIGGERED)

    async def acknowledge(self, uuid: str) -> Monitor:
        """
        Record a heartbeat and clear any alarm.

        Raises:
            NotFoundError: If no monitor has this uuid
        """
        async with self.lock(uuid):
            current = await self._require(uuid)
            return await self._apply(current, HistoryStatus.RESET, heartbeat=True)

    async def suppress(self, uuid: str) -> Monitor:
        """
        Silence the alarm without recording a heartbeat.

        The heartbeat clock keeps running, so a monitor that is still overdue
        alarms again on the next scan.

        Raises:
            NotFoundError: If no monitor has this uuid
        """
        async with self.lock(uuid):
            current = await self._require(uuid)
            return await self._apply(current, HistoryStatus.SUPPRESSED)

    async def _require(self, uuid: str) -> Monitor:
        monitor = await self._repository.find_monitor_by_uuid(uuid)
        if monitor is None:
            raise NotFoundError("Monitor", uuid)
        return monitor

    def _timestamp(self, monitor: Monitor) -> datetime:
        """Current time, never earlier than the last history entry."""
        now = self._clock()
        if monitor.history and now < monitor.history[-1].timestamp:
            return monitor.history[-1].timestamp
        return now

    async def _apply(
        self,
        monitor: Monitor,
        status: HistoryStatus,
        heartbeat: bool = False,
    ) -> Monitor:
        """Persist one transition. Caller must hold the monitor's lock."""
        at = self._timestamp(monitor)
        updated = await self._repository.update_monitor_alarm(
            monitor.uuid,
            state=TRANSITIONS[status],
            append_history=HistoryEntry(timestamp=at, status=status),
            last_heartbeat=at if heartbeat else UNSET,
        )
        if updated is None:
            raise NotFoundError("Monitor", monitor.uuid)

        logger.info(
            "Alarm transition",
            monitor_uuid=monitor.uuid,
            status=status.value,
            state=updated.state.value,
        )
        return updated
