"""
Heartbeat Store

Persistence layer for monitors, groups and notifications.
Uses in-memory storage with optional JSON file persistence.
"""

from __future__ import annotations

import asyncio
import json
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from deadman.models import (
    AlarmState,
    Group,
    HistoryEntry,
    Monitor,
    Notification,
    utcnow,
)

logger = structlog.get_logger(__name__)


class _Unset:
    """Marker for an argument that was not passed."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class HeartbeatRepository(ABC):
    """
    Storage contract consumed by the engine.

    Every method returns copies; mutating a returned model never changes the
    stored record.
    """

    # Alarm engine operations

    @abstractmethod
    async def list_enabled_monitors(self) -> list[Monitor]:
        """List monitors that take part in scanning."""

    @abstractmethod
    async def find_monitor_by_uuid(self, uuid: str) -> Monitor | None:
        """Get a monitor by uuid."""

    @abstractmethod
    async def update_monitor_alarm(
        self,
        uuid: str,
        state: AlarmState,
        append_history: HistoryEntry,
        last_heartbeat: datetime | None = UNSET,
    ) -> Monitor | None:
        """
        Apply one alarm transition in a single write.

        Sets ``state``, appends ``append_history`` and, when given, replaces
        ``last_heartbeat``. Returns the updated monitor or None if it does not
        exist.
        """

    @abstractmethod
    async def find_notifications_by_group_id(self, group_id: str) -> list[Notification]:
        """List notifications registered against a group."""

    @abstractmethod
    async def group_exists(self, group_id: str) -> bool:
        """Check if a group exists."""

    async def all_groups_exist(self, group_ids: list[str]) -> bool:
        """Check that every group in ``group_ids`` exists."""
        for group_id in group_ids:
            if not await self.group_exists(group_id):
                return False
        return True

    # Monitor CRUD

    @abstractmethod
    async def create_monitor(self, monitor: Monitor) -> Monitor: ...

    @abstractmethod
    async def list_monitors(self) -> list[Monitor]: ...

    @abstractmethod
    async def replace_monitor(self, monitor: Monitor) -> Monitor | None: ...

    @abstractmethod
    async def delete_monitor(self, uuid: str) -> bool: ...

    # Group CRUD

    @abstractmethod
    async def create_group(self, group: Group) -> Group: ...

    @abstractmethod
    async def get_group(self, group_id: str) -> Group | None: ...

    @abstractmethod
    async def list_groups(self) -> list[Group]: ...

    @abstractmethod
    async def replace_group(self, group: Group) -> Group | None: ...

    @abstractmethod
    async def delete_group(self, group_id: str) -> bool: ...

    # Notification CRUD

    @abstractmethod
    async def create_notification(self, notification: Notification) -> Notification: ...

    @abstractmethod
    async def get_notification(self, notification_id: str) -> Notification | None: ...

    @abstractmethod
    async def list_notifications(self) -> list[Notification]: ...

    @abstractmethod
    async def replace_notification(self, notification: Notification) -> Notification | None: ...

    @abstractmethod
    async def delete_notification(self, notification_id: str) -> bool: ...


class InMemoryRepository(HeartbeatRepository):
    """
    Stores monitors, groups and notifications in memory.

    When ``persist_path`` is given the whole dataset is loaded from that JSON
    file on startup and rewritten on each mutation. A mutation whose write
    fails is not applied in memory either.
    """

    def __init__(self, persist_path: Path | str | None = None) -> None:
        """
        Initialize the store.

        Args:
            persist_path: Path to persist records (None for memory-only)
        """
        self._persist_path = Path(persist_path) if persist_path else None

        self._monitors: dict[str, Monitor] = {}
        self._groups: dict[str, Group] = {}
        self._notifications: dict[str, Notification] = {}
        self._lock = asyncio.Lock()

        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    def _load_from_file(self) -> None:
        """Load all records from the persistence file."""
        with open(self._persist_path, "r") as f:
            data = json.load(f)

        for group_data in data.get("groups", []):
            group = Group.model_validate(group_data)
            self._groups[group.id] = group
        for monitor_data in data.get("monitors", []):
            monitor = Monitor.model_validate(monitor_data)
            self._monitors[monitor.uuid] = monitor
        for notification_data in data.get("notifications", []):
            notification = Notification.model_validate(notification_data)
            self._notifications[notification.id] = notification

        logger.info(
            "Loaded records from file",
            path=str(self._persist_path),
            monitors=len(self._monitors),
            groups=len(self._groups),
            notifications=len(self._notifications),
        )

    def _save_to_file(
        self,
        monitors: dict[str, Monitor],
        groups: dict[str, Group],
        notifications: dict[str, Notification],
    ) -> None:
        """Write the given records to the persistence file."""
        if not self._persist_path:
            return

        self._persist_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "groups": [g.model_dump(mode="json") for g in groups.values()],
            "monitors": [m.model_dump(mode="json") for m in monitors.values()],
            "notifications": [
                n.model_dump(mode="json") for n in notifications.values()
            ],
            "saved_at": utcnow().isoformat(),
        }

        tmp_path = self._persist_path.with_suffix(self._persist_path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self._persist_path)

    def _commit(
        self,
        monitors: dict[str, Monitor] | None = None,
        groups: dict[str, Group] | None = None,
        notifications: dict[str, Notification] | None = None,
    ) -> None:
        """
        Persist the new collections, then make them current.

        Callers pass copies. If the write fails nothing in memory has changed.
        Caller must hold the store lock.
        """
        monitors = self._monitors if monitors is None else monitors
        groups = self._groups if groups is None else groups
        notifications = self._notifications if notifications is None else notifications

        self._save_to_file(monitors, groups, notifications)

        self._monitors = monitors
        self._groups = groups
        self._notifications = notifications

    # Alarm engine operations

    async def list_enabled_monitors(self) -> list[Monitor]:
        async with self._lock:
            return [m.model_copy(deep=True) for m in self._monitors.values() if m.enabled]

    async def find_monitor_by_uuid(self, uuid: str) -> Monitor | None:
        async with self._lock:
            monitor = self._monitors.get(uuid)
            return monitor.model_copy(deep=True) if monitor else None

    async def update_monitor_alarm(
        self,
        uuid: str,
        state: AlarmState,
        append_history: HistoryEntry,
        last_heartbeat: datetime | None = UNSET,
    ) -> Monitor | None:
        async with self._lock:
            current = self._monitors.get(uuid)
            if current is None:
                return None

            update: dict[str, Any] = {
                "state": state,
                "history": [*current.history, append_history],
            }
            if last_heartbeat is not UNSET:
                update["last_heartbeat"] = last_heartbeat

            updated = current.model_copy(update=update, deep=True)
            self._commit(monitors={**self._monitors, uuid: updated})
            return updated.model_copy(deep=True)

    async def find_notifications_by_group_id(self, group_id: str) -> list[Notification]:
        async with self._lock:
            return [
                n.model_copy(deep=True)
                for n in self._notifications.values()
                if group_id in n.group_ids
            ]

    async def group_exists(self, group_id: str) -> bool:
        return group_id in self._groups

    # Monitor CRUD

    async def create_monitor(self, monitor: Monitor) -> Monitor:
        async with self._lock:
            stored = monitor.model_copy(deep=True)
            self._commit(monitors={**self._monitors, stored.uuid: stored})
            return monitor.model_copy(deep=True)

    async def list_monitors(self) -> list[Monitor]:
        async with self._lock:
            monitors = [m.model_copy(deep=True) for m in self._monitors.values()]
        monitors.sort(key=lambda m: m.created_at)
        return monitors

    async def replace_monitor(self, monitor: Monitor) -> Monitor | None:
        async with self._lock:
            if monitor.uuid not in self._monitors:
                return None
            stored = monitor.model_copy(deep=True)
            self._commit(monitors={**self._monitors, stored.uuid: stored})
            return monitor.model_copy(deep=True)

    async def delete_monitor(self, uuid: str) -> bool:
        async with self._lock:
            if uuid not in self._monitors:
                return False
            monitors = dict(self._monitors)
            del monitors[uuid]
            self._commit(monitors=monitors)
            return True

    # Group CRUD

    async def create_group(self, group: Group) -> Group:
        async with self._lock:
            stored = group.model_copy(deep=True)
            self._commit(groups={**self._groups, stored.id: stored})
            return group.model_copy(deep=True)

    async def get_group(self, group_id: str) -> Group | None:
        async with self._lock:
            group = self._groups.get(group_id)
            return group.model_copy(deep=True) if group else None

    async def list_groups(self) -> list[Group]:
        async with self._lock:
            return [g.model_copy(deep=True) for g in self._groups.values()]

    async def replace_group(self, group: Group) -> Group | None:
        async with self._lock:
            if group.id not in self._groups:
                return None
            stored = group.model_copy(deep=True)
            self._commit(groups={**self._groups, stored.id: stored})
            return group.model_copy(deep=True)

    async def delete_group(self, group_id: str) -> bool:
        async with self._lock:
            if group_id not in self._groups:
                return False
            groups = dict(self._groups)
            del groups[group_id]
            self._commit(groups=groups)
            return True

    # Notification CRUD

    async def create_notification(self, notification: Notification) -> Notification:
        async with self._lock:
            stored = notification.model_copy(deep=True)
            self._commit(notifications={**self._notifications, stored.id: stored})
            return notification.model_copy(deep=True)

    async def get_notification(self, notification_id: str) -> Notification | None:
        async with self._lock:
            notification = self._notifications.get(notification_id)
            return notification.model_copy(deep=True) if notification else None

    async def list_notifications(self) -> list[Notification]:
        async with self._lock:
            return [n.model_copy(deep=True) for n in self._notifications.values()]

    async def replace_notification(self, notification: Notification) -> Notification | None:
        async with self._lock:
            if notification.id not in self._notifications:
                return None
            stored = notification.model_copy(deep=True)
            self._commit(notifications={**self._notifications, stored.id: stored})
            return notification.model_copy(deep=True)

    async def delete_notification(self, notification_id: str) -> bool:
        async with self._lock:
            if notification_id not in self._notifications:
                return False
            notifications = dict(self._notifications)
            del notifications[notification_id]
            self._commit(notifications=notifications)
            return True
