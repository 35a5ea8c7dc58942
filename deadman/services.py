"""
DEADMAN Services Layer

Validation layer over the repository shared by the CLI and the HTTP API.
Alarm fields are never written here; they belong to the alarm state machine.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from deadman.errors import ConflictError, NotFoundError, ValidationError
from deadman.heartbeat.alarm import AlarmStateMachine
from deadman.models import ChannelType, Group, Monitor, Notification
from deadman.notifications.channels import normalize_channel_config
from deadman.store import HeartbeatRepository

logger = structlog.get_logger(__name__)


def _describe(error: PydanticValidationError) -> str:
    """Flatten pydantic errors into one readable line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


class GroupService:
    """Create, read, update and delete groups."""

    def __init__(self, repository: HeartbeatRepository) -> None:
        self._repository = repository

    async def create(self, name: str, owner_id: str) -> Group:
        try:
            group = Group(name=name, owner_id=owner_id)
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from None
        created = await self._repository.create_group(group)
        logger.info("Group created", group_id=created.id, name=created.name)
        return created

    async def list(self) -> list[Group]:
        return await self._repository.list_groups()

    async def get(self, group_id: str) -> Group:
        group = await self._repository.get_group(group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        return group

    async def update(self, group_id: str, name: str, owner_id: str) -> Group:
        """
        Rename a group or move it to another owner.

        Raises:
            NotFoundError: If the group does not exist
            ValidationError: If the fields are invalid
        """
        try:
            group = Group(id=group_id, name=name, owner_id=owner_id)
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from None
        updated = await self._repository.replace_group(group)
        if updated is None:
            raise NotFoundError("Group", group_id)
        logger.info("Group updated", group_id=group_id, name=updated.name)
        return updated

    async def delete(self, group_id: str) -> None:
        if not await self._repository.delete_group(group_id):
            raise NotFoundError("Group", group_id)
        logger.info("Group deleted", group_id=group_id)

    async def ensure_default_group(self, name: str, owner_id: str) -> Group:
        """Create the default group unless the owner already has one by that name."""
        for group in await self._repository.list_groups():
            if group.owner_id == owner_id and group.name == name:
                return group
        group = await self.create(name=name, owner_id=owner_id)
        logger.info("Seeded default group", group_id=group.id, owner_id=owner_id)
        return group

    async def ensure_group_exists(self, group_id: str) -> None:
        if not await self._repository.group_exists(group_id):
            raise NotFoundError("Group", group_id)

    async def ensure_groups_exist(self, group_ids: list[str]) -> None:
        if await self._repository.all_groups_exist(group_ids):
            return
        for group_id in group_ids:
            await self.ensure_group_exists(group_id)


class MonitorService:
    """
    Create, read, update and delete monitors.

    Updates and deletes take the monitor's alarm lock so they cannot race a
    trigger, acknowledge or suppress on the same uuid.
    """

    def __init__(
        self,
        repository: HeartbeatRepository,
        groups: GroupService,
        alarm: AlarmStateMachine,
    ) -> None:
        self._repository = repository
        self._groups = groups
        self._alarm = alarm

    async def create(
        self,
        name: str,
        owner_id: str,
        group_id: str,
        interval_seconds: int,
        enabled: bool = True,
        uuid: str | None = None,
    ) -> Monitor:
        """
        Create a monitor in the Normal state with an empty history.

        Raises:
            ConflictError: If a monitor with ``uuid`` already exists
            NotFoundError: If the group does not exist
            ValidationError: If the fields are invalid
        """
        data: dict[str, Any] = {
            "name": name,
            "owner_id": owner_id,
            "group_id": group_id,
            "interval_seconds": interval_seconds,
            "enabled": enabled,
        }
        if uuid:
            data["uuid"] = uuid
        try:
            monitor = Monitor.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from None

        if await self._repository.find_monitor_by_uuid(monitor.uuid) is not None:
            raise ConflictError(f"Monitor {monitor.uuid} already exists")
        await self._groups.ensure_group_exists(group_id)

        created = await self._repository.create_monitor(monitor)
        logger.info("Monitor created", monitor_uuid=created.uuid, name=created.name)
        return created

    async def list(self) -> list[Monitor]:
        return await self._repository.list_monitors()

    async def get(self, uuid: str) -> Monitor:
        monitor = await self._repository.find_monitor_by_uuid(uuid)
        if monitor is None:
            raise NotFoundError("Monitor", uuid)
        return monitor

    async def update(
        self,
        uuid: str,
        name: str,
        owner_id: str,
        group_id: str,
        interval_seconds: int,
        enabled: bool,
    ) -> Monitor:
        """Replace the configurable fields of a monitor."""
        await self._groups.ensure_group_exists(group_id)

        async with self._alarm.lock(uuid):
            current = await self.get(uuid)
            data = current.model_dump()
            data.update(
                name=name,
                owner_id=owner_id,
                group_id=group_id,
                interval_seconds=interval_seconds,
                enabled=enabled,
            )
            try:
                monitor = Monitor.model_validate(data)
            except PydanticValidationError as e:
                raise ValidationError(_describe(e)) from None

            updated = await self._repository.replace_monitor(monitor)
            if updated is None:
                raise NotFoundError("Monitor", uuid)
            return updated

    async def delete(self, uuid: str) -> None:
        """Delete a monitor. No transition can be applied to it afterwards."""
        async with self._alarm.lock(uuid):
            if not await self._repository.delete_monitor(uuid):
                raise NotFoundError("Monitor", uuid)
        self._alarm.forget(uuid)
        logger.info("Monitor deleted", monitor_uuid=uuid)


class NotificationService:
    """
    Create, read, update and delete notifications.

    Channel configs are validated here, once, so dispatch only ever sees
    well-formed configs.
    """

    def __init__(self, repository: HeartbeatRepository, groups: GroupService) -> None:
        self._repository = repository
        self._groups = groups

    async def create(
        self,
        name: str,
        owner_id: str,
        group_ids: list[str],
        channel: ChannelType | str,
        config: Any,
    ) -> Notification:
        """
        Create a notification.

        Raises:
            ValidationError: If the channel config is malformed
            NotFoundError: If any group does not exist
        """
        typed_config = normalize_channel_config(channel, config)
        notification = self._build(
            name=name,
            owner_id=owner_id,
            group_ids=group_ids,
            channel=ChannelType(channel),
            config=typed_config,
        )
        await self._groups.ensure_groups_exist(notification.group_ids)

        created = await self._repository.create_notification(notification)
        logger.info(
            "Notification created",
            notification_id=created.id,
            channel=created.channel.value,
        )
        return created

    async def list(self) -> list[Notification]:
        return await self._repository.list_notifications()

    async def get(self, notification_id: str) -> Notification:
        notification = await self._repository.get_notification(notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        return notification

    async def update(
        self,
        notification_id: str,
        name: str,
        owner_id: str,
        group_ids: list[str],
        channel: ChannelType | str,
        config: Any,
    ) -> Notification:
        """
        Replace a notification's fields.

        Raises:
            ConflictError: If ``channel`` differs from the stored channel
        """
        existing = await self.get(notification_id)

        try:
            requested = ChannelType(channel)
        except ValueError:
            raise ValidationError(f"Unsupported notification type: {channel}") from None
        if requested != existing.channel:
            raise ConflictError("Notification type cannot be changed")

        typed_config = normalize_channel_config(existing.channel, config)
        notification = self._build(
            id=existing.id,
            name=name,
            owner_id=owner_id,
            group_ids=group_ids,
            channel=existing.channel,
            config=typed_config,
        )
        await self._groups.ensure_groups_exist(notification.group_ids)

        updated = await self._repository.replace_notification(notification)
        if updated is None:
            raise NotFoundError("Notification", notification_id)
        return updated

    async def delete(self, notification_id: str) -> None:
        if not await self._repository.delete_notification(notification_id):
            raise NotFoundError("Notification", notification_id)
        logger.info("Notification deleted", notification_id=notification_id)

    @staticmethod
    def _build(**data: Any) -> Notification:
        try:
            return Notification(**data)
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from None
