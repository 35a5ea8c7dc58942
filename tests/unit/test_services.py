"""
Tests for the validation layer shared by the CLI and HTTP API.
"""

import pytest

from deadman.errors import ConflictError, NotFoundError, ValidationError
from deadman.heartbeat.alarm import AlarmStateMachine
from deadman.models import AlarmState, ChannelType, HistoryStatus
from deadman.services import GroupService, MonitorService, NotificationService


@pytest.fixture
def alarm(repository, clock) -> AlarmStateMachine:
    return AlarmStateMachine(repository, clock=clock)


@pytest.fixture
def groups(repository) -> GroupService:
    return GroupService(repository)


@pytest.fixture
def monitors(repository, groups, alarm) -> MonitorService:
    return MonitorService(repository, groups, alarm)


@pytest.fixture
def notifications(repository, groups) -> NotificationService:
    return NotificationService(repository, groups)


class TestMonitorService:
    """Tests for MonitorService."""

    @pytest.mark.asyncio
    async def test_create_starts_normal(self, groups, monitors) -> None:
        """Test a new monitor is Normal with empty history."""
        group = await groups.create("ops", "u1")

        monitor = await monitors.create("backup", "u1", group.id, 300, uuid="m1")

        assert monitor.uuid == "m1"
        assert monitor.state == AlarmState.NORMAL
        assert monitor.history == []
        assert monitor.last_heartbeat is None

    @pytest.mark.asyncio
    async def test_duplicate_uuid_conflicts(self, groups, monitors) -> None:
        """Test creating a monitor with a taken uuid fails."""
        group = await groups.create("ops", "u1")
        await monitors.create("a", "u1", group.id, 60, uuid="m1")

        with pytest.raises(ConflictError):
            await monitors.create("b", "u1", group.id, 60, uuid="m1")

    @pytest.mark.asyncio
    async def test_missing_group(self, monitors) -> None:
        """Test a monitor cannot reference an unknown group."""
        with pytest.raises(NotFoundError) as exc_info:
            await monitors.create("a", "u1", "nope", 60)
        assert exc_info.value.kind == "Group"

    @pytest.mark.asyncio
    async def test_interval_must_be_positive(self, groups, monitors) -> None:
        """Test interval 0 is rejected."""
        group = await groups.create("ops", "u1")

        with pytest.raises(ValidationError, match="interval_seconds"):
            await monitors.create("a", "u1", group.id, 0)

    @pytest.mark.asyncio
    async def test_update_preserves_alarm_fields(self, groups, monitors, alarm) -> None:
        """Test configuration updates keep state and history."""
        group = await groups.create("ops", "u1")
        monitor = await monitors.create("a", "u1", group.id, 60, uuid="m1")
        await alarm.trigger(monitor)

        updated = await monitors.update("m1", "renamed", "u2", group.id, 120, enabled=False)

        assert updated.name == "renamed"
        assert updated.interval_seconds == 120
        assert updated.enabled is False
        assert updated.state == AlarmState.ALARM
        assert [e.status for e in updated.history] == [HistoryStatus.TRIGGERED]

    @pytest.mark.asyncio
    async def test_update_unknown_monitor(self, groups, monitors) -> None:
        """Test updating a missing monitor fails."""
        group = await groups.create("ops", "u1")

        with pytest.raises(NotFoundError):
            await monitors.update("ghost", "a", "u1", group.id, 60, enabled=True)

    @pytest.mark.asyncio
    async def test_deleted_monitor_cannot_transition(self, groups, monitors, alarm) -> None:
        """Test acknowledge after delete reports NotFound."""
        group = await groups.create("ops", "u1")
        await monitors.create("a", "u1", group.id, 60, uuid="m1")

        await monitors.delete("m1")

        with pytest.raises(NotFoundError):
            await alarm.acknowledge("m1")
        with pytest.raises(NotFoundError):
            await monitors.delete("m1")


class TestNotificationService:
    """Tests for NotificationService."""

    @pytest.mark.asyncio
    async def test_create_discord(self, groups, notifications) -> None:
        """Test a Discord notification is stored with a typed config."""
        group = await groups.create("ops", "u1")

        created = await notifications.create(
            "hook", "u1", [group.id], "discord", {"webhookUrl": "https://discord.example/hook"}
        )

        assert created.channel == ChannelType.DISCORD
        assert created.config.webhook_url == "https://discord.example/hook"
        assert (await notifications.get(created.id)) == created

    @pytest.mark.asyncio
    async def test_invalid_config_is_never_persisted(self, repository, groups, notifications) -> None:
        """Test a malformed config fails before reaching the store."""
        group = await groups.create("ops", "u1")

        with pytest.raises(ValidationError):
            await notifications.create("hook", "u1", [group.id], "discord", {"webhookUrl": "nope"})

        assert await repository.list_notifications() == []

    @pytest.mark.asyncio
    async def test_requires_at_least_one_group(self, notifications) -> None:
        """Test a notification must target a group."""
        with pytest.raises(ValidationError, match="group_ids"):
            await notifications.create("log", "u1", [], "logger", {})

    @pytest.mark.asyncio
    async def test_unknown_group(self, groups, notifications) -> None:
        """Test every referenced group must exist."""
        group = await groups.create("ops", "u1")

        with pytest.raises(NotFoundError) as exc_info:
            await notifications.create("log", "u1", [group.id, "ghost"], "logger", {})
        assert exc_info.value.identifier == "ghost"

    @pytest.mark.asyncio
    async def test_channel_cannot_change(self, groups, notifications) -> None:
        """Test updating the channel type is refused."""
        group = await groups.create("ops", "u1")
        created = await notifications.create("log", "u1", [group.id], "logger", {})

        with pytest.raises(ConflictError):
            await notifications.update(
                created.id, "log", "u1", [group.id], "discord",
                {"webhookUrl": "https://discord.example/hook"},
            )

    @pytest.mark.asyncio
    async def test_update_replaces_config(self, groups, notifications) -> None:
        """Test update validates and stores the new config."""
        group = await groups.create("ops", "u1")
        created = await notifications.create("log", "u1", [group.id], "logger", {"content": "a"})

        updated = await notifications.update(
            created.id, "renamed", "u1", [group.id], "logger", {"content": " b "}
        )

        assert updated.id == created.id
        assert updated.name == "renamed"
        assert updated.config.content == "b"


class TestGroupService:
    """Tests for GroupService."""

    @pytest.mark.asyncio
    async def test_create_and_delete(self, groups) -> None:
        """Test groups can be created, listed and removed."""
        group = await groups.create("ops", "u1")
        assert [g.id for g in await groups.list()] == [group.id]

        await groups.delete(group.id)

        with pytest.raises(NotFoundError):
            await groups.get(group.id)

    @pytest.mark.asyncio
    async def test_update_renames(self, groups) -> None:
        """Test a group can be renamed and moved to another owner."""
        group = await groups.create("ops", "u1")

        updated = await groups.update(group.id, name="platform", owner_id="u2")

        assert updated.id == group.id
        fetched = await groups.get(group.id)
        assert fetched.name == "platform"
        assert fetched.owner_id == "u2"

    @pytest.mark.asyncio
    async def test_update_unknown_group(self, groups) -> None:
        """Test updating a missing group raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            await groups.update("nope", name="x", owner_id="u1")
        assert exc_info.value.kind == "Group"
        assert await groups.list() == []

    @pytest.mark.asyncio
    async def test_ensure_default_group_is_idempotent(self, groups) -> None:
        """Test the default group is created once per owner."""
        first = await groups.ensure_default_group(name="Default", owner_id="default")
        second = await groups.ensure_default_group(name="Default", owner_id="default")
        other = await groups.ensure_default_group(name="Default", owner_id="u1")

        assert first.id == second.id
        assert other.id != first.id
        assert sorted(g.owner_id for g in await groups.list()) == ["default", "u1"]
