"""
DEADMAN Models

Data models for monitors, groups, notifications and alert events.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class AlarmState(str, Enum):
    """Alarm state of a monitor."""

    NORMAL = "normal"
    ALARM = "alarm"


class HistoryStatus(str, Enum):
    """Kind of transition recorded in a monitor's history."""

    TRIGGERED = "triggered"
    RESET = "reset"  # Acknowledged, heartbeat clock restarted
    SUPPRESSED = "suppressed"  # Silenced, heartbeat clock untouched


class ChannelType(str, Enum):
    """Available notification channels."""

    LOGGER = "logger"
    DISCORD = "discord"


class HistoryEntry(BaseModel):
    """A single recorded alarm transition."""

    timestamp: datetime
    status: HistoryStatus


class Group(BaseModel):
    """Ownership boundary shared by monitors and notifications."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    owner_id: str


class Monitor(BaseModel):
    """
    A heartbeat monitor.

    The monitor expects an acknowledgement at least every ``interval_seconds``.
    Its ``state`` and ``history`` are only ever changed through the alarm state
    machine, so the latest history entry always explains the current state.
    """

    # Identity
    uuid: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    owner_id: str
    group_id: str

    # Schedule
    enabled: bool = True
    interval_seconds: int = Field(..., ge=1)

    # State
    last_heartbeat: datetime | None = None
    state: AlarmState = AlarmState.NORMAL
    history: list[HistoryEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @computed_field
    @property
    def alarm_state(self) -> bool:
        """True while the monitor is alarming."""
        return self.state == AlarmState.ALARM

    def missed_seconds(self, now: datetime) -> int | None:
        """
        Whole seconds since the last heartbeat.

        Returns None when no heartbeat was ever recorded, meaning the silence
        is unbounded.
        """
        if self.last_heartbeat is None:
            return None
        elapsed = math.floor((now - self.last_heartbeat).total_seconds())
        return max(elapsed, 0)

    def is_overdue(self, now: datetime) -> bool:
        """Check whether the heartbeat is late beyond the interval."""
        missed = self.missed_seconds(now)
        return missed is None or missed > self.interval_seconds


class LoggerChannelConfig(BaseModel):
    """Write alerts to the service log."""

    type: Literal["logger"] = "logger"
    content: str = ""


class DiscordChannelConfig(BaseModel):
    """Post alerts to a Discord-style webhook."""

    type: Literal["discord"] = "discord"
    webhook_url: str


ChannelConfig = Annotated[
    Union[LoggerChannelConfig, DiscordChannelConfig],
    Field(discriminator="type"),
]


class Notification(BaseModel):
    """A notification channel registered against one or more groups."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    owner_id: str
    group_ids: list[str] = Field(..., min_length=1)
    channel: ChannelType
    config: ChannelConfig

    @model_validator(mode="after")
    def _config_matches_channel(self) -> Notification:
        if self.config.type != self.channel.value:
            raise ValueError(
                f"config of type {self.config.type} does not match channel {self.channel.value}"
            )
        return self


class AlertContext(BaseModel):
    """Details of one alarm event, passed unchanged through dispatch."""

    model_config = ConfigDict(frozen=True)

    monitor_uuid: str
    monitor_name: str
    group_id: str
    missed_for_seconds: int | None = Field(default=None, ge=0)  # None: never beaten
    triggered_at: datetime

    @property
    def missed_display(self) -> str:
        """Missed seconds as text, 'Infinity' for a monitor never beaten."""
        if self.missed_for_seconds is None:
            return "Infinity"
        return str(self.missed_for_seconds)


class DeliveryFailure(BaseModel):
    """A notification that failed to deliver during dispatch."""

    notification_id: str
    channel: str
    error: str


class DispatchReport(BaseModel):
    """Outcome of fanning one alert out to a group's notifications."""

    group_id: str
    delivered: list[str] = Field(default_factory=list)
    failed: list[DeliveryFailure] = Field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed)


class ScanReport(BaseModel):
    """Outcome of one scanner pass."""

    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None
    skipped: bool = False  # Another pass was in flight
    evaluated: int = 0
    triggered: list[str] = Field(default_factory=list)
    still_alarming: list[str] = Field(default_factory=list)
    failures: dict[str, str] = Field(default_factory=dict)  # uuid -> error
    error: str | None = None  # Pass-level failure, e.g. listing monitors

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()
