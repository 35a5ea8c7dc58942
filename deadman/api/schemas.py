"""
API Schemas

Pydantic models for API requests and responses.
"""

from typing import Any

from pydantic import BaseModel, Field

from deadman.models import ChannelType


class MonitorCreate(BaseModel):
    """Request to create a monitor."""

    uuid: str | None = Field(default=None, description="Stable external id (generated if omitted)")
    name: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    group_id: str = Field(..., min_length=1)
    interval_seconds: int = Field(..., ge=1, description="Maximum allowed silence in seconds")
    enabled: bool = True


class MonitorUpdate(BaseModel):
    """Request to replace a monitor's configurable fields."""

    name: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    group_id: str = Field(..., min_length=1)
    interval_seconds: int = Field(..., ge=1)
    enabled: bool


class GroupCreate(BaseModel):
    """Request to create a group."""

    name: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)


class GroupUpdate(BaseModel):
    """Request to replace a group's fields."""

    name: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)


class NotificationWrite(BaseModel):
    """Request to create or replace a notification."""

    name: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    group_ids: list[str] = Field(..., min_length=1)
    channel: ChannelType
    config: dict[str, Any] = Field(default_factory=dict)


class AcknowledgeResponse(BaseModel):
    """Heartbeat endpoint response."""

    acknowledged: bool = True
