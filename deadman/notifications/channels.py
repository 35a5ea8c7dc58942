"""
Channel Configs

Normalization of raw channel config payloads and the shared alert text.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from deadman.errors import ValidationError
from deadman.models import (
    AlertContext,
    ChannelType,
    DiscordChannelConfig,
    LoggerChannelConfig,
)

_url_adapter = TypeAdapter(AnyUrl)


def normalize_channel_config(
    channel: ChannelType | str,
    raw: Any,
) -> LoggerChannelConfig | DiscordChannelConfig:
    """
    Validate a raw config payload against its channel type.

    Args:
        channel: The notification channel type
        raw: Config as received from the caller (camelCase or snake_case keys)

    Returns:
        The typed channel config

    Raises:
        ValidationError: If the channel is unknown or the config is malformed
    """
    try:
        channel = ChannelType(channel)
    except ValueError:
        raise ValidationError(f"Unsupported notification type: {channel}") from None

    if not isinstance(raw, Mapping):
        raise ValidationError("Notification config must be an object")

    if channel == ChannelType.LOGGER:
        raw_content = raw.get("content")
        content = raw_content.strip() if isinstance(raw_content, str) else ""
        return LoggerChannelConfig(content=content)

    raw_url = raw.get("webhookUrl")
    if raw_url is None:
        raw_url = raw.get("webhook_url")
    webhook_url = "" if raw_url is None else str(raw_url).strip()

    if not webhook_url:
        raise ValidationError("Discord webhook URL is required")

    try:
        _url_adapter.validate_python(webhook_url)
    except PydanticValidationError:
        raise ValidationError("Discord webhook URL must be a valid URL") from None

    return DiscordChannelConfig(webhook_url=webhook_url)


def format_alert_details(context: AlertContext) -> str:
    """Render the alert line shared by every channel."""
    return (
        f"Monitor {context.monitor_name} ({context.monitor_uuid}) "
        f"missed heartbeat for {context.missed_display}s "
        f"in group {context.group_id} "
        f"at {context.triggered_at.isoformat()}"
    )
