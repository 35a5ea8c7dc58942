"""
Notification Runner

Delivers one alert through one notification channel.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from deadman.config import settings
from deadman.errors import DeliveryError
from deadman.models import (
    AlertContext,
    DiscordChannelConfig,
    LoggerChannelConfig,
    Notification,
)
from deadman.notifications.channels import format_alert_details

logger = structlog.get_logger(__name__)


class NotificationRunner:
    """
    Sends alerts to a single channel.

    Supports:
    - Logger (warning line in the service log)
    - Discord (via webhook)

    The runner never retries; a failed webhook call raises DeliveryError and
    the dispatcher decides what to do with it.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        alert_logger: Any | None = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            http_client: Client used for webhooks (created lazily if None)
            timeout: HTTP timeout in seconds for a lazily created client
            alert_logger: Logger that receives Logger-channel alerts
        """
        self._http_client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._alert_logger = alert_logger or structlog.get_logger("deadman.alerts")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if the runner created it."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def run(self, notification: Notification, context: AlertContext) -> None:
        """
        Deliver an alert through the notification's channel.

        Raises:
            DeliveryError: If a webhook rejects the alert or cannot be reached
        """
        config = notification.config

        if isinstance(config, LoggerChannelConfig):
            self._emit_logger(notification, config, context)
            return

        if isinstance(config, DiscordChannelConfig):
            await self._emit_discord(notification, config, context)
            return

        logger.warning(
            "Unsupported notification type",
            notification_id=notification.id,
            channel=getattr(notification.channel, "value", notification.channel),
        )

    def _emit_logger(
        self,
        notification: Notification,
        config: LoggerChannelConfig,
        context: AlertContext,
    ) -> None:
        """Write the alert to the log at warning level."""
        parts = [config.content.strip(), format_alert_details(context)]
        message = " - ".join(part for part in parts if part)
        self._alert_logger.warning(
            f"[{notification.name}] {message}",
            notification=notification.name,
            notification_id=notification.id,
            monitor_uuid=context.monitor_uuid,
        )

    async def _emit_discord(
        self,
        notification: Notification,
        config: DiscordChannelConfig,
        context: AlertContext,
    ) -> None:
        """Send alert to Discord via webhook."""
        client = await self._get_client()

        content = "\n".join([
            f"🚨 {notification.name} alert",
            format_alert_details(context),
        ])

        try:
            response = await client.post(
                config.webhook_url,
                json={"content": content},
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise DeliveryError(f"Discord webhook request failed: {e}") from e

        if not response.is_success:
            detail = response.text or response.reason_phrase
            raise DeliveryError(
                f"Discord webhook error ({response.status_code}): {detail}",
                status_code=response.status_code,
                body=detail,
            )

        logger.debug(
            "Discord alert delivered",
            notification_id=notification.id,
            status=response.status_code,
        )
