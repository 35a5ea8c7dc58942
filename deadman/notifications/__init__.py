"""
Notifications

Alert fan-out and per-channel delivery.

Provides:
- Channel config validation at create/update time
- NotificationRunner for a single delivery (Logger, Discord webhook)
- NotificationDispatcher for concurrent fan-out with failure isolation
"""

from deadman.notifications.channels import (
    format_alert_details,
    normalize_channel_config,
)
from deadman.notifications.runner import NotificationRunner
from deadman.notifications.dispatcher import NotificationDispatcher

__all__ = [
    "format_alert_details",
    "normalize_channel_config",
    "NotificationRunner",
    "NotificationDispatcher",
]
