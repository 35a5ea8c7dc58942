"""
Notification Dispatcher

Fans one alert out to every notification registered for a group.
"""

from __future__ import annotations

import asyncio

import structlog

from deadman.config import settings
from deadman.errors import DeliveryError
from deadman.instrumentation import NOOP, Instrumentation, emit
from deadman.models import AlertContext, DeliveryFailure, DispatchReport, Notification
from deadman.notifications.runner import NotificationRunner
from deadman.store import HeartbeatRepository

logger = structlog.get_logger(__name__)


def _channel_name(notification: Notification) -> str:
    return getattr(notification.channel, "value", str(notification.channel))


class NotificationDispatcher:
    """
    Routes alerts to a group's notifications.

    Every notification is delivered concurrently and independently. A failing
    or hanging channel is recorded in the report and logged, never raised, so
    it cannot keep the others from being attempted.
    """

    def __init__(
        self,
        repository: HeartbeatRepository,
        runner: NotificationRunner,
        delivery_timeout: float | None = None,
        instrumentation: Instrumentation | None = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            repository: Source of notifications
            runner: Delivers a single notification
            delivery_timeout: Upper bound in seconds for one delivery
            instrumentation: Optional hooks for tracing/metrics
        """
        self._repository = repository
        self._runner = runner
        self._delivery_timeout = (
            delivery_timeout
            if delivery_timeout is not None
            else settings.delivery_timeout_seconds
        )
        self._instrumentation = instrumentation or NOOP

    async def dispatch_group_alert(
        self,
        group_id: str,
        context: AlertContext,
    ) -> DispatchReport:
        """
        Send an alert to all notifications of a group.

        Args:
            group_id: Group of the alarming monitor
            context: The alert to deliver

        Returns:
            Which notifications delivered and which failed
        """
        notifications = await self._repository.find_notifications_by_group_id(group_id)
        if not notifications:
            logger.debug("No notifications for group", group_id=group_id)
        return await self.deliver_all(group_id, notifications, context)

    async def deliver_all(
        self,
        group_id: str,
        notifications: list[Notification],
        context: AlertContext,
    ) -> DispatchReport:
        """Deliver an alert to the given notifications concurrently."""
        emit(self._instrumentation.dispatch_started, group_id, context)
        report = DispatchReport(group_id=group_id)

        if not notifications:
            emit(self._instrumentation.dispatch_finished, report)
            return report

        outcomes = await asyncio.gather(
            *(self._deliver(notification, context) for notification in notifications)
        )

        for notification, error in outcomes:
            if error is None:
                report.delivered.append(notification.id)
            else:
                report.failed.append(DeliveryFailure(
                    notification_id=notification.id,
                    channel=_channel_name(notification),
                    error=str(error),
                ))

        logger.info(
            "Alert dispatched",
            group_id=group_id,
            monitor_uuid=context.monitor_uuid,
            delivered=len(report.delivered),
            failed=len(report.failed),
        )
        emit(self._instrumentation.dispatch_finished, report)
        return report

    async def _deliver(
        self,
        notification: Notification,
        context: AlertContext,
    ) -> tuple[Notification, BaseException | None]:
        """Run one notification, turning any failure into a return value."""
        error: BaseException | None = None
        try:
            await asyncio.wait_for(
                self._runner.run(notification, context),
                timeout=self._delivery_timeout,
            )
        except asyncio.TimeoutError:
            error = DeliveryError(
                f"Delivery timed out after {self._delivery_timeout}s"
            )
        except Exception as e:
            error = e

        if error is not None:
            logger.error(
                "Failed to execute notification",
                notification_id=notification.id,
                channel=_channel_name(notification),
                error=str(error),
            )

        emit(self._instrumentation.delivery_finished, notification, error)
        return notification, error
