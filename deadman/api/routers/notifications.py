"""
Notifications Router

REST API endpoints for notification channels.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from deadman.api.dependencies import get_engine
from deadman.api.schemas import NotificationWrite
from deadman.engine import HeartbeatEngine
from deadman.models import DispatchReport, Notification

router = APIRouter(prefix="/notifications")


@router.get("", response_model=list[Notification])
async def list_notifications(engine: HeartbeatEngine = Depends(get_engine)) -> list[Notification]:
    """List all notifications."""
    return await engine.notifications.list()


@router.post("", response_model=Notification, status_code=201)
async def create_notification(
    body: NotificationWrite,
    engine: HeartbeatEngine = Depends(get_engine),
) -> Notification:
    """Create a notification. The channel config is validated here."""
    return await engine.notifications.create(
        name=body.name,
        owner_id=body.owner_id,
        group_ids=body.group_ids,
        channel=body.channel,
        config=body.config,
    )


@router.get("/{notification_id}", response_model=Notification)
async def get_notification(
    notification_id: str,
    engine: HeartbeatEngine = Depends(get_engine),
) -> Notification:
    return await engine.notifications.get(notification_id)


@router.put("/{notification_id}", response_model=Notification)
async def update_notification(
    notification_id: str,
    body: NotificationWrite,
    engine: HeartbeatEngine = Depends(get_engine),
) -> Notification:
    """Replace a notification. The channel type cannot change."""
    return await engine.notifications.update(
        notification_id,
        name=body.name,
        owner_id=body.owner_id,
        group_ids=body.group_ids,
        channel=body.channel,
        config=body.config,
    )


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: str,
    engine: HeartbeatEngine = Depends(get_engine),
) -> Response:
    await engine.notifications.delete(notification_id)
    return Response(status_code=204)


@router.post("/{notification_id}/test", response_model=DispatchReport)
async def test_notification(
    notification_id: str,
    engine: HeartbeatEngine = Depends(get_engine),
) -> DispatchReport:
    """Send a sample alert through one notification."""
    return await engine.send_test_alert(notification_id)
