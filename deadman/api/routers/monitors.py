"""
Monitors Router

REST API endpoints for monitors, plus the heartbeat (ack) endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from deadman.api.dependencies import get_engine
from deadman.api.schemas import AcknowledgeResponse, MonitorCreate, MonitorUpdate
from deadman.engine import HeartbeatEngine
from deadman.models import Monitor

router = APIRouter(prefix="/monitors")

# Mounted without the API prefix so clients can beat with a plain GET
ack_router = APIRouter()


@router.get("", response_model=list[Monitor])
async def list_monitors(engine: HeartbeatEngine = Depends(get_engine)) -> list[Monitor]:
    """List all monitors."""
    return await engine.monitors.list()


@router.post("", response_model=Monitor, status_code=201)
async def create_monitor(
    body: MonitorCreate,
    engine: HeartbeatEngine = Depends(get_engine),
) -> Monitor:
    """Create a monitor."""
    return await engine.monitors.create(
        name=body.name,
        owner_id=body.owner_id,
        group_id=body.group_id,
        interval_seconds=body.interval_seconds,
        enabled=body.enabled,
        uuid=body.uuid,
    )


@router.get("/{uuid}", response_model=Monitor)
async def get_monitor(uuid: str, engine: HeartbeatEngine = Depends(get_engine)) -> Monitor:
    """Get a monitor with its history."""
    return await engine.monitors.get(uuid)


@router.put("/{uuid}", response_model=Monitor)
async def update_monitor(
    uuid: str,
    body: MonitorUpdate,
    engine: HeartbeatEngine = Depends(get_engine),
) -> Monitor:
    """Replace a monitor's configurable fields."""
    return await engine.monitors.update(
        uuid,
        name=body.name,
        owner_id=body.owner_id,
        group_id=body.group_id,
        interval_seconds=body.interval_seconds,
        enabled=body.enabled,
    )


@router.delete("/{uuid}", status_code=204)
async def delete_monitor(uuid: str, engine: HeartbeatEngine = Depends(get_engine)) -> Response:
    """Delete a monitor."""
    await engine.monitors.delete(uuid)
    return Response(status_code=204)


@router.post("/{uuid}/acknowledge", response_model=Monitor)
async def acknowledge_monitor(uuid: str, engine: HeartbeatEngine = Depends(get_engine)) -> Monitor:
    """Record a heartbeat and clear the alarm."""
    return await engine.acknowledge(uuid)


@router.post("/{uuid}/suppress", response_model=Monitor)
async def suppress_monitor(uuid: str, engine: HeartbeatEngine = Depends(get_engine)) -> Monitor:
    """Clear the alarm without recording a heartbeat."""
    return await engine.suppress(uuid)


@ack_router.get("/ack/{uuid}", response_model=AcknowledgeResponse)
async def ack(uuid: str, engine: HeartbeatEngine = Depends(get_engine)) -> AcknowledgeResponse:
    """Heartbeat endpoint."""
    await engine.acknowledge(uuid)
    return AcknowledgeResponse()
