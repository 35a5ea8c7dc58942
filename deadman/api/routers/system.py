"""System router - health checks, system info and manual scans."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from deadman.api.dependencies import get_engine
from deadman.config import settings
from deadman.engine import HeartbeatEngine
from deadman.models import ScanReport


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


class SystemInfo(BaseModel):
    """System information response."""

    name: str
    version: str
    description: str
    status: str
    uptime_started: str
    scheduler_running: bool
    next_scan: str | None = None


# Track when the API started
_startup_time = datetime.now(timezone.utc)


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="operational",
        version=settings.version,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/system", response_model=SystemInfo)
async def system_info(engine: HeartbeatEngine = Depends(get_engine)) -> SystemInfo:
    """Get system information."""
    next_scan = engine.scheduler.next_run_time
    return SystemInfo(
        name=settings.title,
        version=settings.version,
        description=settings.description,
        status="operational",
        uptime_started=_startup_time.isoformat(),
        scheduler_running=engine.scheduler.is_running,
        next_scan=next_scan.isoformat() if next_scan else None,
    )


@router.post("/scan", response_model=ScanReport)
async def scan_now(engine: HeartbeatEngine = Depends(get_engine)) -> ScanReport:
    """Run one evaluation pass and return its report."""
    return await engine.trigger_scan_once()
