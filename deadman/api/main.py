"""DEADMAN API - FastAPI Application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from deadman.api.routers import (
    ack_router,
    groups_router,
    monitors_router,
    notifications_router,
    system_router,
)
from deadman.config import settings
from deadman.engine import HeartbeatEngine, get_engine
from deadman.errors import ConflictError, DeadmanError, NotFoundError, ValidationError
from deadman.log import configure_logging


_STATUS_CODES: dict[type[DeadmanError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
}


async def _deadman_error_handler(request: Request, exc: DeadmanError) -> JSONResponse:
    """Map typed errors to HTTP responses."""
    status_code = 500
    for error_type, code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(
    engine: HeartbeatEngine | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        engine: Engine to serve (the global engine if None)
        start_scheduler: Run periodic scans for the lifetime of the app
    """
    engine = engine or get_engine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        app.state.engine = engine
        if start_scheduler:
            await engine.start()
        else:
            await engine.seed()
        yield
        # Shutdown
        await engine.stop()

    app = FastAPI(
        title=settings.title,
        description=settings.description,
        version=settings.version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )
    app.state.engine = engine

    app.add_exception_handler(DeadmanError, _deadman_error_handler)

    # Include routers
    app.include_router(system_router, prefix=settings.api_prefix, tags=["System"])
    app.include_router(monitors_router, prefix=settings.api_prefix, tags=["Monitors"])
    app.include_router(groups_router, prefix=settings.api_prefix, tags=["Groups"])
    app.include_router(notifications_router, prefix=settings.api_prefix, tags=["Notifications"])
    app.include_router(ack_router, tags=["Heartbeat"])

    return app


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    configure_logging(settings.log_level, settings.log_json)
    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
