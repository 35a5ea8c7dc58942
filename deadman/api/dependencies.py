"""Request dependencies."""

from fastapi import Request

from deadman.engine import HeartbeatEngine


def get_engine(request: Request) -> HeartbeatEngine:
    """The engine attached to the running application."""
    return request.app.state.engine
