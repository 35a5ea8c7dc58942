"""
Instrumentation hooks.

The scanner and the dispatcher call these hooks at fixed points so a tracing
or metrics backend can be attached without touching the engine. Hooks are
invoked through ``emit``; an exception raised by a hook is logged and never
reaches the scan or the dispatch. The base class does nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

import structlog

if TYPE_CHECKING:
    from deadman.models import AlertContext, DispatchReport, Notification, ScanReport

logger = structlog.get_logger(__name__)


class Instrumentation:
    """No-op instrumentation. Subclass and override the hooks you need."""

    def scan_started(self) -> None:
        pass

    def scan_finished(self, report: ScanReport) -> None:
        pass

    def monitor_evaluated(self, monitor_uuid: str, outcome: str) -> None:
        """Outcome is one of: ok, triggered, alarming, redispatched, skipped, failed."""
        pass

    def dispatch_started(self, group_id: str, context: AlertContext) -> None:
        pass

    def dispatch_finished(self, report: DispatchReport) -> None:
        pass

    def delivery_finished(
        self,
        notification: Notification,
        error: BaseException | None,
    ) -> None:
        pass


def emit(hook: Callable[..., None], *args: Any) -> None:
    """Call an instrumentation hook, logging instead of raising on failure."""
    try:
        hook(*args)
    except Exception as e:
        logger.warning(
            "Instrumentation hook failed",
            hook=getattr(hook, "__name__", repr(hook)),
            error=str(e),
        )


NOOP = Instrumentation()
