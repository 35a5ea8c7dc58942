"""
Error taxonomy.

Errors raised by single-target operations (acknowledge, suppress, create)
propagate to the caller. DeliveryError and ScanError are contained by the
dispatcher and the scanner respectively and only ever show up in logs and
reports.
"""

from __future__ import annotations


class DeadmanError(Exception):
    """Base class for all DEADMAN errors."""

    pass


class ValidationError(DeadmanError):
    """Raised when monitor or notification input is malformed."""

    pass


class NotFoundError(DeadmanError):
    """Raised when a monitor, notification or group does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} was not found")


class ConflictError(DeadmanError):
    """Raised when a write would clash with existing state."""

    pass


class DeliveryError(DeadmanError):
    """Raised when a notification channel fails to deliver an alert."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ScanError(DeadmanError):
    """Raised when evaluating a single monitor fails during a scan pass."""

    def __init__(self, monitor_uuid: str, cause: BaseException) -> None:
        self.monitor_uuid = monitor_uuid
        self.cause = cause
        super().__init__(f"Failed to evaluate monitor {monitor_uuid}: {cause}")
