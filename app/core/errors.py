# app/core/errors.py
"""
Domain error taxonomy.

Services raise these; `app.main` renders them as

    {"detail": "<message>", "reason": "<machine reason>"}

with the status code carried by the exception class. Only `Transient`
is safe to retry automatically.
"""

from fastapi import status


class ServiceError(Exception):
    """Base class for rejected commands."""

    reason: str = "error"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.reason.replace("_", " ")
        super().__init__(self.detail)


class Unauthorized(ServiceError):
    """Caller's role or identity does not permit the action."""

    reason = "unauthorized"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ServiceError):
    """Row does not exist or is not visible to the caller."""

    reason = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateTransition(ServiceError):
    reason = "invalid_state_transition"
    status_code = status.HTTP_409_CONFLICT


class PinMismatch(ServiceError):
    reason = "pin_mismatch"
    status_code = status.HTTP_400_BAD_REQUEST


class ValidationFailed(ServiceError):
    reason = "validation_failed"
    status_code = status.HTTP_400_BAD_REQUEST


class ReferentialConflict(ServiceError):
    """Row is still referenced by historical order lines."""

    reason = "referential_conflict"
    status_code = status.HTTP_409_CONFLICT


class Transient(ServiceError):
    """Underlying store unreachable; safe to retry."""

    reason = "transient"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
