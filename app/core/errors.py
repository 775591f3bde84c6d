"""
Domain errors raised by the access-control services.

Services raise these; the HTTP layer maps them to status codes in
``app.main``. Data-integrity anomalies (dangling role or group references,
asymmetric membership) are never raised, they resolve to empty results.
"""


class AccessControlError(Exception):
    """Base class for structural access-control errors."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(AccessControlError):
    """A role, group or user reference has no matching record."""

    status_code = 404


class Conflict(AccessControlError):
    """Duplicate unique name on create or rename."""

    status_code = 409


class ConcurrentUpdateError(Conflict):
    """A versioned write kept losing to concurrent writers."""


class ForbiddenOperation(AccessControlError):
    """Attempt to delete or otherwise break a protected SYSTEM role."""

    status_code = 403
