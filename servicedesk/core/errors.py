# servicedesk/core/errors.py
"""
Domain error taxonomy.
Services raise these; the API layer maps them to HTTP responses through a
single exception handler registered in main.py.
"""


class ServiceDeskError(Exception):
    """Base class. `status_code` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ServiceDeskError):
    """Missing or malformed input. Not retried."""

    status_code = 400


class NotFound(ServiceDeskError):
    status_code = 404


class InvalidStateTransition(ServiceDeskError):
    """Transition not allowed from the ticket's current status."""

    status_code = 409


class ConflictLostRace(ServiceDeskError):
    """A conditional update matched no row: another actor moved the ticket first."""

    status_code = 409


class StoreUnavailable(ServiceDeskError):
    """Database connection failure or timeout. Safe to retry with backoff."""

    status_code = 503
