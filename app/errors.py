"""
Application error types.

Every error carries a user-facing message (Indonesian, as shown in the UI)
and the HTTP status the API should answer with. The FastAPI handler in
app.main renders them as {"success": false, "error": message}.
"""


class CourtEaseError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(CourtEaseError):
    status_code = 404


class PermissionDeniedError(CourtEaseError):
    status_code = 403


class BookingValidationError(CourtEaseError):
    status_code = 400


class BookingConflictError(CourtEaseError):
    status_code = 409
