"""Error taxonomy shared by the service and API layers.

Services raise these; the handlers registered in main.create_app()
turn them into `{"message": ...}` JSON responses with the matching
status code. Messages are short and safe to show to end users.
"""

from typing import Optional


class TaskmateError(Exception):
    """Base class for all errors that map to an HTTP response."""

    status_code: int = 500
    default_message: str = "Server error"
    headers: Optional[dict[str, str]] = None

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(TaskmateError):
    """Missing or malformed input."""

    status_code = 400
    default_message = "All fields are required"


class ConflictError(TaskmateError):
    """Duplicate email on registration."""

    status_code = 400
    default_message = "User already exists"


class InvalidCredentialsError(TaskmateError):
    """Unknown email, missing password or wrong password: one answer for all."""

    status_code = 400
    default_message = "Invalid credentials"


class UnauthenticatedError(TaskmateError):
    """Missing, malformed, invalid or expired session token."""

    status_code = 401
    default_message = "Authentication required"
    headers = {"WWW-Authenticate": "Bearer"}


class NotFoundOrUnauthorizedError(TaskmateError):
    """Task missing or not owned by the caller (never says which)."""

    status_code = 404
    default_message = "Todo not found or unauthorized"


class TaskValidationError(TaskmateError):
    status_code = 400
    default_message = "Invalid task"


class ServerError(TaskmateError):
    """Anything unexpected. The details stay in the logs."""

    status_code = 500
    default_message = "Server error"
