from typing import Optional


class BookkeepingError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(BookkeepingError, ValueError):
    """400-level input problem."""

    status_code = 400


class UnauthorizedError(BookkeepingError):
    """Missing, invalid or expired credential."""

    status_code = 401


class NotFoundError(BookkeepingError, LookupError):
    """Record does not exist or belongs to another user."""

    status_code = 404


class ConflictError(BookkeepingError, ValueError):
    """409-level uniqueness violation (e.g. duplicate category name)."""

    status_code = 409


class ServerError(BookkeepingError):
    status_code = 500


_BY_STATUS = {
    400: ValidationError,
    401: UnauthorizedError,
    404: NotFoundError,
    409: ConflictError,
}


def error_for_status(status_code: int, message: str) -> BookkeepingError:
    error_cls = _BY_STATUS.get(status_code, ServerError)
    return error_cls(message)
