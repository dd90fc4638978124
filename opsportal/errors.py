"""
Domain errors raised by the services layer.
Routes never catch these; the handler installed by create_app() maps them to HTTP.
"""
from typing import Optional


class PortalError(Exception):
    """Base class for every error the services raise on purpose."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(PortalError):
    """Unknown employee, task or record."""

    status_code = 404


class InvalidArgumentError(PortalError):
    """Malformed status value, prefix, time of day or coordinates."""

    status_code = 400


class ConflictError(PortalError):
    """Duplicate prefix / employee id, or a locked attendance record."""

    status_code = 409


class TransactionFailure(PortalError):
    """An atomic unit of work failed and was rolled back."""

    status_code = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
