"""
API error taxonomy. Every error carries the HTTP status and envelope code it maps to.
"""
from typing import Optional

UNAUTHORIZED = "UNAUTHORIZED"
NOT_FOUND = "NOT_FOUND"
INTERNAL_ERROR = "INTERNAL_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"
RATE_LIMITED = "RATE_LIMITED"

STATUS_CODES = {
    400: VALIDATION_ERROR,
    401: UNAUTHORIZED,
    404: NOT_FOUND,
    429: RATE_LIMITED,
    500: INTERNAL_ERROR,
}


class ApiError(Exception):
    """Error raised by handlers and dependencies; rendered as a failure envelope."""

    status_code = 500
    code = INTERNAL_ERROR

    def __init__(self, message: str = "Something went wrong", status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class UnauthorizedError(ApiError):
    status_code = 401
    code = UNAUTHORIZED


def code_for_status(status_code: int) -> str:
    return STATUS_CODES.get(status_code, INTERNAL_ERROR)
