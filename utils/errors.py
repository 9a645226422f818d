# utils/errors.py
"""
Error taxonomy shared by the translator, synchronizer and route handlers.

Every class carries the HTTP status it maps to, the short envelope
``message`` and the ``error`` text placed under ``data.error``.
"""
from typing import Optional


class ApiError(Exception):
    status_code = 500
    message = "Unexpected error"

    def __init__(self, error: str, message: Optional[str] = None,
                 status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(error)
        self.error = error
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        # underlying exception text, only rendered in debug mode
        self.detail = detail


class ValidationError(ApiError):
    status_code = 400
    message = "Invalid request"


class AssignmentReferenceError(ApiError):
    status_code = 400
    message = "Invalid assigned user"


class NotFoundError(ApiError):
    status_code = 404
    message = "Not found"


class StoreError(ApiError):
    status_code = 500
    message = "Store failure"


def invalid_param(name: str, error: str) -> ValidationError:
    return ValidationError(error, message=f"Invalid {name} parameter")
