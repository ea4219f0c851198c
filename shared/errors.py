"""Error types raised by the store, media pipeline and API layer."""
from typing import Optional


class StoreError(Exception):
    """A JSON record file could not be read or written."""


class ApiError(Exception):
    """An error that maps directly onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.error = error


class ValidationFailed(ApiError):
    status_code = 400


class NotFound(ApiError):
    status_code = 404


class Unauthorized(ApiError):
    status_code = 401


class UnsupportedMediaError(ApiError):
    status_code = 400


class FileTooLargeError(ApiError):
    status_code = 413


class TooManyFiles(ApiError):
    status_code = 400
