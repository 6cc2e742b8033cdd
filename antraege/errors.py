"""
Application error types.

ValidationError carries per-field messages for caller input problems.
AppError (and its FileUploadError kind) carries a user-facing message and
the HTTP status the API should answer with.
"""

from enum import Enum
from typing import Dict, Optional


class ErrorType(str, Enum):
    VALIDATION = "VALIDATION"
    FILE_UPLOAD = "FILE_UPLOAD"
    DATABASE = "DATABASE"
    SERVER = "SERVER"


class ValidationError(Exception):
    """
    Raised when caller-supplied input is invalid.

    Attributes:
        field_errors: Mapping of field name to a user-facing message
    """

    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = dict(field_errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.field_errors.items()))


class AppError(Exception):
    """
    Base class for application errors that are safe to show to users.

    Attributes:
        message: User-facing message
        error_type: Category used by API error responses
        status_code: HTTP status code for the error response
    """

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.SERVER,
        status_code: int = 500,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or {}

    def to_response(self) -> dict:
        body = {"error": self.message, "type": self.error_type.value}
        if self.details:
            body["details"] = self.details
        return body

    @classmethod
    def file_upload(cls, message: str, details: Optional[dict] = None) -> "FileUploadError":
        return FileUploadError(message, details=details)

    @classmethod
    def database(cls, message: str) -> "AppError":
        return cls(message, ErrorType.DATABASE, 500)


class FileUploadError(AppError):
    """A blob store operation exhausted its retries or failed unexpectedly."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, ErrorType.FILE_UPLOAD, 500, details)
