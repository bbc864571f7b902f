"""
Domain errors raised by the workflow services.

Each error is an HTTPException so FastAPI renders it directly; services stay
free of response handling, exactly as with the plain HTTPException calls they
replace.
"""
from typing import Any

from fastapi import HTTPException, status


class DomainError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "domain_error"

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        detail: dict[str, Any] = {"code": self.code, "message": message}
        detail.update(extra)
        super().__init__(status_code=self.status_code, detail=detail)


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidState(DomainError):
    code = "invalid_state"


class InvalidStateTransition(InvalidState):
    code = "invalid_state_transition"

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f'Status atual deve ser "{expected}". Status atual: "{actual}"',
            expected=expected,
            actual=actual,
        )


class InvalidReference(DomainError):
    code = "invalid_reference"


class Conflict(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class MissingRequiredFile(DomainError):
    code = "missing_required_file"


class TooManyFiles(DomainError):
    code = "too_many_files"


class UnsupportedFileType(DomainError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    code = "unsupported_file_type"


class FileTooLarge(DomainError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    code = "file_too_large"


class ValidationError(DomainError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class DocumentGenerationError(DomainError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "document_generation_failed"
