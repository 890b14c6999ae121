"""
Duplicate Detection Errors

Raised inside the repository and services; the public service methods
turn them into ServiceFailure results.
"""

from typing import Optional

from citation_registry.models.failure import FailureKind


class DuplicateServiceError(Exception):
    """Base class for registry service errors"""
    kind: FailureKind = FailureKind.STORAGE

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = str(cause) if cause is not None else None


class RecordNotFound(DuplicateServiceError):
    """No driver (or citation) matches the given id"""
    kind = FailureKind.NOT_FOUND


class IdentityValidationError(DuplicateServiceError):
    """Identifying fields missing or malformed for the operation"""
    kind = FailureKind.VALIDATION


class StorageFailure(DuplicateServiceError):
    """Data source unavailable or a write failed"""
    kind = FailureKind.STORAGE
