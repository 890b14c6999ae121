"""
Service Failure Models

Typed failure carried by every service result so callers can tell
"nothing matched" apart from "the lookup could not run".
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class FailureKind(str, Enum):
    """Failure categories returned by the registry services"""
    NOT_FOUND = "NOT_FOUND"      # No driver/citation for the given id
    VALIDATION = "VALIDATION"    # Missing or malformed input
    STORAGE = "STORAGE"          # Data source unavailable or write failed


class ServiceFailure(BaseModel):
    """Failure details attached to an unsuccessful result"""
    kind: FailureKind
    message: str
    cause: Optional[str] = None

    @classmethod
    def from_error(cls, error) -> "ServiceFailure":
        """Build from a DuplicateServiceError"""
        return cls(kind=error.kind, message=error.message, cause=error.cause)
