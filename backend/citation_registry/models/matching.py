"""
Duplicate Matching Models

Models for ranked duplicate-driver candidates.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .failure import ServiceFailure
from .offense import HistoryRecord


class MatchType(str, Enum):
    """Signal that produced a candidate's confidence"""
    LICENSE_NUMBER = "license_number"
    NAME_DOB = "name_dob"
    NAME_ONLY = "name_only"
    SIMILAR_NAME_DOB = "similar_name_dob"
    SIMILAR_NAME = "similar_name"
    PARTIAL_NAME = "partial_name"
    DIRECT_SEARCH = "direct_search"


class MatchTrust(str, Enum):
    """How far the candidate list can be trusted"""
    NORMAL = "NORMAL"        # Structured duplicate matching
    FALLBACK = "FALLBACK"    # Direct substring search, lower trust


class MatchCandidate(BaseModel):
    """
    Possible duplicate driver

    Ephemeral: produced only as the answer to a lookup, never stored.
    """
    driver_id: int
    last_name: str
    first_name: str
    middle_name: Optional[str] = None
    suffix: Optional[str] = None
    license_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    barangay: Optional[str] = None
    municipality: Optional[str] = None

    confidence: int = Field(ge=0, le=100)
    reason: str
    match_type: MatchType

    total_citations: int = 0
    last_citation_date: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "driver_id": 42,
                "last_name": "ROSETE",
                "first_name": "RICHMOND",
                "date_of_birth": "1999-10-17",
                "confidence": 95,
                "reason": "Name + DOB match",
                "match_type": "name_dob",
                "total_citations": 3
            }
        }


class MatchResult(BaseModel):
    """
    Ranked duplicate candidates

    candidates are sorted by confidence (highest first), ties broken by
    total citations. vehicle_history holds the offense history of the
    queried plate, kept apart because a vehicle can have several drivers.
    """
    success: bool = True
    trust: MatchTrust = MatchTrust.NORMAL
    candidates: List[MatchCandidate] = Field(default_factory=list)
    vehicle_history: List[HistoryRecord] = Field(default_factory=list)
    failure: Optional[ServiceFailure] = None

    @property
    def match_count(self) -> int:
        return len(self.candidates)

    @property
    def found_nothing(self) -> bool:
        """True when even the direct search came back empty"""
        return self.success and self.trust == MatchTrust.FALLBACK and not self.candidates
