"""
Offense History Models

Models for prior-offense history, offense ordinal resolution and
fine tier quotes.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .failure import ServiceFailure


class OffenseMatchMethod(str, Enum):
    """Which identifying key produced the offense history"""
    DRIVER_ID = "driver_id"
    LICENSE_NUMBER = "license_number"
    PLATE_NUMBER = "plate_number"
    NONE = "none"


class HistoryRecord(BaseModel):
    """One violation on a prior citation"""
    citation_id: int
    ticket_number: str
    apprehension_datetime: datetime
    status: Optional[str] = None
    total_fine: float = 0.0
    driver_id: Optional[int] = None
    driver_name: str
    plate_number: Optional[str] = None
    violation_type_id: int
    violation_type: str
    offense_count: int
    fine_amount: float = 0.0

    class Config:
        from_attributes = True


class OffenseResolution(BaseModel):
    """
    Next offense ordinal for a driver or vehicle

    offense_count is always 1, 2 or 3. It stays 1 when no history was
    found or when the lookup failed; check success/failure to tell those
    cases apart.
    """
    success: bool = True
    offense_count: int = Field(default=1, ge=1, le=3)
    match_method: OffenseMatchMethod = OffenseMatchMethod.NONE
    driver_id: Optional[int] = None
    history_count: int = 0
    history: List[HistoryRecord] = Field(default_factory=list)
    failure: Optional[ServiceFailure] = None


class OffenseFineQuote(BaseModel):
    """Fine that applies to the next offense of one violation type"""
    violation_type_id: int
    violation_type: str
    offense_count: int
    offense_label: str
    fine_amount: float
    label: str


class OffenseCountSummary(BaseModel):
    """Next offense ordinal and fine for every active violation type"""
    success: bool = True
    driver_id: Optional[int] = None
    offense_counts: Dict[int, int] = Field(default_factory=dict)
    violations: Dict[int, OffenseFineQuote] = Field(default_factory=dict)
    failure: Optional[ServiceFailure] = None
