"""
Citation Intake Models

Models for recording a new citation and for soft delete / restore.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .failure import ServiceFailure


class CitationDraft(BaseModel):
    """
    Citation as submitted from the intake form

    existing_driver_id is set when the officer picked "use existing"
    from the duplicate candidates; leave it empty for "create new".
    """
    ticket_number: str
    apprehension_datetime: datetime = Field(default_factory=datetime.now)
    plate_number: Optional[str] = None

    last_name: str
    first_name: str
    middle_name: Optional[str] = None
    suffix: Optional[str] = None
    date_of_birth: Optional[date] = None
    license_number: Optional[str] = None
    zone: Optional[str] = None
    barangay: Optional[str] = None
    municipality: Optional[str] = None
    province: Optional[str] = None

    violation_type_ids: List[int] = Field(min_length=1)
    existing_driver_id: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "ticket_number": "06101",
                "plate_number": "ABC1234",
                "last_name": "ROSETE",
                "first_name": "RICHMOND",
                "date_of_birth": "1999-10-17",
                "barangay": "San Jose",
                "violation_type_ids": [7]
            }
        }

    @field_validator(
        'plate_number', 'middle_name', 'suffix', 'license_number',
        'zone', 'barangay', 'municipality', 'province',
        mode='before'
    )
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator('ticket_number', 'last_name', 'first_name')
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class RecordedViolation(BaseModel):
    """Violation as written on the new citation"""
    violation_type_id: int
    violation_type: str
    offense_count: int
    fine_amount: float


class IntakeResult(BaseModel):
    """Outcome of recording a citation"""
    success: bool
    citation_id: Optional[int] = None
    ticket_number: Optional[str] = None
    driver_id: Optional[int] = None
    driver_created: bool = False
    violations: List[RecordedViolation] = Field(default_factory=list)
    total_fine: float = 0.0
    failure: Optional[ServiceFailure] = None


class CitationStatusResult(BaseModel):
    """Outcome of a soft delete or restore"""
    success: bool
    citation_id: int
    ticket_number: Optional[str] = None
    deleted_at: Optional[datetime] = None
    message: str = ""
    failure: Optional[ServiceFailure] = None
