"""
Driver Identity Models

Models for the partial identity used in duplicate lookups and for the
driver records returned to callers.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class DriverIdentity(BaseModel):
    """
    Partial driver identity

    Every field is optional. Blank strings are treated as "not supplied"
    so an empty form field never takes part in matching.
    """
    license_number: Optional[str] = None
    plate_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    barangay: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "RICHMOND",
                "last_name": "ROSETE",
                "date_of_birth": "1999-10-17",
                "barangay": "San Jose"
            }
        }

    @field_validator(
        'license_number', 'plate_number', 'first_name', 'last_name', 'barangay',
        mode='before'
    )
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator('date_of_birth', mode='before')
    @classmethod
    def _blank_date_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def is_empty(self) -> bool:
        """True when no identifying field was supplied"""
        return not any(
            getattr(self, name) is not None
            for name in type(self).model_fields
        )

    @property
    def has_full_name(self) -> bool:
        return bool(self.first_name and self.last_name)


class DriverRecord(BaseModel):
    """Driver row as exposed to callers"""
    driver_id: int
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
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
