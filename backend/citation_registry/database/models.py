"""
SQLAlchemy ORM Models

This module defines the database tables the citation registry reads
and writes:
- Drivers (one row per person, never hard-deleted)
- Citations (one row per traffic stop, with a driver snapshot)
- Violations (citation <-> violation type, with resolved offense ordinal)
- Violation types (fine catalog with three escalating tiers)
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from .database import Base


class Driver(Base):
    """
    Unique driver identity

    Created on the first citation for an unseen person and updated in
    place when later citations supply missing details. A driver may have
    no license number (unlicensed apprehension).
    """
    __tablename__ = "drivers"

    driver_id = Column(Integer, primary_key=True, autoincrement=True)

    last_name = Column(String(100), nullable=False, index=True)
    first_name = Column(String(100), nullable=False, index=True)
    middle_name = Column(String(100))
    suffix = Column(String(20))

    date_of_birth = Column(Date)
    license_number = Column(String(50), unique=True, index=True)

    zone = Column(String(50))
    barangay = Column(String(100))
    municipality = Column(String(100))
    province = Column(String(100))

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    __table_args__ = (
        Index('idx_driver_name', 'last_name', 'first_name'),
    )


class ViolationType(Base):
    """
    Violation catalog entry

    Holds the 1st / 2nd / 3rd-and-later offense fines.
    """
    __tablename__ = "violation_types"

    violation_type_id = Column(Integer, primary_key=True, autoincrement=True)
    violation_type = Column(String(255), nullable=False)

    fine_amount_1 = Column(Float, nullable=False, default=0.0)
    fine_amount_2 = Column(Float, nullable=False, default=0.0)
    fine_amount_3 = Column(Float, nullable=False, default=0.0)

    is_active = Column(Boolean, default=True, index=True)

    def fine_for_offense(self, offense_count: int) -> float:
        """Fine for the given offense ordinal (4th+ billed at 3rd tier)"""
        tier = max(1, min(offense_count, 3))
        return getattr(self, f"fine_amount_{tier}") or 0.0


class Citation(Base):
    """
    Traffic citation (one apprehension)

    Driver name / address fields are a snapshot taken at citation time
    and stay as recorded even if the driver row is edited or merged.
    """
    __tablename__ = "citations"

    citation_id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_number = Column(String(50), unique=True, nullable=False)
    driver_id = Column(Integer, ForeignKey('drivers.driver_id'), index=True)

    apprehension_datetime = Column(DateTime, nullable=False, index=True)
    plate_mv_engine_chassis_no = Column(String(100), index=True)

    # Driver snapshot
    last_name = Column(String(100), nullable=False)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100))
    suffix = Column(String(20))
    license_number = Column(String(50), index=True)
    date_of_birth = Column(Date)
    zone = Column(String(50))
    barangay = Column(String(100))
    municipality = Column(String(100))
    province = Column(String(100))

    status = Column(String(20), default='pending', index=True)  # pending, paid, void
    total_fine = Column(Float, default=0.0)

    created_at = Column(DateTime, server_default=func.now())

    # Soft delete
    deleted_at = Column(DateTime, index=True)
    deleted_by = Column(String(100))
    deletion_reason = Column(Text)

    __table_args__ = (
        Index('idx_citation_driver_deleted', 'driver_id', 'deleted_at'),
    )


class Violation(Base):
    """
    Violation recorded on a citation

    offense_count is the ordinal resolved at citation time and is never
    recomputed afterwards.
    """
    __tablename__ = "violations"

    violation_id = Column(Integer, primary_key=True, autoincrement=True)
    citation_id = Column(Integer, ForeignKey('citations.citation_id'), nullable=False, index=True)
    violation_type_id = Column(
        Integer,
        ForeignKey('violation_types.violation_type_id'),
        nullable=False,
        index=True
    )

    offense_count = Column(Integer, nullable=False, default=1)
    fine_amount = Column(Float, default=0.0)

    created_at = Column(DateTime, server_default=func.now())
