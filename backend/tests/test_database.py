"""
Database Tests

Tests for the ORM models, the transaction helpers and the result models built from rows.
"""

from datetime import date, datetime
from types import SimpleNamespace

import pytest
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from citation_registry.database.database import (
    get_db,
    read_session,
    reset_db,
    unit_of_work,
)
from citation_registry.database.models import (
    Citation,
    Driver,
    Violation,
    ViolationType,
)
from citation_registry.models import DriverIdentity, DriverRecord, HistoryRecord


# ============================================
# Models
# ============================================

class TestModels:
    """Test ORM models"""

    def test_create_driver(self, session_factory):
        db = session_factory()
        try:
            db.add(Driver(
                last_name="ROSETE",
                first_name="RICHMOND",
                date_of_birth=date(1999, 10, 17),
                license_number="A01-23-456789"
            ))
            db.commit()

            driver = db.query(Driver).filter_by(license_number="A01-23-456789").first()
            assert driver is not None
            assert driver.driver_id is not None
            assert driver.created_at is not None
        finally:
            db.close()

    def test_license_number_unique(self, session_factory):
        db = session_factory()
        try:
            db.add(Driver(last_name="A", first_name="B", license_number="L1"))
            db.add(Driver(last_name="C", first_name="D", license_number="L1"))
            with pytest.raises(IntegrityError):
                db.commit()
        finally:
            db.close()

    def test_unlicensed_drivers_allowed(self, session_factory):
        db = session_factory()
        try:
            db.add(Driver(last_name="A", first_name="B"))
            db.add(Driver(last_name="C", first_name="D"))
            db.commit()
            assert db.query(Driver).count() == 2
        finally:
            db.close()

    @pytest.mark.parametrize("offense, fine", [(1, 1000.0), (2, 2000.0), (3, 3000.0), (4, 3000.0), (0, 1000.0)])
    def test_fine_for_offense(self, offense, fine):
        vt = ViolationType(
            violation_type="Reckless Driving",
            fine_amount_1=1000.0,
            fine_amount_2=2000.0,
            fine_amount_3=3000.0
        )
        assert vt.fine_for_offense(offense) == fine

    def test_citation_defaults(self, seeded):
        db = seeded()
        try:
            citation = Citation(
                ticket_number="06101",
                driver_id=42,
                apprehension_datetime=datetime(2026, 3, 1),
                last_name="ROSETE",
                first_name="RICHMOND"
            )
            db.add(citation)
            db.flush()
            db.add(Violation(citation_id=citation.citation_id, violation_type_id=7))
            db.commit()

            citation = db.query(Citation).filter_by(ticket_number="06101").one()
            assert citation.status == "pending"
            assert citation.deleted_at is None
            assert db.query(Violation).one().offense_count == 1
        finally:
            db.close()


# ============================================
# Transaction Helpers
# ============================================

class TestSessionHelpers:
    """Test get_db and reset_db"""

    def test_get_db_yields_session(self):
        gen = get_db()
        db = next(gen)
        try:
            assert isinstance(db, Session)
        finally:
            gen.close()

    def test_reset_db(self, engine, session_factory):
        with unit_of_work(session_factory) as db:
            db.add(Driver(last_name="ROSETE", first_name="RICHMOND"))

        reset_db(bind=engine)

        with read_session(session_factory) as db:
            assert db.query(Driver).count() == 0


class TestUnitOfWork:
    """Test unit_of_work commit / rollback"""

    def test_commits_on_success(self, session_factory):
        with unit_of_work(session_factory) as db:
            db.add(Driver(last_name="ROSETE", first_name="RICHMOND"))

        with read_session(session_factory) as db:
            assert db.query(Driver).count() == 1

    def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            with unit_of_work(session_factory) as db:
                db.add(Driver(last_name="ROSETE", first_name="RICHMOND"))
                db.flush()
                raise RuntimeError("boom")

        with read_session(session_factory) as db:
            assert db.query(Driver).count() == 0

    def test_rollback_not_logged_as_error(self, session_factory):
        errors = []
        handler_id = logger.add(errors.append, level="ERROR")
        try:
            with pytest.raises(RuntimeError):
                with unit_of_work(session_factory) as db:
                    db.add(Driver(last_name="ROSETE", first_name="RICHMOND"))
                    raise RuntimeError("Ticket number 06101 already exists")
        finally:
            logger.remove(handler_id)

        assert errors == []


# ============================================
# Result Models
# ============================================

class TestResultModels:
    """Test pydantic models built from ORM rows"""

    def test_driver_record_from_row(self, seeded):
        db = seeded()
        try:
            record = DriverRecord.model_validate(db.get(Driver, 42))
        finally:
            db.close()

        assert record.driver_id == 42
        assert record.license_number == "A01-23-456789"
        assert record.date_of_birth == date(1999, 10, 17)

    def test_history_record_from_attributes(self):
        row = SimpleNamespace(
            citation_id=1,
            ticket_number="06101",
            apprehension_datetime=datetime(2026, 3, 1, 9, 30),
            status="pending",
            total_fine=1000.0,
            driver_id=42,
            driver_name="ROSETE, RICHMOND",
            plate_number="ABC1234",
            violation_type_id=7,
            violation_type="Reckless Driving",
            offense_count=1,
            fine_amount=1000.0
        )

        record = HistoryRecord.model_validate(row)

        assert record.ticket_number == "06101"
        assert record.fine_amount == 1000.0

    def test_identity_schema_example(self):
        example = DriverIdentity.model_json_schema()["example"]

        assert example["last_name"] == "ROSETE"
        assert example["date_of_birth"] == "1999-10-17"
