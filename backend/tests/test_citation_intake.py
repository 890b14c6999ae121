"""
Citation Intake Tests

Tests cover:
- Driver reuse (explicit id, license, name + DOB) and creation
- Offense ordinal and fine tier per violation
- Filling missing driver details
- Ticket / violation type validation
- Soft delete and restore
"""

from datetime import date, datetime
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from citation_registry.database.models import Citation, Driver, Violation
from citation_registry.duplicates import CitationIntakeService, OffenseHistoryResolver
from citation_registry.models import CitationDraft, FailureKind

ROSETE_ID = 42
RECKLESS_DRIVING = 7
NO_HELMET = 3

DATABASE_LOCKED = OperationalError("COMMIT", {}, Exception("database is locked"))


@pytest.fixture
def intake(seeded, intake_config):
    return CitationIntakeService(seeded, config=intake_config)


def make_draft(ticket, **overrides):
    fields = dict(
        ticket_number=ticket,
        apprehension_datetime=datetime(2026, 3, 1, 9, 30),
        plate_number="ABC1234",
        last_name="ROSETE",
        first_name="RICHMOND",
        date_of_birth=date(1999, 10, 17),
        violation_type_ids=[RECKLESS_DRIVING],
    )
    fields.update(overrides)
    return CitationDraft(**fields)


# ============================================
# Recording
# ============================================

class TestRecordCitation:
    """Test record_citation"""

    def test_escalation_one_two_three_three(self, intake):
        counts, fines = [], []
        for n in range(4):
            result = intake.record_citation(make_draft(f"0610{n}", existing_driver_id=ROSETE_ID))
            assert result.success
            counts.append(result.violations[0].offense_count)
            fines.append(result.total_fine)

        assert counts == [1, 2, 3, 3]
        assert fines == [1000.0, 2000.0, 3000.0, 3000.0]

    def test_reuses_driver_by_name_and_dob(self, intake):
        result = intake.record_citation(make_draft("06101"))

        assert result.driver_id == ROSETE_ID
        assert not result.driver_created

    def test_reuses_driver_by_license(self, intake):
        result = intake.record_citation(make_draft(
            "06101", first_name="RICH", license_number="A01-23-456789"
        ))

        assert result.driver_id == ROSETE_ID

    def test_creates_new_driver(self, intake, seeded):
        result = intake.record_citation(make_draft(
            "06101", last_name="SANTOS", first_name="JUAN", date_of_birth=None,
            license_number="B02-99-000111"
        ))

        assert result.success
        assert result.driver_created
        assert result.driver_id != ROSETE_ID

        db = seeded()
        try:
            driver = db.get(Driver, result.driver_id)
            assert driver.license_number == "B02-99-000111"
            assert driver.municipality == "Baggao"
            assert driver.province == "Cagayan"
        finally:
            db.close()

    def test_citation_snapshot_and_violations(self, intake, seeded):
        result = intake.record_citation(make_draft(
            "06101", violation_type_ids=[RECKLESS_DRIVING, NO_HELMET, RECKLESS_DRIVING]
        ))

        assert [v.violation_type_id for v in result.violations] == [RECKLESS_DRIVING, NO_HELMET]
        assert result.total_fine == 1150.0

        db = seeded()
        try:
            citation = db.get(Citation, result.citation_id)
            assert citation.last_name == "ROSETE"
            assert citation.plate_mv_engine_chassis_no == "ABC1234"
            assert citation.municipality == "Baggao"
            assert citation.status == "pending"
            rows = db.query(Violation).filter_by(citation_id=result.citation_id).all()
            assert sorted(v.fine_amount for v in rows) == [150.0, 1000.0]
        finally:
            db.close()

    def test_fills_missing_driver_details(self, intake, add_driver, seeded):
        driver_id = add_driver(last_name="SANTOS", first_name="JUAN", barangay="Centro")

        intake.record_citation(make_draft(
            "06101", existing_driver_id=driver_id, last_name="SANTOS", first_name="JUAN",
            barangay="San Vicente", zone="Zone 4"
        ))

        db = seeded()
        try:
            driver = db.get(Driver, driver_id)
            assert driver.zone == "Zone 4"
            assert driver.barangay == "Centro"
            assert driver.date_of_birth == date(1999, 10, 17)
        finally:
            db.close()

    def test_license_of_another_driver_not_copied(self, intake, add_driver, seeded):
        driver_id = add_driver(last_name="SANTOS", first_name="JUAN")

        result = intake.record_citation(make_draft(
            "06101", existing_driver_id=driver_id, license_number="A01-23-456789"
        ))

        assert result.success
        db = seeded()
        try:
            assert db.get(Driver, driver_id).license_number is None
        finally:
            db.close()

    def test_counts_shared_with_resolver(self, intake, seeded):
        intake.record_citation(make_draft("06101"))

        resolver = OffenseHistoryResolver(seeded)
        assert resolver.resolve_offense_ordinal(RECKLESS_DRIVING, driver_id=ROSETE_ID) == 2
        assert resolver.resolve_offense_ordinal(RECKLESS_DRIVING, plate_number="ABC1234") == 2


class TestRecordCitationFailures:
    """Test rejected citations"""

    def test_duplicate_ticket(self, intake):
        intake.record_citation(make_draft("06101"))

        result = intake.record_citation(make_draft("06101"))

        assert not result.success
        assert result.failure.kind == FailureKind.VALIDATION

    def test_unknown_violation_type_writes_nothing(self, intake, seeded):
        result = intake.record_citation(make_draft(
            "06101", last_name="NEW", first_name="PERSON", violation_type_ids=[RECKLESS_DRIVING, 999]
        ))

        assert not result.success
        assert result.failure.kind == FailureKind.VALIDATION

        db = seeded()
        try:
            assert db.query(Citation).count() == 0
            assert db.query(Driver).filter_by(last_name="NEW").count() == 0
        finally:
            db.close()

    def test_unknown_existing_driver(self, intake):
        result = intake.record_citation(make_draft("06101", existing_driver_id=9999))

        assert result.failure.kind == FailureKind.NOT_FOUND

    def test_storage_failure(self, broken_session_factory, intake_config):
        service = CitationIntakeService(broken_session_factory, config=intake_config)

        result = service.record_citation(make_draft("06101"))

        assert result.failure.kind == FailureKind.STORAGE

    def test_commit_failure_writes_nothing(self, intake, seeded):
        with patch.object(Session, 'commit', side_effect=DATABASE_LOCKED):
            result = intake.record_citation(make_draft("06101"))

        assert not result.success
        assert result.failure.kind == FailureKind.STORAGE
        assert "database is locked" in result.failure.cause

        db = seeded()
        try:
            assert db.query(Citation).count() == 0
            assert db.query(Violation).count() == 0
        finally:
            db.close()

    def test_blank_name_rejected_by_model(self):
        with pytest.raises(ValueError):
            make_draft("06101", last_name="  ")


# ============================================
# Soft Delete / Restore
# ============================================

class TestSoftDelete:
    """Test delete_citation and restore_citation"""

    def test_delete_and_restore_affect_offense_count(self, intake, seeded):
        first = intake.record_citation(make_draft("06101"))
        resolver = OffenseHistoryResolver(seeded)
        assert resolver.resolve_offense_ordinal(RECKLESS_DRIVING, driver_id=ROSETE_ID) == 2

        deleted = intake.delete_citation(first.citation_id, reason="Wrong driver", deleted_by="admin")
        assert deleted.success
        assert deleted.deleted_at is not None
        assert resolver.resolve_offense_ordinal(RECKLESS_DRIVING, driver_id=ROSETE_ID) == 1

        restored = intake.restore_citation(first.citation_id)
        assert restored.success
        assert resolver.resolve_offense_ordinal(RECKLESS_DRIVING, driver_id=ROSETE_ID) == 2

    def test_delete_records_reason(self, intake, seeded):
        first = intake.record_citation(make_draft("06101"))

        intake.delete_citation(first.citation_id)

        db = seeded()
        try:
            citation = db.get(Citation, first.citation_id)
            assert citation.deletion_reason == "Deleted by admin"
        finally:
            db.close()

    def test_delete_twice(self, intake):
        first = intake.record_citation(make_draft("06101"))
        intake.delete_citation(first.citation_id)

        result = intake.delete_citation(first.citation_id)

        assert result.failure.kind == FailureKind.VALIDATION

    def test_paid_citation_cannot_be_deleted(self, intake, add_citation):
        citation_id = add_citation(driver_id=ROSETE_ID, status='paid')

        result = intake.delete_citation(citation_id)

        assert not result.success
        assert result.failure.kind == FailureKind.VALIDATION

    def test_restore_not_deleted(self, intake, add_citation):
        citation_id = add_citation(driver_id=ROSETE_ID)

        result = intake.restore_citation(citation_id)

        assert result.failure.kind == FailureKind.VALIDATION

    def test_commit_failure_keeps_citation_state(self, intake, seeded):
        first = intake.record_citation(make_draft("06101"))

        with patch.object(Session, 'commit', side_effect=DATABASE_LOCKED):
            deleted = intake.delete_citation(first.citation_id)

        assert deleted.failure.kind == FailureKind.STORAGE

        assert intake.delete_citation(first.citation_id).success
        with patch.object(Session, 'commit', side_effect=DATABASE_LOCKED):
            restored = intake.restore_citation(first.citation_id)

        assert restored.failure.kind == FailureKind.STORAGE

        db = seeded()
        try:
            assert db.get(Citation, first.citation_id).deleted_at is not None
        finally:
            db.close()

    def test_unknown_citation(self, intake):
        assert intake.delete_citation(9999).failure.kind == FailureKind.NOT_FOUND
        assert intake.restore_citation(9999).failure.kind == FailureKind.NOT_FOUND
