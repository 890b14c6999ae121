"""
Shared Test Fixtures

In-memory SQLite database (one shared connection via StaticPool) with
the violation catalog and the ROSETE, RICHMOND driver seeded.
"""

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from citation_registry.config import DEFAULT_CONFIG
from citation_registry.database.database import Base
from citation_registry.database.models import (
    Citation,
    Driver,
    Violation,
    ViolationType,
)


TEST_DATABASE_URL = "sqlite://"

ROSETE_ID = 42
RECKLESS_DRIVING = 7
NO_HELMET = 3


@pytest.fixture
def engine():
    """Fresh in-memory database per test"""
    test_engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def broken_session_factory():
    """Session factory whose database file can never be opened"""
    bad_engine = create_engine("sqlite:////nonexistent-dir/registry.db")
    yield sessionmaker(autocommit=False, autoflush=False, bind=bad_engine)
    bad_engine.dispose()


@pytest.fixture
def matching_config():
    return dict(DEFAULT_CONFIG['matching'])


@pytest.fixture
def intake_config():
    return dict(DEFAULT_CONFIG['intake'])


@pytest.fixture
def seeded(session_factory):
    """Violation catalog plus driver 42 (ROSETE, RICHMOND)"""
    db = session_factory()
    try:
        db.add_all([
            ViolationType(
                violation_type_id=NO_HELMET,
                violation_type="No Helmet",
                fine_amount_1=150.0,
                fine_amount_2=300.0,
                fine_amount_3=500.0
            ),
            ViolationType(
                violation_type_id=RECKLESS_DRIVING,
                violation_type="Reckless Driving",
                fine_amount_1=1000.0,
                fine_amount_2=2000.0,
                fine_amount_3=3000.0
            ),
            ViolationType(
                violation_type_id=9,
                violation_type="Colorum Operation",
                fine_amount_1=2000.0,
                fine_amount_2=3000.0,
                fine_amount_3=5000.0,
                is_active=False
            ),
            Driver(
                driver_id=ROSETE_ID,
                last_name="ROSETE",
                first_name="RICHMOND",
                date_of_birth=date(1999, 10, 17),
                license_number="A01-23-456789",
                barangay="San Jose",
                municipality="Baggao",
                province="Cagayan"
            ),
        ])
        db.commit()
    finally:
        db.close()
    return session_factory


@pytest.fixture
def add_driver(seeded):
    """Insert a driver and return its id"""
    def _add(**fields):
        db = seeded()
        try:
            driver = Driver(**fields)
            db.add(driver)
            db.commit()
            return driver.driver_id
        finally:
            db.close()
    return _add


@pytest.fixture
def add_citation(seeded):
    """
    Insert a citation with one violation per type id

    The driver snapshot is copied from the driver row when a driver is
    given. Returns the citation id.
    """
    counter = {'n': 0}

    def _add(
        driver_id=None,
        violation_type_ids=(RECKLESS_DRIVING,),
        plate=None,
        days_ago=0,
        status='pending',
        deleted=False,
        license_number=None
    ):
        counter['n'] += 1
        db = seeded()
        try:
            driver = db.get(Driver, driver_id) if driver_id else None
            citation = Citation(
                ticket_number=f"T-{counter['n']:05d}",
                driver_id=driver_id,
                apprehension_datetime=datetime(2026, 1, 1) + timedelta(days=counter['n'] - days_ago),
                plate_mv_engine_chassis_no=plate,
                last_name=driver.last_name if driver else "UNKNOWN",
                first_name=driver.first_name if driver else "UNKNOWN",
                license_number=license_number or (driver.license_number if driver else None),
                status=status,
                deleted_at=datetime(2026, 2, 1) if deleted else None
            )
            db.add(citation)
            db.flush()
            for vt_id in violation_type_ids:
                db.add(Violation(
                    citation_id=citation.citation_id,
                    violation_type_id=vt_id,
                    offense_count=1,
                    fine_amount=0.0
                ))
            db.commit()
            return citation.citation_id
        finally:
            db.close()
    return _add


@pytest.fixture
def citation_driver_ids(seeded):
    """Map of citation id -> driver id, read fresh from the database"""
    def _read():
        db = seeded()
        try:
            return {c.citation_id: c.driver_id for c in db.query(Citation).all()}
        finally:
            db.close()
    return _read
