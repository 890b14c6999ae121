"""
Registry Database

Engine and session factory for the citation database, plus the
transaction scopes the services run their queries in.
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from dotenv import load_dotenv
from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

load_dotenv()

# SQLite files live in backend/data
DATA_DIR = Path(__file__).parent.parent.parent / "data"
DATA_DIR.mkdir(exist_ok=True)

# Database URL - SQLite unless DATABASE_URL points at the municipal server
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{DATA_DIR}/citations.db"
)

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# Engine
engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args,
    echo=False  # Set to True for SQL debugging
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Declarative base for database/models.py
Base = declarative_base()


def get_db():
    """
    Request-scoped session for FastAPI routes

    Usage:
        @router.get("/api/drivers/{driver_id}")
        def get_driver(driver_id: int, db: Session = Depends(get_db)):
            return db.get(Driver, driver_id)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(session_factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """
    Transactional scope around a series of writes

    Commits when the block exits normally; any exception rolls back
    everything written inside the block and is re-raised.

    Usage:
        with unit_of_work() as db:
            db.execute(update(Citation)...)
    """
    factory = session_factory or SessionLocal
    db = factory()
    try:
        yield db
        db.commit()
        logger.debug("Transaction committed")
    except Exception as e:
        db.rollback()
        logger.debug(f"Transaction rolled back: {e}")
        raise
    finally:
        db.close()


@contextmanager
def read_session(session_factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """Session for read-only lookups (never committed)"""
    factory = session_factory or SessionLocal
    db = factory()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Create any missing tables

    Run from the application lifespan; existing tables are left as they are.
    """
    # Registers the ORM classes on Base.metadata
    from citation_registry.database import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

    logger.info(f"[OK] Database initialized at: {DATABASE_URL}")


def reset_db(bind=None):
    """
    Drop and recreate every table

    Deletes all drivers and citations. Development and tests only.
    """
    from citation_registry.database import models  # noqa: F401

    Base.metadata.drop_all(bind=bind or engine)
    Base.metadata.create_all(bind=bind or engine)

    logger.warning("[WARNING] Database reset complete - all data deleted")
