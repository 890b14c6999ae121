"""
Driver & Citation Queries

All SQL used by the duplicate detection, offense history and merge
services. Every query is built with SQLAlchemy expressions and bound
parameters; user text only ever reaches the database as a parameter.
SQLAlchemy errors are re-raised as StorageFailure.
"""

import functools
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from citation_registry.database.database import unit_of_work
from citation_registry.database.models import (
    Citation,
    Driver,
    Violation,
    ViolationType,
)

from .exceptions import StorageFailure


# (citation count, last apprehension) per driver
CitationStats = Tuple[int, Optional[datetime]]


def _storage_errors(method):
    """Re-raise SQLAlchemy errors from a repository method as StorageFailure"""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Database error in {method.__name__}", cause=e) from e
    return wrapper


@contextmanager
def storage_transaction(session_factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """
    unit_of_work whose SQLAlchemy errors surface as StorageFailure

    Covers errors raised by the final flush / commit as well as those
    raised inside the block.
    """
    try:
        with unit_of_work(session_factory) as db:
            yield db
    except SQLAlchemyError as e:
        raise StorageFailure("Database error while saving changes", cause=e) from e


def _like_pattern(text: str, prefix_only: bool = False) -> str:
    """Escape LIKE wildcards in user text and wrap it for a substring match"""
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"{escaped}%" if prefix_only else f"%{escaped}%"


class DriverRepository:
    """
    Query helper bound to one SQLAlchemy session

    The caller owns the session (and therefore the transaction).
    """

    def __init__(self, db: Session):
        self.db = db

    # ============================================
    # Drivers
    # ============================================

    @_storage_errors
    def get_driver(self, driver_id: int) -> Optional[Driver]:
        return self.db.get(Driver, driver_id)

    @_storage_errors
    def find_by_license(self, license_number: str, limit: int = 5) -> List[Driver]:
        return self.db.query(Driver)\
            .filter(Driver.license_number == license_number)\
            .order_by(Driver.driver_id)\
            .limit(limit)\
            .all()

    @_storage_errors
    def find_driver_id_by_license(self, license_number: str) -> Optional[int]:
        """
        Driver id for a license number

        Looks in the drivers table first, then in citation snapshots for
        records where the license was only ever written on a ticket.
        """
        driver = self.db.query(Driver.driver_id)\
            .filter(Driver.license_number == license_number)\
            .first()
        if driver:
            return driver.driver_id

        citation = self.db.query(Citation.driver_id)\
            .filter(
                Citation.license_number == license_number,
                Citation.driver_id.isnot(None),
                Citation.deleted_at.is_(None)
            )\
            .order_by(Citation.apprehension_datetime.desc())\
            .first()
        return citation.driver_id if citation else None

    @_storage_errors
    def find_name_candidates(self, first_name: str, last_name: str, limit: int = 50) -> List[Driver]:
        """
        Drivers whose first or last name starts like the query

        The prefix filter is deliberately loose (three letters) so that
        misspellings still reach the similarity scoring. Exact matches
        are ordered first so the limit never cuts them off.
        """
        first = first_name.upper()
        last = last_name.upper()
        last_upper = func.upper(Driver.last_name)
        first_upper = func.upper(Driver.first_name)

        exact_rank = case(
            (and_(last_upper == last, first_upper == first), 0),
            (last_upper == last, 1),
            else_=2
        )

        return self.db.query(Driver)\
            .filter(or_(
                last_upper.like(_like_pattern(last[:3], prefix_only=True), escape='\\'),
                first_upper.like(_like_pattern(first[:3], prefix_only=True), escape='\\'),
                last_upper.like(_like_pattern(last), escape='\\'),
            ))\
            .order_by(exact_rank, Driver.driver_id)\
            .limit(limit)\
            .all()

    @_storage_errors
    def find_last_name_candidates(self, last_name: str, limit: int = 50) -> List[Driver]:
        last_upper = func.upper(Driver.last_name)
        return self.db.query(Driver)\
            .filter(last_upper.like(_like_pattern(last_name.upper(), prefix_only=True), escape='\\'))\
            .order_by(Driver.driver_id)\
            .limit(limit)\
            .all()

    @_storage_errors
    def direct_search(self, term: str, limit: int = 50) -> List[Driver]:
        """
        Substring search across names, license and plate numbers

        Matches "FIRST LAST", "LAST FIRST" and "LAST, FIRST" forms.
        """
        pattern = _like_pattern(term.upper())
        last_upper = func.upper(Driver.last_name)
        first_upper = func.upper(Driver.first_name)

        plate_drivers = select(Citation.driver_id).where(
            func.upper(Citation.plate_mv_engine_chassis_no).like(pattern, escape='\\'),
            Citation.driver_id.isnot(None),
            Citation.deleted_at.is_(None)
        )

        return self.db.query(Driver)\
            .filter(or_(
                last_upper.like(pattern, escape='\\'),
                first_upper.like(pattern, escape='\\'),
                func.upper(Driver.first_name + ' ' + Driver.last_name).like(pattern, escape='\\'),
                func.upper(Driver.last_name + ' ' + Driver.first_name).like(pattern, escape='\\'),
                func.upper(Driver.last_name + ', ' + Driver.first_name).like(pattern, escape='\\'),
                func.upper(Driver.license_number).like(pattern, escape='\\'),
                Driver.driver_id.in_(plate_drivers),
            ))\
            .order_by(Driver.driver_id.desc())\
            .limit(limit)\
            .all()

    @_storage_errors
    def find_by_name(self, first_name: str, last_name: str, date_of_birth=None) -> Optional[Driver]:
        """Exact (case-insensitive) name match, narrowed by DOB when given"""
        query = self.db.query(Driver).filter(
            func.upper(Driver.last_name) == last_name.upper(),
            func.upper(Driver.first_name) == first_name.upper()
        )
        if date_of_birth is not None:
            query = query.filter(Driver.date_of_birth == date_of_birth)
        return query.order_by(Driver.driver_id).first()

    @_storage_errors
    def citation_stats(self, driver_ids: Iterable[int]) -> Dict[int, CitationStats]:
        """Non-deleted citation count and last apprehension per driver"""
        ids = list(set(driver_ids))
        if not ids:
            return {}

        rows = self.db.query(
            Citation.driver_id,
            func.count(Citation.citation_id),
            func.max(Citation.apprehension_datetime)
        )\
            .filter(Citation.driver_id.in_(ids), Citation.deleted_at.is_(None))\
            .group_by(Citation.driver_id)\
            .all()

        return {driver_id: (count, last) for driver_id, count, last in rows}

    # ============================================
    # Offense history
    # ============================================

    def _history_query(self, violation_type_id: Optional[int]):
        query = self.db.query(Citation, Violation, ViolationType)\
            .join(Violation, Violation.citation_id == Citation.citation_id)\
            .join(ViolationType, ViolationType.violation_type_id == Violation.violation_type_id)\
            .filter(Citation.deleted_at.is_(None))

        if violation_type_id:
            query = query.filter(Violation.violation_type_id == violation_type_id)
        return query

    @_storage_errors
    def history_for_driver(
        self,
        driver_id: int,
        violation_type_id: Optional[int] = None
    ) -> List[Tuple[Citation, Violation, ViolationType]]:
        return self._history_query(violation_type_id)\
            .filter(Citation.driver_id == driver_id)\
            .order_by(Citation.apprehension_datetime.desc(), Citation.citation_id.desc())\
            .all()

    @_storage_errors
    def history_for_plate(
        self,
        plate_number: str,
        violation_type_id: Optional[int] = None
    ) -> List[Tuple[Citation, Violation, ViolationType]]:
        return self._history_query(violation_type_id)\
            .filter(Citation.plate_mv_engine_chassis_no == plate_number)\
            .order_by(Citation.apprehension_datetime.desc(), Citation.citation_id.desc())\
            .all()

    # ============================================
    # Violation types
    # ============================================

    @_storage_errors
    def get_violation_type(self, violation_type_id: int) -> Optional[ViolationType]:
        return self.db.get(ViolationType, violation_type_id)

    @_storage_errors
    def active_violation_types(self) -> List[ViolationType]:
        return self.db.query(ViolationType)\
            .filter(ViolationType.is_active.is_(True))\
            .order_by(ViolationType.violation_type_id)\
            .all()

    # ============================================
    # Citations
    # ============================================

    @_storage_errors
    def get_citation(self, citation_id: int) -> Optional[Citation]:
        return self.db.get(Citation, citation_id)

    @_storage_errors
    def ticket_exists(self, ticket_number: str) -> bool:
        return self.db.query(Citation.citation_id)\
            .filter(Citation.ticket_number == ticket_number)\
            .first() is not None

    @_storage_errors
    def repoint_citations(self, from_driver_id: int, to_driver_id: int) -> int:
        """Move every citation of one driver to another; returns rows updated"""
        return self.db.query(Citation)\
            .filter(Citation.driver_id == from_driver_id)\
            .update({Citation.driver_id: to_driver_id}, synchronize_session=False)

    @_storage_errors
    def add(self, instance):
        self.db.add(instance)
        self.db.flush()
        return instance
