"""
Offense History Resolver

Works out whether the violation being written is a driver's 1st, 2nd or
3rd (and later) offense, which selects the fine tier of the violation
type.

Lookup priority:
1. driver_id (pre-filled, or picked from the duplicate candidates)
2. license_number (resolved to a driver id)
3. plate_number (vehicle history, no driver id involved)

The ordinal is min(prior citations + 1, OFFENSE_ORDINAL_CAP). Only
non-deleted citations count. Resolution is read-only.
"""

from collections import defaultdict
from typing import Dict, List, Optional, Set

from loguru import logger
from sqlalchemy.orm import sessionmaker

from citation_registry.database.database import read_session
from citation_registry.models import (
    FailureKind,
    HistoryRecord,
    OffenseCountSummary,
    OffenseFineQuote,
    OffenseMatchMethod,
    OffenseResolution,
    ServiceFailure,
)

from .driver_repository import DriverRepository
from .exceptions import (
    DuplicateServiceError,
    IdentityValidationError,
    RecordNotFound,
    StorageFailure,
)


# Fine tiers stop escalating here: a 4th or later offense is billed at
# the 3rd-offense amount.
OFFENSE_ORDINAL_CAP = 3


def next_offense_ordinal(prior_citations: int) -> int:
    """Ordinal of the next offense given the number of prior citations"""
    return min(max(prior_citations, 0) + 1, OFFENSE_ORDINAL_CAP)


def ordinal_suffix(n: int) -> str:
    return {1: "st", 2: "nd"}.get(n, "rd")


def offense_label(n: int) -> str:
    """'1st Offense', '2nd Offense', '3rd Offense'"""
    return f"{n}{ordinal_suffix(n)} Offense"


def to_history_records(rows) -> List[HistoryRecord]:
    """Convert (Citation, Violation, ViolationType) rows to HistoryRecord"""
    return [
        HistoryRecord(
            citation_id=citation.citation_id,
            ticket_number=citation.ticket_number,
            apprehension_datetime=citation.apprehension_datetime,
            status=citation.status,
            total_fine=citation.total_fine or 0.0,
            driver_id=citation.driver_id,
            driver_name=f"{citation.last_name}, {citation.first_name}",
            plate_number=citation.plate_mv_engine_chassis_no,
            violation_type_id=violation_type.violation_type_id,
            violation_type=violation_type.violation_type,
            offense_count=violation.offense_count,
            fine_amount=violation.fine_amount or 0.0,
        )
        for citation, violation, violation_type in rows
    ]


def _distinct_citations(history: List[HistoryRecord]) -> int:
    return len({record.citation_id for record in history})


class OffenseHistoryResolver:
    """
    Resolve offense history and next offense ordinal

    Stateless apart from the session factory; safe to share between
    requests.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """
        Initialize resolver

        Args:
            session_factory: SQLAlchemy sessionmaker (default: SessionLocal)
        """
        self.session_factory = session_factory

    # ============================================
    # History
    # ============================================

    def get_offense_history(
        self,
        driver_id: int,
        violation_type_id: Optional[int] = None
    ) -> List[HistoryRecord]:
        """
        Prior violations of a driver, newest first

        Raises:
            StorageFailure: database unavailable
        """
        with read_session(self.session_factory) as db:
            rows = DriverRepository(db).history_for_driver(driver_id, violation_type_id)
            return to_history_records(rows)

    def get_vehicle_offense_history(
        self,
        plate_number: str,
        violation_type_id: Optional[int] = None
    ) -> List[HistoryRecord]:
        """
        Prior violations recorded against a plate / engine-chassis number

        Raises:
            StorageFailure: database unavailable
        """
        with read_session(self.session_factory) as db:
            rows = DriverRepository(db).history_for_plate(plate_number, violation_type_id)
            return to_history_records(rows)

    # ============================================
    # Ordinal resolution
    # ============================================

    def resolve_offense(
        self,
        violation_type_id: Optional[int],
        driver_id: Optional[int] = None,
        license_number: Optional[str] = None,
        plate_number: Optional[str] = None
    ) -> OffenseResolution:
        """
        Resolve the next offense ordinal for one violation type

        Returns:
            OffenseResolution; on NOT_FOUND / VALIDATION / STORAGE the
            result has success=False and offense_count=1.
        """
        try:
            with read_session(self.session_factory) as db:
                return self.resolve_in_session(
                    DriverRepository(db),
                    violation_type_id,
                    driver_id=driver_id,
                    license_number=license_number,
                    plate_number=plate_number
                )
        except DuplicateServiceError as e:
            if e.kind == FailureKind.STORAGE:
                logger.error(f"Offense count error: {e.message} ({e.cause})")
            else:
                logger.warning(f"Offense count rejected: {e.message}")
            return OffenseResolution(success=False, failure=ServiceFailure.from_error(e))

    def resolve_offense_ordinal(
        self,
        violation_type_id: int,
        driver_id: Optional[int] = None,
        license_number: Optional[str] = None,
        plate_number: Optional[str] = None
    ) -> int:
        """
        Next offense ordinal (1, 2 or 3)

        Lookups that find nothing resolve to 1. Use resolve_offense()
        to tell an unknown driver apart from a first offense.

        Raises:
            StorageFailure: database unavailable
        """
        resolution = self.resolve_offense(
            violation_type_id,
            driver_id=driver_id,
            license_number=license_number,
            plate_number=plate_number
        )
        if resolution.failure and resolution.failure.kind == FailureKind.STORAGE:
            raise StorageFailure(resolution.failure.message, cause=resolution.failure.cause)
        return resolution.offense_count

    def resolve_in_session(
        self,
        repo: DriverRepository,
        violation_type_id: Optional[int],
        driver_id: Optional[int] = None,
        license_number: Optional[str] = None,
        plate_number: Optional[str] = None
    ) -> OffenseResolution:
        """
        Resolve using an existing repository/session

        Used by citation intake so ordinals are computed inside the same
        transaction that writes the citation.

        Raises:
            IdentityValidationError, RecordNotFound, StorageFailure
        """
        if not violation_type_id or violation_type_id <= 0:
            raise IdentityValidationError("Violation type ID is required")

        history: List[HistoryRecord] = []
        method = OffenseMatchMethod.NONE
        resolved_driver_id: Optional[int] = None

        if driver_id is not None:
            if driver_id <= 0 or repo.get_driver(driver_id) is None:
                raise RecordNotFound(f"Driver {driver_id} not found")
            resolved_driver_id = driver_id
            method = OffenseMatchMethod.DRIVER_ID

        elif license_number:
            resolved_driver_id = repo.find_driver_id_by_license(license_number)
            if resolved_driver_id is not None:
                method = OffenseMatchMethod.LICENSE_NUMBER

        if resolved_driver_id is not None:
            history = to_history_records(
                repo.history_for_driver(resolved_driver_id, violation_type_id)
            )
        elif plate_number:
            history = to_history_records(
                repo.history_for_plate(plate_number, violation_type_id)
            )
            method = OffenseMatchMethod.PLATE_NUMBER

        offense_count = next_offense_ordinal(_distinct_citations(history))

        logger.debug(
            f"Offense count {offense_count} for violation type {violation_type_id} "
            f"via {method.value} ({len(history)} prior records)"
        )

        return OffenseResolution(
            offense_count=offense_count,
            match_method=method,
            driver_id=resolved_driver_id,
            history_count=len(history),
            history=history
        )

    # ============================================
    # All violation types at once
    # ============================================

    def get_all_offense_counts(
        self,
        driver_id: Optional[int] = None,
        license_number: Optional[str] = None
    ) -> OffenseCountSummary:
        """
        Next ordinal and fine for every active violation type

        Used to label the violation checklist on the intake form, e.g.
        "Reckless Driving - 2nd Offense (₱2,000.00)". Without a driver
        every type is quoted at 1st offense. A driver_id that matches no
        driver fails with NOT_FOUND.
        """
        try:
            with read_session(self.session_factory) as db:
                repo = DriverRepository(db)

                if driver_id is not None:
                    if driver_id <= 0 or repo.get_driver(driver_id) is None:
                        raise RecordNotFound(f"Driver {driver_id} not found")
                elif license_number:
                    driver_id = repo.find_driver_id_by_license(license_number)

                prior: Dict[int, Set[int]] = defaultdict(set)
                if driver_id:
                    for record in to_history_records(repo.history_for_driver(driver_id)):
                        prior[record.violation_type_id].add(record.citation_id)

                summary = OffenseCountSummary(driver_id=driver_id)
                for vt in repo.active_violation_types():
                    count = next_offense_ordinal(len(prior.get(vt.violation_type_id, ())))
                    fine = vt.fine_for_offense(count)
                    label = offense_label(count)

                    summary.offense_counts[vt.violation_type_id] = count
                    summary.violations[vt.violation_type_id] = OffenseFineQuote(
                        violation_type_id=vt.violation_type_id,
                        violation_type=vt.violation_type,
                        offense_count=count,
                        offense_label=label,
                        fine_amount=fine,
                        label=f"{vt.violation_type} - {label} (₱{fine:,.2f})"
                    )
                return summary

        except DuplicateServiceError as e:
            if e.kind == FailureKind.STORAGE:
                logger.error(f"Get all offense counts error: {e.message} ({e.cause})")
            else:
                logger.warning(f"Get all offense counts rejected: {e.message}")
            return OffenseCountSummary(success=False, failure=ServiceFailure.from_error(e))


# Global instance
_offense_resolver: Optional[OffenseHistoryResolver] = None


def init_offense_resolver(session_factory: Optional[sessionmaker] = None) -> OffenseHistoryResolver:
    """Initialize global offense history resolver"""
    global _offense_resolver
    _offense_resolver = OffenseHistoryResolver(session_factory)
    return _offense_resolver


def get_offense_resolver() -> OffenseHistoryResolver:
    """Get global offense history resolver (created on first use)"""
    global _offense_resolver
    if _offense_resolver is None:
        _offense_resolver = OffenseHistoryResolver()
    return _offense_resolver
