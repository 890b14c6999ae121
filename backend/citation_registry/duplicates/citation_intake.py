"""
Citation Intake

Records a citation once the officer has dealt with the duplicate
candidates:
- Find or create the driver (explicit id, license, exact name + DOB)
- Fill blanks on an existing driver from the new ticket
- Snapshot the driver's name/address on the citation
- Resolve each violation's offense ordinal and fine tier

Also soft deletes and restores citations. A soft-deleted citation no
longer counts toward offense history.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy.orm import sessionmaker

from citation_registry.config import get_config
from citation_registry.database.models import Citation, Driver, Violation
from citation_registry.models import (
    CitationDraft,
    CitationStatusResult,
    FailureKind,
    IntakeResult,
    RecordedViolation,
    ServiceFailure,
)

from .driver_repository import DriverRepository, storage_transaction
from .exceptions import (
    DuplicateServiceError,
    IdentityValidationError,
    RecordNotFound,
)
from .offense_resolver import OffenseHistoryResolver


# Driver columns copied from the draft (and snapshotted on the citation)
DRIVER_FIELDS = (
    'last_name', 'first_name', 'middle_name', 'suffix', 'date_of_birth',
    'license_number', 'zone', 'barangay', 'municipality', 'province',
)


class CitationIntakeService:
    """Record, soft delete and restore citations"""

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        resolver: Optional[OffenseHistoryResolver] = None,
        config: Optional[dict] = None
    ):
        self.session_factory = session_factory
        self.resolver = resolver or OffenseHistoryResolver(session_factory)
        self.config = config if config is not None else get_config().get_intake_config()

    # ============================================
    # Record
    # ============================================

    def record_citation(self, draft: CitationDraft) -> IntakeResult:
        """
        Write a citation with its violations in one transaction

        Returns:
            IntakeResult with the driver used, the ordinal and fine of
            every violation, and the citation total.
        """
        draft = self._with_defaults(draft)

        try:
            with storage_transaction(self.session_factory) as db:
                repo = DriverRepository(db)

                if repo.ticket_exists(draft.ticket_number):
                    raise IdentityValidationError(f"Ticket number {draft.ticket_number} already exists")

                driver, created = self._resolve_driver(repo, draft)

                # Ordinals are resolved before this citation's violations exist
                recorded = []
                for vt_id in dict.fromkeys(draft.violation_type_ids):
                    violation_type = repo.get_violation_type(vt_id)
                    if violation_type is None:
                        raise IdentityValidationError(f"Unknown violation type {vt_id}")

                    resolution = self.resolver.resolve_in_session(
                        repo, vt_id, driver_id=driver.driver_id
                    )
                    recorded.append(RecordedViolation(
                        violation_type_id=vt_id,
                        violation_type=violation_type.violation_type,
                        offense_count=resolution.offense_count,
                        fine_amount=violation_type.fine_for_offense(resolution.offense_count)
                    ))

                total_fine = sum(v.fine_amount for v in recorded)

                citation = Citation(
                    ticket_number=draft.ticket_number,
                    driver_id=driver.driver_id,
                    apprehension_datetime=draft.apprehension_datetime,
                    plate_mv_engine_chassis_no=draft.plate_number,
                    status='pending',
                    total_fine=total_fine,
                    **{name: getattr(draft, name) for name in DRIVER_FIELDS}
                )
                repo.add(citation)

                for v in recorded:
                    db.add(Violation(
                        citation_id=citation.citation_id,
                        violation_type_id=v.violation_type_id,
                        offense_count=v.offense_count,
                        fine_amount=v.fine_amount
                    ))

                result = IntakeResult(
                    success=True,
                    citation_id=citation.citation_id,
                    ticket_number=citation.ticket_number,
                    driver_id=driver.driver_id,
                    driver_created=created,
                    violations=recorded,
                    total_fine=total_fine
                )

        except DuplicateServiceError as e:
            self._log_failure("Citation intake", e)
            return IntakeResult(
                success=False,
                ticket_number=draft.ticket_number,
                failure=ServiceFailure.from_error(e)
            )

        logger.info(
            f"[OK] Citation {result.ticket_number} recorded for driver {result.driver_id} "
            f"({len(result.violations)} violations, ₱{result.total_fine:,.2f})"
        )
        return result

    def _with_defaults(self, draft: CitationDraft) -> CitationDraft:
        updates = {}
        if not draft.municipality and self.config.get('defaultMunicipality'):
            updates['municipality'] = self.config['defaultMunicipality']
        if not draft.province and self.config.get('defaultProvince'):
            updates['province'] = self.config['defaultProvince']
        return draft.model_copy(update=updates) if updates else draft

    def _resolve_driver(self, repo: DriverRepository, draft: CitationDraft) -> Tuple[Driver, bool]:
        """
        Driver for the draft, created when no existing record fits

        Returns:
            (driver, created)
        """
        driver = None

        if draft.existing_driver_id is not None:
            driver = repo.get_driver(draft.existing_driver_id)
            if driver is None:
                raise RecordNotFound(f"Driver {draft.existing_driver_id} not found")

        if driver is None and draft.license_number:
            matches = repo.find_by_license(draft.license_number, limit=1)
            driver = matches[0] if matches else None

        if driver is None:
            driver = repo.find_by_name(draft.first_name, draft.last_name, draft.date_of_birth)

        if driver is None:
            driver = repo.add(Driver(**{name: getattr(draft, name) for name in DRIVER_FIELDS}))
            logger.info(f"New driver {driver.driver_id}: {driver.last_name}, {driver.first_name}")
            return driver, True

        self._fill_missing(repo, driver, draft)
        return driver, False

    @staticmethod
    def _fill_missing(repo: DriverRepository, driver: Driver, draft: CitationDraft):
        """Copy draft values into driver fields that are still empty"""
        changed = []
        for name in DRIVER_FIELDS:
            value = getattr(draft, name)
            if value is None or getattr(driver, name):
                continue
            if name == 'license_number':
                owners = repo.find_by_license(value, limit=1)
                if owners and owners[0].driver_id != driver.driver_id:
                    # Unique column: leave it to the duplicate merge workflow
                    continue
            setattr(driver, name, value)
            changed.append(name)

        if changed:
            logger.debug(f"Driver {driver.driver_id} updated from citation: {', '.join(changed)}")

    # ============================================
    # Soft delete / restore
    # ============================================

    def delete_citation(
        self,
        citation_id: int,
        reason: Optional[str] = None,
        deleted_by: Optional[str] = None
    ) -> CitationStatusResult:
        """
        Soft delete a citation (moves it to the trash bin)

        Paid citations cannot be deleted; they must be voided instead.
        """
        try:
            with storage_transaction(self.session_factory) as db:
                citation = self._get_citation(DriverRepository(db), citation_id)

                if citation.deleted_at is not None:
                    raise IdentityValidationError("Citation is already deleted")
                if citation.status == 'paid':
                    raise IdentityValidationError("Cannot delete a paid citation; void it instead")

                citation.deleted_at = datetime.now()
                citation.deleted_by = deleted_by
                citation.deletion_reason = reason or "Deleted by admin"

                result = CitationStatusResult(
                    success=True,
                    citation_id=citation_id,
                    ticket_number=citation.ticket_number,
                    deleted_at=citation.deleted_at,
                    message="Citation moved to trash"
                )

        except DuplicateServiceError as e:
            self._log_failure(f"Delete citation {citation_id}", e)
            return CitationStatusResult(
                success=False,
                citation_id=citation_id,
                message=e.message,
                failure=ServiceFailure.from_error(e)
            )

        logger.info(f"Citation {result.ticket_number} soft-deleted: {reason or 'Deleted by admin'}")
        return result

    def restore_citation(self, citation_id: int) -> CitationStatusResult:
        """Restore a soft-deleted citation"""
        try:
            with storage_transaction(self.session_factory) as db:
                citation = self._get_citation(DriverRepository(db), citation_id)

                if citation.deleted_at is None:
                    raise IdentityValidationError(
                        "Citation is not deleted. Cannot restore a citation that is not in the trash."
                    )

                citation.deleted_at = None
                citation.deleted_by = None
                citation.deletion_reason = None

                result = CitationStatusResult(
                    success=True,
                    citation_id=citation_id,
                    ticket_number=citation.ticket_number,
                    message="Citation restored"
                )

        except DuplicateServiceError as e:
            self._log_failure(f"Restore citation {citation_id}", e)
            return CitationStatusResult(
                success=False,
                citation_id=citation_id,
                message=e.message,
                failure=ServiceFailure.from_error(e)
            )

        logger.info(f"Citation {result.ticket_number} restored")
        return result

    @staticmethod
    def _get_citation(repo: DriverRepository, citation_id: int) -> Citation:
        citation = repo.get_citation(citation_id)
        if citation is None:
            raise RecordNotFound(f"Citation {citation_id} not found")
        return citation

    @staticmethod
    def _log_failure(action: str, error: DuplicateServiceError):
        if error.kind == FailureKind.STORAGE:
            logger.error(f"{action} failed: {error.message} ({error.cause})")
        else:
            logger.warning(f"{action} rejected: {error.message}")


# Global instance
_intake_service: Optional[CitationIntakeService] = None


def init_intake_service(session_factory: Optional[sessionmaker] = None) -> CitationIntakeService:
    """Initialize global citation intake service"""
    global _intake_service
    _intake_service = CitationIntakeService(session_factory)
    return _intake_service


def get_intake_service() -> CitationIntakeService:
    """Get global citation intake service (created on first use)"""
    global _intake_service
    if _intake_service is None:
        _intake_service = CitationIntakeService()
    return _intake_service
