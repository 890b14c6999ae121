"""
Driver Merge

Consolidates duplicate driver records after the fact: every citation of
the duplicates is repointed to the chosen primary driver. Driver rows
are never deleted; citations keep their own name/address snapshot.

The whole call is one transaction. If any repoint fails, every repoint
already applied in the call is rolled back.

Known gap: nothing stops a primary from later being merged into another
driver (no chain-of-merges protection), and concurrent merges over
overlapping duplicate lists are not coordinated.
"""

from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy.orm import sessionmaker

from citation_registry.models import (
    FailureKind,
    MergeResult,
    ServiceFailure,
    SkippedItem,
)

from .driver_repository import DriverRepository, storage_transaction
from .exceptions import DuplicateServiceError, RecordNotFound


class DriverMergeService:
    """Repoint citations from duplicate drivers to a primary driver"""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def merge_drivers(self, primary_driver_id: int, duplicate_driver_ids: Iterable[int]) -> MergeResult:
        """
        Merge duplicate drivers into a primary driver

        Args:
            primary_driver_id: Driver that keeps all citations
            duplicate_driver_ids: Drivers whose citations move to the primary

        Returns:
            MergeResult. Self-merge ids, repeated ids and unknown
            duplicates are skipped and listed in result.skipped.
        """
        duplicate_ids = list(duplicate_driver_ids or [])

        failure = self._validate(primary_driver_id, duplicate_ids)
        if failure:
            logger.warning(f"Merge rejected: {failure.message}")
            return MergeResult(
                success=False,
                primary_driver_id=primary_driver_id,
                message=failure.message,
                failure=failure
            )

        merged: List[int] = []
        skipped: List[SkippedItem] = []
        relinked = 0

        try:
            with storage_transaction(self.session_factory) as db:
                repo = DriverRepository(db)

                if repo.get_driver(primary_driver_id) is None:
                    raise RecordNotFound(f"Primary driver {primary_driver_id} not found")

                seen = set()
                for dup_id in duplicate_ids:
                    if dup_id == primary_driver_id:
                        skipped.append(SkippedItem(driver_id=dup_id, reason="Same as primary driver"))
                        continue
                    if dup_id in seen:
                        skipped.append(SkippedItem(driver_id=dup_id, reason="Listed more than once"))
                        continue
                    seen.add(dup_id)

                    if repo.get_driver(dup_id) is None:
                        skipped.append(SkippedItem(driver_id=dup_id, reason="Driver not found"))
                        continue

                    relinked += repo.repoint_citations(dup_id, primary_driver_id)
                    merged.append(dup_id)

        except DuplicateServiceError as e:
            if e.kind == FailureKind.STORAGE:
                logger.error(f"Error merging drivers into {primary_driver_id}: {e.message} ({e.cause})")
            else:
                logger.warning(f"Merge rejected: {e.message}")
            return MergeResult(
                success=False,
                primary_driver_id=primary_driver_id,
                message=f"Error merging drivers: {e.message}",
                failure=ServiceFailure.from_error(e)
            )

        for item in skipped:
            logger.warning(f"Merge into {primary_driver_id}: skipped driver {item.driver_id} ({item.reason})")

        logger.info(
            f"Drivers {merged} merged into {primary_driver_id} "
            f"({relinked} citations relinked)"
        )

        return MergeResult(
            success=True,
            primary_driver_id=primary_driver_id,
            merged_driver_ids=merged,
            citations_relinked=relinked,
            skipped=skipped,
            message="Drivers merged successfully!" if merged else "Nothing to merge"
        )

    @staticmethod
    def _validate(primary_driver_id, duplicate_ids) -> Optional[ServiceFailure]:
        if not isinstance(primary_driver_id, int) or primary_driver_id <= 0:
            return ServiceFailure(kind=FailureKind.VALIDATION, message="Primary driver ID is required")
        if not duplicate_ids:
            return ServiceFailure(kind=FailureKind.VALIDATION, message="Select at least one duplicate driver")
        if any(not isinstance(i, int) or i <= 0 for i in duplicate_ids):
            return ServiceFailure(kind=FailureKind.VALIDATION, message="Duplicate driver IDs must be positive integers")
        return None


# Global instance
_merge_service: Optional[DriverMergeService] = None


def init_merge_service(session_factory: Optional[sessionmaker] = None) -> DriverMergeService:
    """Initialize global driver merge service"""
    global _merge_service
    _merge_service = DriverMergeService(session_factory)
    return _merge_service


def get_merge_service() -> DriverMergeService:
    """Get global driver merge service (created on first use)"""
    global _merge_service
    if _merge_service is None:
        _merge_service = DriverMergeService()
    return _merge_service
