"""
Driver Routes - Duplicate detection, offense counts and driver merge

Endpoints:
- POST /api/drivers/duplicates/check - Possible duplicates for a partial identity
- GET /api/drivers/search - Admin free-text duplicate search
- GET /api/drivers/{id} - Driver details
- GET /api/drivers/{id}/history - Offense history of a driver
- GET /api/vehicles/{plate}/history - Offense history of a vehicle
- GET /api/offenses/count - Next offense ordinal for one violation type
- GET /api/offenses/counts - Next offense ordinal and fine for all violation types
- POST /api/drivers/merge - Merge duplicate drivers into a primary driver
- POST /api/citations - Record a citation
- DELETE /api/citations/{id} - Soft delete a citation
- POST /api/citations/{id}/restore - Restore a soft-deleted citation
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from citation_registry.database.database import get_db
from citation_registry.duplicates import (
    StorageFailure,
    get_duplicate_service,
    get_intake_service,
    get_merge_service,
    get_offense_resolver,
    search_duplicates,
)
from citation_registry.duplicates.driver_repository import DriverRepository
from citation_registry.models import (
    CitationDraft,
    CitationStatusResult,
    DriverIdentity,
    DriverRecord,
    FailureKind,
    HistoryRecord,
    IntakeResult,
    MatchCandidate,
    MatchResult,
    MatchTrust,
    MergeResult,
    OffenseCountSummary,
    OffenseResolution,
    ServiceFailure,
)

router = APIRouter(tags=["drivers"])


FAILURE_STATUS = {
    FailureKind.VALIDATION: 400,
    FailureKind.NOT_FOUND: 404,
    FailureKind.STORAGE: 503,
}


def _raise_for_failure(failure: Optional[ServiceFailure]):
    """Turn a typed service failure into an HTTP error"""
    if failure is None:
        return
    raise HTTPException(
        status_code=FAILURE_STATUS.get(failure.kind, 500),
        detail={"kind": failure.kind.value, "message": failure.message}
    )


# ============================================
# Request / Response Models
# ============================================

class MatchWithHistory(BaseModel):
    """Duplicate candidate with its offense history"""
    candidate: MatchCandidate
    offense_history: List[HistoryRecord]
    total_offenses: int


class DuplicateCheckResponse(BaseModel):
    """Duplicate check response"""
    trust: MatchTrust
    match_count: int
    matches: List[MatchWithHistory]
    vehicle_history: List[HistoryRecord]
    total_vehicle_offenses: int


class MergeRequest(BaseModel):
    """Merge request from the duplicate management page"""
    primary_driver_id: int
    duplicate_driver_ids: List[int] = Field(default_factory=list)


# ============================================
# Duplicate Detection Endpoints
# ============================================

@router.post("/api/drivers/duplicates/check", response_model=DuplicateCheckResponse)
def check_duplicates(identity: DriverIdentity):
    """
    Check for possible duplicate drivers

    Called while the officer types on the citation form. Each match
    carries the driver's offense history.
    """
    result = get_duplicate_service().find_possible_duplicates(identity)
    _raise_for_failure(result.failure)

    resolver = get_offense_resolver()
    try:
        matches = []
        for candidate in result.candidates:
            history = resolver.get_offense_history(candidate.driver_id)
            matches.append(MatchWithHistory(
                candidate=candidate,
                offense_history=history,
                total_offenses=len(history)
            ))
    except StorageFailure as e:
        _raise_for_failure(ServiceFailure.from_error(e))

    return DuplicateCheckResponse(
        trust=result.trust,
        match_count=len(matches),
        matches=matches,
        vehicle_history=result.vehicle_history,
        total_vehicle_offenses=len(result.vehicle_history)
    )


@router.get("/api/drivers/search", response_model=MatchResult)
def search_drivers(q: str = Query(..., min_length=1, description="Name, license or plate number")):
    """
    Admin duplicate search

    Examples: "RICHMOND ROSETE", "ROSETE RICHMOND", "ABC1234", "L1234567"
    """
    result = search_duplicates(get_duplicate_service(), q)
    _raise_for_failure(result.failure)
    return result


# ============================================
# Offense History Endpoints
# ============================================

@router.get("/api/drivers/{driver_id}", response_model=DriverRecord)
def get_driver(driver_id: int, db: Session = Depends(get_db)):
    """Get driver details"""
    try:
        driver = DriverRepository(db).get_driver(driver_id)
    except StorageFailure as e:
        _raise_for_failure(ServiceFailure.from_error(e))

    if driver is None:
        raise HTTPException(
            status_code=404,
            detail={"kind": FailureKind.NOT_FOUND.value, "message": f"Driver {driver_id} not found"}
        )
    return DriverRecord.model_validate(driver)


@router.get("/api/drivers/{driver_id}/history", response_model=List[HistoryRecord])
def get_driver_history(
    driver_id: int,
    violation_type_id: Optional[int] = Query(None, ge=1)
):
    """Get offense history of a driver (newest first)"""
    try:
        return get_offense_resolver().get_offense_history(driver_id, violation_type_id)
    except StorageFailure as e:
        _raise_for_failure(ServiceFailure.from_error(e))


@router.get("/api/vehicles/{plate_number}/history", response_model=List[HistoryRecord])
def get_vehicle_history(
    plate_number: str,
    violation_type_id: Optional[int] = Query(None, ge=1)
):
    """Get offense history of a plate / engine-chassis number"""
    try:
        return get_offense_resolver().get_vehicle_offense_history(plate_number, violation_type_id)
    except StorageFailure as e:
        _raise_for_failure(ServiceFailure.from_error(e))


@router.get("/api/offenses/count", response_model=OffenseResolution)
def get_offense_count(
    violation_type_id: int = Query(0),
    driver_id: Optional[int] = Query(None),
    license_number: Optional[str] = Query(None),
    plate_number: Optional[str] = Query(None)
):
    """
    Get next offense ordinal for one violation type

    Lookup priority: driver_id, license_number, plate_number.
    """
    result = get_offense_resolver().resolve_offense(
        violation_type_id,
        driver_id=driver_id,
        license_number=license_number or None,
        plate_number=plate_number or None
    )
    _raise_for_failure(result.failure)
    return result


@router.get("/api/offenses/counts", response_model=OffenseCountSummary)
def get_all_offense_counts(
    driver_id: Optional[int] = Query(None),
    license_number: Optional[str] = Query(None)
):
    """Get next offense ordinal and fine for every active violation type"""
    if not driver_id and not license_number:
        _raise_for_failure(ServiceFailure(
            kind=FailureKind.VALIDATION,
            message="Driver ID or license number is required"
        ))

    result = get_offense_resolver().get_all_offense_counts(
        driver_id=driver_id,
        license_number=license_number
    )
    _raise_for_failure(result.failure)
    return result


# ============================================
# Merge Endpoint
# ============================================

@router.post("/api/drivers/merge", response_model=MergeResult)
def merge_drivers(request: MergeRequest):
    """
    Merge duplicate drivers

    All citations of the duplicates move to the primary driver in one
    transaction. Duplicate driver records are kept.
    """
    result = get_merge_service().merge_drivers(
        request.primary_driver_id,
        request.duplicate_driver_ids
    )
    _raise_for_failure(result.failure)
    return result


# ============================================
# Citation Endpoints
# ============================================

@router.post("/api/citations", response_model=IntakeResult)
def create_citation(draft: CitationDraft):
    """Record a citation, resolving offense ordinals and fines"""
    result = get_intake_service().record_citation(draft)
    _raise_for_failure(result.failure)
    return result


@router.delete("/api/citations/{citation_id}", response_model=CitationStatusResult)
def delete_citation(
    citation_id: int,
    reason: Optional[str] = Query(None, description="Deletion reason")
):
    """Soft delete a citation (trash bin)"""
    result = get_intake_service().delete_citation(citation_id, reason=reason)
    _raise_for_failure(result.failure)
    return result


@router.post("/api/citations/{citation_id}/restore", response_model=CitationStatusResult)
def restore_citation(citation_id: int):
    """Restore a soft-deleted citation"""
    result = get_intake_service().restore_citation(citation_id)
    _raise_for_failure(result.failure)
    return result
