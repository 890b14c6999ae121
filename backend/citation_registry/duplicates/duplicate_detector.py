"""
Duplicate Driver Detection

Finds existing driver records that probably belong to the person being
cited, so the officer can reuse the record instead of creating a
duplicate. Each candidate keeps only its single strongest signal:

| Signal                                  | Confidence | Reason                   |
|-----------------------------------------|-----------:|--------------------------|
| License number                          |        100 | License number match      |
| First + last name and date of birth     |         95 | Name + DOB match         |
| Similar first + last and date of birth  |         80 | Similar name + DOB match |
| First + last name                       |         70 | Name match only          |
| Similar first + last                    |         60 | Similar name             |
| Last name only (no first name given)    |      45-50 | Partial name match       |

A plate number never raises a driver's confidence (one vehicle can
have several drivers); it fills the result's vehicle_history instead.

When nothing matches, a direct substring search runs and its rows are
returned with trust=FALLBACK.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from citation_registry.config import get_config
from citation_registry.database.database import read_session
from citation_registry.database.models import Driver
from citation_registry.models import (
    DriverIdentity,
    FailureKind,
    MatchCandidate,
    MatchResult,
    MatchTrust,
    MatchType,
    ServiceFailure,
)

from .driver_repository import DriverRepository
from .exceptions import StorageFailure
from .name_matching import name_similarity, names_equal, normalize_name
from .offense_resolver import to_history_records


CONFIDENCE_LICENSE = 100
CONFIDENCE_NAME_DOB = 95
CONFIDENCE_SIMILAR_NAME_DOB = 80
CONFIDENCE_NAME_ONLY = 70
CONFIDENCE_SIMILAR_NAME = 60
CONFIDENCE_PARTIAL_NAME_DOB = 50
CONFIDENCE_PARTIAL_NAME = 45
CONFIDENCE_DIRECT_SEARCH = 70


@dataclass
class _Score:
    """Best signal found so far for one driver"""
    driver: Driver
    confidence: int
    match_type: MatchType
    reason: str


class DuplicateDetectionService:
    """
    Duplicate driver detection

    Read-only and stateless; every call opens its own session.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        config: Optional[dict] = None
    ):
        """
        Initialize detection service

        Args:
            session_factory: SQLAlchemy sessionmaker (default: SessionLocal)
            config: Matching configuration (default: 'matching' config section)
        """
        self.session_factory = session_factory
        self.config = config if config is not None else get_config().get_matching_config()

        self.candidate_limit = self.config.get('candidateLimit', 50)
        self.direct_search_limit = self.config.get('directSearchLimit', 50)
        self.similar_name_threshold = self.config.get('similarNameThreshold', 0.8)
        self.last_name_weight = self.config.get('lastNameWeight', 0.6)

    # ============================================
    # Public API
    # ============================================

    def find_possible_duplicates(
        self,
        identity: Union[DriverIdentity, dict],
        allow_fallback: bool = True
    ) -> MatchResult:
        """
        Find drivers that may be the person described by identity

        Args:
            identity: Partial identity (any subset of fields)
            allow_fallback: Run the direct search when nothing matches

        Returns:
            MatchResult sorted by confidence, then total citations.
            An empty identity gives an empty result.
        """
        if isinstance(identity, dict):
            try:
                identity = DriverIdentity(**identity)
            except ValidationError as e:
                return MatchResult(
                    success=False,
                    failure=ServiceFailure(
                        kind=FailureKind.VALIDATION,
                        message="Invalid driver identity",
                        cause=str(e)
                    )
                )

        if identity.is_empty():
            return MatchResult()

        try:
            with read_session(self.session_factory) as db:
                repo = DriverRepository(db)

                scores = self._collect_scores(repo, identity)
                candidates = self._rank(repo, scores.values())

                vehicle_history = []
                if identity.plate_number:
                    vehicle_history = to_history_records(
                        repo.history_for_plate(identity.plate_number)
                    )

                if candidates or not allow_fallback:
                    logger.debug(f"Duplicate check: {len(candidates)} candidates")
                    return MatchResult(candidates=candidates, vehicle_history=vehicle_history)

                fallback = self._direct_search(repo, self._fallback_terms(identity))
                logger.debug(f"Duplicate check: no structured match, {len(fallback)} direct matches")
                return MatchResult(
                    trust=MatchTrust.FALLBACK,
                    candidates=fallback,
                    vehicle_history=vehicle_history
                )

        except StorageFailure as e:
            logger.error(f"Duplicate check error: {e.message} ({e.cause})")
            return MatchResult(success=False, failure=ServiceFailure.from_error(e))

    def direct_search(self, search_term: Optional[str]) -> MatchResult:
        """
        Substring search over names, license and plate numbers

        Lower-trust fallback for when structured matching finds nothing.
        """
        term = (search_term or "").strip()
        if not term:
            return MatchResult(trust=MatchTrust.FALLBACK)

        try:
            with read_session(self.session_factory) as db:
                candidates = self._direct_search(DriverRepository(db), [term])
                return MatchResult(trust=MatchTrust.FALLBACK, candidates=candidates)
        except StorageFailure as e:
            logger.error(f"Direct search error: {e.message} ({e.cause})")
            return MatchResult(
                success=False,
                trust=MatchTrust.FALLBACK,
                failure=ServiceFailure.from_error(e)
            )

    # ============================================
    # Scoring
    # ============================================

    def _collect_scores(self, repo: DriverRepository, identity: DriverIdentity) -> Dict[int, _Score]:
        scores: Dict[int, _Score] = {}

        def offer(driver: Driver, confidence: int, match_type: MatchType, reason: str):
            current = scores.get(driver.driver_id)
            if current is None or confidence > current.confidence:
                scores[driver.driver_id] = _Score(
                    driver, confidence, match_type, self._with_barangay(reason, identity, driver)
                )

        if identity.license_number:
            for driver in repo.find_by_license(identity.license_number):
                offer(driver, CONFIDENCE_LICENSE, MatchType.LICENSE_NUMBER, "License number match")

        if identity.has_full_name:
            if normalize_name(identity.first_name) and normalize_name(identity.last_name):
                for driver in repo.find_name_candidates(
                    identity.first_name, identity.last_name, self.candidate_limit
                ):
                    score = self._score_full_name(identity, driver)
                    if score:
                        offer(driver, *score)

        elif identity.last_name and normalize_name(identity.last_name):
            for driver in repo.find_last_name_candidates(identity.last_name, self.candidate_limit):
                if names_equal(identity.last_name, driver.last_name):
                    confidence = (
                        CONFIDENCE_PARTIAL_NAME_DOB
                        if self._same_dob(identity, driver)
                        else CONFIDENCE_PARTIAL_NAME
                    )
                    offer(driver, confidence, MatchType.PARTIAL_NAME, "Partial name match")

        return scores

    def _score_full_name(self, identity: DriverIdentity, driver: Driver):
        same_dob = self._same_dob(identity, driver)

        if names_equal(identity.first_name, driver.first_name) and \
                names_equal(identity.last_name, driver.last_name):
            if same_dob:
                return CONFIDENCE_NAME_DOB, MatchType.NAME_DOB, "Name + DOB match"
            return CONFIDENCE_NAME_ONLY, MatchType.NAME_ONLY, "Name match only"

        similarity = name_similarity(
            identity.first_name, identity.last_name,
            driver.first_name, driver.last_name,
            last_name_weight=self.last_name_weight
        )
        if similarity >= self.similar_name_threshold:
            if same_dob:
                return CONFIDENCE_SIMILAR_NAME_DOB, MatchType.SIMILAR_NAME_DOB, "Similar name + DOB match"
            return CONFIDENCE_SIMILAR_NAME, MatchType.SIMILAR_NAME, "Similar name"

        return None

    @staticmethod
    def _same_dob(identity: DriverIdentity, driver: Driver) -> bool:
        return bool(
            identity.date_of_birth
            and driver.date_of_birth
            and identity.date_of_birth == driver.date_of_birth
        )

    @staticmethod
    def _with_barangay(reason: str, identity: DriverIdentity, driver: Driver) -> str:
        if identity.barangay and driver.barangay and \
                identity.barangay.strip().lower() == driver.barangay.strip().lower():
            return f"{reason}, same barangay"
        return reason

    # ============================================
    # Ranking
    # ============================================

    def _rank(self, repo: DriverRepository, scores: Iterable[_Score]) -> List[MatchCandidate]:
        scores = list(scores)
        stats = repo.citation_stats(s.driver.driver_id for s in scores)

        candidates = [
            self._to_candidate(s.driver, s.confidence, s.match_type, s.reason, stats)
            for s in scores
        ]

        # More citations = more likely the established record
        candidates.sort(key=lambda c: (-c.confidence, -c.total_citations, c.driver_id))
        return candidates

    @staticmethod
    def _to_candidate(driver: Driver, confidence: int, match_type: MatchType, reason: str, stats) -> MatchCandidate:
        total, last_date = stats.get(driver.driver_id, (0, None))
        return MatchCandidate(
            driver_id=driver.driver_id,
            last_name=driver.last_name,
            first_name=driver.first_name,
            middle_name=driver.middle_name,
            suffix=driver.suffix,
            license_number=driver.license_number,
            date_of_birth=driver.date_of_birth,
            barangay=driver.barangay,
            municipality=driver.municipality,
            confidence=confidence,
            reason=reason,
            match_type=match_type,
            total_citations=total,
            last_citation_date=last_date
        )

    # ============================================
    # Direct search fallback
    # ============================================

    @staticmethod
    def _fallback_terms(identity: DriverIdentity) -> List[str]:
        terms = []
        if identity.license_number:
            terms.append(identity.license_number)
        if identity.has_full_name:
            terms.append(f"{identity.first_name} {identity.last_name}")
        elif identity.last_name or identity.first_name:
            terms.append(identity.last_name or identity.first_name)
        if identity.plate_number:
            terms.append(identity.plate_number)
        return terms

    def _direct_search(self, repo: DriverRepository, terms: List[str]) -> List[MatchCandidate]:
        drivers: Dict[int, Driver] = {}
        for term in terms:
            for driver in repo.direct_search(term, self.direct_search_limit):
                drivers.setdefault(driver.driver_id, driver)

        stats = repo.citation_stats(drivers.keys())
        candidates = [
            self._to_candidate(
                driver, CONFIDENCE_DIRECT_SEARCH, MatchType.DIRECT_SEARCH,
                "Direct database match", stats
            )
            for driver in drivers.values()
        ]
        candidates.sort(key=lambda c: (-c.total_citations, c.driver_id))
        return candidates[:self.direct_search_limit]


# Global instance
_duplicate_service: Optional[DuplicateDetectionService] = None


def init_duplicate_service(
    session_factory: Optional[sessionmaker] = None,
    config: Optional[dict] = None
) -> DuplicateDetectionService:
    """Initialize global duplicate detection service"""
    global _duplicate_service
    _duplicate_service = DuplicateDetectionService(session_factory, config)
    return _duplicate_service


def get_duplicate_service() -> DuplicateDetectionService:
    """Get global duplicate detection service (created on first use)"""
    global _duplicate_service
    if _duplicate_service is None:
        _duplicate_service = DuplicateDetectionService()
    return _duplicate_service
