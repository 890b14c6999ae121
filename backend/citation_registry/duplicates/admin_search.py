"""
Admin Duplicate Search

Free-text search box of the driver duplicate management page. Officers
write names in either order ("RICHMOND ROSETE" or "ROSETE RICHMOND"),
so a multi-word query is tried both ways and the two candidate lists
are merged per driver. The raw text is also tried as a license and a
plate number. If nothing matches, the direct substring search result
is returned instead.
"""

from typing import Dict, List

from citation_registry.models import (
    DriverIdentity,
    MatchCandidate,
    MatchResult,
)

from .duplicate_detector import DuplicateDetectionService


def name_order_attempts(search: str) -> List[DriverIdentity]:
    """
    Identities to try for a free-text query

    "A B C" -> (first=A, last="B C") and (first="B C", last=A)
    "A"     -> last name A (partial name match)
    """
    tokens = search.split()
    if not tokens:
        return []

    if len(tokens) == 1:
        return [DriverIdentity(last_name=search, license_number=search, plate_number=search)]

    head, rest = tokens[0], " ".join(tokens[1:])
    return [
        DriverIdentity(first_name=head, last_name=rest, license_number=search, plate_number=search),
        DriverIdentity(first_name=rest, last_name=head, license_number=search, plate_number=search),
    ]


def merge_candidates(results: List[MatchResult]) -> List[MatchCandidate]:
    """Union of candidates, keeping the highest-confidence entry per driver"""
    best: Dict[int, MatchCandidate] = {}
    for result in results:
        for candidate in result.candidates:
            current = best.get(candidate.driver_id)
            if current is None or candidate.confidence > current.confidence:
                best[candidate.driver_id] = candidate

    return sorted(
        best.values(),
        key=lambda c: (-c.confidence, -c.total_citations, c.driver_id)
    )


def search_duplicates(service: DuplicateDetectionService, search: str) -> MatchResult:
    """
    Search for possible duplicates of a free-text name / license / plate

    Returns:
        Normal-trust result when any attempt matched, otherwise the
        direct-search result (trust=FALLBACK). A storage failure in any
        attempt is returned as-is.
    """
    search = (search or "").strip()
    attempts = name_order_attempts(search)
    if not attempts:
        return MatchResult()

    results = []
    for identity in attempts:
        result = service.find_possible_duplicates(identity, allow_fallback=False)
        if not result.success:
            return result
        results.append(result)

    candidates = merge_candidates(results)
    if candidates:
        return MatchResult(candidates=candidates, vehicle_history=results[0].vehicle_history)

    return service.direct_search(search)
