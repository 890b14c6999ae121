"""
Duplicate Driver Detection & Repeat-Offense System

This module implements driver identity resolution for the citation
system.

Components:
- DuplicateDetectionService: Ranked duplicate-driver candidates
- search_duplicates: Admin free-text search (both name orders)
- OffenseHistoryResolver: Offense history and next offense ordinal
- DriverMergeService: Transactional driver merge
- CitationIntakeService: Citation recording, soft delete and restore

Usage:
    from citation_registry.duplicates import (
        init_duplicate_service,
        init_offense_resolver,
        init_merge_service,
    )

    detector = init_duplicate_service()
    resolver = init_offense_resolver()

    result = detector.find_possible_duplicates({
        'first_name': 'RICHMOND',
        'last_name': 'ROSETE',
        'date_of_birth': '1999-10-17',
    })
    ordinal = resolver.resolve_offense_ordinal(7, driver_id=42)
"""

# Errors
from .exceptions import (
    DuplicateServiceError,
    RecordNotFound,
    IdentityValidationError,
    StorageFailure,
)

# Name matching
from .name_matching import (
    normalize_name,
    names_equal,
    name_similarity,
)

# Offense history
from .offense_resolver import (
    OFFENSE_ORDINAL_CAP,
    OffenseHistoryResolver,
    next_offense_ordinal,
    offense_label,
    init_offense_resolver,
    get_offense_resolver,
)

# Duplicate detection
from .duplicate_detector import (
    DuplicateDetectionService,
    init_duplicate_service,
    get_duplicate_service,
)
from .admin_search import search_duplicates

# Driver merge
from .merge_service import (
    DriverMergeService,
    init_merge_service,
    get_merge_service,
)

# Citation intake
from .citation_intake import (
    CitationIntakeService,
    init_intake_service,
    get_intake_service,
)


__all__ = [
    # Errors
    "DuplicateServiceError",
    "RecordNotFound",
    "IdentityValidationError",
    "StorageFailure",

    # Name matching
    "normalize_name",
    "names_equal",
    "name_similarity",

    # Offense history
    "OFFENSE_ORDINAL_CAP",
    "OffenseHistoryResolver",
    "next_offense_ordinal",
    "offense_label",
    "init_offense_resolver",
    "get_offense_resolver",

    # Duplicate detection
    "DuplicateDetectionService",
    "init_duplicate_service",
    "get_duplicate_service",
    "search_duplicates",

    # Driver merge
    "DriverMergeService",
    "init_merge_service",
    "get_merge_service",

    # Citation intake
    "CitationIntakeService",
    "init_intake_service",
    "get_intake_service",
]
