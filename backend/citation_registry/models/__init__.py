"""
Pydantic Models Package

All data models for the citation registry.
Import from here for convenience.
"""

# Failure models
from .failure import (
    FailureKind,
    ServiceFailure,
)

# Driver identity models
from .driver import (
    DriverIdentity,
    DriverRecord,
)

# Offense history models
from .offense import (
    OffenseMatchMethod,
    HistoryRecord,
    OffenseResolution,
    OffenseFineQuote,
    OffenseCountSummary,
)

# Duplicate matching models
from .matching import (
    MatchType,
    MatchTrust,
    MatchCandidate,
    MatchResult,
)

# Merge models
from .merge import (
    SkippedItem,
    MergeResult,
)

# Citation intake models
from .citation import (
    CitationDraft,
    RecordedViolation,
    IntakeResult,
    CitationStatusResult,
)


__all__ = [
    # Failure
    "FailureKind",
    "ServiceFailure",

    # Driver
    "DriverIdentity",
    "DriverRecord",

    # Offense
    "OffenseMatchMethod",
    "HistoryRecord",
    "OffenseResolution",
    "OffenseFineQuote",
    "OffenseCountSummary",

    # Matching
    "MatchType",
    "MatchTrust",
    "MatchCandidate",
    "MatchResult",

    # Merge
    "SkippedItem",
    "MergeResult",

    # Citation intake
    "CitationDraft",
    "RecordedViolation",
    "IntakeResult",
    "CitationStatusResult",
]
