"""
Admin Duplicate Search Tests

Tests cover:
- Both name orders tried for multi-word queries
- License / plate lookups from the same search box
- Direct search fallback
"""

from unittest.mock import patch

import pytest

from citation_registry.duplicates import (
    DuplicateDetectionService,
    StorageFailure,
    search_duplicates,
)
from citation_registry.duplicates.admin_search import name_order_attempts
from citation_registry.duplicates.driver_repository import DriverRepository
from citation_registry.models import FailureKind, MatchTrust

ROSETE_ID = 42


@pytest.fixture
def detector(seeded, matching_config):
    return DuplicateDetectionService(seeded, config=matching_config)


class TestNameOrderAttempts:
    """Test identities built from free text"""

    def test_two_words_both_orders(self):
        first, swapped = name_order_attempts("ROSETE RICHMOND")

        assert (first.first_name, first.last_name) == ("ROSETE", "RICHMOND")
        assert (swapped.first_name, swapped.last_name) == ("RICHMOND", "ROSETE")
        assert first.license_number == "ROSETE RICHMOND"

    def test_multi_word_last_name(self):
        first, swapped = name_order_attempts("JUAN DELA CRUZ")

        assert (first.first_name, first.last_name) == ("JUAN", "DELA CRUZ")
        assert (swapped.first_name, swapped.last_name) == ("DELA CRUZ", "JUAN")

    def test_single_word(self):
        (attempt,) = name_order_attempts("ABC1234")

        assert attempt.last_name == "ABC1234"
        assert attempt.first_name is None
        assert attempt.plate_number == "ABC1234"

    def test_blank(self):
        assert name_order_attempts("   ") == []


class TestSearchDuplicates:
    """Test search_duplicates against the database"""

    def test_natural_order(self, detector):
        result = search_duplicates(detector, "RICHMOND ROSETE")

        assert result.trust == MatchTrust.NORMAL
        assert result.candidates[0].driver_id == ROSETE_ID
        assert result.candidates[0].confidence == 70

    def test_swapped_order_found_by_second_attempt(self, detector):
        """Last-name-first query finds driver 42 as a name-only match"""
        result = search_duplicates(detector, "ROSETE RICHMOND")

        assert result.trust == MatchTrust.NORMAL
        assert result.match_count == 1
        assert result.candidates[0].driver_id == ROSETE_ID
        assert result.candidates[0].confidence == 70
        assert result.candidates[0].reason == "Name match only"

    def test_license_number(self, detector):
        result = search_duplicates(detector, "A01-23-456789")

        assert result.candidates[0].driver_id == ROSETE_ID
        assert result.candidates[0].confidence == 100

    def test_plate_number_falls_back_to_direct_search(self, detector, add_citation):
        add_citation(driver_id=ROSETE_ID, plate="ABC1234")

        result = search_duplicates(detector, "ABC1234")

        assert result.trust == MatchTrust.FALLBACK
        assert [c.driver_id for c in result.candidates] == [ROSETE_ID]

    def test_no_match(self, detector):
        result = search_duplicates(detector, "NOBODY ATALL")

        assert result.success
        assert result.found_nothing

    def test_empty_search(self, detector):
        result = search_duplicates(detector, "")

        assert result.success
        assert result.candidates == []

    def test_storage_failure_returned(self, detector):
        with patch.object(
            DriverRepository,
            'find_name_candidates',
            side_effect=StorageFailure("Database error in find_name_candidates")
        ):
            result = search_duplicates(detector, "RICHMOND ROSETE")

        assert not result.success
        assert result.failure.kind == FailureKind.STORAGE
