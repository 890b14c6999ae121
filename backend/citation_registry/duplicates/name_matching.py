"""
Driver Name Normalization & Similarity

Officers write the same name many ways ("Dela Cruz Jr.", "DELA CRUZ",
"Peña" / "PENA"). Names are compared only after normalization:
generational suffixes removed, accents folded, uppercase, letters and
single spaces only.
"""

import re
import unicodedata
from typing import Optional

from rapidfuzz.distance import Levenshtein

_SUFFIX_RE = re.compile(r'\b(JR|SR|II|III|IV)\b\.?', re.IGNORECASE)
_NON_LETTER_RE = re.compile(r'[^A-Z ]')
_SPACES_RE = re.compile(r'\s+')


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize a name for comparison

    >>> normalize_name("  dela Cruz, Jr. ")
    'DELA CRUZ'
    """
    if not name:
        return ""

    name = _SUFFIX_RE.sub('', name)

    # Fold accents: Ñ -> N, É -> E
    name = unicodedata.normalize('NFKD', name)
    name = ''.join(ch for ch in name if not unicodedata.combining(ch))

    name = _SPACES_RE.sub(' ', name.upper())
    name = _NON_LETTER_RE.sub('', name)
    return _SPACES_RE.sub(' ', name).strip()


def names_equal(a: Optional[str], b: Optional[str]) -> bool:
    """Exact match after normalization (blank never matches)"""
    norm_a = normalize_name(a)
    return bool(norm_a) and norm_a == normalize_name(b)


def edit_similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity in [0, 1] of two normalized names"""
    return Levenshtein.normalized_similarity(a, b)


def name_similarity(
    first1: Optional[str],
    last1: Optional[str],
    first2: Optional[str],
    last2: Optional[str],
    last_name_weight: float = 0.6
) -> float:
    """
    Weighted similarity of two (first, last) name pairs

    The last name carries last_name_weight of the score; first names
    are the more likely to be abbreviated or misspelled.
    """
    first_sim = edit_similarity(normalize_name(first1), normalize_name(first2))
    last_sim = edit_similarity(normalize_name(last1), normalize_name(last2))

    return last_sim * last_name_weight + first_sim * (1 - last_name_weight)
