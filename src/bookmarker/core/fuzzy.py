"""Fuzzy title matching over an in-memory list of candidates."""

from dataclasses import dataclass
from typing import List, Sequence

from rapidfuzz import fuzz

from ..models.bookmark import Bookmark


@dataclass
class FuzzyMatch:
    index: int
    text: str
    score: float
    start: int


def is_subsequence(query: str, text: str) -> bool:
    """Check that every query character appears in text, in order."""
    remaining = iter(text)
    return all(ch in remaining for ch in query)


def find(query: str, candidates: Sequence[str]) -> List[FuzzyMatch]:
    """Return candidates that contain the query as a subsequence, best first.

    Matching ignores case. Ranking uses the best aligned partial ratio, so
    contiguous runs score higher; ties prefer an earlier match position,
    then the shorter candidate, then input order.

    Example:
        find("pyth", ["A python guide", "Python Tricks", "Rust"])
        -> matches for "Python Tricks" then "A python guide"
    """
    needle = query.lower()
    if not needle:
        return []

    matches = []
    for i, text in enumerate(candidates):
        haystack = text.lower()
        if not is_subsequence(needle, haystack):
            continue

        alignment = fuzz.partial_ratio_alignment(needle, haystack)
        score = alignment.score if alignment is not None else 0.0
        start = alignment.dest_start if alignment is not None else 0
        matches.append(FuzzyMatch(index=i, text=text, score=score, start=start))

    matches.sort(key=lambda m: (-m.score, m.start, len(m.text), m.index))
    return matches


def find_bookmarks(query: str, bookmarks: Sequence[Bookmark]) -> List[Bookmark]:
    """Rank bookmarks by how closely their titles match the query."""
    titles = [bookmark.title for bookmark in bookmarks]
    return [bookmarks[match.index] for match in find(query, titles)]
