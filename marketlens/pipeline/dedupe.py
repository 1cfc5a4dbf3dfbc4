from __future__ import annotations

from typing import Iterable

from marketlens.models.results import RawResult

TITLE_SIMILARITY_THRESHOLD = 0.8
CONTENT_SIMILARITY_THRESHOLD = 0.9


def positional_similarity(first: str, second: str) -> float:
    """Share of positions holding the same character, over the longer string."""
    if not first or not second:
        return 0.0
    longest = max(len(first), len(second))
    matches = sum(1 for a, b in zip(first, second) if a == b)
    return matches / longest


def _is_near_duplicate(candidate: RawResult, accepted: Iterable[RawResult]) -> bool:
    return any(
        positional_similarity(candidate.title, existing.title) > TITLE_SIMILARITY_THRESHOLD
        or positional_similarity(candidate.content, existing.content) > CONTENT_SIMILARITY_THRESHOLD
        for existing in accepted
    )


def deduplicate(results: Iterable[RawResult]) -> list[RawResult]:
    """Drop exact-URL repeats (keeping the higher relevance) and near-duplicates.

    A repeated URL replaces the stored record only when its relevance is
    strictly higher. New URLs are compared against every accepted record,
    which is quadratic but bounded by the raw corpus size.
    """
    by_url: dict[str, RawResult] = {}
    for result in results:
        if not result.url:
            continue

        existing = by_url.get(result.url)
        if existing is not None:
            if (result.relevance_score or 0.0) > (existing.relevance_score or 0.0):
                by_url[result.url] = result
            continue

        if _is_near_duplicate(result, by_url.values()):
            continue
        by_url[result.url] = result

    return list(by_url.values())
