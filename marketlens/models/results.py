from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from marketlens.models.strategy import SearchType


@dataclass(frozen=True, slots=True)
class RawResult:
    """One retained search hit, cleaned and tagged with the term that found it."""

    title: str
    url: str
    content: str
    score: float
    domain: str
    search_term: str
    search_type: SearchType
    weight: float
    relevance_score: float | None
    published_date: datetime | None = None

    @property
    def ranking_score(self) -> float:
        return (self.relevance_score or 0.0) * self.weight

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "content": self.content,
            "score": self.score,
            "publishedDate": self.published_date.isoformat() if self.published_date else None,
            "domain": self.domain,
            "searchTerm": self.search_term,
            "searchType": self.search_type.value,
            "weight": self.weight,
            "relevanceScore": self.relevance_score,
        }
