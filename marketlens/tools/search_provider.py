from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from marketlens.config import settings
from marketlens.models.strategy import SearchDepth


@dataclass(frozen=True, slots=True)
class SearchRequest:
    query: str
    search_depth: SearchDepth = SearchDepth.ADVANCED
    max_results: int = 10
    exclude_domains: tuple[str, ...] = ()


@dataclass(slots=True)
class SearchHit:
    title: str
    url: str
    content: str
    score: float | None = None
    published_date: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


class SearchClient(Protocol):
    async def search(self, request: SearchRequest) -> list[SearchHit]:
        """Run one query; raise ``SearchServiceError`` on non-2xx or transport failure."""
        ...

    async def health_check(self) -> dict[str, Any]:
        ...


def get_search_client() -> SearchClient:
    """Build the search adapter selected by ``SEARCH_PROVIDER``."""
    provider = settings.search_provider.lower().strip()

    if provider == "tavily":
        from marketlens.tools.tavily_search import TavilySearchClient

        return TavilySearchClient(
            api_key=settings.tavily_api_key,
            base_url=settings.tavily_base_url,
            timeout=settings.search_timeout_seconds,
        )

    raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")

