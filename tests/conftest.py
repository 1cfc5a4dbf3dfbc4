from __future__ import annotations

from datetime import datetime, timezone

import pytest

from marketlens.models.results import RawResult
from marketlens.models.strategy import SearchType

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_result(
    url: str = "https://example.com/a",
    *,
    title: str = "Example title",
    content: str = "Example content about the market that is long enough to be retained.",
    relevance: float | None = 0.5,
    domain: str | None = None,
    search_type: SearchType = SearchType.PRIMARY,
    published: datetime | None = None,
    term: str = "query",
) -> RawResult:
    return RawResult(
        title=title,
        url=url,
        content=content,
        score=relevance or 0.0,
        domain=domain or url.split("/")[2].removeprefix("www."),
        search_term=term,
        search_type=search_type,
        weight=1.0 if search_type == SearchType.PRIMARY else 0.7,
        relevance_score=relevance,
        published_date=published,
    )


@pytest.fixture
def result_factory():
    return make_result


@pytest.fixture
def now():
    return NOW
