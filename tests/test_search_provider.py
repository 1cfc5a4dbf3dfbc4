from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest

from marketlens.errors import SearchServiceError
from marketlens.models.strategy import SearchDepth
from marketlens.tools import search_provider
from marketlens.tools.search_provider import SearchRequest
from marketlens.tools.tavily_search import TavilySearchClient


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, bad_json: bool = False):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("not json")
        return self._payload


class FakeClient:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def _client() -> TavilySearchClient:
    return TavilySearchClient("tvly-key", base_url="https://api.tavily.com/", timeout=5.0)


@pytest.mark.asyncio
async def test_tavily_search_maps_response_shape():
    payload = {
        "results": [
            {
                "title": "Result 1",
                "url": "https://example.com/1",
                "content": "Desc 1",
                "score": "0.91",
                "published_date": "2026-05-01T10:00:00Z",
            },
            {"title": "Result 2", "url": "https://example.com/2", "content": "Desc 2"},
            "garbage",
        ]
    }
    fake = FakeClient(FakeResponse(payload=payload))

    with patch("marketlens.tools.tavily_search.httpx.AsyncClient", return_value=fake):
        hits = await _client().search(
            SearchRequest(
                query="solar",
                search_depth=SearchDepth.BASIC,
                max_results=3,
                exclude_domains=("reddit.com",),
            )
        )

    assert [h.title for h in hits] == ["Result 1", "Result 2"]
    assert hits[0].score == 0.91
    assert hits[0].published_date == datetime(2026, 5, 1, 10, tzinfo=timezone.utc)
    assert hits[1].score is None
    assert hits[1].published_date is None

    url, kwargs = fake.calls[0]
    assert url == "https://api.tavily.com/search"
    assert kwargs["headers"]["Authorization"] == "Bearer tvly-key"
    assert kwargs["json"] == {
        "query": "solar",
        "search_depth": "basic",
        "max_results": 3,
        "include_answer": False,
        "include_raw_content": False,
        "exclude_domains": ["reddit.com"],
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 400])
async def test_tavily_search_surfaces_status_codes(status):
    fake = FakeClient(FakeResponse(status_code=status))

    with patch("marketlens.tools.tavily_search.httpx.AsyncClient", return_value=fake):
        with pytest.raises(SearchServiceError) as exc_info:
            await _client().search(SearchRequest(query="solar"))

    assert exc_info.value.status_code == status
    assert exc_info.value.retryable is (status != 400)


@pytest.mark.asyncio
async def test_tavily_transport_error_is_retryable():
    fake = FakeClient(error=httpx.ConnectError("connection refused"))

    with patch("marketlens.tools.tavily_search.httpx.AsyncClient", return_value=fake):
        with pytest.raises(SearchServiceError) as exc_info:
            await _client().search(SearchRequest(query="solar"))

    assert exc_info.value.status_code is None
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_tavily_non_json_body():
    fake = FakeClient(FakeResponse(bad_json=True))

    with patch("marketlens.tools.tavily_search.httpx.AsyncClient", return_value=fake):
        with pytest.raises(SearchServiceError) as exc_info:
            await _client().search(SearchRequest(query="solar"))

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [[], "ok", 42, {"results": {"title": "x"}}, {"results": 7}])
async def test_tavily_malformed_json_shape_is_a_retryable_service_error(payload):
    fake = FakeClient(FakeResponse(payload=payload))

    with patch("marketlens.tools.tavily_search.httpx.AsyncClient", return_value=fake):
        with pytest.raises(SearchServiceError) as exc_info:
            await _client().search(SearchRequest(query="solar"))

    assert exc_info.value.status_code == 502
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_tavily_non_finite_scores_become_missing():
    payload = {
        "results": [
            {"title": "A", "url": "https://example.com/a", "content": "x", "score": "NaN"},
            {"title": "B", "url": "https://example.com/b", "content": "x", "score": "inf"},
            {"title": "C", "url": "https://example.com/c", "content": "x", "score": "-Infinity"},
        ]
    }
    fake = FakeClient(FakeResponse(payload=payload))

    with patch("marketlens.tools.tavily_search.httpx.AsyncClient", return_value=fake):
        hits = await _client().search(SearchRequest(query="solar"))

    assert [h.score for h in hits] == [None, None, None]


@pytest.mark.asyncio
async def test_tavily_requires_api_key():
    with pytest.raises(SearchServiceError) as exc_info:
        await TavilySearchClient("").search(SearchRequest(query="solar"))

    assert exc_info.value.status_code == 401
    assert not exc_info.value.retryable


@pytest.mark.asyncio
async def test_tavily_health_check_never_raises():
    fake = FakeClient(FakeResponse(status_code=503))

    with patch("marketlens.tools.tavily_search.httpx.AsyncClient", return_value=fake):
        health = await _client().health_check()

    assert health["status"] == "unhealthy"
    assert health["status_code"] == 503


def test_search_provider_builds_tavily_client():
    with patch("marketlens.tools.search_provider.settings") as mock_settings:
        mock_settings.search_provider = "Tavily"
        mock_settings.tavily_api_key = "tvly-key"
        mock_settings.tavily_base_url = "https://api.tavily.com"
        mock_settings.search_timeout_seconds = 10.0

        client = search_provider.get_search_client()

    assert isinstance(client, TavilySearchClient)
    assert client.api_key == "tvly-key"
    assert client.timeout == 10.0


def test_search_provider_raises_when_provider_unsupported():
    with patch("marketlens.tools.search_provider.settings") as mock_settings:
        mock_settings.search_provider = "unknown-provider"

        with pytest.raises(ValueError):
            search_provider.get_search_client()
