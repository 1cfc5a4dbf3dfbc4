from __future__ import annotations

import math
import time
from typing import Any

import httpx

from marketlens.errors import SearchServiceError
from marketlens.tools.search_provider import SearchHit, SearchRequest
from marketlens.tools.web_utils import parse_published_date

TAVILY_SEARCH_PATH = "/search"


def _to_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class TavilySearchClient:
    """Tavily web search over plain HTTP so status codes reach the retry policy."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.tavily.com",
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _payload(self, request: SearchRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "query": request.query,
            "search_depth": request.search_depth.value,
            "max_results": request.max_results,
            "include_answer": False,
            "include_raw_content": False,
        }
        if request.exclude_domains:
            payload["exclude_domains"] = list(request.exclude_domains)
        return payload

    async def search(self, request: SearchRequest) -> list[SearchHit]:
        """Execute one Tavily search and normalize the hits."""
        if not self.api_key:
            raise SearchServiceError("TAVILY_API_KEY is not configured", status_code=401)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{TAVILY_SEARCH_PATH}",
                    json=self._payload(request),
                    headers={
                        "Content-Type": "application/json",
                        "Authorization": f"Bearer {self.api_key}",
                    },
                )
        except httpx.TransportError as e:
            raise SearchServiceError(f"Tavily transport error: {e}") from e

        if response.status_code >= 400:
            raise SearchServiceError(
                f"Tavily returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise SearchServiceError("Tavily returned a non-JSON body", status_code=502) from e
        if not isinstance(payload, dict):
            raise SearchServiceError("Tavily returned a non-object JSON body", status_code=502)
        results = payload.get("results") or []
        if not isinstance(results, list):
            raise SearchServiceError("Tavily returned a malformed results field", status_code=502)

        hits: list[SearchHit] = []
        for item in results:
            if not isinstance(item, dict):
                continue
            hits.append(
                SearchHit(
                    title=str(item.get("title") or ""),
                    url=str(item.get("url") or ""),
                    content=str(item.get("content") or ""),
                    score=_to_float(item.get("score")),
                    published_date=parse_published_date(item.get("published_date")),
                    raw=item,
                )
            )
        return hits

    async def health_check(self) -> dict[str, Any]:
        started = time.monotonic()
        try:
            await self.search(SearchRequest(query="test", max_results=1))
        except SearchServiceError as e:
            return {"status": "unhealthy", "error": str(e), "status_code": e.status_code}
        return {
            "status": "healthy",
            "response_time_ms": int((time.monotonic() - started) * 1000),
        }
