from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from marketlens.config import settings
from marketlens.errors import (
    InvalidStrategyError,
    SearchServiceError,
    ServiceUnavailableError,
    TermSearchFailed,
)
from marketlens.models.results import RawResult
from marketlens.models.strategy import SearchDepth, SearchStrategy, SearchType
from marketlens.pipeline.dedupe import deduplicate
from marketlens.services import logger as log_service
from marketlens.tools.search_provider import SearchClient, SearchHit, SearchRequest
from marketlens.tools.web_utils import clean_text, extract_domain, is_valid_url

PRIMARY_WEIGHT = 1.0
SECONDARY_WEIGHT = 0.7
MIN_CONTENT_LENGTH = 50
MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 1000

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class RequestPacer:
    """Spaces out request starts against the search service.

    Each request reserves the next slot: the following request may not start
    until ``spacing`` seconds after this one did, whatever task issues it.
    """

    def __init__(self, *, sleep: Sleep = asyncio.sleep, clock: Clock = time.monotonic):
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._next_slot: float | None = None

    async def wait_turn(self, spacing: float) -> None:
        async with self._lock:
            if self._next_slot is not None:
                delay = self._next_slot - self._clock()
                if delay > 0:
                    await self._sleep(delay)
            self._next_slot = self._clock() + max(spacing, 0.0)


@dataclass(frozen=True, slots=True)
class TermPlan:
    term: str
    search_type: SearchType
    weight: float
    search_depth: SearchDepth
    max_results: int
    spacing: float


@dataclass(frozen=True, slots=True)
class GatherReport:
    results: tuple[RawResult, ...] = ()
    raw_hits: int = 0
    accepted_hits: int = 0
    failed_terms: tuple[str, ...] = ()


def is_low_quality_source(url: str, blocklist: list[str]) -> bool:
    lowered = url.lower()
    return any(domain in lowered for domain in blocklist)


def is_valid_result(result: RawResult, blocklist: list[str]) -> bool:
    """Checked on the cleaned record, so whitespace padding cannot pass the length bar."""
    return bool(
        is_valid_url(result.url)
        and result.title
        and len(result.content) > MIN_CONTENT_LENGTH
        and not is_low_quality_source(result.url, blocklist)
    )


def clean_hit(hit: SearchHit, term: TermPlan) -> RawResult:
    raw_score = hit.score if hit.score is not None and math.isfinite(hit.score) else None
    score = min(max(raw_score or 0.0, 0.0), 1.0)
    return RawResult(
        title=clean_text(hit.title, MAX_TITLE_LENGTH),
        url=hit.url,
        content=clean_text(hit.content, MAX_CONTENT_LENGTH),
        score=score,
        published_date=hit.published_date,
        domain=extract_domain(hit.url),
        search_term=term.term,
        search_type=term.search_type,
        weight=term.weight,
        relevance_score=score if raw_score is not None else None,
    )


def _date_sort_value(published: datetime | None) -> float:
    # Missing dates sort as the oldest.
    return published.timestamp() if published else float("-inf")


def sort_by_relevance(results: list[RawResult]) -> list[RawResult]:
    """Order by relevance x weight, then primary first, then newest first."""
    return sorted(
        results,
        key=lambda r: (
            -r.ranking_score,
            0 if r.search_type == SearchType.PRIMARY else 1,
            -_date_sort_value(r.published_date),
        ),
    )


class DataGatherer:
    """Runs every planned term against the search service and merges the hits."""

    def __init__(
        self,
        search_client: SearchClient,
        *,
        max_retries: int | None = None,
        rate_limit_backoff_ms: int | None = None,
        server_error_backoff_ms: int | None = None,
        primary_delay_ms: int | None = None,
        secondary_delay_ms: int | None = None,
        secondary_max_results: int | None = None,
        excluded_domains: list[str] | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ):
        self.search_client = search_client
        self.max_retries = max(
            int(settings.search_max_retries if max_retries is None else max_retries), 0
        )
        self.rate_limit_backoff_ms = (
            settings.search_rate_limit_backoff_ms
            if rate_limit_backoff_ms is None
            else rate_limit_backoff_ms
        )
        self.server_error_backoff_ms = (
            settings.search_server_error_backoff_ms
            if server_error_backoff_ms is None
            else server_error_backoff_ms
        )
        self.primary_delay = (
            settings.search_primary_delay_ms if primary_delay_ms is None else primary_delay_ms
        ) / 1000
        self.secondary_delay = (
            settings.search_secondary_delay_ms if secondary_delay_ms is None else secondary_delay_ms
        ) / 1000
        self.secondary_max_results = max(
            int(
                settings.search_secondary_max_results
                if secondary_max_results is None
                else secondary_max_results
            ),
            1,
        )
        self.excluded_domains = (
            settings.excluded_domain_list if excluded_domains is None else list(excluded_domains)
        )
        self._sleep = sleep
        self.pacer = RequestPacer(sleep=sleep, clock=clock)

    def plan_terms(self, strategy: SearchStrategy) -> list[TermPlan]:
        if not strategy.primary_terms:
            raise InvalidStrategyError("search strategy has no primary terms")

        primary_cap = math.ceil(strategy.expected_sources / len(strategy.primary_terms))
        terms = [
            TermPlan(
                term=term,
                search_type=SearchType.PRIMARY,
                weight=PRIMARY_WEIGHT,
                search_depth=SearchDepth.ADVANCED,
                max_results=primary_cap,
                spacing=self.primary_delay,
            )
            for term in strategy.primary_terms
        ]
        terms.extend(
            TermPlan(
                term=term,
                search_type=SearchType.SECONDARY,
                weight=SECONDARY_WEIGHT,
                search_depth=SearchDepth.BASIC,
                max_results=self.secondary_max_results,
                spacing=self.secondary_delay,
            )
            for term in strategy.secondary_terms
        )
        return terms

    def backoff_seconds(self, error: SearchServiceError, attempt: int) -> float:
        base_ms = self.rate_limit_backoff_ms if error.rate_limited else self.server_error_backoff_ms
        return (2**attempt) * base_ms / 1000

    async def search_with_retry(self, term: TermPlan) -> list[SearchHit]:
        """Search one term, retrying rate limits and server errors with backoff."""
        request = SearchRequest(
            query=term.term,
            search_depth=term.search_depth,
            max_results=term.max_results,
            exclude_domains=tuple(self.excluded_domains),
        )
        attempts = self.max_retries + 1

        for attempt in range(1, attempts + 1):
            await self.pacer.wait_turn(term.spacing)
            t0 = time.monotonic()
            try:
                hits = await self.search_client.search(request)
            except SearchServiceError as e:
                log_service.log_search_call(
                    term=term.term,
                    search_type=term.search_type.value,
                    attempt=attempt,
                    status="error",
                    status_code=e.status_code,
                    duration_ms=int((time.monotonic() - t0) * 1000),
                    error=str(e),
                )
                if not e.retryable or attempt == attempts:
                    raise TermSearchFailed(term.term, e) from e
                wait = self.backoff_seconds(e, attempt)
                log_service.logger.warning(
                    f"Search {'rate limited' if e.rate_limited else 'server error'} for "
                    f"'{term.term}', retrying in {wait:.1f}s ({attempt}/{self.max_retries})"
                )
                await self._sleep(wait)
                continue

            log_service.log_search_call(
                term=term.term,
                search_type=term.search_type.value,
                attempt=attempt,
                results=len(hits),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            return hits

        raise AssertionError("unreachable")  # pragma: no cover

    async def _gather_term(self, term: TermPlan) -> tuple[list[RawResult], int]:
        try:
            hits = await self.search_with_retry(term)
        except TermSearchFailed:
            raise
        except Exception as e:
            # A malformed reply from the client fails this term only.
            cause = SearchServiceError(f"unexpected search client error: {e!r}", status_code=502)
            raise TermSearchFailed(term.term, cause) from e
        cleaned = (clean_hit(hit, term) for hit in hits)
        accepted = [r for r in cleaned if is_valid_result(r, self.excluded_domains)]
        return accepted, len(hits)

    async def gather(self, strategy: SearchStrategy) -> GatherReport:
        """Fan out over all terms, wait for every one, then merge and rank."""
        terms = self.plan_terms(strategy)
        log_service.logger.info(
            f"Starting data gathering: {len(strategy.primary_terms)} primary, "
            f"{len(strategy.secondary_terms)} secondary terms"
        )

        outcomes = await asyncio.gather(
            *(self._gather_term(term) for term in terms),
            return_exceptions=True,
        )

        raw_hits = accepted_hits = 0
        failed_terms: list[str] = []
        collected: list[RawResult] = []
        failures: list[TermSearchFailed] = []
        for term, outcome in zip(terms, outcomes):
            if isinstance(outcome, TermSearchFailed):
                failures.append(outcome)
                failed_terms.append(term.term)
                log_service.log_event(
                    event_type="term_search_failed",
                    message=str(outcome),
                    level="WARNING",
                    term=term.term,
                    status_code=outcome.cause.status_code,
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            accepted, raw_count = outcome
            raw_hits += raw_count
            accepted_hits += len(accepted)
            collected.extend(accepted)

        if failures and len(failures) == len(terms):
            status_code = 429 if all(f.rate_limited for f in failures) else 503
            message = (
                "Search rate limit exceeded"
                if status_code == 429
                else "Search service temporarily unavailable"
            )
            raise ServiceUnavailableError(message, status_code=status_code)

        report = GatherReport(
            results=tuple(sort_by_relevance(deduplicate(collected))),
            raw_hits=raw_hits,
            accepted_hits=accepted_hits,
            failed_terms=tuple(failed_terms),
        )
        log_service.logger.info(
            f"Data gathering completed: {len(report.results)} results from "
            f"{report.raw_hits} hits, {len(report.failed_terms)} failed terms"
        )
        return report
