from __future__ import annotations

from typing import Any

from marketlens.config import settings
from marketlens.errors import LLMResponseError
from marketlens.llm_client import client as llm_client, get_model
from marketlens.models.strategy import (
    MAX_EXPECTED_SOURCES,
    MAX_PRIMARY_TERMS,
    MAX_SECONDARY_TERMS,
    MIN_EXPECTED_SOURCES,
    FallbackStrategy,
    ParsedStrategy,
    PlanOutcome,
    SearchDepth,
    SearchStrategy,
)
from marketlens.services import logger as log_service
from marketlens.services.response_parser import extract_json_object

DEFAULT_TIME_RANGE = "6 months"
DEFAULT_EXPECTED_SOURCES = 15


def build_planning_prompt(query: str) -> str:
    return (
        "You are a market intelligence search strategist. Analyze this query and create a "
        f'comprehensive search strategy: "{query}"\n\n'
        "Generate a JSON response with:\n"
        "{\n"
        '  "primaryTerms": ["3-5 key search phrases for main research"],\n'
        '  "secondaryTerms": ["2-3 deeper analysis terms"],\n'
        '  "domains": ["preferred domain types like news, reports, financial"],\n'
        '  "timeRange": "relevance time frame",\n'
        '  "searchDepth": "basic or advanced",\n'
        '  "expectedSources": 15,\n'
        '  "industryKeywords": ["industry-specific terms"],\n'
        '  "competitorKeywords": ["competitor analysis terms"]\n'
        "}\n\n"
        "Focus on business intelligence, market trends, and competitive analysis.\n"
        "Make terms specific and actionable for market research.\n"
        "Return only valid JSON without any explanation."
    )


def _normalize_text_list(raw_values: Any, *, max_items: int) -> list[str]:
    if not isinstance(raw_values, list):
        return []
    cleaned: list[str] = []
    seen: set[str] = set()
    for item in raw_values:
        if not isinstance(item, str):
            continue
        value = " ".join(item.split()).strip()
        if not value:
            continue
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(value)
        if len(cleaned) >= max_items:
            break
    return cleaned


def _clamp_expected_sources(value: Any) -> int:
    # bool is an int subclass; a JSON true is not a source count.
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return DEFAULT_EXPECTED_SOURCES
    return max(MIN_EXPECTED_SOURCES, min(value, MAX_EXPECTED_SOURCES))


def _normalize_query(query: Any) -> str:
    return " ".join(str(query or "").split()) or "market"


def validate_strategy(raw: dict[str, Any], query: str) -> SearchStrategy:
    """Repair a model-produced strategy field by field."""
    q = _normalize_query(query)
    primary = _normalize_text_list(raw.get("primaryTerms"), max_items=MAX_PRIMARY_TERMS)
    secondary = _normalize_text_list(raw.get("secondaryTerms"), max_items=MAX_SECONDARY_TERMS)
    domains = _normalize_text_list(raw.get("domains"), max_items=20)
    time_range = raw.get("timeRange")
    depth = raw.get("searchDepth")

    return SearchStrategy(
        primary_terms=primary or [q, f"{q} market analysis"],
        secondary_terms=secondary or [f"{q} competitors", f"{q} trends"],
        domains=domains or ["news", "industry_reports"],
        time_range=" ".join(time_range.split()) if isinstance(time_range, str) and time_range.strip() else DEFAULT_TIME_RANGE,
        search_depth=depth if depth in (SearchDepth.BASIC.value, SearchDepth.ADVANCED.value) else SearchDepth.ADVANCED,
        expected_sources=_clamp_expected_sources(raw.get("expectedSources")),
        industry_keywords=_normalize_text_list(raw.get("industryKeywords"), max_items=10),
        competitor_keywords=_normalize_text_list(raw.get("competitorKeywords"), max_items=10),
    )


def fallback_strategy(query: str) -> SearchStrategy:
    """Deterministic strategy built from the query alone; never fails."""
    q = _normalize_query(query)
    return SearchStrategy(
        primary_terms=[q, f"{q} market analysis", f"{q} industry trends", f"{q} market size"],
        secondary_terms=[f"{q} competitors", f"{q} market share", f"{q} forecast"],
        domains=["news", "industry_reports", "financial", "business"],
        time_range=DEFAULT_TIME_RANGE,
        search_depth=SearchDepth.ADVANCED,
        expected_sources=DEFAULT_EXPECTED_SOURCES,
        industry_keywords=[f"{q} industry", f"{q} sector"],
        competitor_keywords=[f"{q} competitive landscape"],
    )


class SearchPlanner:
    """Turns a free-text query into a validated ``SearchStrategy``."""

    name = "planner"

    def __init__(
        self,
        model: str | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        planner_override = (settings.planner_model or "").strip()
        self.model = model or planner_override or get_model()
        self.temperature = settings.planner_temperature if temperature is None else temperature
        self.max_tokens = settings.planner_max_tokens if max_tokens is None else max_tokens
        self.client = None

    async def plan(self, query: str) -> PlanOutcome:
        log_service.logger.info(f"Planning search strategy for query: {query!r}")
        active_client = self.client or llm_client()

        try:
            response = await active_client.completions.complete(
                build_planning_prompt(query),
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                caller=self.name,
            )
            raw = extract_json_object(response.text)
        except LLMResponseError as e:
            return self._degrade(query, f"unparseable strategy: {e}")
        except Exception as e:
            return self._degrade(query, f"planning call failed: {e}")

        strategy = validate_strategy(raw, query)
        log_service.logger.info(
            f"Search strategy created: {len(strategy.primary_terms)} primary, "
            f"{len(strategy.secondary_terms)} secondary terms"
        )
        return ParsedStrategy(strategy=strategy)

    @staticmethod
    def _degrade(query: str, reason: str) -> FallbackStrategy:
        log_service.log_event(
            event_type="planning_degraded",
            message="Search planning fell back to deterministic strategy",
            level="WARNING",
            reason=reason,
        )
        return FallbackStrategy(strategy=fallback_strategy(query), reason=reason)
