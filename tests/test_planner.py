from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from marketlens.models.strategy import FallbackStrategy, ParsedStrategy, SearchDepth
from marketlens.pipeline.planner import SearchPlanner, fallback_strategy, validate_strategy


def _planner_with_reply(text: str | None = None, *, error: Exception | None = None) -> SearchPlanner:
    planner = SearchPlanner(model="test/model")
    fake = MagicMock()
    if error is not None:
        fake.completions.complete = AsyncMock(side_effect=error)
    else:
        fake.completions.complete = AsyncMock(return_value=SimpleNamespace(text=text))
    planner.client = fake
    return planner


def test_fallback_is_deterministic():
    first = fallback_strategy("EV batteries")
    second = fallback_strategy("EV batteries")

    assert first.primary_terms == second.primary_terms
    assert first.primary_terms == (
        "EV batteries",
        "EV batteries market analysis",
        "EV batteries industry trends",
        "EV batteries market size",
    )
    assert first.secondary_terms == (
        "EV batteries competitors",
        "EV batteries market share",
        "EV batteries forecast",
    )
    assert first.expected_sources == 15


def test_fallback_handles_empty_query():
    strategy = fallback_strategy("   ")
    assert strategy.primary_terms[0] == "market"


def test_validate_strategy_fills_missing_fields():
    strategy = validate_strategy({}, "solar panels")

    assert strategy.primary_terms == ("solar panels", "solar panels market analysis")
    assert strategy.secondary_terms == ("solar panels competitors", "solar panels trends")
    assert strategy.domains == frozenset({"news", "industry_reports"})
    assert strategy.time_range == "6 months"
    assert strategy.search_depth == SearchDepth.ADVANCED
    assert strategy.expected_sources == 15


@pytest.mark.parametrize(
    ("value", "expected"),
    [(40, 25), (10, 10), (0, 15), (-3, 15), ("12", 15), (True, 15), (None, 15)],
)
def test_validate_strategy_clamps_expected_sources(value, expected):
    strategy = validate_strategy({"expectedSources": value}, "q")
    assert strategy.expected_sources == expected


def test_validate_strategy_cleans_term_lists():
    raw = {
        "primaryTerms": ["  EV  batteries ", "ev batteries", 42, "", "solid state"],
        "secondaryTerms": "not a list",
        "searchDepth": "basic",
    }
    strategy = validate_strategy(raw, "EV batteries")

    assert strategy.primary_terms == ("EV batteries", "solid state")
    assert strategy.secondary_terms == ("EV batteries competitors", "EV batteries trends")
    assert strategy.search_depth == SearchDepth.BASIC


def test_validate_strategy_with_blank_query_uses_default_topic():
    strategy = validate_strategy({}, "  \n ")

    assert strategy.primary_terms == ("market", "market market analysis")
    assert strategy.secondary_terms == ("market competitors", "market trends")
    assert all(term.strip() for term in strategy.primary_terms + strategy.secondary_terms)
    assert strategy.primary_terms[0] == fallback_strategy("  \n ").primary_terms[0]


def test_validate_strategy_caps_primary_terms():
    raw = {"primaryTerms": [f"term {i}" for i in range(10)]}
    assert len(validate_strategy(raw, "q").primary_terms) == 6


@pytest.mark.asyncio
async def test_plan_parses_fenced_reply():
    reply = (
        "```json\n"
        '{"primaryTerms": ["grid storage market"], "secondaryTerms": ["grid storage vendors"],'
        ' "domains": ["news"], "timeRange": "1 year", "searchDepth": "advanced",'
        ' "expectedSources": 10, "industryKeywords": ["utility-scale"]}\n'
        "```"
    )
    planner = _planner_with_reply(reply)

    outcome = await planner.plan("grid storage")

    assert isinstance(outcome, ParsedStrategy)
    assert outcome.degraded is False
    assert outcome.strategy.primary_terms == ("grid storage market",)
    assert outcome.strategy.time_range == "1 year"
    assert outcome.strategy.industry_keywords == ("utility-scale",)
    planner.client.completions.complete.assert_awaited_once()


@pytest.mark.asyncio
async def test_plan_falls_back_on_unparseable_reply():
    planner = _planner_with_reply("I cannot help with that.")

    outcome = await planner.plan("EV batteries")

    assert isinstance(outcome, FallbackStrategy)
    assert outcome.degraded is True
    assert outcome.strategy == fallback_strategy("EV batteries")
    assert "unparseable" in outcome.reason


@pytest.mark.asyncio
async def test_plan_falls_back_on_llm_error():
    planner = _planner_with_reply(error=RuntimeError("gateway down"))

    outcome = await planner.plan("EV batteries")

    assert isinstance(outcome, FallbackStrategy)
    assert "gateway down" in outcome.reason
