from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from marketlens.errors import PipelineCancelledError, SearchServiceError, ServiceUnavailableError
from marketlens.models.analysis import DataConfidence
from marketlens.pipeline.gatherer import DataGatherer
from marketlens.pipeline.orchestrator import MarketIntelligencePipeline
from marketlens.pipeline.planner import SearchPlanner
from marketlens.pipeline.synthesizer import TrendSynthesizer
from marketlens.tools.search_provider import SearchHit

HITS = [
    SearchHit(
        title="Utility-scale batteries double",
        url="https://reuters.com/batteries",
        content="Grid batteries doubled their installed base as developers chased strong growth in solar shifting.",
        score=0.92,
    ),
    SearchHit(
        title="Chinese cell makers cut prices",
        url="https://bloomberg.com/cells",
        content="Cell makers announced another round of price cuts, squeezing rivals and pushing market consolidation.",
        score=0.81,
    ),
    SearchHit(
        title="Policy support widens for storage",
        url="https://energy.gov/storage",
        content="New tax credits extend to standalone storage, broadening the pipeline of projects seeking financing.",
        score=0.66,
    ),
]


class StaticSearchClient:
    def __init__(self, hits=None, error: Exception | None = None):
        self.hits = hits or []
        self.error = error
        self.queries: list[str] = []

    async def search(self, request):
        self.queries.append(request.query)
        if self.error is not None:
            raise self.error
        return list(self.hits)

    async def health_check(self):
        return {"status": "healthy"}


def _llm(reply: str | None = None, *, error: Exception | None = None):
    fake = MagicMock()
    if error is not None:
        fake.completions.complete = AsyncMock(side_effect=error)
    else:
        fake.completions.complete = AsyncMock(return_value=SimpleNamespace(text=reply))
    return fake


async def _no_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


def _pipeline(search_client, *, planner_reply=None, analysis_reply=None) -> MarketIntelligencePipeline:
    planner = SearchPlanner(model="test/model")
    planner.client = (
        _llm(planner_reply) if planner_reply is not None else _llm(error=RuntimeError("llm down"))
    )
    synthesizer = TrendSynthesizer(model="test/model")
    synthesizer.client = (
        _llm(analysis_reply) if analysis_reply is not None else _llm(error=RuntimeError("llm down"))
    )
    gatherer = DataGatherer(
        search_client,
        primary_delay_ms=0,
        secondary_delay_ms=0,
        excluded_domains=[],
        sleep=_no_sleep,
    )
    return MarketIntelligencePipeline(planner=planner, gatherer=gatherer, synthesizer=synthesizer)


@pytest.mark.asyncio
async def test_run_completes_with_llm_replies():
    search = StaticSearchClient(HITS)
    pipeline = _pipeline(
        search,
        planner_reply='{"primaryTerms": ["grid batteries"], "secondaryTerms": ["battery makers"]}',
        analysis_reply='{"keyTrends": ["Storage scales"], "summary": "Storage is growing."}',
    )
    events = []

    output = await pipeline.run("grid batteries", run_id="run-1", on_event=events.append)

    assert output.run_id == "run-1"
    assert output.planning_degraded is False
    assert output.analysis_degraded is False
    assert search.queries == ["grid batteries", "battery makers"]
    assert [r.url for r in output.results] == [h.url for h in HITS]
    assert output.corpus.total_sources == 3
    assert output.analysis.key_trends == ["Storage scales"]
    assert output.analysis.analysis_metadata.sources_analyzed == 3
    assert set(output.durations_ms) == {
        "planning_search",
        "gathering_data",
        "processing_data",
        "analyzing_trends",
    }

    names = [e.event.value for e in events]
    assert names[0] == "run_started"
    assert names[-1] == "run_completed"
    assert names.count("stage_started") == 4
    assert names.count("stage_completed") == 4
    assert names.index("plan_created") < names.index("search_result")
    assert events[-1].data["data_confidence"] in {c.value for c in DataConfidence}


@pytest.mark.asyncio
async def test_run_degrades_when_llm_is_unavailable():
    search = StaticSearchClient(HITS)
    pipeline = _pipeline(search)

    output = await pipeline.run("grid batteries")

    assert output.planning_degraded is True
    assert output.analysis_degraded is True
    assert len(search.queries) == 7
    assert output.analysis.key_trends[0] == "Increased market activity around grid batteries"
    assert output.to_dict()["processedData"]["totalSources"] == 3


@pytest.mark.asyncio
async def test_run_accepts_async_event_callback():
    pipeline = _pipeline(StaticSearchClient(HITS))
    seen = []

    async def on_event(event):
        seen.append(event.event.value)

    await pipeline.run("grid batteries", on_event=on_event)

    assert seen[-1] == "run_completed"


@pytest.mark.asyncio
async def test_search_outage_propagates_and_emits_error():
    search = StaticSearchClient(error=SearchServiceError("forbidden", status_code=403))
    pipeline = _pipeline(search)
    events = []

    with pytest.raises(ServiceUnavailableError):
        await pipeline.run("grid batteries", on_event=events.append)

    assert events[-1].event.value == "error"
    assert "unavailable" in events[-1].data["message"]


@pytest.mark.asyncio
async def test_timeout_surfaces_as_cancellation():
    pipeline = _pipeline(StaticSearchClient(HITS))

    async def slow_complete(*args, **kwargs):
        await asyncio.sleep(10)

    pipeline.planner.client.completions.complete = slow_complete
    events = []

    with pytest.raises(PipelineCancelledError):
        await pipeline.run("grid batteries", timeout=0.05, on_event=events.append)

    assert events[-1].event.value == "error"


@pytest.mark.asyncio
async def test_health_check_aggregates_components():
    pipeline = _pipeline(StaticSearchClient(HITS))

    health = await pipeline.health_check()

    assert health["status"] == "healthy"
    assert health["search"]["status"] == "healthy"
    assert health["analyzer"]["can_process"] is True
