from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable
from uuid import uuid4

from marketlens.config import settings
from marketlens.errors import MarketLensError, PipelineCancelledError
from marketlens.models.analysis import AnalysisOutcome, AnalysisResult
from marketlens.models.corpus import ProcessedCorpus
from marketlens.models.events import PipelineEvent
from marketlens.models.results import RawResult
from marketlens.models.strategy import PlanOutcome, SearchStrategy
from marketlens.pipeline import analyzer
from marketlens.pipeline.gatherer import DataGatherer, GatherReport
from marketlens.pipeline.planner import SearchPlanner
from marketlens.pipeline.synthesizer import TrendSynthesizer
from marketlens.services import logger as log_service
from marketlens.services import streaming
from marketlens.tools.search_provider import SearchClient, get_search_client

EventCallback = Callable[[PipelineEvent], Any]


@dataclass(frozen=True, slots=True)
class PipelineState:
    """Immutable record threaded through the stages; each stage returns a new one."""

    run_id: str
    query: str
    plan: PlanOutcome | None = None
    report: GatherReport | None = None
    corpus: ProcessedCorpus | None = None
    outcome: AnalysisOutcome | None = None
    durations_ms: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PipelineOutput:
    run_id: str
    query: str
    strategy: SearchStrategy
    results: tuple[RawResult, ...]
    corpus: ProcessedCorpus
    analysis: AnalysisResult
    planning_degraded: bool
    analysis_degraded: bool
    failed_terms: tuple[str, ...] = ()
    durations_ms: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "query": self.query,
            "strategy": self.strategy.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "processedData": self.corpus.to_dict(),
            "analysis": self.analysis.to_dict(),
            "planningDegraded": self.planning_degraded,
            "analysisDegraded": self.analysis_degraded,
            "failedTerms": list(self.failed_terms),
            "durationsMs": dict(self.durations_ms),
        }


class MarketIntelligencePipeline:
    """Runs query -> plan -> gather -> process -> synthesize for one query.

    Flow:
      1. Plan search terms via LLM (deterministic fallback on failure)
      2. Fan out: search every term, dedupe and rank the hits
      3. Aggregate the hits into a processed corpus
      4. Synthesize trends via LLM (template fallback on failure)

    Progress is reported through an optional ``on_event`` callback.
    """

    def __init__(
        self,
        *,
        planner: SearchPlanner | None = None,
        gatherer: DataGatherer | None = None,
        search_client: SearchClient | None = None,
        synthesizer: TrendSynthesizer | None = None,
        analyze: Callable[[list[RawResult]], ProcessedCorpus] = analyzer.analyze_corpus,
    ):
        self.planner = planner or SearchPlanner()
        if gatherer is None:
            self.search_client = search_client or get_search_client()
            self.gatherer = DataGatherer(self.search_client)
        else:
            self.search_client = gatherer.search_client
            self.gatherer = gatherer
        self.synthesizer = synthesizer or TrendSynthesizer()
        self.analyze = analyze

    async def run(
        self,
        query: str,
        *,
        run_id: str | None = None,
        timeout: float | None = None,
        on_event: EventCallback | None = None,
    ) -> PipelineOutput:
        """Run the whole pipeline; raises ``PipelineCancelledError`` on timeout."""
        state = PipelineState(run_id=run_id or str(uuid4()), query=query)
        limit = settings.pipeline_timeout_seconds if timeout is None else timeout
        stages: tuple[tuple[str, Callable[[PipelineState], Awaitable[PipelineState]]], ...] = (
            ("planning_search", self._plan),
            ("gathering_data", self._gather),
            ("processing_data", self._process),
            ("analyzing_trends", self._synthesize),
        )

        log_service.log_pipeline_step(state.run_id, "run", "started", {"query": query})
        await self._emit(on_event, streaming.run_started(state.run_id, query))

        try:
            async with asyncio.timeout(limit if limit and limit > 0 else None):
                for stage, step in stages:
                    state = await self._run_stage(stage, step, state, on_event)
        except TimeoutError as e:
            message = f"Pipeline run timed out after {limit}s"
            log_service.log_pipeline_step(state.run_id, "run", "failed", {"error": message})
            await self._emit(on_event, streaming.error(message, run_id=state.run_id))
            raise PipelineCancelledError(message) from e
        except MarketLensError as e:
            log_service.log_pipeline_step(
                state.run_id, "run", "failed", {"error": str(e), "type": type(e).__name__}
            )
            await self._emit(on_event, streaming.error(str(e), run_id=state.run_id))
            raise

        output = PipelineOutput(
            run_id=state.run_id,
            query=query,
            strategy=state.plan.strategy,
            results=tuple(state.report.results),
            corpus=state.corpus,
            analysis=state.outcome.analysis,
            planning_degraded=state.plan.degraded,
            analysis_degraded=state.outcome.degraded,
            failed_terms=tuple(state.report.failed_terms),
            durations_ms=dict(state.durations_ms),
        )
        log_service.log_pipeline_step(
            state.run_id,
            "run",
            "completed",
            {"total_sources": output.corpus.total_sources, "durations_ms": output.durations_ms},
        )
        await self._emit(
            on_event,
            streaming.run_completed(
                state.run_id,
                total_sources=output.corpus.total_sources,
                data_confidence=output.analysis.data_confidence.value,
                planning_degraded=output.planning_degraded,
                analysis_degraded=output.analysis_degraded,
            ),
        )
        return output

    async def _run_stage(
        self,
        stage: str,
        step: Callable[[PipelineState], Awaitable[PipelineState]],
        state: PipelineState,
        on_event: EventCallback | None,
    ) -> PipelineState:
        log_service.log_pipeline_step(state.run_id, stage, "started")
        await self._emit(on_event, streaming.stage_started(state.run_id, stage))

        t0 = time.monotonic()
        state = await step(state)
        duration_ms = int((time.monotonic() - t0) * 1000)
        state = replace(state, durations_ms={**state.durations_ms, stage: duration_ms})

        log_service.log_pipeline_step(state.run_id, stage, "completed", {"duration_ms": duration_ms})
        await self._emit(on_event, streaming.stage_completed(state.run_id, stage, duration_ms))

        if stage == "planning_search":
            await self._emit(on_event, streaming.plan_created(state.run_id, state.plan))
        elif stage == "gathering_data":
            await self._emit(
                on_event,
                streaming.search_result(
                    state.run_id,
                    total_results=len(state.report.results),
                    unique_domains=len({r.domain for r in state.report.results}),
                    failed_terms=list(state.report.failed_terms),
                ),
            )
        return state

    async def _plan(self, state: PipelineState) -> PipelineState:
        return replace(state, plan=await self.planner.plan(state.query))

    async def _gather(self, state: PipelineState) -> PipelineState:
        return replace(state, report=await self.gatherer.gather(state.plan.strategy))

    async def _process(self, state: PipelineState) -> PipelineState:
        return replace(state, corpus=self.analyze(state.report.results))

    async def _synthesize(self, state: PipelineState) -> PipelineState:
        outcome = await self.synthesizer.synthesize(state.corpus, state.query)
        return replace(state, outcome=outcome)

    @staticmethod
    async def _emit(on_event: EventCallback | None, event: PipelineEvent) -> None:
        if on_event is None:
            return
        result = on_event(event)
        if inspect.isawaitable(result):
            await result

    async def health_check(self) -> dict[str, Any]:
        search = await self.search_client.health_check()
        processing = analyzer.health_check()
        healthy = search.get("status") == "healthy" and processing.get("status") == "healthy"
        return {
            "status": "healthy" if healthy else "degraded",
            "search": search,
            "analyzer": processing,
        }
