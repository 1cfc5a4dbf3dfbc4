from __future__ import annotations

from typing import Any

from marketlens.models.events import EventType, PipelineEvent
from marketlens.models.strategy import PlanOutcome

PIPELINE_STAGES = ("planning_search", "gathering_data", "processing_data", "analyzing_trends")


def _progress(stage: str) -> dict[str, int]:
    current = PIPELINE_STAGES.index(stage) + 1 if stage in PIPELINE_STAGES else 0
    total = len(PIPELINE_STAGES)
    return {"current": current, "total": total, "percentage": round(current / total * 100)}


def run_started(run_id: str, query: str) -> PipelineEvent:
    return PipelineEvent(event=EventType.RUN_STARTED, data={"run_id": run_id, "query": query})


def stage_started(run_id: str, stage: str) -> PipelineEvent:
    return PipelineEvent(
        event=EventType.STAGE_STARTED,
        data={"run_id": run_id, "stage": stage, "progress": _progress(stage)},
    )


def stage_completed(run_id: str, stage: str, duration_ms: int, **kwargs: Any) -> PipelineEvent:
    return PipelineEvent(
        event=EventType.STAGE_COMPLETED,
        data={
            "run_id": run_id,
            "stage": stage,
            "duration_ms": duration_ms,
            "progress": _progress(stage),
            **kwargs,
        },
    )


def plan_created(run_id: str, outcome: PlanOutcome) -> PipelineEvent:
    """Emit the strategy chosen for the run, flagging the deterministic fallback."""
    return PipelineEvent(
        event=EventType.PLAN_CREATED,
        data={
            "run_id": run_id,
            "strategy": outcome.strategy.to_dict(),
            "degraded": outcome.degraded,
            "reason": getattr(outcome, "reason", None),
        },
    )


def search_result(
    run_id: str,
    total_results: int,
    unique_domains: int,
    failed_terms: list[str],
) -> PipelineEvent:
    return PipelineEvent(
        event=EventType.SEARCH_RESULT,
        data={
            "run_id": run_id,
            "total_results": total_results,
            "unique_domains": unique_domains,
            "failed_terms": failed_terms,
        },
    )


def run_completed(run_id: str, **kwargs: Any) -> PipelineEvent:
    return PipelineEvent(event=EventType.RUN_COMPLETED, data={"run_id": run_id, **kwargs})


def error(message: str, **kwargs: Any) -> PipelineEvent:
    return PipelineEvent(event=EventType.ERROR, data={"message": message, **kwargs})
