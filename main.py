"""MarketLens - Market Intelligence Pipeline

Simple CLI for running one market query.
"""

import argparse
import asyncio
import json
import sys

from marketlens.errors import MarketLensError
from marketlens.models.events import PipelineEvent
from marketlens.pipeline.orchestrator import MarketIntelligencePipeline
from marketlens.pipeline.planner import SearchPlanner
from marketlens.pipeline.synthesizer import TrendSynthesizer
from marketlens.services.admission import AdmissionController


def print_event(event: PipelineEvent) -> None:
    event_type = event.event.value
    data = event.data

    if event_type == "stage_started":
        progress = data.get("progress", {})
        print(f"\n[~] {data.get('stage')} ({progress.get('percentage')}%)...")

    elif event_type == "stage_completed":
        print(f"  [+] {data.get('stage')} done in {data.get('duration_ms')}ms")

    elif event_type == "plan_created":
        strategy = data.get("strategy", {})
        suffix = " (fallback)" if data.get("degraded") else ""
        print(f"\n[*] Search Strategy{suffix}:")
        for term in strategy.get("primaryTerms", []):
            print(f"  - {term}")
        for term in strategy.get("secondaryTerms", []):
            print(f"  . {term}")

    elif event_type == "search_result":
        print(
            f"  [+] {data.get('total_results')} results from "
            f"{data.get('unique_domains')} domains"
        )
        for term in data.get("failed_terms", []):
            print(f"  [!] failed: {term}")

    elif event_type == "run_completed":
        print(f"\n[*] Analysis Complete! Confidence: {data.get('data_confidence')}")

    elif event_type == "error":
        print(f"\n[!] Error: {data.get('message', 'Unknown error')}")


async def run_analysis(query: str, model: str | None = None) -> int:
    """Run the pipeline on the given query."""
    print(f"Market query: {query}")
    print("-" * 50)

    pipeline = MarketIntelligencePipeline(
        planner=SearchPlanner(model=model),
        synthesizer=TrendSynthesizer(model=model),
    )
    admission = AdmissionController()

    try:
        async with admission.admit(query):
            output = await pipeline.run(query, on_event=print_event)
    except MarketLensError as e:
        print(f"\n[!] {type(e).__name__}: {e}")
        return 1

    print(f"\n{'='*50}")
    print("ANALYSIS:")
    print(f"{'='*50}")
    print(json.dumps(output.analysis.to_dict(), indent=2))
    return 0


def main():
    parser = argparse.ArgumentParser(description="MarketLens Market Intelligence Pipeline")
    parser.add_argument("--query", "-q", required=True, help="Market query")
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")

    args = parser.parse_args()

    sys.exit(asyncio.run(run_analysis(args.query, args.model)))


if __name__ == "__main__":
    main()
