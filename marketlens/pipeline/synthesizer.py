from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from marketlens.config import settings
from marketlens.errors import LLMResponseError
from marketlens.llm_client import client as llm_client, get_model
from marketlens.models.analysis import (
    AnalysisMetadata,
    AnalysisOutcome,
    AnalysisResult,
    DataConfidence,
    FallbackAnalysis,
    ParsedAnalysis,
)
from marketlens.models.corpus import ProcessedCorpus
from marketlens.services import logger as log_service
from marketlens.services.response_parser import extract_json_object

HIGH_CONFIDENCE_POINTS = 75
MEDIUM_CONFIDENCE_POINTS = 45

PROMPT_TOP_CONTENT = 10
PROMPT_TOP_DOMAINS = 8
PROMPT_TOP_CLUSTERS = 6

_RESPONSE_SCHEMA = """{
  "keyTrends": ["specific trend 1", "specific trend 2", "specific trend 3", "specific trend 4", "specific trend 5"],
  "marketOpportunities": ["actionable opportunity 1", "actionable opportunity 2", "actionable opportunity 3"],
  "competitiveLandscape": {
    "majorPlayers": ["identified company 1", "identified company 2", "identified company 3"],
    "marketPosition": "detailed current market state description",
    "competitiveAdvantages": ["advantage 1", "advantage 2"],
    "marketConcentration": "high|medium|low"
  },
  "insights": ["data-driven insight 1", "data-driven insight 2", "data-driven insight 3"],
  "recommendations": ["strategic recommendation 1", "strategic recommendation 2", "strategic recommendation 3"],
  "riskFactors": ["specific risk 1", "specific risk 2", "specific risk 3"],
  "marketDynamics": {
    "growthDrivers": ["driver 1", "driver 2", "driver 3"],
    "challenges": ["challenge 1", "challenge 2"],
    "disruptiveForces": ["disruption 1", "disruption 2"]
  },
  "financialIndicators": {
    "marketSize": "size estimate if available",
    "growthRate": "growth rate if discernible",
    "investmentActivity": "investment level assessment"
  },
  "technologicalFactors": ["tech factor 1", "tech factor 2"],
  "regulatoryEnvironment": "regulatory assessment",
  "futureOutlook": "12-24 month outlook",
  "dataConfidence": "high|medium|low",
  "keyQuestions": ["strategic question 1", "strategic question 2"],
  "summary": "executive summary (3-4 sentences)"
}"""


def build_analysis_prompt(corpus: ProcessedCorpus, query: str) -> str:
    quality = corpus.quality_metrics
    timeline = corpus.time_distribution

    top_content = "\n".join(
        f"{i}. {item.title} (Score: {item.score}, Domain: {item.domain})"
        for i, item in enumerate(corpus.content_summary[:PROMPT_TOP_CONTENT], start=1)
    )
    top_domains = "\n".join(
        f"{domain}: {stats.count} sources ({stats.type}, credibility: {stats.credibility})"
        for domain, stats in list(corpus.domain_distribution.items())[:PROMPT_TOP_DOMAINS]
    )
    top_clusters = "\n".join(
        f"{topic}: {cluster.count} mentions (avg score: {cluster.avg_score})"
        for topic, cluster in list(corpus.topic_clusters.items())[:PROMPT_TOP_CLUSTERS]
    )

    return (
        f'Conduct a comprehensive market intelligence analysis for: "{query}"\n\n'
        "=== DATA OVERVIEW ===\n"
        f"Total Sources: {corpus.total_sources}\n"
        "Quality Metrics:\n"
        f"- Average Relevance: {quality.average_relevance_score}\n"
        f"- High Quality Sources: {quality.score_distribution.high}\n"
        f"- Source Reliability: {quality.source_reliability}\n"
        f"- Recent Sources (90 days): {quality.recent_sources}\n\n"
        "=== TOP CONTENT ANALYSIS ===\n"
        f"{top_content or 'No content available'}\n\n"
        "=== SOURCE DISTRIBUTION ===\n"
        f"{top_domains or 'No sources available'}\n\n"
        "=== TOPIC CLUSTERS ===\n"
        f"{top_clusters or 'No recurring topics'}\n\n"
        "=== TEMPORAL ANALYSIS ===\n"
        f"Recent: {timeline.last_week} (week), {timeline.last_month} (month)\n"
        f"Historical: {timeline.last_quarter} (quarter), {timeline.last_year} (year)\n\n"
        "=== SENTIMENT OVERVIEW ===\n"
        f"Overall: {corpus.sentiment.overall_sentiment}\n"
        f"Distribution: {json.dumps(corpus.sentiment.distribution)}\n\n"
        "Generate a comprehensive market analysis in JSON format:\n"
        f"{_RESPONSE_SCHEMA}\n\n"
        "Base all analysis on the provided data. Make insights specific and actionable "
        "for business decision-making.\n"
        "Return only valid JSON."
    )


def compute_confidence_score(corpus: ProcessedCorpus) -> float:
    """Points out of 100 across quantity, quality, reliability, recency and diversity."""
    quality = corpus.quality_metrics
    total = corpus.total_sources
    recent_ratio = quality.recent_sources / total if total else 0.0

    score = min(total * 1.5, 25)
    score += quality.average_relevance_score * 25
    score += quality.source_reliability * 20
    score += recent_ratio * 15
    score += min(len(corpus.domain_distribution) * 2, 15)
    return score


def data_confidence(corpus: ProcessedCorpus) -> DataConfidence:
    score = compute_confidence_score(corpus)
    if score >= HIGH_CONFIDENCE_POINTS:
        return DataConfidence.HIGH
    if score >= MEDIUM_CONFIDENCE_POINTS:
        return DataConfidence.MEDIUM
    return DataConfidence.LOW


def recency_score(corpus: ProcessedCorpus) -> float:
    if not corpus.total_sources:
        return 0.0
    timeline = corpus.time_distribution
    weighted = (
        4 * timeline.last_week
        + 3 * timeline.last_month
        + 2 * timeline.last_quarter
        + 1 * timeline.last_year
    )
    return min(weighted / corpus.total_sources, 4.0)


def diversity_score(corpus: ProcessedCorpus) -> float:
    types = {stats.type for stats in corpus.domain_distribution.values()}
    return min(len(types) * 0.4 + len(corpus.domain_distribution) * 0.1, 5.0)


def confidence_factors(corpus: ProcessedCorpus) -> dict[str, str]:
    quality = corpus.quality_metrics
    return {
        "sourceQuantity": "sufficient" if corpus.total_sources > 10 else "limited",
        "sourceQuality": "high" if quality.average_relevance_score > 0.6 else "moderate",
        "sourceRecency": "current" if quality.recent_sources > 5 else "dated",
        "sourceDiversity": "diverse" if len(corpus.domain_distribution) > 5 else "limited",
    }


def build_metadata(corpus: ProcessedCorpus) -> AnalysisMetadata:
    return AnalysisMetadata(
        sources_analyzed=corpus.total_sources,
        quality_score=corpus.quality_metrics.average_relevance_score,
        reliability_score=corpus.quality_metrics.source_reliability,
        recency_score=round(recency_score(corpus), 2),
        diversity_score=round(diversity_score(corpus), 2),
        sentiment_score=corpus.sentiment.average_score,
        confidence_score=round(compute_confidence_score(corpus), 2),
        confidence_factors=confidence_factors(corpus),
        analysis_timestamp=datetime.now(timezone.utc).isoformat(),
    )


def enrich_analysis(raw: dict[str, Any], corpus: ProcessedCorpus) -> AnalysisResult:
    """Validate the model output and overwrite the computed fields.

    Whatever confidence the model claims is discarded; ``dataConfidence`` and
    ``analysisMetadata`` always come from the corpus statistics.
    """
    return AnalysisResult.model_validate(
        {
            **raw,
            "dataConfidence": data_confidence(corpus),
            "analysisMetadata": build_metadata(corpus),
        }
    )


def fallback_analysis(query: str, corpus: ProcessedCorpus) -> AnalysisResult:
    """Template analysis built from corpus statistics alone."""
    confidence = data_confidence(corpus).value
    quality = corpus.quality_metrics
    total = corpus.total_sources

    return AnalysisResult(
        key_trends=[
            f"Increased market activity around {query}",
            "Growing digital presence and online engagement",
            "Rising information availability and coverage",
            "Active stakeholder participation in market discussions",
        ],
        market_opportunities=[
            "Market education and awareness building",
            "Digital strategy implementation",
            "Stakeholder engagement initiatives",
        ],
        competitive_landscape={
            "major_players": ["Market analysis needed for player identification"],
            "market_position": "Active market with multiple information sources indicating engagement",
            "competitive_advantages": ["First-mover potential", "Information accessibility"],
            "market_concentration": "medium",
        },
        insights=[
            f"Analysis covers {total} sources with {confidence} confidence",
            f"Source reliability average: {quality.source_reliability}",
            f"{quality.recent_sources} recent sources provide current market view",
            f"{len(corpus.domain_distribution)} different domains analyzed",
            f"Overall sentiment: {corpus.sentiment.overall_sentiment}",
        ],
        recommendations=[
            "Conduct targeted competitive intelligence research",
            "Develop comprehensive market entry strategy",
            "Monitor emerging trends and market developments",
            "Build strategic partnerships with key stakeholders",
        ],
        risk_factors=[
            "Market volatility and uncertainty",
            "Competitive response from established players",
            "Regulatory and compliance considerations",
        ],
        market_dynamics={
            "growth_drivers": [
                "Technology advancement",
                "Market demand evolution",
                "Digital transformation",
            ],
            "challenges": ["Market saturation risks", "Resource allocation requirements"],
            "disruptive_forces": ["Technology disruption", "Changing consumer behavior"],
        },
        financial_indicators={
            "market_size": "Requires additional financial analysis",
            "growth_rate": "Growth patterns observable in data sources",
            "investment_activity": "Active information flow suggests market interest",
        },
        technological_factors=["Digital innovation impact", "Automation considerations"],
        regulatory_environment="Standard regulatory framework applicable",
        future_outlook=(
            f"Market shows activity indicators with {confidence} confidence level "
            f"based on {total} analyzed sources"
        ),
        key_questions=[
            "What are the specific competitive advantages in this market?",
            "How can market entry timing be optimized?",
        ],
        summary=(
            f"Comprehensive analysis of {query} reveals market activity with {confidence} "
            f"data confidence. Analysis of {total} sources indicates opportunities "
            "alongside standard market considerations."
        ),
        data_confidence=confidence,
        analysis_metadata=build_metadata(corpus),
    )


class TrendSynthesizer:
    """Turns a processed corpus into an ``AnalysisResult`` via the language model."""

    name = "synthesizer"

    def __init__(
        self,
        model: str | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        analysis_override = (settings.analysis_model or "").strip()
        self.model = model or analysis_override or get_model()
        self.temperature = settings.analysis_temperature if temperature is None else temperature
        self.max_tokens = settings.analysis_max_tokens if max_tokens is None else max_tokens
        self.client = None

    async def synthesize(self, corpus: ProcessedCorpus, query: str) -> AnalysisOutcome:
        log_service.logger.info("Starting market trend analysis")
        active_client = self.client or llm_client()

        try:
            response = await active_client.completions.complete(
                build_analysis_prompt(corpus, query),
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                caller=self.name,
            )
            raw = extract_json_object(response.text)
            analysis = enrich_analysis(raw, corpus)
        except LLMResponseError as e:
            return self._degrade(query, corpus, f"unparseable analysis: {e}")
        except Exception as e:
            return self._degrade(query, corpus, f"analysis call failed: {e}")

        log_service.logger.info(
            f"Market trend analysis completed: {len(analysis.key_trends)} trends, "
            f"{len(analysis.insights)} insights, confidence {analysis.data_confidence.value}"
        )
        return ParsedAnalysis(analysis=analysis)

    @staticmethod
    def _degrade(query: str, corpus: ProcessedCorpus, reason: str) -> FallbackAnalysis:
        log_service.log_event(
            event_type="analysis_degraded",
            message="Trend synthesis fell back to template analysis",
            level="WARNING",
            reason=reason,
        )
        return FallbackAnalysis(analysis=fallback_analysis(query, corpus), reason=reason)
