from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class DomainProfile:
    type: str
    credibility: float


@dataclass(frozen=True, slots=True)
class DomainStats:
    count: int
    avg_score: float
    type: str
    credibility: float
    total_score: float


@dataclass(frozen=True, slots=True)
class ScoreDistribution:
    high: int = 0
    medium: int = 0
    low: int = 0
    unknown: int = 0

    @property
    def total(self) -> int:
        return self.high + self.medium + self.low + self.unknown


@dataclass(frozen=True, slots=True)
class QualityMetrics:
    average_relevance_score: float = 0.0
    score_distribution: ScoreDistribution = field(default_factory=ScoreDistribution)
    total_sources: int = 0
    sources_with_content: int = 0
    recent_sources: int = 0
    very_recent_sources: int = 0
    sources_with_dates: int = 0
    duplicate_urls: int = 0
    average_content_length: int = 0
    source_reliability: float = 0.0


@dataclass(frozen=True, slots=True)
class TimeDistribution:
    last_week: int = 0
    last_month: int = 0
    last_quarter: int = 0
    last_year: int = 0
    older: int = 0
    unknown: int = 0


@dataclass(frozen=True, slots=True)
class TopicCluster:
    count: int
    avg_score: float
    relevance_weight: float


@dataclass(frozen=True, slots=True)
class Sentiment:
    label: str
    score: float


@dataclass(frozen=True, slots=True)
class SentimentSummary:
    distribution: dict[str, int] = field(
        default_factory=lambda: {"positive": 0, "neutral": 0, "negative": 0}
    )
    average_score: float = 0.0
    overall_sentiment: str = "neutral"


@dataclass(frozen=True, slots=True)
class EntityMentions:
    companies: tuple[str, ...] = ()
    technologies: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class KeyContent:
    rank: int
    title: str
    snippet: str
    url: str
    score: float
    domain: str
    search_term: str
    search_type: str
    key_phrases: tuple[str, ...]
    sentiment: Sentiment
    entity_mentions: EntityMentions
    published_date: datetime | None = None


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            (_camel(k) if isinstance(k, str) and "_" in k and k.islower() else k): _camelize(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_camelize(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass(frozen=True, slots=True)
class ProcessedCorpus:
    """Aggregated view of the gathered results, built once per run."""

    total_sources: int = 0
    primary_sources: int = 0
    secondary_sources: int = 0
    domain_distribution: dict[str, DomainStats] = field(default_factory=dict)
    quality_metrics: QualityMetrics = field(default_factory=QualityMetrics)
    time_distribution: TimeDistribution = field(default_factory=TimeDistribution)
    content_summary: tuple[KeyContent, ...] = ()
    topic_clusters: dict[str, TopicCluster] = field(default_factory=dict)
    sentiment: SentimentSummary = field(default_factory=SentimentSummary)
    source_types: dict[str, int] = field(default_factory=dict)
    keyword_analysis: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Camel-cased, JSON-friendly view for the persistence/report layer."""
        data = asdict(self)
        # Domain and keyword keys are data, not field names.
        domains = {d: _camelize(stats) for d, stats in data.pop("domain_distribution").items()}
        clusters = {k: _camelize(c) for k, c in data.pop("topic_clusters").items()}
        source_types = data.pop("source_types")
        keywords = data.pop("keyword_analysis")
        sentiment_distribution = data["sentiment"].pop("distribution")
        out = _camelize(data)
        out["sentiment"]["distribution"] = sentiment_distribution
        out["domainDistribution"] = domains
        out["topicClusters"] = clusters
        out["sourceTypes"] = source_types
        out["keywordAnalysis"] = keywords
        return out
