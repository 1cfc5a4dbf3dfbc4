from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

from marketlens.models.corpus import (
    DomainStats,
    KeyContent,
    ProcessedCorpus,
    QualityMetrics,
    ScoreDistribution,
    SentimentSummary,
    TimeDistribution,
    TopicCluster,
)
from marketlens.models.results import RawResult
from marketlens.models.strategy import SearchType
from marketlens.pipeline import text_signals
from marketlens.pipeline.domains import classify_domain
from marketlens.services import logger as log_service

MAX_DOMAINS = 15
MAX_KEY_CONTENT = 15
MAX_TOPIC_CLUSTERS = 12
MAX_KEYWORDS = 20
KEY_CONTENT_MIN_LENGTH = 100
SNIPPET_LENGTH = 250

WEEK = timedelta(days=7)
MONTH = timedelta(days=30)
QUARTER = timedelta(days=90)
YEAR = timedelta(days=365)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def recency_multiplier(published: datetime | None, now: datetime) -> float:
    if published is None:
        return 0.5
    age = now - published
    if age <= WEEK:
        return 1.2
    if age <= MONTH:
        return 1.1
    if age <= QUARTER:
        return 1.0
    if age <= YEAR:
        return 0.9
    return 0.7


def group_by_domain(results: Sequence[RawResult]) -> dict[str, DomainStats]:
    """Per-domain stats, keeping the top domains by avg relevance x credibility x count."""
    groups: dict[str, list[RawResult]] = defaultdict(list)
    for item in results:
        groups[item.domain or "unknown"].append(item)

    stats: dict[str, DomainStats] = {}
    for domain, items in groups.items():
        profile = classify_domain(domain)
        scores = [r.relevance_score for r in items if r.relevance_score is not None]
        avg = _mean(scores)
        stats[domain] = DomainStats(
            count=len(items),
            avg_score=round(avg, 4),
            type=profile.type,
            credibility=profile.credibility,
            total_score=avg * len(items) * profile.credibility,
        )

    ranked = sorted(stats.items(), key=lambda kv: kv[1].total_score, reverse=True)
    return dict(ranked[:MAX_DOMAINS])


def score_distribution(results: Sequence[RawResult]) -> ScoreDistribution:
    high = medium = low = unknown = 0
    for item in results:
        score = item.relevance_score
        if score is None:
            unknown += 1
        elif score > 0.7:
            high += 1
        elif score >= 0.4:
            medium += 1
        else:
            low += 1
    return ScoreDistribution(high=high, medium=medium, low=low, unknown=unknown)


def _count_since(results: Sequence[RawResult], window: timedelta, now: datetime) -> int:
    cutoff = now - window
    return sum(1 for r in results if r.published_date is not None and r.published_date > cutoff)


def source_reliability(results: Sequence[RawResult]) -> float:
    if not results:
        return 0.0
    return round(_mean([classify_domain(r.domain).credibility for r in results]), 2)


def quality_metrics(results: Sequence[RawResult], now: datetime) -> QualityMetrics:
    scores = [r.relevance_score for r in results if r.relevance_score is not None]
    content_lengths = [len(r.content) for r in results if r.content]
    return QualityMetrics(
        average_relevance_score=round(_mean(scores), 2),
        score_distribution=score_distribution(results),
        total_sources=len(results),
        sources_with_content=sum(1 for r in results if r.content and len(r.content) > 50),
        recent_sources=_count_since(results, QUARTER, now),
        very_recent_sources=_count_since(results, MONTH, now),
        sources_with_dates=sum(1 for r in results if r.published_date is not None),
        duplicate_urls=len(results) - len({r.url for r in results}),
        average_content_length=round(_mean(content_lengths)) if content_lengths else 0,
        source_reliability=source_reliability(results),
    )


def time_distribution(results: Sequence[RawResult], now: datetime) -> TimeDistribution:
    buckets: Counter[str] = Counter()
    for item in results:
        if item.published_date is None:
            buckets["unknown"] += 1
            continue
        age = now - item.published_date
        if age <= WEEK:
            buckets["last_week"] += 1
        elif age <= MONTH:
            buckets["last_month"] += 1
        elif age <= QUARTER:
            buckets["last_quarter"] += 1
        elif age <= YEAR:
            buckets["last_year"] += 1
        else:
            buckets["older"] += 1
    return TimeDistribution(**buckets)


def extract_key_content(results: Sequence[RawResult], now: datetime) -> tuple[KeyContent, ...]:
    eligible = [r for r in results if r.content and len(r.content) > KEY_CONTENT_MIN_LENGTH]
    ranked = sorted(
        eligible,
        key=lambda r: (r.relevance_score or 0.0) * recency_multiplier(r.published_date, now),
        reverse=True,
    )
    return tuple(
        KeyContent(
            rank=index,
            title=item.title,
            snippet=text_signals.smart_snippet(item.content, SNIPPET_LENGTH),
            url=item.url,
            score=item.relevance_score or 0.0,
            domain=item.domain,
            search_term=item.search_term,
            search_type=item.search_type.value,
            key_phrases=tuple(text_signals.extract_key_phrases(item.content)),
            sentiment=text_signals.text_sentiment(item.content),
            entity_mentions=text_signals.extract_entities(item.content),
            published_date=item.published_date,
        )
        for index, item in enumerate(ranked[:MAX_KEY_CONTENT], start=1)
    )


def topic_clusters(results: Sequence[RawResult]) -> dict[str, TopicCluster]:
    members: dict[str, list[float]] = defaultdict(list)
    for item in results:
        for keyword in text_signals.business_keywords(f"{item.title} {item.content}"):
            members[keyword].append(item.relevance_score or 0.0)

    clusters = {
        keyword: TopicCluster(
            count=len(scores),
            avg_score=round(_mean(scores), 2),
            relevance_weight=_mean(scores) * len(scores),
        )
        for keyword, scores in members.items()
        if len(scores) > 1
    }
    ranked = sorted(clusters.items(), key=lambda kv: kv[1].relevance_weight, reverse=True)
    return dict(ranked[:MAX_TOPIC_CLUSTERS])


def sentiment_summary(results: Sequence[RawResult]) -> SentimentSummary:
    distribution = {"positive": 0, "neutral": 0, "negative": 0}
    total = 0.0
    for item in results:
        sentiment = text_signals.text_sentiment(item.content)
        distribution[sentiment.label] += 1
        total += sentiment.score
    average = total / len(results) if results else 0.0
    return SentimentSummary(
        distribution=distribution,
        average_score=average,
        overall_sentiment=text_signals.overall_sentiment(average),
    )


def source_types(results: Sequence[RawResult]) -> dict[str, int]:
    return dict(Counter(classify_domain(r.domain).type for r in results))


def keyword_analysis(results: Sequence[RawResult]) -> dict[str, int]:
    frequency: Counter[str] = Counter()
    for item in results:
        frequency.update(text_signals.business_keywords(f"{item.title} {item.content}"))
    return dict(frequency.most_common(MAX_KEYWORDS))


def analyze_corpus(
    results: Sequence[RawResult],
    *,
    now: datetime | None = None,
) -> ProcessedCorpus:
    """Build the processed corpus; an empty input yields an all-zero corpus."""
    now = now or datetime.now(timezone.utc)
    log_service.logger.info(f"Starting data processing: {len(results)} sources")

    corpus = ProcessedCorpus(
        total_sources=len(results),
        primary_sources=sum(1 for r in results if r.search_type == SearchType.PRIMARY),
        secondary_sources=sum(1 for r in results if r.search_type == SearchType.SECONDARY),
        domain_distribution=group_by_domain(results),
        quality_metrics=quality_metrics(results, now),
        time_distribution=time_distribution(results, now),
        content_summary=extract_key_content(results, now),
        topic_clusters=topic_clusters(results),
        sentiment=sentiment_summary(results),
        source_types=source_types(results),
        keyword_analysis=keyword_analysis(results),
    )

    log_service.logger.info(
        f"Data processing completed: {corpus.primary_sources} primary, "
        f"{corpus.secondary_sources} secondary, "
        f"avg quality {corpus.quality_metrics.average_relevance_score}"
    )
    return corpus


def health_check() -> dict[str, Any]:
    """Process a one-item synthetic corpus to prove the analyzer is usable."""
    sample = RawResult(
        title="Test Market Analysis",
        url="https://example.com/test",
        content="This is a test content for health check analysis of market growth.",
        score=0.8,
        domain="example.com",
        search_term="test",
        search_type=SearchType.PRIMARY,
        weight=1.0,
        relevance_score=0.8,
        published_date=datetime.now(timezone.utc),
    )
    try:
        corpus = analyze_corpus([sample])
    except Exception as e:
        return {"status": "unhealthy", "can_process": False, "error": str(e)}
    return {
        "status": "healthy",
        "can_process": True,
        "processed_sources": corpus.total_sources,
        "quality_score": corpus.quality_metrics.average_relevance_score,
    }
