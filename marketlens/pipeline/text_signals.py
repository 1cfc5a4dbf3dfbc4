"""Lexicon-based text signals: snippets, key phrases, entities, sentiment."""
from __future__ import annotations

import re
from collections import Counter

from marketlens.models.corpus import EntityMentions, Sentiment

STOP_WORDS = frozenset(
    {
        "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
        "by", "from", "as", "is", "was", "are", "were", "be", "been", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "must", "can", "this", "that", "these", "those", "a", "an",
    }
)

BUSINESS_KEYWORDS = (
    "market", "growth", "revenue", "profit", "investment", "strategy",
    "competitive", "industry", "trends", "analysis", "forecast",
    "opportunity", "risk", "innovation", "technology", "digital",
    "transformation", "automation", "efficiency", "optimization",
)

POSITIVE_WORDS = frozenset(
    {
        "growth", "increase", "positive", "strong", "excellent", "success",
        "opportunity", "benefit", "advantage", "improvement", "rise", "gain",
    }
)

NEGATIVE_WORDS = frozenset(
    {
        "decline", "decrease", "negative", "weak", "poor", "failure",
        "risk", "threat", "disadvantage", "problem", "fall", "loss",
    }
)

TECH_KEYWORDS = (
    "AI", "artificial intelligence", "machine learning", "blockchain",
    "cryptocurrency", "cloud computing", "IoT", "internet of things",
    "big data", "analytics", "automation", "5G", "cybersecurity",
)

_COMPANY_SUFFIX = re.compile(r"([A-Z][a-z]+ ?(?:[A-Z][a-z]*)*) (?:Inc|Corp|LLC|Ltd|Co)\b")
_ACRONYM = re.compile(r"\b([A-Z]{2,})\b")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")

MAX_KEY_PHRASES = 8
MAX_COMPANY_MENTIONS = 10
TEXT_SENTIMENT_THRESHOLD = 0.1
OVERALL_SENTIMENT_THRESHOLD = 0.2


def is_stop_word(word: str) -> bool:
    return word.lower() in STOP_WORDS


def smart_snippet(content: str, max_length: int = 250) -> str:
    """Cut ``content`` at sentence boundaries so the snippet fits ``max_length``."""
    if not content or len(content) <= max_length:
        return content or ""

    snippet = ""
    for sentence in _SENTENCE_SPLIT.split(content):
        sentence = sentence.strip()
        if not sentence:
            continue
        if len(snippet) + len(sentence) + 2 > max_length - 3:
            break
        snippet += sentence + ". "

    snippet = snippet.strip()
    if not snippet:
        # First sentence alone is too long; fall back to a hard cut.
        snippet = content[: max_length - 3].rstrip()
    return snippet + "..."


def extract_key_phrases(content: str, limit: int = MAX_KEY_PHRASES) -> list[str]:
    """Two- and three-word phrases repeated at least twice among content words."""
    if not content:
        return []
    cleaned = re.sub(r"[^\w\s]", " ", content.lower())
    words = [w for w in cleaned.split() if len(w) > 3 and not is_stop_word(w)]

    phrases: Counter[str] = Counter()
    for i in range(len(words) - 1):
        phrases[f"{words[i]} {words[i + 1]}"] += 1
        if i < len(words) - 2:
            phrases[f"{words[i]} {words[i + 1]} {words[i + 2]}"] += 1

    repeated = [(phrase, count) for phrase, count in phrases.items() if count > 1]
    repeated.sort(key=lambda item: item[1], reverse=True)
    return [phrase for phrase, _ in repeated[:limit]]


def extract_entities(content: str) -> EntityMentions:
    """Best-effort company and technology mentions."""
    if not content:
        return EntityMentions()

    companies: list[str] = []
    for pattern in (_COMPANY_SUFFIX, _ACRONYM):
        for match in pattern.finditer(content):
            name = match.group(1)
            if name and len(name) > 1 and name not in companies:
                companies.append(name)

    lowered = content.lower()
    technologies = [kw for kw in TECH_KEYWORDS if kw.lower() in lowered]
    return EntityMentions(
        companies=tuple(companies[:MAX_COMPANY_MENTIONS]),
        technologies=tuple(technologies),
    )


def text_sentiment(text: str) -> Sentiment:
    """Polarity from the keyword lexicon, normalized by token count."""
    if not text:
        return Sentiment(label="neutral", score=0.0)

    words = re.split(r"\W+", text.lower())
    raw = sum(1 for w in words if w in POSITIVE_WORDS) - sum(1 for w in words if w in NEGATIVE_WORDS)
    score = max(-1.0, min(1.0, raw / len(words) * 100))

    if score > TEXT_SENTIMENT_THRESHOLD:
        label = "positive"
    elif score < -TEXT_SENTIMENT_THRESHOLD:
        label = "negative"
    else:
        label = "neutral"
    return Sentiment(label=label, score=score)


def overall_sentiment(average_score: float) -> str:
    if average_score > OVERALL_SENTIMENT_THRESHOLD:
        return "positive"
    if average_score < -OVERALL_SENTIMENT_THRESHOLD:
        return "negative"
    return "neutral"


def business_keywords(text: str) -> list[str]:
    """Vocabulary keywords present in ``text`` (substring match, lowercase)."""
    lowered = text.lower()
    return [kw for kw in BUSINESS_KEYWORDS if kw in lowered]
