from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DataConfidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    cleaned: list[str] = []
    for item in value:
        if isinstance(item, str) and item.strip():
            cleaned.append(" ".join(item.split()))
    return cleaned


def _string(value: Any) -> str:
    return " ".join(value.split()) if isinstance(value, str) else ""


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class CompetitiveLandscape(_Record):
    major_players: list[str] = Field(default_factory=list)
    market_position: str = ""
    competitive_advantages: list[str] = Field(default_factory=list)
    market_concentration: str = "medium"

    coerce_lists = field_validator("major_players", "competitive_advantages", mode="before")(
        _string_list
    )

    @field_validator("market_position", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return _string(value)

    @field_validator("market_concentration", mode="before")
    @classmethod
    def coerce_concentration(cls, value: Any) -> str:
        text = _string(value).lower()
        return text if text in ("high", "medium", "low") else "medium"


class MarketDynamics(_Record):
    growth_drivers: list[str] = Field(default_factory=list)
    challenges: list[str] = Field(default_factory=list)
    disruptive_forces: list[str] = Field(default_factory=list)

    coerce_lists = field_validator(
        "growth_drivers", "challenges", "disruptive_forces", mode="before"
    )(_string_list)


class FinancialIndicators(_Record):
    market_size: str = ""
    growth_rate: str = ""
    investment_activity: str = ""

    coerce_texts = field_validator(
        "market_size", "growth_rate", "investment_activity", mode="before"
    )(_string)


class AnalysisMetadata(_Record):
    sources_analyzed: int = 0
    quality_score: float = 0.0
    reliability_score: float = 0.0
    recency_score: float = 0.0
    diversity_score: float = 0.0
    sentiment_score: float = 0.0
    confidence_score: float = 0.0
    confidence_factors: dict[str, str] = Field(default_factory=dict)
    analysis_timestamp: str = ""


class AnalysisPayload(_Record):
    """Shape requested from the language model; every field is repaired on input."""

    key_trends: list[str] = Field(default_factory=list)
    market_opportunities: list[str] = Field(default_factory=list)
    competitive_landscape: CompetitiveLandscape = Field(default_factory=CompetitiveLandscape)
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    risk_factors: list[str] = Field(default_factory=list)
    market_dynamics: MarketDynamics = Field(default_factory=MarketDynamics)
    financial_indicators: FinancialIndicators = Field(default_factory=FinancialIndicators)
    technological_factors: list[str] = Field(default_factory=list)
    regulatory_environment: str = ""
    future_outlook: str = ""
    key_questions: list[str] = Field(default_factory=list)
    summary: str = ""

    coerce_lists = field_validator(
        "key_trends",
        "market_opportunities",
        "insights",
        "recommendations",
        "risk_factors",
        "technological_factors",
        "key_questions",
        mode="before",
    )(_string_list)

    coerce_texts = field_validator(
        "regulatory_environment", "future_outlook", "summary", mode="before"
    )(_string)

    @field_validator(
        "competitive_landscape", "market_dynamics", "financial_indicators", mode="before"
    )
    @classmethod
    def coerce_sections(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, BaseModel)) else {}


class AnalysisResult(AnalysisPayload):
    """Terminal artifact of the pipeline, handed to the report/export layer."""

    data_confidence: DataConfidence = DataConfidence.LOW
    analysis_metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True, slots=True)
class ParsedAnalysis:
    analysis: AnalysisResult
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class FallbackAnalysis:
    analysis: AnalysisResult
    reason: str
    degraded: bool = True


AnalysisOutcome = ParsedAnalysis | FallbackAnalysis
