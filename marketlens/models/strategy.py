from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MIN_EXPECTED_SOURCES = 1
MAX_EXPECTED_SOURCES = 25
MAX_PRIMARY_TERMS = 6
MAX_SECONDARY_TERMS = 4


class SearchDepth(StrEnum):
    BASIC = "basic"
    ADVANCED = "advanced"


class SearchType(StrEnum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class SearchStrategy(BaseModel):
    """Structured multi-term plan for one pipeline run."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    primary_terms: tuple[str, ...]
    secondary_terms: tuple[str, ...] = ()
    domains: frozenset[str] = frozenset()  # hint only
    time_range: str = "6 months"
    search_depth: SearchDepth = SearchDepth.ADVANCED
    expected_sources: int = Field(default=15, ge=MIN_EXPECTED_SOURCES, le=MAX_EXPECTED_SOURCES)
    industry_keywords: tuple[str, ...] = ()
    competitor_keywords: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        data = self.model_dump(by_alias=True, mode="json")
        data["domains"] = sorted(self.domains)
        return data


@dataclass(frozen=True, slots=True)
class ParsedStrategy:
    """Strategy produced by the language model and validated field by field."""

    strategy: SearchStrategy
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class FallbackStrategy:
    """Deterministic strategy used when planning through the model failed."""

    strategy: SearchStrategy
    reason: str
    degraded: bool = True


PlanOutcome = ParsedStrategy | FallbackStrategy
