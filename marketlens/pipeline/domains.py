"""Rule-based source classification and credibility weighting."""
from __future__ import annotations

import re
from functools import lru_cache

from marketlens.models.corpus import DomainProfile

# Checked in order; the first category with a matching pattern wins.
DOMAIN_TYPE_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("news", ("news", "times", "post", "herald", "gazette", "reuters", "bloomberg", "wsj", "cnn", "bbc")),
    ("business", ("business", "finance", "market", "economy", "invest", "forbes", "fortune", "nasdaq", "dow")),
    ("technology", ("tech", "digital", "innovation", "startup", "venture", "wired", "verge", "engadget")),
    ("academic", ("edu", "research", "study", "academic", "university", "journal", "scholar")),
    ("government", ("gov", "government", "federal", "state", r"sec\.gov", "treasury")),
    ("industry", ("industry", "manufacturing", "automotive", "pharma", "energy", "retail")),
)

_COMPILED_PATTERNS = tuple(
    (domain_type, tuple(re.compile(p) for p in patterns))
    for domain_type, patterns in DOMAIN_TYPE_PATTERNS
)

HIGH_CREDIBILITY_DOMAINS = (
    "reuters.com",
    "bloomberg.com",
    "wsj.com",
    "ft.com",
    "economist.com",
    "forbes.com",
    "fortune.com",
    "harvard.edu",
    "mit.edu",
    "stanford.edu",
    "sec.gov",
    "treasury.gov",
    "federalreserve.gov",
)

MEDIUM_CREDIBILITY_DOMAINS = (
    "cnn.com",
    "bbc.com",
    "nytimes.com",
    "washingtonpost.com",
    "techcrunch.com",
    "wired.com",
    "ars-technica.com",
)

DEFAULT_DOMAIN_TYPE = "general"
DEFAULT_CREDIBILITY = 0.6


def classify_domain_type(domain: str) -> str:
    host = (domain or "").lower()
    for domain_type, patterns in _COMPILED_PATTERNS:
        if any(p.search(host) for p in patterns):
            return domain_type
    return DEFAULT_DOMAIN_TYPE


def domain_credibility(domain: str) -> float:
    host = (domain or "").lower()
    if any(trusted in host for trusted in HIGH_CREDIBILITY_DOMAINS):
        return 1.0
    if any(medium in host for medium in MEDIUM_CREDIBILITY_DOMAINS):
        return 0.8
    if ".edu" in host or ".gov" in host:
        return 0.9
    if ".org" in host:
        return 0.7
    return DEFAULT_CREDIBILITY


@lru_cache(maxsize=1024)
def classify_domain(domain: str) -> DomainProfile:
    """Map a hostname to its topic category and credibility weight."""
    return DomainProfile(type=classify_domain_type(domain), credibility=domain_credibility(domain))
