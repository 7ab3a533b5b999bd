"""Query profiling: derive routing features from raw query text."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class Complexity(str, Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


@dataclass(frozen=True)
class QueryProfile:
    complexity: Complexity
    domains: frozenset[str] = frozenset()
    intent: str = "general"
    requires_research: bool = False
    requires_analysis: bool = False
    requires_creativity: bool = False
    requires_technical: bool = False

    def flags(self) -> dict[str, bool]:
        """Flag value keyed by the capability-name keyword it rewards."""
        return {
            "research": self.requires_research,
            "analysis": self.requires_analysis,
            "creative": self.requires_creativity,
            "technical": self.requires_technical,
        }


class QueryProfiler(ABC):
    """Turns a query into a QueryProfile. Must be pure and deterministic."""

    @abstractmethod
    def profile(self, query: str, context: dict | None = None) -> QueryProfile:
        ...


# Domain tag -> trigger substrings
DOMAIN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "programming": ("code", "programming"),
    "data": ("data", "analyze"),
    "academic": ("research", "study"),
    "creative": ("create", "generate"),
    "business": ("business", "market"),
}

RESEARCH_KEYWORDS = ("research", "find", "information")
ANALYSIS_KEYWORDS = ("analyze", "analysis", "data", "trends")
CREATIVITY_KEYWORDS = ("create", "brainstorm", "ideas")
TECHNICAL_KEYWORDS = ("code", "programming", "technical")

MEDIUM_LENGTH = 100
COMPLEX_LENGTH = 200


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(k in text for k in keywords)


class KeywordQueryProfiler(QueryProfiler):
    """Length and keyword heuristics, no I/O."""

    def profile(self, query: str, context: dict | None = None) -> QueryProfile:
        q = query.lower()

        complexity = Complexity.SIMPLE
        if len(query) > MEDIUM_LENGTH or _contains_any(q, ("analyze", "analysis", "research")):
            complexity = Complexity.MEDIUM
        if len(query) > COMPLEX_LENGTH or _contains_any(q, ("comprehensive", "detailed")):
            complexity = Complexity.COMPLEX

        domains = frozenset(
            domain for domain, keywords in DOMAIN_KEYWORDS.items() if _contains_any(q, keywords)
        )

        return QueryProfile(
            complexity=complexity,
            domains=domains,
            intent=self._intent(q),
            requires_research=_contains_any(q, RESEARCH_KEYWORDS),
            requires_analysis=_contains_any(q, ANALYSIS_KEYWORDS),
            requires_creativity=_contains_any(q, CREATIVITY_KEYWORDS),
            requires_technical=_contains_any(q, TECHNICAL_KEYWORDS),
        )

    @staticmethod
    def _intent(q: str) -> str:
        if _contains_any(q, ("how", "what", "why")):
            return "question"
        if _contains_any(q, ("create", "write")):
            return "creation"
        if _contains_any(q, ("analyze", "examine")):
            return "analysis"
        return "general"
