"""Relevance scoring for candidate files."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class CandidateSignals:
    """Why a candidate was picked up, and how connected it is."""

    from_trace: bool = False
    from_mention: bool = False
    is_config: bool = False
    dependency_count: int = 0
    dependent_count: int = 0


@runtime_checkable
class RelevanceScorer(Protocol):
    """Maps candidate signals to a score in ``[0, 1]``."""

    def score(self, signals: CandidateSignals) -> float: ...


class HeuristicScorer:
    """Additive weights, clamped to ``[0, 1]``."""

    def __init__(
        self,
        *,
        trace_weight: float = 0.4,
        mention_weight: float = 0.3,
        config_weight: float = 0.1,
        per_link_weight: float = 0.05,
        link_cap: float = 0.2,
    ) -> None:
        self.trace_weight = trace_weight
        self.mention_weight = mention_weight
        self.config_weight = config_weight
        self.per_link_weight = per_link_weight
        self.link_cap = link_cap

    def score(self, signals: CandidateSignals) -> float:
        total = 0.0
        if signals.from_trace:
            total += self.trace_weight
        if signals.from_mention:
            total += self.mention_weight
        if signals.is_config:
            total += self.config_weight
        links = max(signals.dependency_count, 0) + max(signals.dependent_count, 0)
        total += min(self.link_cap, self.per_link_weight * links)
        return clamp(total)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    if value != value:  # NaN
        return low
    return max(low, min(high, value))
