"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from .errors import RankingError


class Source(str, Enum):
    SEED = "seed"
    TAXONOMY = "ndc"


@dataclass(frozen=True)
class Provenance:
    """
    Where a suggestion came from: one source, or the merged variant that
    records every contributing source in first-seen order.
    """

    sources: Tuple[Source, ...]

    @classmethod
    def of(cls, source: Source) -> "Provenance":
        return cls((source,))

    @property
    def is_merged(self) -> bool:
        return len(self.sources) > 1

    def merge(self, other: "Provenance") -> "Provenance":
        combined = list(self.sources)
        for src in other.sources:
            if src not in combined:
                combined.append(src)
        return Provenance(tuple(combined))

    def __contains__(self, source: Source) -> bool:
        return source in self.sources

    def __str__(self) -> str:
        return ",".join(s.value for s in self.sources)


@dataclass(frozen=True, eq=False)
class Candidate:
    """A label and its embedding; ``key`` is the normalised dedup identity."""

    label: str
    key: str
    vector: np.ndarray
    source: Source


@dataclass
class Suggestion:
    label: str
    score: float
    source: Provenance
    aliases: Tuple[str, ...] = ()

    def display_label(self) -> str:
        if not self.aliases:
            return self.label
        return f"{self.label} (similar: {', '.join(self.aliases)})"


@dataclass
class ResultRow:
    text: str
    suggestions: List[Suggestion] = field(default_factory=list)
    taxonomy_suggestions: List[Suggestion] = field(default_factory=list)
    seed_suggestions: List[Suggestion] = field(default_factory=list)
    need_review: bool = False
    base_scores: Dict[str, float] = field(default_factory=dict)
    rule_bonus: Dict[str, float] = field(default_factory=dict)


@dataclass
class BatchResult:
    """Indexed result slots for a batch; ``rows[i]`` belongs to input ``i``."""

    rows: List[Optional[ResultRow]]
    errors: Dict[int, RankingError] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def completed(self) -> int:
        return sum(1 for r in self.rows if r is not None)
