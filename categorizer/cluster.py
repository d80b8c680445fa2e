from __future__ import annotations

"""
Greedy online clustering of near-duplicate suggestions.

Suggestions are visited in the given order.  Each is compared with the
representative vector of every open cluster (the vector of that cluster's
best-scoring member); the first cluster with cosine >= tau absorbs it,
otherwise it opens a new cluster.  A merged entry shows the
representative's label and keeps the other labels as aliases, e.g.
"VR space (similar: metaverse, virtual world)".
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import numpy as np
from loguru import logger

from .hybrid import sort_suggestions
from .pipeline_types import Suggestion
from .vector_search import cosine_similarity

VectorLookup = Callable[[str], Optional[np.ndarray]]


@dataclass
class _Cluster:
    best: Suggestion
    repr_vec: Optional[np.ndarray]
    members: List[Suggestion] = field(default_factory=list)

    def absorb(self, sug: Suggestion, vec: np.ndarray) -> None:
        self.members.append(sug)
        # strict '>' keeps the first-seen member on equal scores
        if sug.score > self.best.score:
            self.best = sug
            self.repr_vec = vec

    def to_suggestion(self) -> Suggestion:
        if len(self.members) == 1:
            return self.members[0]
        label = self.best.label
        aliases: List[str] = []
        source = self.best.source
        for m in self.members:
            for name in (m.label, *m.aliases):
                if name and name != label and name not in aliases:
                    aliases.append(name)
            if m is not self.best:
                source = source.merge(m.source)
        return Suggestion(label=label, score=self.best.score, source=source, aliases=tuple(aliases))


def cluster_suggestions(
    suggestions: Sequence[Suggestion],
    tau: float,
    lookup: VectorLookup,
) -> List[Suggestion]:
    """
    Merge suggestions whose label vectors are within cosine ``tau``.

    ``tau <= 0`` disables clustering and returns the input order unchanged.
    Suggestions whose label has no vector are kept as singletons and never
    absorb others.
    """
    if tau <= 0 or len(suggestions) <= 1:
        return list(suggestions)

    clusters: List[_Cluster] = []
    for sug in suggestions:
        vec = lookup(sug.label)
        if vec is None:
            clusters.append(_Cluster(best=sug, repr_vec=None, members=[sug]))
            continue
        for c in clusters:
            if c.repr_vec is None:
                continue
            if cosine_similarity(vec, c.repr_vec) >= tau:
                c.absorb(sug, vec)
                break
        else:
            clusters.append(_Cluster(best=sug, repr_vec=vec, members=[sug]))

    merged = [c.to_suggestion() for c in clusters]
    if len(merged) < len(suggestions):
        logger.debug("Clustered {} suggestions into {} (tau={})", len(suggestions), len(merged), tau)
    return sort_suggestions(merged)
