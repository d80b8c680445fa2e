from __future__ import annotations

"""
Brute-force cosine search over a candidate set.

:class:`CandidateStore` holds one immutable snapshot (candidates plus a
stacked float32 matrix).  Reloading seeds or the NDC dictionary builds a
complete new snapshot and swaps the reference, so concurrent searches see
either the old or the new set, never a mix.

Approximate indexing is out of scope; the snapshot is the seam where a
FAISS-style index would plug in.
"""

import heapq
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from .errors import DimensionMismatchError
from .pipeline_types import Candidate


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    ``dot(a, b) / (|a| * |b|)``.  Empty or zero-norm input gives 0.0;
    differing lengths raise :class:`DimensionMismatchError`.
    """
    va = np.asarray(a, dtype="float64").ravel()
    vb = np.asarray(b, dtype="float64").ravel()
    if va.size == 0 or vb.size == 0:
        return 0.0
    if va.size != vb.size:
        raise DimensionMismatchError(va.size, vb.size)
    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (na * nb))


@dataclass(frozen=True)
class Hit:
    candidate: Candidate
    score: float

    @property
    def label(self) -> str:
        return self.candidate.label


class _Snapshot:
    __slots__ = ("candidates", "matrix", "norms", "by_label", "dim")

    def __init__(self, candidates: Tuple[Candidate, ...]) -> None:
        self.candidates = candidates
        self.by_label: Dict[str, Candidate] = {c.label: c for c in candidates}
        if not candidates:
            self.dim = 0
            self.matrix = np.zeros((0, 0), dtype="float32")
            self.norms = np.zeros((0,), dtype="float64")
            return
        dims = {int(np.asarray(c.vector).size) for c in candidates}
        if len(dims) != 1:
            lo, hi = min(dims), max(dims)
            raise DimensionMismatchError(lo, hi)
        self.dim = dims.pop()
        self.matrix = np.vstack([np.asarray(c.vector, dtype="float32").ravel() for c in candidates])
        self.norms = np.linalg.norm(self.matrix.astype("float64"), axis=1)


class CandidateStore:
    """Reader-many / writer-rare holder of one candidate snapshot."""

    def __init__(self, name: str, candidates: Sequence[Candidate] = ()) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._snap = _Snapshot(tuple(candidates))

    def replace(self, candidates: Sequence[Candidate]) -> None:
        snap = _Snapshot(tuple(candidates))  # validate before taking the lock
        with self._lock:
            self._snap = snap
        logger.info("Candidate store '{}' replaced ({} items, dim={})", self.name, len(snap.candidates), snap.dim)

    def _current(self) -> _Snapshot:
        with self._lock:
            return self._snap

    def snapshot(self) -> Tuple[Candidate, ...]:
        return self._current().candidates

    def size(self) -> int:
        return len(self._current().candidates)

    def __len__(self) -> int:
        return self.size()

    def labels(self) -> List[str]:
        return [c.label for c in self._current().candidates]

    def vector_for(self, label: str) -> Optional[np.ndarray]:
        cand = self._current().by_label.get(label)
        return None if cand is None else cand.vector

    def score_all(self, query: Sequence[float]) -> List[Hit]:
        """Cosine of ``query`` against every candidate, in store order."""
        snap = self._current()
        q = np.asarray(query, dtype="float64").ravel()
        if q.size == 0 or not snap.candidates:
            return []
        if q.size != snap.dim:
            raise DimensionMismatchError(q.size, snap.dim)
        qn = float(np.linalg.norm(q))
        if qn == 0.0:
            return [Hit(c, 0.0) for c in snap.candidates]
        dots = snap.matrix.astype("float64") @ q
        denom = snap.norms * qn
        scores = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
        return [Hit(c, float(s)) for c, s in zip(snap.candidates, scores)]

    def search(self, query: Sequence[float], k: int) -> List[Hit]:
        """
        Top-``k`` hits by cosine, descending, ties broken by ascending label.
        ``k <= 0``, an empty query or an empty store return ``[]``.
        """
        if k <= 0:
            return []
        hits = self.score_all(query)
        if not hits:
            return []
        # nsmallest keeps a bounded heap of size k: O(n log k)
        return heapq.nsmallest(k, hits, key=lambda h: (-h.score, h.label))
