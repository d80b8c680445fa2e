"""Need-review classifier for a ranked seed list."""

from __future__ import annotations

from typing import Optional, Sequence

from .config import ReviewThresholds
from .pipeline_types import Suggestion


def mean_score(suggestions: Sequence[Suggestion]) -> float:
    if not suggestions:
        return 0.0
    return sum(s.score for s in suggestions) / len(suggestions)


def need_review(
    suggestions: Sequence[Suggestion],
    thresholds: Optional[ReviewThresholds] = None,
    top_k: Optional[int] = None,
) -> bool:
    """
    True when the ranking is not decisive enough for unattended acceptance:

    * no suggestions at all,
    * top-1 score below ``thresholds.top1``,
    * gap between rank 1 and rank 2 below ``thresholds.margin12``
      (only when there is a rank 2),
    * mean of the first ``top_k`` scores below ``thresholds.mean``.

    Callers pass the seed-only ranking, so the flag reflects how well the
    user's own categories matched.
    """
    th = thresholds or ReviewThresholds()
    if not suggestions:
        return True
    ranked = list(suggestions[:top_k] if top_k else suggestions)
    top1 = ranked[0].score
    if top1 < th.top1:
        return True
    if len(ranked) >= 2 and (top1 - ranked[1].score) < th.margin12:
        return True
    return mean_score(ranked) < th.mean
