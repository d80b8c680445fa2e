from __future__ import annotations

"""
Mode-dependent ranking of one embedded text.

* seeded: seed categories only (the fallback for any unknown mode)
* mixed:  seeds (plus seed bias) and NDC (weighted) in one list
* split:  seeds and NDC ranked, clustered and truncated independently

The need-review flag is always computed from the seed-only ranking before
clustering and seed bias, so the mode never changes it.
"""

from typing import List, Optional, Sequence

import numpy as np
from loguru import logger

from .cluster import cluster_suggestions
from .confidence import need_review
from .config import CANDIDATE_OVERFETCH, Mode, RankingConfig
from .hybrid import (
    EMPTY_RULES,
    CompiledRules,
    score_seed_candidates,
    score_weighted_candidates,
    sort_suggestions,
)
from .pipeline_types import ResultRow, Suggestion
from .vector_search import CandidateStore


def truncate(suggestions: Sequence[Suggestion], k: int) -> List[Suggestion]:
    return list(suggestions[: max(k, 0)])


class _Lookup:
    """Label -> vector across the seed store, then the NDC store."""

    def __init__(self, *stores: CandidateStore) -> None:
        self.stores = stores

    def __call__(self, label: str) -> Optional[np.ndarray]:
        for store in self.stores:
            vec = store.vector_for(label)
            if vec is not None:
                return vec
        return None


def rank_vector(
    text: str,
    text_key: str,
    vector: np.ndarray,
    cfg: RankingConfig,
    seeds: CandidateStore,
    taxonomy: CandidateStore,
    rules: CompiledRules = EMPTY_RULES,
) -> ResultRow:
    """Rank ``vector`` (the embedding of ``text``) under ``cfg``."""
    mode = cfg.mode if isinstance(cfg.mode, Mode) else Mode.SEEDED
    top_k = cfg.top_k
    tau = cfg.cluster.threshold if cfg.cluster.enabled else 0.0
    lookup = _Lookup(seeds, taxonomy)

    seed_hits = seeds.score_all(vector)
    scoring = score_seed_candidates(text_key, seed_hits, rules)
    seed_ranked = scoring.suggestions
    if mode is Mode.MIXED and cfg.seed_bias > 0:
        seed_ranked = score_seed_candidates(text_key, seed_hits, rules, cfg.seed_bias).suggestions

    tax_ranked: List[Suggestion] = []
    if mode is not Mode.SEEDED and cfg.use_ndc and len(taxonomy) > 0:
        tax_hits = taxonomy.search(vector, top_k * CANDIDATE_OVERFETCH)
        tax_ranked = score_weighted_candidates(tax_hits, cfg.weight_ndc)

    # same reference in every mode: unclustered, unbiased, truncated
    row = ResultRow(
        text=text,
        seed_suggestions=truncate(scoring.suggestions, top_k),
        base_scores=scoring.base_scores,
        rule_bonus=scoring.rule_bonus,
    )

    if mode is Mode.MIXED:
        combined = seed_ranked + tax_ranked
        if tau > 0:
            combined = cluster_suggestions(combined, tau, lookup)
        row.suggestions = truncate(sort_suggestions(combined), top_k)
    elif mode is Mode.SPLIT:
        seeds_out = cluster_suggestions(seed_ranked, tau, lookup) if tau > 0 else seed_ranked
        tax_out = cluster_suggestions(tax_ranked, tau, lookup) if tau > 0 else tax_ranked
        row.suggestions = truncate(seeds_out, top_k)
        row.taxonomy_suggestions = truncate(tax_out, top_k)
    else:
        seeds_out = cluster_suggestions(seed_ranked, tau, lookup) if tau > 0 else seed_ranked
        row.suggestions = truncate(seeds_out, top_k)

    row.need_review = need_review(row.seed_suggestions, cfg.thresholds, top_k)
    logger.debug(
        "Ranked text ({} chars) mode={} top={} need_review={}",
        len(text), mode.value,
        [(s.label, round(s.score, 4)) for s in row.suggestions],
        row.need_review,
    )
    logger.debug(
        "Seed diagnostics: {}",
        [(s.label, round(row.base_scores.get(s.label, 0.0), 4), row.rule_bonus.get(s.label))
         for s in row.seed_suggestions],
    )
    return row
