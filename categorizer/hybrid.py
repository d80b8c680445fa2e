from __future__ import annotations

"""
Hybrid scorer: cosine similarity blended with keyword-rule bonuses.

Seed categories may carry a keyword rule set (strong / weak / anti
keywords).  When any of them occurs in the text the final score is

    alpha * cosine + beta * (bonus / bonus_cap)

floored at ``strong_floor`` when at least one strong keyword occurs, so a
clear lexical signal survives a weak vector match.  Labels without a rule
set, or with none of their keywords in the text, keep their plain cosine.
Every score gets a tiny deterministic offset derived from the label key so
equal scores order the same way every run.

Rules are compiled once into an immutable :class:`CompiledRules` value; the
service swaps that value wholesale when a rule file is reloaded.
"""

import json
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from loguru import logger

from .constants import (
    DAMPING_TARGET_CATEGORIES,
    DAMPING_TRIGGER_CATEGORIES,
    DEFAULT_CATEGORY_RULES,
)
from .errors import ConfigError
from .normalize import normalize_key
from .pipeline_types import Provenance, Source, Suggestion
from .vector_search import Hit


@dataclass(frozen=True)
class ScoringParams:
    strong_weight: float = 1.0
    weak_weight: float = 0.25
    anti_weight: float = 1.0
    strong_cap: int = 3
    weak_cap: int = 5
    bonus_cap: float = 4.0
    alpha: float = 0.80
    beta: float = 0.20
    strong_floor: float = 0.60
    damp: float = 0.03


DEFAULT_PARAMS = ScoringParams()


@dataclass(frozen=True)
class KeywordRuleSet:
    strong: Tuple[str, ...] = ()
    weak: Tuple[str, ...] = ()
    anti: Tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not (self.strong or self.weak or self.anti)


@dataclass(frozen=True)
class DampingRule:
    """A strong hit on any ``triggers`` key lowers every ``targets`` key."""

    triggers: FrozenSet[str]
    targets: Tuple[str, ...]


@dataclass(frozen=True)
class CompiledRules:
    by_key: Mapping[str, KeywordRuleSet] = field(default_factory=lambda: MappingProxyType({}))
    damping: Tuple[DampingRule, ...] = ()

    def for_key(self, key: str) -> Optional[KeywordRuleSet]:
        return self.by_key.get(key)

    def __len__(self) -> int:
        return len(self.by_key)


EMPTY_RULES = CompiledRules()


@dataclass
class SeedScoring:
    suggestions: List[Suggestion]
    base_scores: Dict[str, float]
    rule_bonus: Dict[str, float]


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------

def _normalize_keywords(words: Optional[Iterable[str]]) -> Tuple[str, ...]:
    seen = set()
    out: List[str] = []
    for w in words or ():
        normed = normalize_key(w)
        if normed and normed not in seen:
            seen.add(normed)
            out.append(normed)
    return tuple(out)


def compile_rules(
    raw: Mapping[str, Mapping[str, Sequence[str]]],
    damping_triggers: Sequence[str] = (),
    damping_targets: Sequence[str] = (),
) -> CompiledRules:
    by_key: Dict[str, KeywordRuleSet] = {}
    for label, entry in raw.items():
        key = normalize_key(label)
        if not key:
            continue
        entry = entry or {}
        by_key[key] = KeywordRuleSet(
            strong=_normalize_keywords(entry.get("strong")),
            weak=_normalize_keywords(entry.get("weak")),
            anti=_normalize_keywords(entry.get("anti")),
        )
    damping: Tuple[DampingRule, ...] = ()
    triggers = frozenset(k for k in (normalize_key(t) for t in damping_triggers) if k)
    targets = tuple(k for k in (normalize_key(t) for t in damping_targets) if k)
    if triggers and targets:
        damping = (DampingRule(triggers=triggers, targets=targets),)
    return CompiledRules(by_key=MappingProxyType(by_key), damping=damping)


@lru_cache(maxsize=1)
def default_rules() -> CompiledRules:
    return compile_rules(DEFAULT_CATEGORY_RULES, DAMPING_TRIGGER_CATEGORIES, DAMPING_TARGET_CATEGORIES)


def load_rules(path: Union[str, Path]) -> CompiledRules:
    """
    Compile the built-in rules with a JSON override file merged on top.

    The file maps a category label to ``{"strong": [...], "weak": [...],
    "anti": [...]}``; a label present in the file replaces the built-in
    entry for that label entirely.
    """
    path = Path(path)
    try:
        overrides = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to read rule file {path}: {e}") from e
    if not isinstance(overrides, dict):
        raise ConfigError(f"Rule file {path} must hold a JSON object")

    merged: Dict[str, Mapping[str, Sequence[str]]] = dict(DEFAULT_CATEGORY_RULES)
    for label, entry in overrides.items():
        if not isinstance(entry, dict):
            raise ConfigError(f"Rule entry {label!r} in {path} must be an object")
        # older rule files use capitalised keys ("Strong")
        merged[label] = {k.lower(): v for k, v in entry.items()}
    rules = compile_rules(merged, DAMPING_TRIGGER_CATEGORIES, DAMPING_TARGET_CATEGORIES)
    logger.info("Loaded category rules from {} ({} categories)", path, len(rules))
    return rules


def ensure_rule_file(path: Union[str, Path]) -> bool:
    """Write the built-in rules to ``path`` when it does not exist yet."""
    path = Path(path)
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(DEFAULT_CATEGORY_RULES, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    logger.info("Wrote default category rules to {}", path)
    return True


# ---------------------------------------------------------------------------
# Keyword matching
# ---------------------------------------------------------------------------

def _uses_word_boundary(keyword: str) -> bool:
    """Short ASCII alphanumerics ("ui", "rl", "ik") only match as whole words."""
    return 0 < len(keyword) <= 3 and keyword.isascii() and keyword.isalnum()


def _contains_as_word(text: str, word: str) -> bool:
    start = 0
    while True:
        idx = text.find(word, start)
        if idx < 0:
            return False
        end = idx + len(word)
        before = text[idx - 1] if idx > 0 else ""
        after = text[end] if end < len(text) else ""
        if not before.isalnum() and not after.isalnum():
            return True
        start = end


def contains_keyword(text: str, keyword: str) -> bool:
    if not keyword:
        return False
    if _uses_word_boundary(keyword):
        return _contains_as_word(text, keyword)
    return keyword in text


def count_keyword_hits(text: str, keywords: Iterable[str]) -> int:
    return sum(1 for kw in keywords if contains_keyword(text, kw))


def compute_rule_bonus(strong_hits: int, weak_hits: int, anti_hits: int, params: ScoringParams = DEFAULT_PARAMS) -> float:
    bonus = (
        params.strong_weight * min(strong_hits, params.strong_cap)
        + params.weak_weight * min(weak_hits, params.weak_cap)
        - params.anti_weight * anti_hits
    )
    return max(0.0, min(params.bonus_cap, bonus))


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def _fnv1a_32(s: str) -> int:
    h = 0x811C9DC5
    for byte in s.encode("utf-8"):
        h ^= byte
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h


def tiny_bias(key: str) -> float:
    """Stable per-label offset in [0, 1e-6)."""
    if not key:
        return 0.0
    return (_fnv1a_32(key) % 997) * 1e-9


def clamp01(x: float) -> float:
    return 0.0 if x < 0.0 else 1.0 if x > 1.0 else float(x)


def sort_suggestions(items: Iterable[Suggestion]) -> List[Suggestion]:
    return sorted(items, key=lambda s: (-s.score, s.label))


def score_seed_candidates(
    text_key: str,
    hits: Sequence[Hit],
    rules: CompiledRules = EMPTY_RULES,
    seed_bias: float = 0.0,
    params: ScoringParams = DEFAULT_PARAMS,
) -> SeedScoring:
    """
    Hybrid-score seed hits against the normalised (lower-cased) input text.
    Returns suggestions sorted by descending score plus per-label diagnostics.
    """
    base_scores: Dict[str, float] = {}
    rule_bonus: Dict[str, float] = {}
    final: Dict[str, float] = {}
    strong_keys = set()

    for hit in hits:
        cand = hit.candidate
        base = clamp01(max(hit.score, 0.0))
        base_scores[cand.label] = base
        score = base
        ruleset = rules.for_key(cand.key)
        if ruleset is not None and not ruleset.is_empty():
            strong = count_keyword_hits(text_key, ruleset.strong)
            weak = count_keyword_hits(text_key, ruleset.weak)
            anti = count_keyword_hits(text_key, ruleset.anti)
            bonus = compute_rule_bonus(strong, weak, anti, params)
            rule_bonus[cand.label] = bonus
            # no keyword evidence: stay on the plain cosine scale
            if strong + weak + anti > 0:
                score = params.alpha * base + params.beta * (bonus / params.bonus_cap)
            if strong > 0:
                strong_keys.add(cand.key)
                score = max(score, params.strong_floor)
        final[cand.label] = clamp01(score + seed_bias + tiny_bias(cand.key))

    for rule in rules.damping:
        if not (strong_keys & rule.triggers):
            continue
        for hit in hits:
            if hit.candidate.key in rule.targets:
                label = hit.candidate.label
                final[label] = clamp01(final[label] - params.damp)
                logger.debug("Damped '{}' by {}", label, params.damp)

    suggestions = sort_suggestions(
        Suggestion(label=h.candidate.label, score=final[h.candidate.label], source=Provenance.of(Source.SEED))
        for h in hits
    )
    return SeedScoring(suggestions=suggestions, base_scores=base_scores, rule_bonus=rule_bonus)


def score_weighted_candidates(hits: Sequence[Hit], weight: float) -> List[Suggestion]:
    """Source-weighted cosine for candidates without keyword rules (NDC)."""
    out = []
    for hit in hits:
        cand = hit.candidate
        score = clamp01(max(hit.score, 0.0) * weight + tiny_bias(cand.key))
        out.append(Suggestion(label=cand.label, score=score, source=Provenance.of(cand.source)))
    return sort_suggestions(out)
