from __future__ import annotations

"""
Categorizer service: owns the embedding cache, the seed / NDC candidate
stores, the compiled keyword rules and the ranking config, and exposes
single-text and batch classification.

Stores, rules and config are each replaced wholesale; a ranking call reads
one snapshot of each, so a concurrent reload never produces a mixed view.
"""

import threading
import time
from concurrent.futures import CancelledError, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from loguru import logger

from .config import AppSettings, RankingConfig, sanitize_config
from .constants import DEFAULT_SEED_CATEGORIES
from .embed_cache import CachedEmbedder, EmbeddingCache
from .embedder import Embedder, SentenceTransformerEmbedder
from .errors import ConfigError, RankingError
from .export import ensure_seed_file, read_seed_file
from .hybrid import CompiledRules, default_rules, ensure_rule_file, load_rules
from .normalize import normalize, normalize_key, unique_normalized
from .pipeline_types import BatchResult, Candidate, ResultRow, Source
from .ranking import rank_vector
from .taxonomy import DEFAULT_NDC_ENTRIES, TaxonomyEntry
from .vector_search import CandidateStore

ProgressFn = Callable[[int, int], None]


class CategorizerService:
    def __init__(self, embedder: Embedder, settings: Optional[AppSettings] = None) -> None:
        settings = settings or AppSettings()
        self._lock = threading.Lock()
        self._cfg = sanitize_config(settings.ranking)
        self._rules: CompiledRules = default_rules()

        model_id = embedder.model_id()
        try:
            cache = EmbeddingCache(settings.embedder.cache_dir, model_id)
        except OSError as e:
            logger.error("Cannot create cache dir {}: {}; disk cache disabled", settings.embedder.cache_dir, e)
            cache = EmbeddingCache(None, model_id)
        self.embedder = CachedEmbedder(embedder, cache)

        self.seeds = CandidateStore("seed")
        self.taxonomy = CandidateStore("ndc")
        logger.info("Categorizer service ready (model={}, mode={})", model_id, self._cfg.mode.value)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AppSettings] = None,
        embedder: Optional[Embedder] = None,
        taxonomy_entries: Optional[Sequence[TaxonomyEntry]] = None,
    ) -> "CategorizerService":
        """
        Build a fully loaded service: rules, seed categories and the NDC
        dictionary (``taxonomy_entries`` replaces the built-in one).
        """
        settings = settings or AppSettings()
        svc = cls(embedder or SentenceTransformerEmbedder(settings.embedder), settings)
        if settings.rule_file:
            ensure_rule_file(settings.rule_file)
            svc.reload_rules(settings.rule_file)
        svc.update_categories(_initial_seeds(settings.seed_file))
        svc.load_taxonomy(DEFAULT_NDC_ENTRIES if taxonomy_entries is None else taxonomy_entries)
        return svc

    # ---- config & rules ----

    def config(self) -> RankingConfig:
        with self._lock:
            return self._cfg

    def update_config(self, cfg: RankingConfig) -> RankingConfig:
        cfg = sanitize_config(cfg)
        with self._lock:
            self._cfg = cfg
        logger.info("Ranking config updated: {}", cfg.model_dump(mode="json"))
        return cfg

    @property
    def rules(self) -> CompiledRules:
        with self._lock:
            return self._rules

    def reload_rules(self, path: Optional[Union[str, Path]]) -> bool:
        """
        Swap in rules compiled from ``path``; on failure (or no path) the
        built-in rules are used.  Returns whether the file was applied.
        """
        rules = default_rules()
        loaded = False
        if path:
            try:
                rules = load_rules(path)
                loaded = True
            except ConfigError as e:
                logger.warning("{}; using built-in category rules", e)
        with self._lock:
            self._rules = rules
        return loaded

    # ---- candidate stores ----

    def _embed_candidates(self, labels: Sequence[str], source: Source) -> List[Candidate]:
        vectors = self.embedder.embed_many(labels)
        return [
            Candidate(label=label, key=normalize_key(label), vector=vec, source=source)
            for label, vec in zip(labels, vectors)
        ]

    def update_categories(self, labels: Sequence[str]) -> int:
        """Replace the seed categories; returns how many were indexed."""
        start = time.perf_counter()
        display = unique_normalized(labels)
        cands = self._embed_candidates(display, Source.SEED)
        self.seeds.replace(cands)
        logger.info("Loaded {} seed categories in {:.3f}s", len(cands), time.perf_counter() - start)
        return len(cands)

    def load_taxonomy(self, entries: Sequence[TaxonomyEntry] = DEFAULT_NDC_ENTRIES) -> int:
        start = time.perf_counter()
        labels = unique_normalized(e.embed_text() for e in entries)
        cands = self._embed_candidates(labels, Source.TAXONOMY)
        self.taxonomy.replace(cands)
        logger.info("Loaded {} NDC entries in {:.3f}s", len(cands), time.perf_counter() - start)
        return len(cands)

    def candidate_stats(self) -> Tuple[int, int]:
        return self.seeds.size(), self.taxonomy.size()

    # ---- ranking ----

    def _rank(
        self,
        text: str,
        cfg: RankingConfig,
        rules: CompiledRules,
        cancel_event: Optional[threading.Event] = None,
    ) -> ResultRow:
        if not normalize(text):
            return ResultRow(text=text, need_review=True)
        vec = self.embedder.embed_many([text], cancel_event=cancel_event)[0]
        return rank_vector(text, normalize_key(text), vec, cfg, self.seeds, self.taxonomy, rules)

    def rank_one(self, text: str) -> ResultRow:
        """Rank one text. Empty text needs review; encoder failures raise."""
        return self._rank(text, self.config(), self.rules)

    def classify_all(
        self,
        texts: Sequence[str],
        workers: int = 1,
        cancel_event: Optional[threading.Event] = None,
        progress: Optional[ProgressFn] = None,
    ) -> BatchResult:
        """
        Rank every text. Output slots line up with ``texts``; a failed item
        leaves ``None`` in its slot and a :class:`RankingError` in ``errors``.
        Setting ``cancel_event`` abandons items not yet started. An exception
        escaping the batch (Ctrl-C, a failing ``progress`` callback) sets the
        event, drops queued items and is re-raised.
        """
        start = time.perf_counter()
        total = len(texts)
        cfg, rules = self.config(), self.rules
        result = BatchResult(rows=[None] * total)
        done = 0
        done_lock = threading.Lock()
        cancel = cancel_event if cancel_event is not None else threading.Event()
        logger.info("Classifying {} texts (seeds={} ndc={} workers={})", total, *self.candidate_stats(), workers)

        def work(i: int) -> None:
            nonlocal done
            if cancel.is_set():
                return
            try:
                result.rows[i] = self._rank(texts[i], cfg, rules, cancel)
            except CancelledError:
                return
            except Exception as e:
                logger.warning("Ranking failed for item {}: {}", i, e)
                result.errors[i] = RankingError(i, texts[i], e)
            with done_lock:
                done += 1
                if progress is not None:
                    progress(done, total)

        if workers <= 1:
            try:
                for i in range(total):
                    work(i)
            except BaseException:
                cancel.set()
                raise
        else:
            pool = ThreadPoolExecutor(max_workers=workers)
            try:
                list(pool.map(work, range(total)))
            except BaseException:
                cancel.set()
                pool.shutdown(wait=True, cancel_futures=True)
                raise
            pool.shutdown(wait=True)

        result.cancelled = cancel.is_set() and done < total
        logger.info(
            "Classified {}/{} texts in {:.3f}s ({} errors{})",
            result.completed, total, time.perf_counter() - start, len(result.errors),
            ", cancelled" if result.cancelled else "",
        )
        return result


def _initial_seeds(seed_file: Optional[str]) -> List[str]:
    fallback = unique_normalized(DEFAULT_SEED_CATEGORIES)
    if not seed_file:
        return fallback
    ensure_seed_file(seed_file, DEFAULT_SEED_CATEGORIES)
    try:
        seeds = read_seed_file(seed_file)
    except (OSError, ValueError) as e:
        logger.warning("Failed to read seed file {}: {}; using built-in categories", seed_file, e)
        return fallback
    logger.info("Loaded {} seed categories from {}", len(seeds), seed_file)
    return seeds
