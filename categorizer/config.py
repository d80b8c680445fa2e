from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

CONFIG_PATH = Path(os.getenv("CATEGORIZER_CONFIG", str(PROJECT_ROOT / "config" / "config.json")))
DEFAULT_SEED_FILE = PROJECT_ROOT / "config" / "categories_seed.txt"
DEFAULT_RULE_FILE = PROJECT_ROOT / "config" / "category_rules.json"
CACHE_DIR = Path(os.getenv("CATEGORIZER_CACHE_DIR", str(PROJECT_ROOT / "cache")))
OUTPUT_DIR = PROJECT_ROOT / "csv"


# ---------------------------
# Model names (pinned)
# ---------------------------

# Dense encoder; bge-m3 covers the Japanese seed labels and the NDC dictionary
ENCODER_MODEL = os.getenv("CATEGORIZER_MODEL", "BAAI/bge-m3")
ENCODER_BATCH_SIZE = 32


# ---------------------------
# Ranking defaults & ranges
# ---------------------------

TOP_K_MIN = 3
TOP_K_MAX = 5
DEFAULT_TOP_K = 3

WEIGHT_NDC_MIN = 0.5
WEIGHT_NDC_MAX = 1.2
DEFAULT_WEIGHT_NDC = 0.85

SEED_BIAS_MIN = 0.0
SEED_BIAS_MAX = 0.2
DEFAULT_SEED_BIAS = 0.03

# tau; safe range 0.5-0.95, recommended band 0.75-0.85
DEFAULT_CLUSTER_THRESHOLD = 0.80

DEFAULT_REVIEW_TOP1 = 0.45
DEFAULT_REVIEW_MARGIN12 = 0.03
DEFAULT_REVIEW_MEAN = 0.50

# NDC search over-fetch before source weighting / clustering
CANDIDATE_OVERFETCH = 3


class Mode(str, Enum):
    SEEDED = "seeded"
    MIXED = "mixed"
    SPLIT = "split"


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class ReviewThresholds(BaseModel):
    """Trigger levels for the need-review flag."""

    model_config = ConfigDict(frozen=True)

    top1: float = DEFAULT_REVIEW_TOP1
    margin12: float = DEFAULT_REVIEW_MARGIN12
    mean: float = DEFAULT_REVIEW_MEAN


class ClusterSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    threshold: float = DEFAULT_CLUSTER_THRESHOLD


class RankingConfig(BaseModel):
    """
    Immutable snapshot of the values the ranking core consumes.

    Build it directly for tests; the service always runs it through
    :func:`sanitize_config` before use.
    """

    model_config = ConfigDict(frozen=True)

    mode: Mode = Mode.MIXED
    top_k: int = DEFAULT_TOP_K
    use_ndc: bool = True
    weight_ndc: float = DEFAULT_WEIGHT_NDC
    seed_bias: float = DEFAULT_SEED_BIAS
    cluster: ClusterSettings = Field(default_factory=ClusterSettings)
    thresholds: ReviewThresholds = Field(default_factory=ReviewThresholds)

    @field_validator("mode", mode="before")
    @classmethod
    def _unknown_mode_is_seeded(cls, value):
        if isinstance(value, Mode):
            return value
        try:
            return Mode(str(value or "").strip().lower())
        except ValueError:
            logger.warning("Unknown ranking mode {!r}; falling back to seeded", value)
            return Mode.SEEDED


class EmbedderSettings(BaseModel):
    model_name: str = ENCODER_MODEL
    model_id: str = ""
    cache_dir: Optional[str] = str(CACHE_DIR)
    batch_size: int = Field(default=ENCODER_BATCH_SIZE, ge=1)
    normalize_embeddings: bool = True

    def resolved_model_id(self) -> str:
        """Cache namespace for this encoder; defaults to the model's base name."""
        if self.model_id.strip():
            return self.model_id.strip()
        return self.model_name.rstrip("/").split("/")[-1]


class AppSettings(BaseModel):
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    embedder: EmbedderSettings = Field(default_factory=EmbedderSettings)
    seed_file: Optional[str] = str(DEFAULT_SEED_FILE)
    rule_file: Optional[str] = None


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(value)))


def sanitize_config(cfg: RankingConfig) -> RankingConfig:
    """
    Return a copy of ``cfg`` with every field inside its documented range.

    The result is idempotent: sanitizing a sanitized config is a no-op.
    """
    top_k = int(_clamp(cfg.top_k, TOP_K_MIN, TOP_K_MAX))

    tau = cfg.cluster.threshold
    if not (0.0 < tau < 1.0):
        tau = DEFAULT_CLUSTER_THRESHOLD

    th = cfg.thresholds
    top1 = th.top1 if th.top1 > 0 else DEFAULT_REVIEW_TOP1
    margin12 = th.margin12 if th.margin12 >= 0 else DEFAULT_REVIEW_MARGIN12
    mean = th.mean if th.mean > 0 else DEFAULT_REVIEW_MEAN

    return RankingConfig(
        mode=cfg.mode,
        top_k=top_k,
        use_ndc=cfg.use_ndc,
        weight_ndc=_clamp(cfg.weight_ndc, WEIGHT_NDC_MIN, WEIGHT_NDC_MAX),
        seed_bias=_clamp(cfg.seed_bias, SEED_BIAS_MIN, SEED_BIAS_MAX),
        cluster=ClusterSettings(enabled=cfg.cluster.enabled, threshold=tau),
        thresholds=ReviewThresholds(top1=top1, margin12=margin12, mean=mean),
    )


# ---------------------------
# Persistence
# ---------------------------

def load_settings(path: Optional[Path] = None) -> AppSettings:
    """
    Read settings JSON. A missing file yields defaults; an unreadable or
    invalid one raises :class:`ConfigError`.
    """
    path = Path(path) if path is not None else CONFIG_PATH
    if not path.exists():
        logger.info("No config at {}; using defaults", path)
        settings = AppSettings()
    else:
        try:
            raw = path.read_text(encoding="utf-8")
            settings = AppSettings.model_validate_json(raw)
        except (OSError, ValidationError) as e:
            raise ConfigError(f"Failed to load config {path}: {e}") from e
        logger.info("Loaded config from {}", path)
    return settings.model_copy(update={"ranking": sanitize_config(settings.ranking)})


def save_settings(settings: AppSettings, path: Optional[Path] = None) -> Path:
    """Write settings atomically (temp file + rename)."""
    path = Path(path) if path is not None else CONFIG_PATH
    settings = settings.model_copy(update={"ranking": sanitize_config(settings.ranking)})
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(settings.model_dump(mode="json"), ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp, path)
    logger.info("Config written to {}", path)
    return path


# ---------------------------
# API payloads
# ---------------------------

class SuggestionModel(BaseModel):
    label: str
    score: float
    source: str
    aliases: List[str] = Field(default_factory=list)


class ResultRowModel(BaseModel):
    text: str
    suggestions: List[SuggestionModel]
    taxonomy_suggestions: List[SuggestionModel] = Field(default_factory=list)
    need_review: bool


class ClassifyResponse(BaseModel):
    """
    Response body for POST /classify.
    Rows line up with the request texts; failed items carry an error string.
    """

    rows: List[Optional[ResultRowModel]]
    errors: dict[int, str] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    seeds: int = 0
    taxonomy: int = 0
