import hashlib
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

from categorizer.config import AppSettings, EmbedderSettings, RankingConfig
from categorizer.service import CategorizerService


class FakeEmbedder:
    """
    Deterministic encoder: known texts map to fixed vectors, anything else
    to a pseudo-random vector seeded from the text.
    """

    def __init__(self, vectors: Optional[Dict[str, Sequence[float]]] = None, dim: int = 3, fail_on=()):
        self.vectors = {k: np.asarray(v, dtype="float32") for k, v in (vectors or {}).items()}
        self.dim = dim
        self.fail_on = set(fail_on)
        self.calls: List[List[str]] = []

    def model_id(self) -> str:
        return "fake-model"

    def embed(self, texts: Sequence[str]) -> List[np.ndarray]:
        self.calls.append(list(texts))
        out = []
        for t in texts:
            if t in self.fail_on:
                raise RuntimeError(f"encoder exploded on {t!r}")
            if t in self.vectors:
                out.append(self.vectors[t])
                continue
            seed = int(hashlib.sha1(t.encode("utf-8")).hexdigest()[:8], 16)
            out.append(np.random.default_rng(seed).normal(size=self.dim).astype("float32"))
        return out


# Seeds "vr" and "education" are orthogonal; the query sits at cosine 0.8 / 0.3.
SCENARIO_VECTORS = {
    "vr": [1.0, 0.0, 0.0],
    "education": [0.0, 1.0, 0.0],
    "a vr headset demo": [0.8, 0.3, float(np.sqrt(1 - 0.64 - 0.09))],
}


@pytest.fixture
def fake_embedder():
    return FakeEmbedder(SCENARIO_VECTORS)


@pytest.fixture
def make_service(tmp_path):
    def _make(embedder=None, **ranking) -> CategorizerService:
        settings = AppSettings(
            ranking=RankingConfig(**ranking),
            embedder=EmbedderSettings(cache_dir=str(tmp_path / "cache")),
            seed_file=None,
        )
        return CategorizerService(embedder or FakeEmbedder(SCENARIO_VECTORS), settings)

    return _make
