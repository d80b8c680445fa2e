from __future__ import annotations

"""
Text encoder seam.

The ranking core only needs :class:`Embedder`: a batch ``embed`` call and a
stable ``model_id`` that namespaces the embedding cache.  The default
backend wraps a sentence-transformers model (BAAI/bge-m3), loaded lazily
and cached for the lifetime of the process.
"""

import os
import threading
from typing import List, Optional, Protocol, Sequence, runtime_checkable

import numpy as np
from loguru import logger

from .config import EmbedderSettings
from .errors import EmbedderError

HF_ENV_VARS = {
    "HF_HUB_DISABLE_TELEMETRY": "1",
}


@runtime_checkable
class Embedder(Protocol):
    def embed(self, texts: Sequence[str]) -> List[np.ndarray]:
        ...

    def model_id(self) -> str:
        ...


def _ensure_hf_env() -> None:
    for key, val in HF_ENV_VARS.items():
        if key not in os.environ:
            os.environ[key] = val


class SentenceTransformerEmbedder:
    """Embedder backed by ``sentence_transformers.SentenceTransformer``."""

    def __init__(self, settings: Optional[EmbedderSettings] = None) -> None:
        self.settings = settings or EmbedderSettings()
        self._model = None
        self._lock = threading.Lock()

    def model_id(self) -> str:
        return self.settings.resolved_model_id()

    def _load(self):
        with self._lock:
            if self._model is not None:
                return self._model
            _ensure_hf_env()
            logger.info("Loading dense encoder model: {}", self.settings.model_name)
            try:
                from sentence_transformers import SentenceTransformer

                self._model = SentenceTransformer(self.settings.model_name)
            except Exception as e:
                raise EmbedderError(
                    f"Failed to load SentenceTransformer model '{self.settings.model_name}': {e}"
                ) from e
            return self._model

    def embed(self, texts: Sequence[str]) -> List[np.ndarray]:
        if not texts:
            return []
        model = self._load()
        try:
            matrix = model.encode(
                list(texts),
                batch_size=self.settings.batch_size,
                show_progress_bar=False,
                convert_to_numpy=True,
                normalize_embeddings=self.settings.normalize_embeddings,
            )
        except Exception as e:
            raise EmbedderError(f"Embedding failed: {e}") from e
        matrix = np.asarray(matrix, dtype="float32")
        if matrix.ndim != 2 or matrix.shape[0] != len(texts):
            raise EmbedderError(
                f"Encoder returned shape {matrix.shape} for {len(texts)} texts"
            )
        return [row for row in matrix]
