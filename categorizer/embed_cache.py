from __future__ import annotations

"""
Two-tier embedding cache (memory + disk) keyed by normalised text and model.

Disk records live under the cache directory as ``<sha1>.bin``:

    [uint32 little-endian count][count x float32 little-endian]

Records are written to a ``.tmp`` sibling and renamed into place, so a
reader never observes a half-written file; a failed write removes the temp.  A record whose declared count
disagrees with its payload is a cache miss (recomputed and overwritten);
a record too short to hold the header raises :class:`CacheCorruptionError`
so the caller can decide to purge the directory.
"""

import hashlib
import os
import struct
import threading
from concurrent.futures import CancelledError
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
from loguru import logger

from .embedder import Embedder
from .errors import CacheCorruptionError, EmbedderError
from .normalize import normalize_key

_HEADER = struct.Struct("<I")
_RECORD_SUFFIX = ".bin"


def cache_key(text: str, model_id: str) -> str:
    return hashlib.sha1(f"{model_id}|{text}".encode("utf-8")).hexdigest()


def encode_record(vector: np.ndarray) -> bytes:
    vec = np.asarray(vector, dtype="<f4").ravel()
    return _HEADER.pack(vec.size) + vec.tobytes()


def decode_record(data: bytes, path: Union[str, Path] = "<memory>") -> Optional[np.ndarray]:
    """Decode one record; ``None`` means the payload length is inconsistent."""
    if len(data) < _HEADER.size:
        raise CacheCorruptionError(path, len(data))
    (count,) = _HEADER.unpack_from(data)
    payload = data[_HEADER.size:]
    if len(payload) != count * 4:
        logger.warning(
            "Cache record {} declares {} floats but holds {} bytes; treating as miss",
            path, count, len(payload),
        )
        return None
    return _freeze(np.frombuffer(payload, dtype="<f4").astype("float32"))


def _freeze(vector: np.ndarray) -> np.ndarray:
    vec = np.array(vector, dtype="float32", copy=True).ravel()
    vec.setflags(write=False)
    return vec


class EmbeddingCache:
    """Append-only text -> vector cache shared by batch workers."""

    def __init__(self, cache_dir: Optional[Union[str, Path]], model_id: str) -> None:
        self.model_id = model_id
        self.cache_dir: Optional[Path] = Path(cache_dir) if cache_dir else None
        self._memory: Dict[str, np.ndarray] = {}
        self._lock = threading.Lock()
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    def key_for(self, text: str) -> str:
        return cache_key(normalize_key(text), self.model_id)

    def _path(self, key: str) -> Path:
        assert self.cache_dir is not None
        return self.cache_dir / f"{key}{_RECORD_SUFFIX}"

    # ---- memory tier ----

    def get(self, text: str) -> Optional[np.ndarray]:
        key = self.key_for(text)
        with self._lock:
            hit = self._memory.get(key)
        if hit is not None:
            return hit
        vec = self.load(key)
        if vec is not None:
            with self._lock:
                vec = self._memory.setdefault(key, vec)
        return vec

    def put(self, text: str, vector: np.ndarray) -> np.ndarray:
        key = self.key_for(text)
        vec = _freeze(vector)
        with self._lock:
            # first writer wins; entries are never updated in place
            vec = self._memory.setdefault(key, vec)
        try:
            self.save(key, vec)
        except OSError as e:
            logger.warning("Failed to write cache record {}: {}", key, e)
        return vec

    def __len__(self) -> int:
        with self._lock:
            return len(self._memory)

    # ---- disk tier ----

    def load(self, key: str) -> Optional[np.ndarray]:
        if self.cache_dir is None:
            return None
        path = self._path(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        return decode_record(data, path)

    def save(self, key: str, vector: np.ndarray) -> None:
        if self.cache_dir is None:
            return
        path = self._path(key)
        tmp = path.with_name(f"{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
        try:
            tmp.write_bytes(encode_record(vector))
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def purge(self) -> int:
        """Drop every cached entry (memory and disk); returns files removed."""
        with self._lock:
            self._memory.clear()
        removed = 0
        if self.cache_dir is not None and self.cache_dir.exists():
            for path in self.cache_dir.glob(f"*{_RECORD_SUFFIX}*"):
                try:
                    path.unlink()
                    removed += 1
                except FileNotFoundError:
                    continue
        logger.info("Purged embedding cache ({} files)", removed)
        return removed


class CachedEmbedder:
    """Cache-backed front for an :class:`Embedder`; texts are normalised first."""

    def __init__(self, embedder: Embedder, cache: EmbeddingCache) -> None:
        self.embedder = embedder
        self.cache = cache

    def model_id(self) -> str:
        return self.embedder.model_id()

    def embed_many(
        self,
        texts: Sequence[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[np.ndarray]:
        keys = [normalize_key(t) for t in texts]
        out: List[Optional[np.ndarray]] = [None] * len(keys)
        misses: Dict[str, List[int]] = {}
        for i, key in enumerate(keys):
            if cancel_event is not None and cancel_event.is_set():
                raise CancelledError()
            vec = self.cache.get(key)
            if vec is None:
                misses.setdefault(key, []).append(i)
            else:
                out[i] = vec

        if misses:
            pending = list(misses)
            logger.debug("Encoding {} uncached texts", len(pending))
            try:
                vectors = self.embedder.embed(pending)
            except EmbedderError:
                raise
            except Exception as e:
                raise EmbedderError(f"Embedding failed: {e}") from e
            if len(vectors) != len(pending):
                raise EmbedderError(
                    f"Encoder returned {len(vectors)} vectors for {len(pending)} texts"
                )
            for key, vec in zip(pending, vectors):
                if cancel_event is not None and cancel_event.is_set():
                    raise CancelledError()
                stored = self.cache.put(key, vec)
                for i in misses[key]:
                    out[i] = stored

        return [v for v in out if v is not None]
