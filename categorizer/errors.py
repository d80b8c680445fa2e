"""Categorizer error types."""

from __future__ import annotations


class CategorizerError(Exception):
    """Base error for all categorizer failures."""


class ConfigError(CategorizerError):
    """Config or rule file could not be read or decoded."""


class EmbedderError(CategorizerError):
    """The text encoder failed or returned an unusable result."""


class CacheCorruptionError(CategorizerError):
    """On-disk cache record is too short to hold its header."""

    def __init__(self, path, size: int) -> None:
        super().__init__(f"cache record {path} is truncated ({size} bytes, header needs 4)")
        self.path = path
        self.size = size


class DimensionMismatchError(CategorizerError, ValueError):
    """Vectors of different dimensionality were compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"vector dimension mismatch: {left} != {right}")
        self.left = left
        self.right = right


class RankingError(CategorizerError):
    """Ranking failed for one input of a batch."""

    def __init__(self, index: int, text: str, cause: BaseException) -> None:
        super().__init__(f"ranking failed for item {index}: {cause}")
        self.index = index
        self.text = text
        self.cause = cause
