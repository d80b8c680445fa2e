from __future__ import annotations

"""
Text normalisation helpers shared by seeds, the NDC dictionary and queries.

The goal is to have a single, well-defined place that turns free-form
labels and input texts into one canonical view, so the embedding cache,
the candidate keys and the keyword rules all agree.

Public helpers:

* normalize(text) -> str
    NFKC + whitespace collapse; the display form of a label.

* normalize_key(text) -> str
    Lower-cased ``normalize``; dedup identity and keyword-matching view.

* unique_normalized(labels) -> List[str]
    Display labels, first occurrence wins per key.
"""

import re
import unicodedata
from typing import Iterable, List, Optional

_WS_RE = re.compile(r"\s+")
_CATEGORY_SPLIT_RE = re.compile(r"[\n\r,;\t]+")


def _strip_controls(text: str) -> str:
    # Cc covers NUL, BEL, ESC etc.; whitespace controls are collapsed later
    return "".join(
        ch for ch in text if ch.isspace() or unicodedata.category(ch) != "Cc"
    )


def normalize(text: Optional[str]) -> str:
    """Width/compatibility-normalise and collapse whitespace."""
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)
    text = unicodedata.normalize("NFKC", text)
    text = _strip_controls(text)
    return _WS_RE.sub(" ", text).strip()


def normalize_key(text: Optional[str]) -> str:
    return normalize(text).lower()


def unique_normalized(labels: Iterable[Optional[str]]) -> List[str]:
    seen = set()
    out: List[str] = []
    for raw in labels:
        display = normalize(raw)
        if not display:
            continue
        key = display.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(display)
    return out


def parse_category_text(text: Optional[str]) -> List[str]:
    """Split a pasted/loaded category list on newlines, commas, semicolons or tabs."""
    if not text:
        return []
    parts = (p.strip() for p in _CATEGORY_SPLIT_RE.split(text))
    return [p for p in parts if p]
