from __future__ import annotations

"""NDC (Nippon Decimal Classification) dictionary used as the secondary label pool."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

import pandas as pd
from loguru import logger

from .normalize import normalize


@dataclass(frozen=True)
class TaxonomyEntry:
    code: str
    label: str

    def embed_text(self) -> str:
        """Text embedded for ranking; also used as the display label."""
        return normalize(f"{self.code} {self.label}")


# NDC 10 major classes plus representative finer-grained entries
DEFAULT_NDC_ENTRIES: List[TaxonomyEntry] = [
    TaxonomyEntry("000", "総記"),
    TaxonomyEntry("100", "哲学"),
    TaxonomyEntry("200", "歴史"),
    TaxonomyEntry("300", "社会科学"),
    TaxonomyEntry("400", "自然科学"),
    TaxonomyEntry("500", "技術・工学・工業"),
    TaxonomyEntry("600", "産業"),
    TaxonomyEntry("700", "芸術・美術"),
    TaxonomyEntry("800", "言語"),
    TaxonomyEntry("900", "文学"),
    TaxonomyEntry("007", "情報科学"),
    TaxonomyEntry("336", "経営"),
    TaxonomyEntry("657", "会計"),
    TaxonomyEntry("910", "日本文学"),
    TaxonomyEntry("913", "日本小説"),
    TaxonomyEntry("930", "外国文学"),
    TaxonomyEntry("320", "法律"),
    TaxonomyEntry("360", "社会問題"),
    TaxonomyEntry("610", "農業"),
    TaxonomyEntry("620", "工業"),
    TaxonomyEntry("830", "英語"),
    TaxonomyEntry("910.26", "近代文学"),
]


def load_taxonomy_file(path: Union[str, Path]) -> List[TaxonomyEntry]:
    """
    Read a CSV/TSV with ``code`` and ``label`` columns (case-insensitive).
    Rows missing either value are skipped.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Taxonomy file not found: {path}")
    sep = "\t" if path.suffix.lower() in (".tsv", ".tab") else ","
    df = pd.read_csv(path, sep=sep, dtype=str, encoding="utf-8-sig")
    cols = {c.strip().lower(): c for c in df.columns}
    ccol, lcol = cols.get("code"), cols.get("label")
    if not ccol or not lcol:
        raise ValueError(f"Expected columns 'code' and 'label'. Found: {list(df.columns)}")

    entries: List[TaxonomyEntry] = []
    for code, label in df[[ccol, lcol]].fillna("").itertuples(index=False, name=None):
        code, label = str(code).strip(), str(label).strip()
        if code and label:
            entries.append(TaxonomyEntry(code, label))
    logger.info("Loaded {} taxonomy entries from {}", len(entries), path)
    return entries
