from __future__ import annotations

"""
File I/O around a classification run: seed lists, input texts and the
result CSV.

Input files may be plain text (one item per non-empty line) or CSV/TSV.
For delimited files the text column is either named explicitly or
auto-detected from common header names; when only title / body columns
exist they are joined into one text.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import pandas as pd
from loguru import logger

from .normalize import normalize, parse_category_text, unique_normalized
from .pipeline_types import ResultRow, Suggestion

PathLike = Union[str, Path]

TEXT_COLUMNS = ("text", "本文", "content", "body", "message", "発表抜粋")
TITLE_COLUMNS = ("title", "タイトル", "発表のタイトル", "題名", "名称")
BODY_COLUMNS = ("summary", "概要", "description", "発表の概要", "本文", "発表抜粋")
CATEGORY_COLUMNS = ("カテゴリ", "カテゴリー", "category")


# ---------- seeds ----------

def ensure_seed_file(path: PathLike, defaults: Iterable[str]) -> bool:
    """Write ``defaults`` one per line if ``path`` does not exist yet."""
    path = Path(path)
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(defaults) + "\n", encoding="utf-8")
    logger.info("Wrote default seed categories to {}", path)
    return True


def read_seed_file(path: PathLike) -> List[str]:
    """
    Seed labels from a text file (newline / comma / semicolon separated) or
    from the category column of a CSV/TSV.  Duplicates by normalised key are
    dropped, first occurrence wins.
    """
    path = Path(path)
    if path.suffix.lower() in (".csv", ".tsv"):
        df = _read_delimited(path)
        col = _pick_column(df, CATEGORY_COLUMNS) or df.columns[0]
        return unique_normalized(df[col].tolist())
    return unique_normalized(parse_category_text(path.read_text(encoding="utf-8-sig")))


# ---------- inputs ----------

def _read_delimited(path: Path) -> pd.DataFrame:
    sep = "\t" if path.suffix.lower() == ".tsv" else ","
    return pd.read_csv(path, sep=sep, dtype=str, encoding="utf-8-sig", keep_default_na=False)


def _pick_column(df: pd.DataFrame, names: Sequence[str]) -> Optional[str]:
    cols = {str(c).strip().lower(): c for c in df.columns}
    for name in names:
        if name.lower() in cols:
            return cols[name.lower()]
    return None


def read_input_texts(path: PathLike, column: Optional[str] = None) -> List[str]:
    """Texts to classify, in file order, empty items skipped."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    if path.suffix.lower() not in (".csv", ".tsv"):
        lines = path.read_text(encoding="utf-8-sig").splitlines()
        texts = [t for t in (normalize(line) for line in lines) if t]
        logger.info("Read {} texts from {}", len(texts), path)
        return texts

    df = _read_delimited(path)
    if column:
        col = _pick_column(df, [column])
        if col is None:
            raise ValueError(f"Column {column!r} not found. Found: {list(df.columns)}")
    else:
        col = _pick_column(df, TEXT_COLUMNS)

    if col is not None:
        raw = df[col].tolist()
    else:
        tcol, bcol = _pick_column(df, TITLE_COLUMNS), _pick_column(df, BODY_COLUMNS)
        if tcol is None and bcol is None:
            raw = df[df.columns[0]].tolist()
        else:
            titles = df[tcol].tolist() if tcol is not None else [""] * len(df)
            bodies = df[bcol].tolist() if bcol is not None else [""] * len(df)
            raw = [f"{t} {b}" for t, b in zip(titles, bodies)]

    texts = [t for t in (normalize(str(v)) for v in raw) if t]
    logger.info("Read {} texts from {}", len(texts), path)
    return texts


# ---------- results ----------

def _at(suggestions: Sequence[Suggestion], i: int) -> Optional[Suggestion]:
    return suggestions[i] if i < len(suggestions) else None


def export_frame(rows: Sequence[ResultRow], top_k: int, split: bool = False) -> pd.DataFrame:
    """
    One row per result: ``text``, then ``suggestionN / scoreN / sourceN`` for
    N in 1..top_k, then (split mode) ``ndc_suggestionN / ndc_scoreN /
    ndc_sourceN``, then ``need_review`` as yes/no.  Scores use 3 decimals;
    missing ranks are empty.
    """
    columns = ["text"]
    for i in range(1, top_k + 1):
        columns += [f"suggestion{i}", f"score{i}", f"source{i}"]
    if split:
        for i in range(1, top_k + 1):
            columns += [f"ndc_suggestion{i}", f"ndc_score{i}", f"ndc_source{i}"]
    columns.append("need_review")

    records = []
    for row in rows:
        rec = [row.text]
        groups = [row.suggestions] + ([row.taxonomy_suggestions] if split else [])
        for sugs in groups:
            for i in range(top_k):
                s = _at(sugs, i)
                rec += [s.display_label(), f"{s.score:.3f}", str(s.source)] if s else ["", "", ""]
        rec.append("yes" if row.need_review else "no")
        records.append(rec)
    return pd.DataFrame(records, columns=columns)


def write_results_csv(rows: Sequence[ResultRow], path: PathLike, top_k: int, split: bool = False) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    export_frame(rows, top_k, split).to_csv(path, index=False, encoding="utf-8")
    logger.info("Wrote {} rows to {}", len(rows), path)
    return path
