import pandas as pd
import pytest

from categorizer.export import (
    ensure_seed_file,
    export_frame,
    read_input_texts,
    read_seed_file,
    write_results_csv,
)
from categorizer.pipeline_types import Provenance, ResultRow, Source, Suggestion


def _sug(label, score, *sources, aliases=()):
    return Suggestion(label=label, score=score, source=Provenance(tuple(sources)), aliases=aliases)


ROWS = [
    ResultRow(
        text="VRでの授業",
        suggestions=[
            _sug("VR空間", 0.81234, Source.SEED, aliases=("メタバース",)),
            _sug("007 情報科学", 0.5, Source.SEED, Source.TAXONOMY),
        ],
        taxonomy_suggestions=[_sug("370 教育", 0.6, Source.TAXONOMY)],
        need_review=False,
    ),
    ResultRow(text="???", need_review=True),
]


def test_export_frame_columns_and_formatting():
    df = export_frame(ROWS, top_k=3)
    assert list(df.columns) == [
        "text",
        "suggestion1", "score1", "source1",
        "suggestion2", "score2", "source2",
        "suggestion3", "score3", "source3",
        "need_review",
    ]
    first = df.iloc[0]
    assert first["suggestion1"] == "VR空間 (similar: メタバース)"
    assert first["score1"] == "0.812"
    assert first["source2"] == "seed,ndc"
    assert first["suggestion3"] == ""
    assert first["need_review"] == "no"
    assert df.iloc[1]["need_review"] == "yes"


def test_export_frame_split_adds_ndc_columns():
    df = export_frame(ROWS, top_k=3, split=True)
    assert "ndc_suggestion1" in df.columns
    assert "ndc_source3" in df.columns
    assert df.columns[-1] == "need_review"
    assert df.iloc[0]["ndc_suggestion1"] == "370 教育"
    assert df.iloc[0]["ndc_score1"] == "0.600"


def test_write_results_csv(tmp_path):
    out = write_results_csv(ROWS, tmp_path / "out" / "result.csv", top_k=3)
    df = pd.read_csv(out, dtype=str, keep_default_na=False)
    assert len(df) == 2
    assert df.iloc[0]["text"] == "VRでの授業"


def test_read_input_texts_plain_text(tmp_path):
    path = tmp_path / "in.txt"
    path.write_text("first item\n\n   \nsecond　item\n", encoding="utf-8")
    assert read_input_texts(path) == ["first item", "second item"]


def test_read_input_texts_detects_text_column(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("id,本文\n1,仮想空間の研究\n2,\n3,授業設計\n", encoding="utf-8")
    assert read_input_texts(path) == ["仮想空間の研究", "授業設計"]


def test_read_input_texts_joins_title_and_summary(tmp_path):
    path = tmp_path / "in.tsv"
    path.write_text("title\tsummary\nVR教材\t授業での活用\n", encoding="utf-8")
    assert read_input_texts(path) == ["VR教材 授業での活用"]


def test_read_input_texts_named_column(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("a,b\nx,y\n", encoding="utf-8")
    assert read_input_texts(path, column="B") == ["y"]
    with pytest.raises(ValueError):
        read_input_texts(path, column="missing")
    with pytest.raises(FileNotFoundError):
        read_input_texts(tmp_path / "none.txt")


def test_seed_file_helpers(tmp_path):
    path = tmp_path / "seeds.txt"
    assert ensure_seed_file(path, ["VR空間", "教育"]) is True
    assert ensure_seed_file(path, ["other"]) is False
    assert read_seed_file(path) == ["VR空間", "教育"]

    path.write_text("VR空間, vr空間;教育\n", encoding="utf-8")
    assert read_seed_file(path) == ["VR空間", "教育"]


def test_seed_csv_uses_category_column(tmp_path):
    path = tmp_path / "seeds.csv"
    path.write_text("id,カテゴリ\n1,アバター\n2,教育\n3,アバター\n", encoding="utf-8")
    assert read_seed_file(path) == ["アバター", "教育"]
