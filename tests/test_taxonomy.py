import pytest

from categorizer.taxonomy import DEFAULT_NDC_ENTRIES, TaxonomyEntry, load_taxonomy_file


def test_embed_text_joins_code_and_label():
    assert TaxonomyEntry("007", " 情報科学 ").embed_text() == "007 情報科学"


def test_default_entries_cover_major_classes():
    codes = {e.code for e in DEFAULT_NDC_ENTRIES}
    assert {f"{i}00" for i in range(1, 10)} <= codes
    assert "000" in codes
    assert len({e.embed_text() for e in DEFAULT_NDC_ENTRIES}) == len(DEFAULT_NDC_ENTRIES)


def test_load_taxonomy_file_reads_csv(tmp_path):
    path = tmp_path / "ndc.csv"
    path.write_text("Code,Label\n007,情報科学\n,missing\n370,教育\n", encoding="utf-8")
    entries = load_taxonomy_file(path)
    assert entries == [TaxonomyEntry("007", "情報科学"), TaxonomyEntry("370", "教育")]


def test_load_taxonomy_file_requires_columns(tmp_path):
    path = tmp_path / "ndc.tsv"
    path.write_text("a\tb\n1\t2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_taxonomy_file(path)
