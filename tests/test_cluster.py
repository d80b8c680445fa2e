import numpy as np

from categorizer.cluster import cluster_suggestions
from categorizer.pipeline_types import Provenance, Source, Suggestion


def _sug(label, score, source=Source.SEED):
    return Suggestion(label=label, score=score, source=Provenance.of(source))


def _lookup(vectors):
    table = {k: np.asarray(v, dtype="float32") for k, v in vectors.items()}
    return table.get


def test_near_duplicates_merge_under_best_member():
    lookup = _lookup({
        "VR空間": [1.0, 0.0],
        "メタバース": [0.99, 0.05],
        "教育": [0.0, 1.0],
    })
    sugs = [_sug("メタバース", 0.7), _sug("VR空間", 0.8), _sug("教育", 0.5)]
    out = cluster_suggestions(sugs, 0.9, lookup)

    assert [s.label for s in out] == ["VR空間", "教育"]
    assert out[0].score == 0.8
    assert out[0].aliases == ("メタバース",)
    assert out[0].display_label() == "VR空間 (similar: メタバース)"


def test_merged_provenance_records_both_sources():
    lookup = _lookup({"情報科学": [1.0, 0.0], "007 情報科学": [1.0, 0.01]})
    sugs = [_sug("情報科学", 0.9), _sug("007 情報科学", 0.6, Source.TAXONOMY)]
    out = cluster_suggestions(sugs, 0.8, lookup)
    assert len(out) == 1
    assert out[0].source.is_merged
    assert str(out[0].source) == "seed,ndc"


def test_tau_one_keeps_distinct_vectors_apart():
    lookup = _lookup({"a": [1.0, 0.0], "b": [0.99, 0.14]})
    out = cluster_suggestions([_sug("a", 0.9), _sug("b", 0.8)], 1.0, lookup)
    assert [s.label for s in out] == ["a", "b"]


def test_non_positive_tau_is_a_no_op():
    sugs = [_sug("b", 0.2), _sug("a", 0.9)]
    lookup = _lookup({"a": [1.0], "b": [1.0]})
    assert cluster_suggestions(sugs, 0.0, lookup) == sugs
    assert cluster_suggestions(sugs, -1.0, lookup) == sugs


def test_equal_scores_keep_first_seen_representative():
    lookup = _lookup({"x": [1.0, 0.0], "y": [1.0, 0.0]})
    out = cluster_suggestions([_sug("y", 0.5), _sug("x", 0.5)], 0.9, lookup)
    assert len(out) == 1
    assert out[0].label == "y"
    assert out[0].aliases == ("x",)


def test_labels_without_vectors_stay_singletons():
    lookup = _lookup({"a": [1.0, 0.0]})
    out = cluster_suggestions([_sug("a", 0.9), _sug("ghost", 0.95)], 0.5, lookup)
    assert [s.label for s in out] == ["ghost", "a"]
    assert all(not s.aliases for s in out)
