import math

import pytest

from ragfusion.aggregation.confidence import apply_confidence, score_variance
from ragfusion.aggregation.ranking import rank_and_filter
from ragfusion.core.config import CONFIDENCE_ALGORITHMS
from ragfusion.core.errors import ConfigurationError
from ragfusion.core.types import AggregatedSourceChunk, NormalizedMetadata, SourceChunk


def agg(cid, score, scores=None, confidence=0.0):
    scores = scores if scores is not None else {"s": score}
    return AggregatedSourceChunk(
        chunk=SourceChunk(cid, "d1", f"text {cid}"),
        aggregated_score=score,
        technique_scores=dict(scores),
        technique_ranks={t: 1 for t in scores},
        found_by_techniques=list(scores),
        normalized_metadata=NormalizedMetadata(confidence_level=confidence),
    )


@pytest.mark.parametrize("algorithm", CONFIDENCE_ALGORITHMS)
def test_confidence_always_in_unit_interval(algorithm):
    chunks = [
        agg("a", 5.0, {"s": 5.0, "l": -3.0}),
        agg("b", -1.0),
        agg("c", 0.0, {}),
        agg("d", 0.5, {"s": 0.5, "l": 0.5, "h": 0.5, "r": 0.5, "x": 0.5, "y": 0.5}),
        agg("e", float("nan")),
    ]
    for c in apply_confidence(chunks, algorithm):
        assert 0.0 <= c.confidence_level <= 1.0
        assert not math.isnan(c.confidence_level)


def test_score_based():
    (c,) = apply_confidence([agg("a", 0.42)], "score_based")
    assert c.confidence_level == pytest.approx(0.42)


def test_technique_weighted():
    (c,) = apply_confidence([agg("a", 0.6, {"s": 0.6, "l": 0.6})], "technique_weighted")
    assert c.confidence_level == pytest.approx((0.6 + 2 / 5) / 2)


def test_consensus_based():
    multi, single = apply_confidence(
        [agg("a", 0.6, {"s": 0.8, "l": 0.4}), agg("b", 0.6)],
        "consensus_based",
    )
    # variance of (0.8, 0.4) is 0.04
    assert multi.confidence_level == pytest.approx((0.6 + 0.96) / 2)
    assert single.confidence_level == pytest.approx((0.6 + 0.5) / 2)


def test_statistical():
    same = apply_confidence([agg("a", 0.3), agg("b", 0.3)], "statistical")
    assert [c.confidence_level for c in same] == [0.5, 0.5]

    low, high = apply_confidence([agg("a", 0.1), agg("b", 0.9)], "statistical")
    assert high.confidence_level > 0.5 > low.confidence_level


def test_score_variance():
    assert score_variance([0.5]) == 0.0
    assert score_variance([]) == 0.0
    assert score_variance([0.8, 0.4]) == pytest.approx(0.04)


def test_unknown_algorithm_rejected():
    with pytest.raises(ConfigurationError):
        apply_confidence([], "bayesian")


def test_rank_filters_then_sorts_then_truncates():
    chunks = [
        agg("low_conf", 0.99, confidence=0.05),
        agg("a", 0.3, confidence=0.5),
        agg("b", 0.7, confidence=0.5),
        agg("c", 0.5, confidence=0.5),
    ]
    out = rank_and_filter(chunks, min_confidence=0.1, max_results=2)
    assert [c.id for c in out] == ["b", "c"]


def test_rank_ties_keep_first_seen_order():
    chunks = [agg("x", 0.5, confidence=0.5), agg("y", 0.5, confidence=0.5), agg("z", 0.6, confidence=0.5)]
    out = rank_and_filter(chunks)
    assert [c.id for c in out] == ["z", "x", "y"]


def test_rank_output_is_non_increasing():
    chunks = [agg(str(i), s, confidence=0.9) for i, s in enumerate([0.2, 0.9, 0.4, 0.9, 0.1])]
    scores = [c.aggregated_score for c in rank_and_filter(chunks)]
    assert scores == sorted(scores, reverse=True)
