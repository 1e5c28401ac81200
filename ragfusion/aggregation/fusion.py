from __future__ import annotations

from dataclasses import replace
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ragfusion.core.config import FUSION_STRATEGIES
from ragfusion.core.errors import ConfigurationError
from ragfusion.core.types import AggregatedSourceChunk, TechniqueResponse
from ragfusion.retrieval.fusion import RRF_K

# Reliability assumed for a technique with no response to judge it by
DEFAULT_RELIABILITY = 0.5


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _weighted_mean(scores: Mapping[str, float], weights: Mapping[str, float], default: float) -> float:
    weighted = 0.0
    total = 0.0
    for technique, score in scores.items():
        w = weights.get(technique, default)
        weighted += score * w
        total += w
    return weighted / total if total > 0 else 0.0


def technique_reliability(responses: Sequence[TechniqueResponse]) -> Dict[str, float]:
    """
    Score each technique from its own run: faster, fuller and more confident is better.

    reliability = (time_score + result_count_score + confidence_score) / 3
    """
    reliability: Dict[str, float] = {}
    for response in responses:
        if not response.is_successful:
            reliability[response.technique] = 0.0
            continue
        time_score = 1.0 - min(response.execution_time_ms / 30000.0, 1.0)
        count_score = min(len(response.source_chunks) / 10.0, 1.0)
        confidence = response.confidence_score if response.confidence_score is not None else 0.5
        reliability[response.technique] = (time_score + count_score + confidence) / 3.0
    return reliability


def reciprocal_rank_fusion(chunks: List[AggregatedSourceChunk], **_) -> List[AggregatedSourceChunk]:
    return [
        replace(c, aggregated_score=sum(1.0 / (RRF_K + rank) for rank in c.technique_ranks.values()))
        for c in chunks
    ]


def weighted_sum(
    chunks: List[AggregatedSourceChunk],
    technique_weights: Optional[Mapping[str, float]] = None,
    **_,
) -> List[AggregatedSourceChunk]:
    weights = technique_weights or {}
    return [replace(c, aggregated_score=_weighted_mean(c.technique_scores, weights, 1.0)) for c in chunks]


def comb_sum(chunks: List[AggregatedSourceChunk], **_) -> List[AggregatedSourceChunk]:
    # Mean of the contributing scores, not their raw sum
    return [replace(c, aggregated_score=_mean(list(c.technique_scores.values()))) for c in chunks]


def comb_max(chunks: List[AggregatedSourceChunk], **_) -> List[AggregatedSourceChunk]:
    return [replace(c, aggregated_score=max(c.technique_scores.values(), default=0.0)) for c in chunks]


def adaptive(
    chunks: List[AggregatedSourceChunk],
    responses: Sequence[TechniqueResponse] = (),
    **_,
) -> List[AggregatedSourceChunk]:
    reliability = technique_reliability(responses)
    return [
        replace(c, aggregated_score=_weighted_mean(c.technique_scores, reliability, DEFAULT_RELIABILITY))
        for c in chunks
    ]


def vote_based(chunks: List[AggregatedSourceChunk], **_) -> List[AggregatedSourceChunk]:
    max_votes = max((len(c.found_by_techniques) for c in chunks), default=0)
    out: List[AggregatedSourceChunk] = []
    for c in chunks:
        vote_score = len(c.found_by_techniques) / max_votes if max_votes > 0 else 0.0
        avg_score = _mean(list(c.technique_scores.values()))
        out.append(replace(c, aggregated_score=(vote_score + avg_score) / 2.0))
    return out


_STRATEGIES: Dict[str, Callable[..., List[AggregatedSourceChunk]]] = {
    "reciprocal_rank_fusion": reciprocal_rank_fusion,
    "weighted_sum": weighted_sum,
    "comb_sum": comb_sum,
    "comb_max": comb_max,
    "adaptive": adaptive,
    "vote_based": vote_based,
}


def apply_fusion(
    chunks: List[AggregatedSourceChunk],
    strategy: str = "reciprocal_rank_fusion",
    responses: Sequence[TechniqueResponse] = (),
    technique_weights: Optional[Mapping[str, float]] = None,
) -> List[AggregatedSourceChunk]:
    """Compute `aggregated_score` for every canonical chunk. Input records are left untouched."""
    fn = _STRATEGIES.get(strategy)
    if fn is None:
        raise ConfigurationError("fusion_strategy", strategy, f"expected one of {FUSION_STRATEGIES}")
    return fn(chunks, responses=responses, technique_weights=technique_weights)
