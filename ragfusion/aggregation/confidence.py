from __future__ import annotations

import math
import statistics
from dataclasses import replace
from typing import Callable, Dict, Iterable, List

from ragfusion.core.config import CONFIDENCE_ALGORITHMS
from ragfusion.core.errors import ConfigurationError
from ragfusion.core.types import AggregatedSourceChunk


def clamp_unit(x: float) -> float:
    if math.isnan(x):
        return 0.0
    return max(0.0, min(1.0, x))


def score_variance(scores: Iterable[float]) -> float:
    """Population variance of per-technique scores, clamped to [0, 1]; 0 for fewer than two."""
    values = list(scores)
    if len(values) <= 1:
        return 0.0
    return min(statistics.pvariance(values), 1.0)


def _with_confidence(chunk: AggregatedSourceChunk, confidence: float) -> AggregatedSourceChunk:
    return replace(
        chunk,
        normalized_metadata=replace(chunk.normalized_metadata, confidence_level=clamp_unit(confidence)),
    )


def score_based(chunks: List[AggregatedSourceChunk]) -> List[AggregatedSourceChunk]:
    return [_with_confidence(c, c.aggregated_score) for c in chunks]


def technique_weighted(chunks: List[AggregatedSourceChunk]) -> List[AggregatedSourceChunk]:
    return [
        _with_confidence(c, (c.aggregated_score + min(len(c.found_by_techniques) / 5.0, 1.0)) / 2.0)
        for c in chunks
    ]


def consensus_based(chunks: List[AggregatedSourceChunk]) -> List[AggregatedSourceChunk]:
    out: List[AggregatedSourceChunk] = []
    for c in chunks:
        if len(c.technique_scores) >= 2:
            consensus = 1.0 - score_variance(c.technique_scores.values())
        else:
            consensus = 0.5
        out.append(_with_confidence(c, (c.aggregated_score + consensus) / 2.0))
    return out


def statistical(chunks: List[AggregatedSourceChunk]) -> List[AggregatedSourceChunk]:
    if not chunks:
        return []
    scores = [c.aggregated_score for c in chunks]
    mean = statistics.fmean(scores)
    std = statistics.pstdev(scores)

    out: List[AggregatedSourceChunk] = []
    for c in chunks:
        z = (c.aggregated_score - mean) / std if std > 0 else 0.0
        out.append(_with_confidence(c, 1.0 / (1.0 + math.exp(-z))))
    return out


_ALGORITHMS: Dict[str, Callable[[List[AggregatedSourceChunk]], List[AggregatedSourceChunk]]] = {
    "score_based": score_based,
    "technique_weighted": technique_weighted,
    "consensus_based": consensus_based,
    "statistical": statistical,
}


def apply_confidence(
    chunks: List[AggregatedSourceChunk],
    algorithm: str = "consensus_based",
) -> List[AggregatedSourceChunk]:
    fn = _ALGORITHMS.get(algorithm)
    if fn is None:
        raise ConfigurationError("confidence_algorithm", algorithm, f"expected one of {CONFIDENCE_ALGORITHMS}")
    return fn(chunks)
