from __future__ import annotations

from typing import List

from ragfusion.core.types import AggregatedSourceChunk


def rank_and_filter(
    chunks: List[AggregatedSourceChunk],
    min_confidence: float = 0.1,
    max_results: int = 20,
) -> List[AggregatedSourceChunk]:
    # Filter first, then a stable sort so equal scores keep first-seen order
    kept = [c for c in chunks if c.confidence_level >= min_confidence]
    kept.sort(key=lambda c: c.aggregated_score, reverse=True)
    return kept[:max_results]
