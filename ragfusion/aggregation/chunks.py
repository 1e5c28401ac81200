from __future__ import annotations

from typing import Iterable, List

from ragfusion.core.types import AggregatedSourceChunk, NormalizedMetadata, TechniqueResponse


def relevance_tier(score: float) -> str:
    if score >= 0.7:
        return "high"
    if score >= 0.4:
        return "medium"
    return "low"


def _unit(x: float) -> float:
    return max(0.0, min(1.0, x))


def collect_chunks(responses: Iterable[TechniqueResponse]) -> List[AggregatedSourceChunk]:
    """
    Lift every chunk of every response into a single-technique aggregated record.

    Order is response order, then each technique's own rank order, which is the
    iteration order deduplication depends on.
    """
    out: List[AggregatedSourceChunk] = []
    for response in responses:
        technique = response.technique
        for rank, chunk in enumerate(response.source_chunks, start=1):
            meta = chunk.metadata
            out.append(
                AggregatedSourceChunk(
                    chunk=chunk,
                    aggregated_score=chunk.score,
                    technique_scores={technique: chunk.score},
                    technique_ranks={technique: rank},
                    found_by_techniques=[technique],
                    normalized_metadata=NormalizedMetadata(
                        document_title=str(meta.get("document_title") or "Unknown"),
                        document_type=str(meta.get("document_type") or "unknown"),
                        relevance_tier=relevance_tier(chunk.score),
                        confidence_level=_unit(chunk.score),
                    ),
                )
            )
    return out
