"""
Cross-technique statistics and the fused answer for a ranked result set.

Everything here reads only successful technique responses; failed, timed out
and cancelled responses are reported by the caller but never scored.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from ragfusion.core.types import AggregatedSourceChunk, AggregationInsights, TechniqueResponse

TOP_N = 3
EVIDENCE_PREVIEW_CHARS = 200
NO_RESULTS_ANSWER = "No relevant information found."


def _successful(responses: Sequence[TechniqueResponse]) -> List[TechniqueResponse]:
    return [r for r in responses if r.is_successful]


def best_performing_technique(responses: Sequence[TechniqueResponse]) -> str:
    best: Optional[str] = None
    best_total = 0.0
    for response in _successful(responses):
        total = sum(c.score for c in response.source_chunks)
        # strict ">" keeps the first response on ties
        if best is None or total > best_total:
            best, best_total = response.technique, total
    return best or "none"


def technique_agreement(chunks: Sequence[AggregatedSourceChunk]) -> float:
    if not chunks:
        return 0.0
    shared = sum(1 for c in chunks if len(c.found_by_techniques) > 1)
    return shared / len(chunks)


def coverage_overlap(responses: Sequence[TechniqueResponse]) -> float:
    """Mean pairwise Jaccard similarity of the document-id sets each response touched."""
    successful = _successful(responses)
    if len(successful) <= 1:
        return 1.0

    doc_sets = [{c.document_id for c in r.source_chunks} for r in successful]
    total = 0.0
    pairs = 0
    for i in range(len(doc_sets)):
        for j in range(i + 1, len(doc_sets)):
            union = doc_sets[i] | doc_sets[j]
            total += len(doc_sets[i] & doc_sets[j]) / len(union) if union else 0.0
            pairs += 1
    return total / pairs


def diversity_score(chunks: Sequence[AggregatedSourceChunk]) -> float:
    if not chunks:
        return 0.0
    return min(len({c.document_id for c in chunks}) / len(chunks), 1.0)


def generate_insights(
    chunks: Sequence[AggregatedSourceChunk],
    responses: Sequence[TechniqueResponse],
) -> AggregationInsights:
    return AggregationInsights(
        best_performing_technique=best_performing_technique(responses),
        technique_agreement_score=technique_agreement(chunks),
        coverage_overlap=coverage_overlap(responses),
        diversity_score=diversity_score(chunks),
    )


def fuse_answer(
    chunks: Sequence[AggregatedSourceChunk],
    responses: Sequence[TechniqueResponse],
) -> str:
    if not chunks:
        return NO_RESULTS_ANSWER

    top = chunks[:TOP_N]
    answers = [r.answer for r in _successful(responses) if r.answer]

    if answers:
        evidence = "\n".join(
            f"{i}. {c.content[:EVIDENCE_PREVIEW_CHARS]}..." for i, c in enumerate(top, start=1)
        )
        return f"{answers[0]}\n\nSupporting evidence:\n{evidence}"

    return "\n\n".join(c.content for c in top)


def overall_confidence(
    chunks: Sequence[AggregatedSourceChunk],
    responses: Sequence[TechniqueResponse],
) -> float:
    if not chunks or not responses:
        return 0.0
    top = chunks[:TOP_N]
    avg_confidence = sum(c.confidence_level for c in top) / len(top)
    success_rate = len(_successful(responses)) / len(responses)
    return (avg_confidence + success_rate) / 2.0
