"""
Near-duplicate collapsing across technique results.

Two chunks are "the same passage" when they sit in the same document at the
same or an adjacent chunk index, or when their lower-cased whitespace token
sets have a Jaccard similarity at or above the threshold.

Merging is a single left-to-right pass: each still-unassigned chunk becomes a
canonical record and absorbs every later unassigned chunk that is similar to
it directly. Similarity is not followed transitively, so a chunk similar to
two canonical records always lands in the first one. The output of one pass
contains no similar pair, which makes a second pass a no-op.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Set

from ragfusion.core.types import AggregatedSourceChunk, DuplicateInfo

DEFAULT_DUPLICATE_THRESHOLD = 0.85


def _tokens(text: str) -> Set[str]:
    return set(text.lower().split())


def jaccard_similarity(text1: str, text2: str) -> float:
    words1 = _tokens(text1)
    words2 = _tokens(text2)
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def are_similar(
    a: AggregatedSourceChunk,
    b: AggregatedSourceChunk,
    threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
) -> bool:
    if a.document_id == b.document_id and abs(a.chunk_index - b.chunk_index) <= 1:
        return True
    return jaccard_similarity(a.content, b.content) >= threshold


def _merge(canonical: AggregatedSourceChunk, duplicates: List[AggregatedSourceChunk]) -> AggregatedSourceChunk:
    scores: Dict[str, float] = dict(canonical.technique_scores)
    ranks: Dict[str, int] = dict(canonical.technique_ranks)
    found = list(canonical.found_by_techniques)

    for dup in duplicates:
        for technique in dup.found_by_techniques:
            if technique not in found:
                found.append(technique)
        # A technique already on the canonical record takes the later entry
        scores.update(dup.technique_scores)
        ranks.update(dup.technique_ranks)

    similarity = sum(jaccard_similarity(canonical.content, d.content) for d in duplicates) / len(duplicates)

    return replace(
        canonical,
        technique_scores=scores,
        technique_ranks=ranks,
        found_by_techniques=found,
        duplicate_info=DuplicateInfo(
            canonical_id=canonical.id,
            merged_ids=[d.id for d in duplicates],
            similarity_to_canonical=similarity,
        ),
    )


def deduplicate(
    chunks: List[AggregatedSourceChunk],
    threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
) -> List[AggregatedSourceChunk]:
    # Processed state is positional: two techniques may return the same chunk id
    processed = [False] * len(chunks)
    out: List[AggregatedSourceChunk] = []

    for i, canonical in enumerate(chunks):
        if processed[i]:
            continue
        processed[i] = True

        duplicates: List[AggregatedSourceChunk] = []
        for j in range(i + 1, len(chunks)):
            if not processed[j] and are_similar(canonical, chunks[j], threshold):
                duplicates.append(chunks[j])
                processed[j] = True

        out.append(_merge(canonical, duplicates) if duplicates else canonical)

    return out
