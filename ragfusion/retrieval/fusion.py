from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from ragfusion.core.config import HYBRID_SCORING_METHODS
from ragfusion.core.errors import ConfigurationError, InvalidWeightsError
from ragfusion.core.types import HybridCandidate, RetrievedItem, SourceChunk
from ragfusion.retrieval.normalize import normalize_scores

# Standard RRF damping constant
RRF_K = 60


@dataclass(frozen=True)
class PairWeights:
    w_semantic: float = 0.6
    w_lexical: float = 0.4

    def __post_init__(self) -> None:
        if abs(self.w_semantic + self.w_lexical - 1.0) > 1e-9:
            raise InvalidWeightsError(self.w_semantic, self.w_lexical)


def _rrf_contribution(rank: int, k: int = RRF_K) -> float:
    # rank is 1-based; 0 means the candidate is missing from that list
    if rank <= 0:
        return 0.0
    return 1.0 / (k + rank)


def _mean_positive(values: List[float]) -> float:
    present = [v for v in values if v > 0]
    return sum(present) / len(present) if present else 0.0


def fuse_pair(
    semantic: List[RetrievedItem],
    lexical: List[RetrievedItem],
    weights: PairWeights = PairWeights(),
    method: str = "weighted_sum",
    normalize: bool = True,
    normalization: str = "min_max",
) -> List[HybridCandidate]:
    """
    Merge a semantic and a lexical result list into one hybrid ranking.

    weighted_sum / comb_sum:  ws*s + wl*l
    reciprocal_rank_fusion:   ws/(60+rank_s) + wl/(60+rank_l), absent ranks contribute 0
    adaptive:                 weights rescaled by each column's mean positive score, then weighted_sum

    Sorted by hybrid score descending (stable: semantic order first, then lexical-only
    candidates). Truncation is left to the caller.
    """
    if method not in HYBRID_SCORING_METHODS:
        raise ConfigurationError("hybrid_scoring_method", method, f"expected one of {HYBRID_SCORING_METHODS}")

    # Map chunk id -> [chunk, semantic_score, lexical_score, semantic_rank, lexical_rank]
    seen: Dict[str, list] = {}

    for item in semantic:
        cid = item.chunk.id
        if cid not in seen:
            seen[cid] = [item.chunk, item.score, 0.0, item.rank, 0]

    for item in lexical:
        cid = item.chunk.id
        if cid not in seen:
            seen[cid] = [item.chunk, 0.0, item.score, 0, item.rank]
        elif seen[cid][4] == 0:
            seen[cid][2] = item.score
            seen[cid][4] = item.rank

    rows = list(seen.values())
    sem_scores = [r[1] for r in rows]
    lex_scores = [r[2] for r in rows]

    if normalize and rows:
        sem_scores = normalize_scores(sem_scores, normalization)
        lex_scores = normalize_scores(lex_scores, normalization)

    ws, wl = weights.w_semantic, weights.w_lexical
    if method == "adaptive":
        mean_s = _mean_positive(sem_scores)
        mean_l = _mean_positive(lex_scores)
        total = mean_s + mean_l
        if total > 0:
            ws, wl = ws * (mean_s / total), wl * (mean_l / total)

    fused: List[HybridCandidate] = []
    for (chunk, _, _, s_rank, l_rank), s, l in zip(rows, sem_scores, lex_scores):
        if method == "reciprocal_rank_fusion":
            score = ws * _rrf_contribution(s_rank) + wl * _rrf_contribution(l_rank)
        else:
            score = s * ws + l * wl

        fused.append(
            HybridCandidate(
                chunk=chunk,
                hybrid_score=score,
                semantic_score=s,
                lexical_score=l,
                semantic_rank=s_rank,
                lexical_rank=l_rank,
            )
        )

    fused.sort(key=lambda x: x.hybrid_score, reverse=True)
    return fused


def candidates_to_chunks(candidates: List[HybridCandidate]) -> List[SourceChunk]:
    """Re-score fused candidates as plain chunks so they can travel in a TechniqueResponse."""
    out: List[SourceChunk] = []
    for c in candidates:
        meta = dict(c.chunk.metadata)
        meta.update(
            semantic_score=c.semantic_score,
            lexical_score=c.lexical_score,
            semantic_rank=c.semantic_rank,
            lexical_rank=c.lexical_rank,
        )
        out.append(
            SourceChunk(
                id=c.chunk.id,
                document_id=c.chunk.document_id,
                content=c.chunk.content,
                chunk_index=c.chunk.chunk_index,
                score=c.hybrid_score,
                metadata=meta,
            )
        )
    return out
