from __future__ import annotations
from typing import List, Optional, Protocol, Tuple

from ragfusion.core.types import HybridCandidate, RetrievedItem
from ragfusion.retrieval.fusion import PairWeights, fuse_pair


class SemanticRetriever(Protocol):
    def retrieve(self, query: str, top_k: int, document_ids: Optional[List[str]] = None) -> List[RetrievedItem]: ...


class LexicalRetriever(Protocol):
    def retrieve(self, query: str, top_k: int, document_ids: Optional[List[str]] = None) -> List[RetrievedItem]: ...


class HybridRetriever:
    def __init__(
        self,
        semantic: SemanticRetriever,
        lexical: LexicalRetriever,
        weights: PairWeights = PairWeights(),
        method: str = "weighted_sum",
        normalize: bool = True,
        normalization: str = "min_max",
        lexical_threshold: float = 0.0,
        final_limit: int = 20,
    ):
        self.semantic = semantic
        self.lexical = lexical
        self.weights = weights
        self.method = method
        self.normalize = normalize
        self.normalization = normalization
        self.lexical_threshold = lexical_threshold
        self.final_limit = final_limit

    def retrieve(
        self,
        query: str,
        semantic_top_k: int = 50,
        lexical_top_k: int = 50,
        document_ids: Optional[List[str]] = None,
    ) -> List[HybridCandidate]:
        fused, _, _ = self.retrieve_with_counts(query, semantic_top_k, lexical_top_k, document_ids)
        return fused

    def retrieve_with_counts(
        self,
        query: str,
        semantic_top_k: int = 50,
        lexical_top_k: int = 50,
        document_ids: Optional[List[str]] = None,
    ) -> Tuple[List[HybridCandidate], int, int]:
        """Fused candidates plus how many semantic and (thresholded) lexical hits went in."""
        sem = self.semantic.retrieve(query, semantic_top_k, document_ids=document_ids)
        kw = [it for it in self.lexical.retrieve(query, lexical_top_k, document_ids=document_ids)
              if it.score > 0 and it.score >= self.lexical_threshold]
        fused = fuse_pair(
            sem,
            kw,
            weights=self.weights,
            method=self.method,
            normalize=self.normalize,
            normalization=self.normalization,
        )
        return fused[: self.final_limit], len(sem), len(kw)
