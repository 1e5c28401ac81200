from __future__ import annotations

from typing import List, Optional

from ragfusion.core.types import RetrievedItem
from ragfusion.indexing.bm25_index import BM25Index


class BM25Retriever:
    def __init__(self, index: BM25Index):
        self.index = index

    def retrieve(self, query: str, top_k: int, document_ids: Optional[List[str]] = None) -> List[RetrievedItem]:
        # Over-fetch when filtering so the filter does not starve top_k
        fetch = len(self.index) if document_ids else top_k
        hits = self.index.search(query, top_k=fetch)
        if document_ids:
            allowed = set(document_ids)
            hits = [(c, s) for c, s in hits if c.document_id in allowed][:top_k]

        items: List[RetrievedItem] = []
        for rank, (chunk, score) in enumerate(hits, start=1):
            items.append(RetrievedItem(chunk=chunk, source="lexical", rank=rank, score=score))
        return items
