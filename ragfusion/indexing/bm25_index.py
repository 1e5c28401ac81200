from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from rank_bm25 import BM25Okapi

from ragfusion.core.types import SourceChunk


_WORD_RE = re.compile(r"[A-Za-z0-9_]+")


def simple_tokenize(s: str) -> List[str]:
    return [t.lower() for t in _WORD_RE.findall(s)]


@dataclass
class BM25Index:
    chunks: List[SourceChunk]
    tokenized: List[List[str]]
    bm25: Optional[BM25Okapi]

    @classmethod
    def build(cls, chunks: Iterable[SourceChunk], document_ids: Optional[Iterable[str]] = None) -> "BM25Index":
        chunks = list(chunks)
        if document_ids is not None:
            allowed = set(document_ids)
            chunks = [c for c in chunks if c.document_id in allowed]
        chunks.sort(key=lambda c: (c.document_id, c.chunk_index))

        # BM25Okapi cannot be built over an empty corpus
        if not chunks:
            return cls(chunks=[], tokenized=[], bm25=None)

        tokenized = [simple_tokenize(c.content) for c in chunks]
        return cls(chunks=chunks, tokenized=tokenized, bm25=BM25Okapi(tokenized))

    def __len__(self) -> int:
        return len(self.chunks)

    def search(self, query: str, top_k: int = 20) -> List[Tuple[SourceChunk, float]]:
        if self.bm25 is None or not self.chunks:
            return []

        q_tokens = simple_tokenize(query)
        if not q_tokens:
            return []
        scores = self.bm25.get_scores(q_tokens)

        ranked = sorted(range(len(scores)), key=lambda i: scores[i], reverse=True)[:top_k]
        return [(self.chunks[i], float(scores[i])) for i in ranked]
