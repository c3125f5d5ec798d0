"""
Retrieval: anchor tokens, snippet selection, and top-k ranking.

    question ──→ extract_anchor_tokens() ──┐
                                           ↓
    vector_search rows ──→ select_snippet() per row ──→ RetrievedChunk[]
                                                        (similarity desc,
                                                         chunk id asc)
                                                            │
                                                            ↓
                          similarity gate ──→ hybrid_rerank() ──→ RankedChunk[]
"""

from answerforge.retrieval.anchors import ANCHOR_FAMILIES, extract_anchor_tokens
from answerforge.retrieval.rerank import RankedChunk, hybrid_rerank
from answerforge.retrieval.retriever import (
    RetrievedChunk,
    rank_rows,
    retrieve_top_chunks,
)
from answerforge.retrieval.snippets import select_snippet

__all__ = [
    "ANCHOR_FAMILIES",
    "RankedChunk",
    "RetrievedChunk",
    "extract_anchor_tokens",
    "hybrid_rerank",
    "rank_rows",
    "retrieve_top_chunks",
    "select_snippet",
]
