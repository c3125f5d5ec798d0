"""Hybrid rerank of retrieved chunks.

Chunks that pass the similarity gate are reordered by a weighted sum of
vector similarity and lexical overlap with the question:

    final_score = vector_weight * similarity + lexical_weight * lexical_score
    lexical_score = anchor tokens found in the chunk / anchor tokens asked

Ordering is final_score desc, similarity desc, overlap count desc, then
chunk id asc, so equal scores always come out in the same order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from answerforge.retrieval.anchors import count_token_hits, extract_anchor_tokens
from answerforge.retrieval.retriever import RetrievedChunk

DEFAULT_VECTOR_WEIGHT = 0.7
DEFAULT_LEXICAL_WEIGHT = 0.3


@dataclass(frozen=True)
class RankedChunk:
    """A retrieved chunk with its rerank scores."""

    chunk: RetrievedChunk
    lexical_overlap: int
    lexical_score: float
    final_score: float

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_id": self.chunk.chunk_id,
            "doc_name": self.chunk.doc_name,
            "similarity": round(self.chunk.similarity, 4),
            "lexical_overlap": self.lexical_overlap,
            "final_score": round(self.final_score, 4),
        }


def hybrid_rerank(
    question_text: str,
    chunks: Sequence[RetrievedChunk],
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
    lexical_weight: float = DEFAULT_LEXICAL_WEIGHT,
) -> List[RankedChunk]:
    """Score and reorder chunks for one question.

    Args:
        question_text: Question the chunks were retrieved for
        chunks: Gated retrieval results
        vector_weight: Weight of the cosine similarity
        lexical_weight: Weight of the anchor-token overlap ratio

    Returns:
        RankedChunks, best first. A question without anchor tokens scores
        every chunk on similarity alone.
    """
    tokens = extract_anchor_tokens(question_text)

    ranked: List[RankedChunk] = []
    for chunk in chunks:
        text = f"{chunk.quoted_snippet}\n{chunk.full_content}".lower()
        overlap = count_token_hits(text, tokens) if tokens else 0
        lexical_score = overlap / len(tokens) if tokens else 0.0
        ranked.append(
            RankedChunk(
                chunk=chunk,
                lexical_overlap=overlap,
                lexical_score=lexical_score,
                final_score=vector_weight * chunk.similarity
                + lexical_weight * lexical_score,
            )
        )

    ranked.sort(
        key=lambda item: (
            -item.final_score,
            -item.chunk.similarity,
            -item.lexical_overlap,
            item.chunk.chunk_id,
        )
    )
    return ranked
