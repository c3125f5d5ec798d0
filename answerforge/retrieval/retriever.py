"""Similarity retrieval over embedded evidence chunks.

The nearest-neighbour query is delegated to the storage backend. Rows come
back as cosine distances; this module turns them into RetrievedChunk records
with a quoted snippet and a clamped similarity, then sorts them
deterministically. Storage ordering is advisory only.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Sequence

from answerforge.core.logging import get_logger
from answerforge.retrieval.anchors import extract_anchor_tokens
from answerforge.retrieval.snippets import DEFAULT_SNIPPET_CHARS, select_snippet
from answerforge.shared.text_utils import normalize_whitespace
from answerforge.storage.base import EvidenceRepository, VectorSearchRow

logger = get_logger(__name__)

DEFAULT_TOP_K = 5


@dataclass(frozen=True)
class RetrievedChunk:
    """A chunk returned for one query. Never persisted."""

    chunk_id: str
    doc_name: str
    quoted_snippet: str
    full_content: str
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def similarity_from_distance(distance: float) -> float:
    """Cosine distance in [0, 2] to similarity in [0, 1]."""
    return max(0.0, min(1.0, 1.0 - float(distance)))


def rank_rows(
    rows: Sequence[VectorSearchRow],
    question_text: str,
    snippet_chars: int = DEFAULT_SNIPPET_CHARS,
) -> List[RetrievedChunk]:
    """Convert raw search rows into sorted, de-duplicated RetrievedChunks.

    Sorted by similarity descending, then chunk id ascending, so equal
    similarities always come out in the same order.
    """
    anchors = extract_anchor_tokens(question_text)

    best_by_id: Dict[str, VectorSearchRow] = {}
    for row in rows:
        current = best_by_id.get(row.chunk_id)
        if current is None or row.distance < current.distance:
            best_by_id[row.chunk_id] = row

    retrieved = [
        RetrievedChunk(
            chunk_id=row.chunk_id,
            doc_name=row.doc_name,
            quoted_snippet=select_snippet(row.content, anchors, snippet_chars),
            full_content=normalize_whitespace(row.content),
            similarity=similarity_from_distance(row.distance),
        )
        for row in best_by_id.values()
    ]
    retrieved.sort(key=lambda chunk: (-chunk.similarity, chunk.chunk_id))
    return retrieved


async def retrieve_top_chunks(
    store: EvidenceRepository,
    org_id: str,
    question_embedding: Sequence[float],
    question_text: str,
    top_k: int = DEFAULT_TOP_K,
    snippet_chars: int = DEFAULT_SNIPPET_CHARS,
) -> List[RetrievedChunk]:
    """Retrieve the top-k chunks for a question embedding.

    Args:
        store: Evidence storage backend
        org_id: Organization whose evidence is searched
        question_embedding: Query vector
        question_text: Question, used to anchor snippets
        top_k: Maximum number of chunks
        snippet_chars: Snippet character budget

    Returns:
        RetrievedChunks ordered by similarity desc, chunk id asc.
    """
    rows = await store.vector_search(org_id, list(question_embedding), top_k)
    retrieved = rank_rows(rows, question_text, snippet_chars)[:top_k]
    logger.debug(
        "Retrieved chunks",
        org_id=org_id,
        count=len(retrieved),
        top_similarity=f"{retrieved[0].similarity:.3f}" if retrieved else "n/a",
    )
    return retrieved
