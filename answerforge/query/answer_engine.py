"""
Grounded answer assembly.

Runs one question through the whole pipeline:

    question
       │
       ├─ blank question / no embedded chunks ──────────→ sentinel
       ↓
    embed ─→ retrieve top-k ─→ similarity gate ─────────→ sentinel
       ↓
    hybrid rerank (similarity + anchor-token overlap)
       ↓
    generate draft (question + quoted snippets)
       ↓
    map cited chunk ids onto retrieved chunks
       ├─ draft is the sentinel / nothing cited ────────→ sentinel
       ├─ format violation ─────────────────────────────→ sentinel
       ↓
    claim check over the retained snippets
       ↓
    AnswerResult

Collaborator failures (embedding, generation, storage) propagate. Weak or
rejected evidence is never an error: it is the sentinel answer with a
NotFoundReason.
"""

import asyncio
import re
from typing import Dict, List, Optional, Sequence, Tuple

from answerforge.core.config.retrieval import RetrievalConfig
from answerforge.core.logging import get_logger
from answerforge.llm.base import AnswerGenerator, Embedder, SnippetRef
from answerforge.query.claim_check import apply_claim_check_guardrails
from answerforge.query.models import (
    AnswerResult,
    Citation,
    DebugTrace,
    NotFoundReason,
    is_not_specified,
    not_found_result,
)
from answerforge.retrieval.rerank import hybrid_rerank
from answerforge.retrieval.retriever import RetrievedChunk, retrieve_top_chunks
from answerforge.storage.base import EvidenceRepository

logger = get_logger(__name__)

MAX_UNFORMATTED_ANSWER_CHARS = 1800
MAX_UNFORMATTED_ANSWER_NEWLINES = 12

DROP_NOT_RETRIEVED = "not_retrieved"
DROP_DUPLICATE = "duplicate"

_FORMAT_VIOLATIONS = (
    re.compile(r"```"),
    re.compile(r"(?:^|\n)\s*#{1,6}\s+"),
    re.compile(r"(?:^|\n)\s*Snippet\s+\d+", re.IGNORECASE),
    re.compile(r"\bchunkId\s*:", re.IGNORECASE),
)


def has_model_format_violation(answer: str) -> bool:
    """True for drafts that leak prompt structure or are not plain prose."""
    trimmed = answer.strip()
    if not trimmed:
        return True
    if any(pattern.search(trimmed) for pattern in _FORMAT_VIOLATIONS):
        return True
    return (
        len(trimmed) > MAX_UNFORMATTED_ANSWER_CHARS
        and trimmed.count("\n") > MAX_UNFORMATTED_ANSWER_NEWLINES
    )


def map_citations(
    cited_ids: Sequence[str], retrieved: Sequence[RetrievedChunk]
) -> Tuple[List[Citation], List[Dict[str, str]]]:
    """Map cited chunk ids onto retrieved chunks.

    Returns the citations in first-cited order and the dropped ids with a
    reason. Ids the generator was not given are dropped, as are repeats.
    """
    by_id = {chunk.chunk_id: chunk for chunk in retrieved}
    citations: List[Citation] = []
    dropped: List[Dict[str, str]] = []
    seen = set()

    for chunk_id in cited_ids:
        chunk = by_id.get(chunk_id)
        if chunk is None:
            dropped.append({"chunk_id": chunk_id, "reason": DROP_NOT_RETRIEVED})
            continue
        if chunk_id in seen:
            dropped.append({"chunk_id": chunk_id, "reason": DROP_DUPLICATE})
            continue
        seen.add(chunk_id)
        citations.append(
            Citation(
                doc_name=chunk.doc_name,
                chunk_id=chunk.chunk_id,
                quoted_snippet=chunk.quoted_snippet,
            )
        )
    return citations, dropped


class AnswerEngine:
    """
    Evidence-grounded answering for one organization's documents.

    Example:
        engine = AnswerEngine(store, embedder, generator)
        result = await engine.answer_question("acme", "Is TLS 1.2 enforced?")
        print(result.answer, result.confidence.value)
    """

    def __init__(
        self,
        store: EvidenceRepository,
        embedder: Embedder,
        generator: AnswerGenerator,
        retrieval: Optional[RetrievalConfig] = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.generator = generator
        self.retrieval = retrieval or RetrievalConfig()

    async def answer_question(
        self, org_id: str, question_text: str, debug: bool = False
    ) -> AnswerResult:
        """Answer one question from the organization's evidence.

        Args:
            org_id: Organization whose evidence is used
            question_text: Free-text question
            debug: Attach a DebugTrace to the result

        Returns:
            AnswerResult. Insufficient evidence gives the sentinel answer.

        Raises:
            CollaboratorError: If embedding, generation, or storage fails
        """
        threshold = self.retrieval.min_top_similarity
        trace = DebugTrace(threshold=threshold) if debug else None
        question = (question_text or "").strip()

        if not question:
            return not_found_result(NotFoundReason.NO_RELEVANT_EVIDENCE, debug=trace)

        if await self.store.count_embedded_chunks(org_id) == 0:
            logger.info("No embedded evidence", org_id=org_id)
            return not_found_result(NotFoundReason.NO_RELEVANT_EVIDENCE, debug=trace)

        embedding = await asyncio.to_thread(self.embedder.embed, question)
        retrieved = await retrieve_top_chunks(
            self.store,
            org_id,
            embedding,
            question,
            top_k=self.retrieval.top_k,
            snippet_chars=self.retrieval.snippet_chars,
        )
        if trace is not None:
            trace.retrieved_top_k = [
                {
                    "chunk_id": chunk.chunk_id,
                    "doc_name": chunk.doc_name,
                    "similarity": round(chunk.similarity, 4),
                }
                for chunk in retrieved
            ]

        if not retrieved or retrieved[0].similarity < threshold:
            logger.debug(
                "Evidence below threshold",
                org_id=org_id,
                top_similarity=retrieved[0].similarity if retrieved else 0.0,
            )
            return not_found_result(
                NotFoundReason.RETRIEVAL_BELOW_THRESHOLD, debug=trace
            )

        ranked = hybrid_rerank(
            question,
            retrieved,
            vector_weight=self.retrieval.vector_weight,
            lexical_weight=self.retrieval.lexical_weight,
        )
        chosen = [item.chunk for item in ranked]
        if trace is not None:
            trace.reranked = [item.to_dict() for item in ranked]
            trace.post_filter_chunk_ids = [chunk.chunk_id for chunk in chosen]

        snippets = [
            SnippetRef(
                chunk_id=chunk.chunk_id,
                doc_name=chunk.doc_name,
                quoted_snippet=chunk.quoted_snippet,
            )
            for chunk in chosen
        ]
        draft = await asyncio.to_thread(self.generator.generate, question, snippets)

        citations, dropped = map_citations(draft.citation_chunk_ids, chosen)
        if dropped:
            logger.warning(
                "Dropped citations",
                dropped=",".join(f"{d['chunk_id']}:{d['reason']}" for d in dropped),
            )
        if trace is not None:
            trace.dropped_citations = dropped
            trace.final_citation_ids = [citation.chunk_id for citation in citations]

        if not draft.answer.strip() or is_not_specified(draft.answer):
            return not_found_result(
                NotFoundReason.NO_RELEVANT_EVIDENCE, citations=citations, debug=trace
            )

        if not citations:
            return not_found_result(NotFoundReason.FILTERED_AS_IRRELEVANT, debug=trace)

        if has_model_format_violation(draft.answer):
            logger.warning("Model format violation", org_id=org_id)
            if trace is not None:
                trace.final_citation_ids = []
            return not_found_result(NotFoundReason.MODEL_FORMAT_VIOLATION, debug=trace)

        checked = apply_claim_check_guardrails(
            draft.answer,
            [citation.quoted_snippet for citation in citations],
            draft.confidence,
            draft.needs_review,
        )
        if trace is not None:
            trace.unsupported_tokens = list(checked.unsupported_tokens)

        return AnswerResult(
            answer=checked.answer,
            citations=citations,
            confidence=checked.confidence,
            needs_review=checked.needs_review,
            debug=trace,
        )
