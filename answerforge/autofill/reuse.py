"""
Approved-answer reuse.

A question whose text matches a previously approved question takes the
approved answer and its citations instead of running the answer engine.

Match Tiers
-----------
Tried in order; the first tier with a usable candidate wins.

    exact       normalized text, or its md5 hash, is equal
    near_exact  Dice coefficient of character bigrams >= 0.93
    semantic    cosine similarity of question embeddings >= 0.88,
                among the 12 most similar approvals

Within a tier candidates are ordered by score, then by most recent update.
A candidate is usable only when its answer is not the sentinel and every
cited chunk still exists in the organization's evidence. Citations are
re-quoted from the current chunk content.
"""

import asyncio
import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from answerforge.core.logging import get_logger
from answerforge.llm.base import Embedder
from answerforge.query.models import Citation, is_not_specified
from answerforge.shared.text_utils import (
    normalize_for_match,
    normalize_whitespace,
    sanitize_extracted_text,
    truncate_text,
)
from answerforge.storage.base import EvidenceRepository, QuestionnaireRepository
from answerforge.storage.models import ApprovedAnswer, ReuseKind

logger = get_logger(__name__)

NEAR_EXACT_MIN_SIMILARITY = 0.93
SEMANTIC_MIN_SIMILARITY = 0.88
MAX_SEMANTIC_CANDIDATES = 12
MAX_REUSED_SNIPPET_CHARS = 700


class ReuseMatchType(str, Enum):
    """Tier that produced a reuse match."""

    EXACT = "exact"
    NEAR_EXACT = "near_exact"
    SEMANTIC = "semantic"

    @property
    def kind(self) -> ReuseKind:
        """Value recorded on the question row."""
        return ReuseKind.EXACT if self is ReuseMatchType.EXACT else ReuseKind.SEMANTIC


def question_text_hash(normalized_text: str) -> str:
    """md5 hex digest of an already normalized question text."""
    return hashlib.md5(
        normalized_text.encode("utf-8"), usedforsecurity=False
    ).hexdigest()


def _bigrams(text: str) -> Set[str]:
    if len(text) < 2:
        return {text} if text else set()
    return {text[i : i + 2] for i in range(len(text) - 1)}


def near_exact_similarity(left: str, right: str) -> float:
    """Dice coefficient over the character-bigram sets of two question texts.

    Examples:
        >>> near_exact_similarity("Is MFA enforced?", "is mfa enforced")
        1.0
        >>> near_exact_similarity("", "is mfa enforced")
        0.0
    """
    left, right = normalize_for_match(left), normalize_for_match(right)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0

    left_grams, right_grams = _bigrams(left), _bigrams(right)
    overlap = len(left_grams & right_grams)
    return 2.0 * overlap / (len(left_grams) + len(right_grams))


@dataclass(frozen=True)
class ReusedAnswer:
    """An approved answer chosen for a question."""

    approved_answer_id: str
    answer: str
    citations: List[Citation]
    match_type: ReuseMatchType
    score: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "approved_answer_id": self.approved_answer_id,
            "match_type": self.match_type.value,
            "score": round(self.score, 4),
        }


def _by_recency(approved: Sequence[ApprovedAnswer]) -> List[ApprovedAnswer]:
    ordered = sorted(approved, key=lambda candidate: candidate.id)
    ordered.sort(key=lambda candidate: candidate.updated_at, reverse=True)
    return ordered


ScoredApproval = Tuple[float, ApprovedAnswer]


def _ranked(scored: Sequence[ScoredApproval]) -> List[ScoredApproval]:
    """Highest score first. The sort is stable, so recency order breaks ties."""
    return sorted(scored, key=lambda item: -item[0])


class ApprovedAnswerMatcher:
    """
    Finds reusable approved answers for one organization.

    Built once per batch. Chunk lookups are cached for the matcher's
    lifetime, so a batch resolves each cited chunk at most once.

    Example:
        matcher = await ApprovedAnswerMatcher.for_org(store, evidence, embedder, org)
        reused = await matcher.find("Is MFA enforced for administrators?")
    """

    def __init__(
        self,
        evidence: EvidenceRepository,
        embedder: Embedder,
        org_id: str,
        approved: Sequence[ApprovedAnswer],
    ) -> None:
        self.evidence = evidence
        self.embedder = embedder
        self.org_id = org_id
        self.candidates = _by_recency(approved)
        self._citations: Dict[str, Optional[Citation]] = {}

    @classmethod
    async def for_org(
        cls,
        approvals: QuestionnaireRepository,
        evidence: EvidenceRepository,
        embedder: Embedder,
        org_id: str,
    ) -> "ApprovedAnswerMatcher":
        approved = await approvals.list_approved_answers(org_id)
        return cls(evidence, embedder, org_id, approved)

    async def find(self, question_text: str) -> Optional[ReusedAnswer]:
        """Best usable approved answer for a question, or None."""
        if not self.candidates:
            return None
        normalized = normalize_for_match(question_text)
        if not normalized:
            return None

        digest = question_text_hash(normalized)
        exact = [
            (1.0, candidate)
            for candidate in self.candidates
            if candidate.question_text_hash == digest
            or candidate.normalized_question_text == normalized
        ]
        match = await self._first_usable(exact, ReuseMatchType.EXACT)
        if match is not None:
            return match

        near: List[ScoredApproval] = []
        for candidate in self.candidates:
            similarity = near_exact_similarity(
                normalized, candidate.normalized_question_text
            )
            if similarity >= NEAR_EXACT_MIN_SIMILARITY:
                near.append((similarity, candidate))
        match = await self._first_usable(_ranked(near), ReuseMatchType.NEAR_EXACT)
        if match is not None:
            return match

        semantic = await self._semantic_candidates(question_text)
        return await self._first_usable(semantic, ReuseMatchType.SEMANTIC)

    async def _semantic_candidates(
        self, question_text: str
    ) -> List[ScoredApproval]:
        embedded = [c for c in self.candidates if c.question_embedding]
        if not embedded:
            return []

        query = np.asarray(
            await asyncio.to_thread(self.embedder.embed, question_text), dtype=float
        )
        query_norm = np.linalg.norm(query)
        scored: List[ScoredApproval] = []
        for candidate in embedded:
            vector = np.asarray(candidate.question_embedding, dtype=float)
            if vector.shape != query.shape:
                continue
            norm = np.linalg.norm(vector) * query_norm
            similarity = float(vector @ query / norm) if norm > 0 else 0.0
            scored.append((similarity, candidate))

        top = _ranked(scored)[:MAX_SEMANTIC_CANDIDATES]
        return [item for item in top if item[0] >= SEMANTIC_MIN_SIMILARITY]

    async def _first_usable(
        self,
        scored: Sequence[ScoredApproval],
        match_type: ReuseMatchType,
    ) -> Optional[ReusedAnswer]:
        for score, candidate in scored:
            answer = sanitize_extracted_text(candidate.answer_text).strip()
            if not answer or is_not_specified(answer):
                continue
            citations = await self._resolve(candidate.citation_chunk_ids)
            if not citations:
                logger.debug(
                    "Approved answer has unresolvable citations",
                    approved_answer_id=candidate.id,
                )
                continue
            return ReusedAnswer(
                approved_answer_id=candidate.id,
                answer=answer,
                citations=citations,
                match_type=match_type,
                score=score,
            )
        return None

    async def _resolve(self, chunk_ids: Sequence[str]) -> Optional[List[Citation]]:
        """Citations for every chunk id, or None if any is gone."""
        wanted = list(dict.fromkeys(i.strip() for i in chunk_ids if i.strip()))
        if not wanted:
            return None

        missing = [chunk_id for chunk_id in wanted if chunk_id not in self._citations]
        if missing:
            for chunk_id in missing:
                self._citations[chunk_id] = None
            for chunk in await self.evidence.get_chunks(self.org_id, missing):
                snippet = normalize_whitespace(sanitize_extracted_text(chunk.content))
                self._citations[chunk.chunk_id] = Citation(
                    doc_name=chunk.doc_name,
                    chunk_id=chunk.chunk_id,
                    quoted_snippet=truncate_text(snippet, MAX_REUSED_SNIPPET_CHARS),
                )

        citations = [self._citations[chunk_id] for chunk_id in wanted]
        if any(citation is None for citation in citations):
            return None
        return [citation for citation in citations if citation is not None]
