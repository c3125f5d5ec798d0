"""
Answer review and approval.

Approving a question stores its answer as an ApprovedAnswer that later
autofill batches may reuse (see answerforge.autofill.reuse). Only found
answers with at least one citation into the organization's own evidence can
be approved.

Review Status
-------------

    DRAFT ⇄ NEEDS_REVIEW
      │          │
      └──approve─┴──→ APPROVED ──unapprove──→ DRAFT
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from answerforge.autofill.reuse import question_text_hash
from answerforge.core.exceptions import NotFoundError, ValidationError
from answerforge.core.logging import get_logger
from answerforge.query.answer_engine import AnswerEngine
from answerforge.query.models import is_not_specified
from answerforge.shared.text_utils import normalize_for_match
from answerforge.storage.base import QuestionnaireRepository
from answerforge.storage.models import (
    ApprovalSource,
    ApprovedAnswer,
    Question,
    ReuseKind,
    ReviewStatus,
    utcnow,
)

logger = get_logger(__name__)

DEFAULT_APPROVER = "system"


@dataclass
class ReusedApprovalSummary:
    """Outcome of approving the exact-reused rows of a questionnaire."""

    questionnaire_id: str
    exact_reused: int = 0
    approved: int = 0
    already_approved: int = 0
    skipped_not_found_or_empty: int = 0
    skipped_invalid_citations: int = 0

    @property
    def skipped(self) -> int:
        return self.skipped_not_found_or_empty + self.skipped_invalid_citations

    def to_dict(self) -> Dict[str, object]:
        return {
            "questionnaireId": self.questionnaire_id,
            "exactReusedCount": self.exact_reused,
            "approvedCount": self.approved,
            "alreadyApprovedCount": self.already_approved,
            "skippedCount": self.skipped,
            "skippedNotFoundOrEmpty": self.skipped_not_found_or_empty,
            "skippedInvalidCitations": self.skipped_invalid_citations,
        }


def _chunk_ids(values: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


class AnswerReview:
    """
    Review workflow over answered question rows.

    Example:
        review = AnswerReview(store, engine)
        approved = await review.approve("acme", question_id, note="checked")
    """

    def __init__(self, store: QuestionnaireRepository, engine: AnswerEngine) -> None:
        self.store = store
        self.engine = engine

    async def _question(self, org_id: str, question_id: str) -> Question:
        question = await self.store.get_question(question_id, org_id)
        if question is None:
            raise NotFoundError(f"Question not found: {question_id}")
        return question

    async def _owns_all(self, org_id: str, chunk_ids: Sequence[str]) -> bool:
        found = await self.engine.store.get_chunks(org_id, chunk_ids)
        return len(found) == len(chunk_ids)

    async def approve(
        self,
        org_id: str,
        question_id: str,
        *,
        answer_text: Optional[str] = None,
        citation_chunk_ids: Optional[Sequence[str]] = None,
        approved_by: str = DEFAULT_APPROVER,
        note: Optional[str] = None,
    ) -> ApprovedAnswer:
        """Approve a question's answer, or an edited replacement of it.

        Args:
            org_id: Organization owning the questionnaire
            question_id: Row to approve
            answer_text: Replacement text; defaults to the stored answer
            citation_chunk_ids: Replacement citations; default to the row's
            approved_by: Reviewer name
            note: Free-text note kept with the approval

        Raises:
            NotFoundError: If the question is missing or its questionnaire
                is archived
            ValidationError: If the answer is empty or the sentinel, or a
                citation is missing or not in the organization's evidence
        """
        question = await self._question(org_id, question_id)

        stored_text = (question.answer or "").strip()
        text = stored_text if answer_text is None else answer_text.strip()
        if not text or is_not_specified(text):
            raise ValidationError(
                "Only a found answer can be approved; "
                "empty and not-specified answers are rejected"
            )

        stored_ids = _chunk_ids([c.chunk_id for c in question.citations])
        chunk_ids = (
            stored_ids if citation_chunk_ids is None else _chunk_ids(citation_chunk_ids)
        )
        if not chunk_ids:
            raise ValidationError("An approved answer needs at least one citation")
        if not await self._owns_all(org_id, chunk_ids):
            raise ValidationError(
                "Citations must reference this organization's evidence chunks"
            )

        edited = text != stored_text or chunk_ids != stored_ids
        source = ApprovalSource.MANUAL_EDIT if edited else ApprovalSource.GENERATED
        normalized = normalize_for_match(question.text)
        embedding = await asyncio.to_thread(self.engine.embedder.embed, question.text)
        now = utcnow()

        approved = await self.store.upsert_approved_answer(
            ApprovedAnswer(
                org_id=org_id,
                question_id=question.id,
                answer_text=text,
                citation_chunk_ids=chunk_ids,
                normalized_question_text=normalized,
                question_text_hash=question_text_hash(normalized),
                question_embedding=list(embedding),
                source=source,
                approved_by=approved_by.strip() or DEFAULT_APPROVER,
                note=(note or "").strip() or None,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "Answer approved",
            question_id=question.id,
            approved_answer_id=approved.id,
            source=approved.source.value,
        )
        return approved

    async def unapprove(self, org_id: str, question_id: str) -> bool:
        """Remove a question's approval. Returns False if it had none.

        Raises:
            NotFoundError: If the question is missing or archived
        """
        question = await self._question(org_id, question_id)
        removed = await self.store.delete_approved_answer(question.id)
        if removed:
            logger.info("Approval removed", question_id=question.id)
        return removed

    async def set_review_status(
        self, org_id: str, question_id: str, status: ReviewStatus
    ) -> Question:
        """Move a row between DRAFT and NEEDS_REVIEW.

        Raises:
            NotFoundError: If the question is missing or archived
            ValidationError: If status is APPROVED; use approve() instead
        """
        if status is ReviewStatus.APPROVED:
            raise ValidationError("Use approve to mark an answer APPROVED")

        question = await self._question(org_id, question_id)
        await self.store.set_review_status(question.id, status)
        question.review_status = status
        return question

    async def approve_reused_exact(
        self, org_id: str, questionnaire_id: str
    ) -> ReusedApprovalSummary:
        """Mark every exact-reused row with valid citations APPROVED.

        Raises:
            NotFoundError: If the questionnaire is missing or archived
        """
        questionnaire = await self.store.get_questionnaire(questionnaire_id, org_id)
        if questionnaire is None:
            raise NotFoundError(f"Questionnaire not found: {questionnaire_id}")

        summary = ReusedApprovalSummary(questionnaire_id=questionnaire.id)
        for question in await self.store.list_questions(questionnaire.id):
            if (
                question.reuse_kind is not ReuseKind.EXACT
                or not question.reused_from_approved_answer_id
            ):
                continue
            summary.exact_reused += 1

            answer = (question.answer or "").strip()
            if not answer or is_not_specified(answer):
                summary.skipped_not_found_or_empty += 1
                continue
            chunk_ids = _chunk_ids([c.chunk_id for c in question.citations])
            if not chunk_ids or not await self._owns_all(org_id, chunk_ids):
                summary.skipped_invalid_citations += 1
                continue
            if question.review_status is ReviewStatus.APPROVED:
                summary.already_approved += 1
                continue

            await self.store.set_review_status(question.id, ReviewStatus.APPROVED)
            summary.approved += 1

        logger.info("Exact reuses approved", **summary.to_dict())
        return summary
