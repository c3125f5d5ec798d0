"""
Questionnaire autofill state machine.

Drives the answer engine over a questionnaire's rows in bounded batches.

Run Lifecycle
-------------

    PENDING ──→ RUNNING ──→ COMPLETED
                  │  ↑          │
                  ↓  │          │ (new eligible rows)
                FAILED ─────────┘

Every batch call enters RUNNING. A call made from PENDING or COMPLETED
starts a new run (fresh started_at); a call made while RUNNING or after a
failure continues the current run. last_error is cleared on every entry.

Each answered row is persisted before the next one starts, so a failure
part-way through a batch keeps everything answered before it. Counts are
always re-derived from row state.

Eligibility
-----------
autofill:       answer IS NULL
rerun-missing:  (answer IS NULL OR answer = sentinel)
                AND (last_rerun_at IS NULL OR last_rerun_at < started_at)

Rerun-missing stamps last_rerun_at on each row it handles, so one run never
touches the same row twice.

Approved-answer Reuse
---------------------
Before a row is sent to the answer engine, the organization's approved
answers are consulted (answerforge.autofill.reuse). A match is written with
high confidence, no review flag, and the approval it came from. Generated
answers clear those reuse fields.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence

from answerforge.autofill.models import RunMode, RunProgress
from answerforge.autofill.reuse import ApprovedAnswerMatcher, ReusedAnswer
from answerforge.autofill.scheduler import DelayStrategy, NoDelay, WorkQueue
from answerforge.core.exceptions import (
    EvidenceNotReadyError,
    NotFoundError,
    StorageError,
    ValidationError,
    sanitize_message,
)
from answerforge.core.logging import RunLogger, get_logger
from answerforge.query.answer_engine import AnswerEngine
from answerforge.query.models import AnswerResult, Confidence
from answerforge.storage.base import QuestionnaireRepository
from answerforge.storage.models import Question, Questionnaire, RunStatus, utcnow

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_MAX_BATCHES = 1000

Clock = Callable[[], datetime]


class QuestionnaireAutofill:
    """
    Batch answering with resumable run state.

    Example:
        autofill = QuestionnaireAutofill(store, engine, FixedDelay(0.25))
        progress = await autofill.process_batch("acme", questionnaire_id)
        while progress.status is RunStatus.RUNNING:
            progress = await autofill.process_batch("acme", questionnaire_id)
    """

    def __init__(
        self,
        store: QuestionnaireRepository,
        engine: AnswerEngine,
        scheduler: Optional[DelayStrategy] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.engine = engine
        self.scheduler = scheduler or NoDelay()
        self.clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _exclusive(self, questionnaire_id: str) -> AsyncIterator[None]:
        """Serialize calls per questionnaire. Unused locks are dropped."""
        lock = self._locks.get(questionnaire_id)
        if lock is None:
            lock = self._locks[questionnaire_id] = asyncio.Lock()
        users = self._lock_users.get(questionnaire_id, 0)
        self._lock_users[questionnaire_id] = users + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[questionnaire_id] -= 1
            if self._lock_users[questionnaire_id] == 0:
                del self._lock_users[questionnaire_id]
                del self._locks[questionnaire_id]

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def import_questionnaire(
        self, org_id: str, name: str, questions: Sequence[str]
    ) -> Questionnaire:
        """Create a PENDING questionnaire with one row per non-blank question.

        Raises:
            ValidationError: If no question text remains
        """
        texts = [text.strip() for text in questions if text and text.strip()]
        if not texts:
            raise ValidationError(f"Questionnaire '{name}' has no questions")

        questionnaire = Questionnaire(org_id=org_id, name=name, total_count=len(texts))
        rows = [
            Question(questionnaire_id=questionnaire.id, row_index=index, text=text)
            for index, text in enumerate(texts)
        ]
        await self.store.create_questionnaire(questionnaire, rows)
        logger.info(
            "Questionnaire imported",
            org_id=org_id,
            questionnaire_id=questionnaire.id,
            questions=len(rows),
        )
        return questionnaire

    async def ensure_evidence_ready(self, org_id: str) -> None:
        """Check every evidence chunk has an embedding.

        Raises:
            EvidenceNotReadyError: If nothing is embedded or some chunks
                still lack embeddings
        """
        availability = await self.engine.store.embedding_availability(org_id)
        if availability.embedded == 0:
            raise EvidenceNotReadyError(
                f"Organization '{org_id}' has no embedded evidence"
            )
        if availability.missing > 0:
            raise EvidenceNotReadyError(
                f"{availability.missing} of {availability.total} evidence chunks "
                "are missing embeddings"
            )

    async def get_progress(self, org_id: str, questionnaire_id: str) -> RunProgress:
        """Current run state without processing anything."""
        questionnaire = await self._load(org_id, questionnaire_id)
        remaining = len(await self.store.select_unanswered(questionnaire.id))
        return RunProgress.from_questionnaire(questionnaire, 0, remaining)

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def process_batch(
        self,
        org_id: str,
        questionnaire_id: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        *,
        debug_enabled: bool = False,
        persist_debug: bool = False,
    ) -> RunProgress:
        """Answer up to batch_size unanswered rows in row order.

        Raises:
            NotFoundError: If the questionnaire is missing or archived
        """
        async with self._exclusive(questionnaire_id):
            return await self._run_batch(
                RunMode.AUTOFILL,
                org_id,
                questionnaire_id,
                batch_size,
                debug_enabled=debug_enabled,
                persist_debug=persist_debug,
            )

    async def process_rerun_missing_batch(
        self,
        org_id: str,
        questionnaire_id: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        *,
        debug_enabled: bool = False,
        persist_debug: bool = False,
    ) -> RunProgress:
        """Re-answer up to batch_size unanswered or not-found rows.

        Raises:
            NotFoundError: If the questionnaire is missing or archived
        """
        async with self._exclusive(questionnaire_id):
            return await self._run_batch(
                RunMode.RERUN_MISSING,
                org_id,
                questionnaire_id,
                batch_size,
                debug_enabled=debug_enabled,
                persist_debug=persist_debug,
            )

    async def run_until_settled(
        self,
        org_id: str,
        questionnaire_id: str,
        mode: RunMode = RunMode.AUTOFILL,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_batches: int = DEFAULT_MAX_BATCHES,
        *,
        debug_enabled: bool = False,
        persist_debug: bool = False,
        on_progress: Optional[Callable[[RunProgress], None]] = None,
    ) -> RunProgress:
        """Repeat batch calls until the run leaves RUNNING or max_batches is hit."""
        operation = (
            self.process_rerun_missing_batch
            if mode is RunMode.RERUN_MISSING
            else self.process_batch
        )

        progress = await operation(
            org_id,
            questionnaire_id,
            batch_size,
            debug_enabled=debug_enabled,
            persist_debug=persist_debug,
        )
        if on_progress:
            on_progress(progress)

        batches = 1
        while progress.status is RunStatus.RUNNING and batches < max_batches:
            progress = await operation(
                org_id,
                questionnaire_id,
                batch_size,
                debug_enabled=debug_enabled,
                persist_debug=persist_debug,
            )
            batches += 1
            if on_progress:
                on_progress(progress)
        return progress

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load(self, org_id: str, questionnaire_id: str) -> Questionnaire:
        questionnaire = await self.store.get_questionnaire(questionnaire_id, org_id)
        if questionnaire is None:
            raise NotFoundError(f"Questionnaire not found: {questionnaire_id}")
        return questionnaire

    def _enter_running(self, questionnaire: Questionnaire) -> None:
        starts_new_run = questionnaire.status in (
            RunStatus.PENDING,
            RunStatus.COMPLETED,
        )
        if starts_new_run or questionnaire.started_at is None:
            questionnaire.started_at = self.clock()
            questionnaire.finished_at = None
        questionnaire.status = RunStatus.RUNNING
        questionnaire.last_error = None

    async def _eligible(
        self, mode: RunMode, questionnaire: Questionnaire, limit: Optional[int]
    ) -> List[Question]:
        if mode is RunMode.RERUN_MISSING:
            run_started_at = questionnaire.started_at or self.clock()
            return await self.store.select_rerun_candidates(
                questionnaire.id, run_started_at, limit
            )
        return await self.store.select_unanswered(questionnaire.id, limit)

    async def _recount(self, questionnaire: Questionnaire) -> None:
        summary = await self.store.summarize_answers(questionnaire.id)
        questionnaire.total_count = summary.total
        questionnaire.processed_count = summary.answered
        questionnaire.found_count = summary.found
        questionnaire.not_found_count = summary.not_found

    def _apply_result(
        self,
        question: Question,
        result: AnswerResult,
        mode: RunMode,
        persist_debug: bool,
    ) -> None:
        question.answer = result.answer
        question.citations = list(result.citations)
        question.confidence = result.confidence
        question.needs_review = result.needs_review
        question.not_found_reason = result.not_found_reason
        question.debug = (
            result.debug.to_dict() if persist_debug and result.debug else None
        )
        question.reused_from_approved_answer_id = None
        question.reuse_kind = None
        question.reused_at = None
        if mode is RunMode.RERUN_MISSING:
            question.last_rerun_at = self.clock()

    def _apply_reuse(
        self,
        question: Question,
        reused: ReusedAnswer,
        mode: RunMode,
        persist_debug: bool,
    ) -> None:
        result = AnswerResult(
            answer=reused.answer,
            citations=list(reused.citations),
            confidence=Confidence.HIGH,
            needs_review=False,
        )
        self._apply_result(question, result, mode, persist_debug=False)
        if persist_debug:
            question.debug = {"approved_answer_reuse": reused.to_dict()}
        question.reused_from_approved_answer_id = reused.approved_answer_id
        question.reuse_kind = reused.match_type.kind
        question.reused_at = self.clock()

    async def _run_batch(
        self,
        mode: RunMode,
        org_id: str,
        questionnaire_id: str,
        batch_size: int,
        *,
        debug_enabled: bool,
        persist_debug: bool,
    ) -> RunProgress:
        if batch_size < 1:
            raise ValidationError("batch_size must be at least 1")

        questionnaire = await self._load(org_id, questionnaire_id)
        matcher = await ApprovedAnswerMatcher.for_org(
            self.store, self.engine.store, self.engine.embedder, org_id
        )
        self._enter_running(questionnaire)
        await self.store.update_run_state(questionnaire)

        run_logger = RunLogger(questionnaire.id, mode.value)
        rows = await self._eligible(mode, questionnaire, batch_size)
        run_logger.start(len(rows))
        reused_rows: List[int] = []

        async def answer_row(question: Question) -> None:
            reused = await matcher.find(question.text)
            if reused is not None:
                self._apply_reuse(question, reused, mode, persist_debug)
                await self.store.save_answer(question)
                reused_rows.append(question.row_index)
                run_logger.question_done(question.row_index, True)
                logger.debug(
                    "Approved answer reused",
                    row_index=question.row_index,
                    approved_answer_id=reused.approved_answer_id,
                    match_type=reused.match_type.value,
                )
                return

            result = await self.engine.answer_question(
                org_id, question.text, debug=debug_enabled or persist_debug
            )
            self._apply_result(question, result, mode, persist_debug)
            await self.store.save_answer(question)
            run_logger.question_done(question.row_index, result.found)
            if debug_enabled and result.debug is not None:
                logger.debug(
                    "Answer trace",
                    row_index=question.row_index,
                    trace=result.debug.to_dict(),
                )

        queue = WorkQueue(rows, self.scheduler)
        try:
            await queue.drain(answer_row)
        except Exception as e:
            error = sanitize_message(str(e)) or type(e).__name__
            failed_row = queue.pending[0].row_index if len(queue) else -1
            run_logger.failed(failed_row, error)

            # Counts stay at their last values if storage is failing too
            remaining = len(queue)
            try:
                await self._recount(questionnaire)
                remaining = len(await self._eligible(mode, questionnaire, None))
            except StorageError as recount_error:
                logger.warning(
                    "Recount after failure failed",
                    questionnaire_id=questionnaire.id,
                    error=sanitize_message(str(recount_error)),
                )
            questionnaire.status = RunStatus.FAILED
            questionnaire.last_error = error
            await self.store.update_run_state(questionnaire)
            run_logger.finish(
                questionnaire.status.value,
                questionnaire.processed_count,
                questionnaire.total_count,
            )
            return RunProgress.from_questionnaire(
                questionnaire, queue.completed, remaining, len(reused_rows)
            )

        await self._recount(questionnaire)
        remaining = len(await self._eligible(mode, questionnaire, None))
        if remaining == 0:
            questionnaire.status = RunStatus.COMPLETED
            questionnaire.finished_at = self.clock()
        await self.store.update_run_state(questionnaire)

        run_logger.finish(
            questionnaire.status.value,
            questionnaire.processed_count,
            questionnaire.total_count,
        )
        return RunProgress.from_questionnaire(
            questionnaire, queue.completed, remaining, len(reused_rows)
        )
