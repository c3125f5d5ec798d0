"""
Tests for the questionnaire autofill state machine.

Organization
------------
- TestImport: Creating questionnaires from question text
- TestEvidenceReady: Embedding precondition
- TestProcessBatch: Bounded batches, completion, counts
- TestFailureAndResume: Failed batches keep completed rows
- TestRunLifecycle: started_at and finished_at across runs
- TestRerunMissing: Rerun eligibility and once-per-run stamping
- TestConcurrency: Serialized batch calls per questionnaire
- TestDebug: Trace persistence
- TestRunUntilSettled: Repeated batches
- TestFailureBookkeeping: Failed runs when storage also fails
- TestLockLifetime: Lock cleanup after batches
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from answerforge.autofill.models import RunMode
from answerforge.autofill.scheduler import NoDelay
from answerforge.autofill.service import QuestionnaireAutofill
from answerforge.core.exceptions import (
    EvidenceNotReadyError,
    GenerationError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from answerforge.query.answer_engine import AnswerEngine
from answerforge.query.models import NOT_SPECIFIED_RESPONSE_TEXT
from answerforge.storage.models import RunStatus
from tests.fixtures.fakes import FOUND_QUESTION, MISSING_QUESTION, ORG


def run(coro):
    return asyncio.run(coro)


def import_questions(autofill, texts, name="Vendor Q"):
    return run(autofill.import_questionnaire(ORG, name, texts))


class TestImport:
    """Tests for import_questionnaire()."""

    def test_blank_questions_skipped(self, autofill, store):
        questionnaire = import_questions(autofill, ["  Q1  ", "", "   ", "Q2"])

        rows = run(store.list_questions(questionnaire.id))

        assert questionnaire.status is RunStatus.PENDING
        assert questionnaire.total_count == 2
        assert [(q.row_index, q.text) for q in rows] == [(0, "Q1"), (1, "Q2")]

    def test_all_blank_rejected(self, autofill):
        with pytest.raises(ValidationError):
            import_questions(autofill, ["", "  "])

    def test_progress_before_any_run(self, autofill):
        questionnaire = import_questions(autofill, ["Q1", "Q2"])

        progress = run(autofill.get_progress(ORG, questionnaire.id))

        assert progress.status is RunStatus.PENDING
        assert progress.processed_count == 0
        assert progress.remaining == 2
        assert progress.started_at is None


class TestEvidenceReady:
    """Tests for ensure_evidence_ready()."""

    def test_fully_embedded(self, autofill):
        run(autofill.ensure_evidence_ready(ORG))

    def test_no_evidence(self, autofill):
        with pytest.raises(EvidenceNotReadyError):
            run(autofill.ensure_evidence_ready("globex"))

    def test_missing_embeddings(self, autofill, ingestor):
        run(ingestor.ingest_text(ORG, "incident.md", "Incidents are triaged."))

        with pytest.raises(EvidenceNotReadyError) as exc_info:
            run(autofill.ensure_evidence_ready(ORG))

        assert "missing embeddings" in str(exc_info.value)


class TestProcessBatch:
    """Tests for process_batch()."""

    def test_twelve_rows_take_three_batches(self, autofill, generator):
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 12)

        statuses = []
        for _ in range(3):
            progress = run(autofill.process_batch(ORG, questionnaire.id, 5))
            statuses.append((progress.status, progress.batch_processed))

        assert statuses == [
            (RunStatus.RUNNING, 5),
            (RunStatus.RUNNING, 5),
            (RunStatus.COMPLETED, 2),
        ]
        assert progress.processed_count == 12
        assert progress.found_count == 12
        assert progress.remaining == 0
        assert progress.finished_at is not None
        assert len(generator.calls) == 12

    def test_rows_answered_in_order(self, autofill, store):
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 3)

        run(autofill.process_batch(ORG, questionnaire.id, 2))
        rows = run(store.list_questions(questionnaire.id))

        assert [q.answer is not None for q in rows] == [True, True, False]

    def test_found_and_not_found_counts(self, autofill, store):
        questionnaire = import_questions(autofill, [FOUND_QUESTION, MISSING_QUESTION])

        progress = run(autofill.process_batch(ORG, questionnaire.id))
        rows = run(store.list_questions(questionnaire.id))

        assert progress.status is RunStatus.COMPLETED
        assert progress.found_count == 1
        assert progress.not_found_count == 1
        assert rows[0].answer == "MFA is enforced for all administrators."
        assert rows[0].citations[0].doc_name == "security.md"
        assert rows[1].answer == NOT_SPECIFIED_RESPONSE_TEXT
        assert rows[1].not_found_reason is not None

    def test_empty_batch_completes(self, autofill):
        questionnaire = import_questions(autofill, [MISSING_QUESTION])
        run(autofill.process_batch(ORG, questionnaire.id))

        progress = run(autofill.process_batch(ORG, questionnaire.id))

        assert progress.status is RunStatus.COMPLETED
        assert progress.batch_processed == 0

    def test_unknown_questionnaire(self, autofill):
        with pytest.raises(NotFoundError):
            run(autofill.process_batch(ORG, "missing"))

    def test_other_org_cannot_process(self, autofill):
        questionnaire = import_questions(autofill, [FOUND_QUESTION])

        with pytest.raises(NotFoundError):
            run(autofill.process_batch("globex", questionnaire.id))

    def test_archived_questionnaire(self, autofill, store):
        questionnaire = import_questions(autofill, [FOUND_QUESTION])
        run(store.archive_questionnaire(questionnaire.id))

        with pytest.raises(NotFoundError):
            run(autofill.process_batch(ORG, questionnaire.id))

    def test_batch_size_must_be_positive(self, autofill):
        questionnaire = import_questions(autofill, [FOUND_QUESTION])

        with pytest.raises(ValidationError):
            run(autofill.process_batch(ORG, questionnaire.id, 0))


class TestFailureAndResume:
    """Tests for failed batches."""

    def test_failure_keeps_completed_rows(self, autofill, generator, store):
        generator.script = [None, GenerationError("model down")]
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 3)

        progress = run(autofill.process_batch(ORG, questionnaire.id))
        rows = run(store.list_questions(questionnaire.id))

        assert progress.status is RunStatus.FAILED
        assert progress.last_error == "model down"
        assert progress.processed_count == 1
        assert progress.batch_processed == 1
        assert progress.remaining == 2
        assert [q.answer is not None for q in rows] == [True, False, False]

    def test_resume_continues_same_run(self, autofill, generator):
        generator.script = [None, GenerationError("model down")]
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 3)
        failed = run(autofill.process_batch(ORG, questionnaire.id))

        resumed = run(autofill.process_batch(ORG, questionnaire.id))

        assert resumed.status is RunStatus.COMPLETED
        assert resumed.last_error is None
        assert resumed.started_at == failed.started_at
        assert resumed.processed_count == 3
        assert len(generator.calls) == 4

    def test_failure_is_persisted(self, autofill, generator):
        generator.script = [GenerationError("model down")]
        questionnaire = import_questions(autofill, [FOUND_QUESTION])
        run(autofill.process_batch(ORG, questionnaire.id))

        progress = run(autofill.get_progress(ORG, questionnaire.id))

        assert progress.status is RunStatus.FAILED
        assert progress.last_error == "model down"


class TestRunLifecycle:
    """Tests for run timestamps on entry to RUNNING."""

    def test_continuing_run_keeps_started_at(self, autofill):
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 2)

        first = run(autofill.process_batch(ORG, questionnaire.id, 1))
        second = run(autofill.process_batch(ORG, questionnaire.id, 1))

        assert first.status is RunStatus.RUNNING
        assert second.started_at == first.started_at
        assert second.finished_at > second.started_at

    def test_call_after_completion_starts_new_run(self, autofill):
        questionnaire = import_questions(autofill, [FOUND_QUESTION])
        first = run(autofill.process_batch(ORG, questionnaire.id))

        second = run(autofill.process_batch(ORG, questionnaire.id))

        assert second.status is RunStatus.COMPLETED
        assert second.started_at > first.finished_at
        assert second.finished_at > second.started_at


class TestRerunMissing:
    """Tests for process_rerun_missing_batch()."""

    def test_new_evidence_turns_not_found_into_found(self, autofill, ingestor, store):
        questionnaire = import_questions(autofill, [FOUND_QUESTION, MISSING_QUESTION])
        run(autofill.process_batch(ORG, questionnaire.id))
        run(ingestor.ingest_text(ORG, "bounty.md", "We run a public bug bounty."))
        run(ingestor.embed_pending(ORG))

        progress = run(autofill.process_rerun_missing_batch(ORG, questionnaire.id))
        rows = run(store.list_questions(questionnaire.id))

        assert progress.status is RunStatus.COMPLETED
        assert progress.batch_processed == 1
        assert progress.found_count == 2
        assert rows[1].answer == "We run a public bug bounty."
        assert rows[1].citations[0].doc_name == "bounty.md"
        assert rows[1].last_rerun_at > progress.started_at
        assert rows[0].last_rerun_at is None

    def test_each_row_rerun_once_per_run(self, autofill, store):
        questionnaire = import_questions(autofill, [MISSING_QUESTION] * 3)
        run(autofill.process_batch(ORG, questionnaire.id))

        first = run(autofill.process_rerun_missing_batch(ORG, questionnaire.id, 2))
        second = run(autofill.process_rerun_missing_batch(ORG, questionnaire.id, 2))

        assert (first.status, first.batch_processed, first.remaining) == (
            RunStatus.RUNNING,
            2,
            1,
        )
        assert (second.status, second.batch_processed) == (RunStatus.COMPLETED, 1)
        assert second.started_at == first.started_at
        assert second.not_found_count == 3

    def test_next_run_makes_rows_eligible_again(self, autofill):
        questionnaire = import_questions(autofill, [MISSING_QUESTION])
        run(autofill.process_batch(ORG, questionnaire.id))
        run(autofill.process_rerun_missing_batch(ORG, questionnaire.id))

        progress = run(autofill.process_rerun_missing_batch(ORG, questionnaire.id))

        assert progress.batch_processed == 1

    def test_found_rows_not_rerun(self, autofill, generator):
        questionnaire = import_questions(autofill, [FOUND_QUESTION])
        run(autofill.process_batch(ORG, questionnaire.id))

        progress = run(autofill.process_rerun_missing_batch(ORG, questionnaire.id))

        assert progress.batch_processed == 0
        assert len(generator.calls) == 1


class TestConcurrency:
    """Tests for the per-questionnaire lock."""

    def test_concurrent_batches_do_not_overlap(self, autofill, generator, store):
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 4)

        async def both():
            return await asyncio.gather(
                autofill.process_batch(ORG, questionnaire.id, 2),
                autofill.process_batch(ORG, questionnaire.id, 2),
            )

        results = run(both())
        rows = run(store.list_questions(questionnaire.id))

        assert len(generator.calls) == 4
        assert sorted(r.batch_processed for r in results) == [2, 2]
        assert {r.status for r in results} == {RunStatus.RUNNING, RunStatus.COMPLETED}
        assert all(q.answer is not None for q in rows)


class TestDebug:
    """Tests for answer trace handling."""

    def test_persist_debug_stores_trace(self, autofill, store):
        questionnaire = import_questions(autofill, [FOUND_QUESTION])

        run(autofill.process_batch(ORG, questionnaire.id, persist_debug=True))
        row = run(store.list_questions(questionnaire.id))[0]

        assert row.debug is not None
        assert row.debug["retrieved_top_k"]

    def test_debug_logging_does_not_persist(self, autofill, store):
        questionnaire = import_questions(autofill, [FOUND_QUESTION])

        run(autofill.process_batch(ORG, questionnaire.id, debug_enabled=True))
        row = run(store.list_questions(questionnaire.id))[0]

        assert row.debug is None


class TestRunUntilSettled:
    """Tests for run_until_settled()."""

    def test_runs_to_completion(self, autofill):
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 12)
        seen = []

        progress = run(
            autofill.run_until_settled(
                ORG, questionnaire.id, batch_size=5, on_progress=seen.append
            )
        )

        assert progress.status is RunStatus.COMPLETED
        assert [p.batch_processed for p in seen] == [5, 5, 2]

    def test_stops_at_max_batches(self, autofill):
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 12)

        progress = run(
            autofill.run_until_settled(
                ORG, questionnaire.id, batch_size=5, max_batches=2
            )
        )

        assert progress.status is RunStatus.RUNNING
        assert progress.processed_count == 10

    def test_stops_on_failure(self, autofill, generator):
        generator.script = [GenerationError("model down")]
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 3)

        progress = run(autofill.run_until_settled(ORG, questionnaire.id))

        assert progress.status is RunStatus.FAILED

    def test_rerun_mode(self, autofill):
        questionnaire = import_questions(autofill, [MISSING_QUESTION] * 3)
        run(autofill.process_batch(ORG, questionnaire.id))

        progress = run(
            autofill.run_until_settled(
                ORG, questionnaire.id, RunMode.RERUN_MISSING, batch_size=1
            )
        )

        assert progress.status is RunStatus.COMPLETED
        assert progress.not_found_count == 3


class TestScheduling:
    """Tests for the delay between questions."""

    def test_delay_between_questions(self, evidence_store, engine):
        class CountingDelay:
            waits = 0

            async def wait(self):
                CountingDelay.waits += 1

        autofill = QuestionnaireAutofill(evidence_store, engine, CountingDelay())
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 3)

        run(autofill.process_batch(ORG, questionnaire.id))

        assert CountingDelay.waits == 2

    def test_default_scheduler(self, evidence_store, engine: AnswerEngine):
        autofill = QuestionnaireAutofill(evidence_store, engine)

        assert isinstance(autofill.scheduler, NoDelay)


class TestFailureBookkeeping:
    """Tests for run state when storage also fails during a failed batch."""

    def test_recount_failure_still_marks_failed(
        self, autofill, generator, evidence_store
    ):
        generator.script = [GenerationError("model down")]
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 2)
        broken = AsyncMock(side_effect=StorageError("disk I/O error"))

        with patch.object(evidence_store, "summarize_answers", broken):
            progress = run(autofill.process_batch(ORG, questionnaire.id))
        stored = run(evidence_store.get_questionnaire(questionnaire.id))

        assert progress.status is RunStatus.FAILED
        assert progress.last_error == "model down"
        assert progress.remaining == 2
        assert stored.status is RunStatus.FAILED
        assert stored.last_error == "model down"


class TestLockLifetime:
    """Tests for per-questionnaire lock cleanup."""

    def test_lock_released_after_batch(self, autofill):
        questionnaire = import_questions(autofill, [FOUND_QUESTION])

        run(autofill.process_batch(ORG, questionnaire.id))

        assert autofill._locks == {}
        assert autofill._lock_users == {}

    def test_lock_released_after_concurrent_batches(self, autofill):
        questionnaire = import_questions(autofill, [FOUND_QUESTION] * 2)

        async def both():
            await asyncio.gather(
                autofill.process_batch(ORG, questionnaire.id, 1),
                autofill.process_batch(ORG, questionnaire.id, 1),
            )

        run(both())

        assert autofill._locks == {}
        assert autofill._lock_users == {}

    def test_lock_released_after_error(self, autofill):
        with pytest.raises(NotFoundError):
            run(autofill.process_batch(ORG, "missing"))

        assert autofill._locks == {}
