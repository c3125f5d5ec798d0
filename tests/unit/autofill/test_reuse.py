"""
Tests for approved-answer matching.

Organization
------------
- TestNearExactSimilarity: Bigram Dice coefficient
- TestMatchTiers: Exact, near-exact, and semantic matches
- TestUsability: Sentinel answers and missing chunks are never reused
- TestOrdering: Score and recency tie-breaks
"""

import asyncio
from datetime import timedelta

import pytest

from answerforge.autofill.reuse import (
    MAX_REUSED_SNIPPET_CHARS,
    ApprovedAnswerMatcher,
    ReuseMatchType,
    near_exact_similarity,
    question_text_hash,
)
from answerforge.query.models import NOT_SPECIFIED_RESPONSE_TEXT
from answerforge.shared.text_utils import normalize_for_match
from answerforge.storage.models import ApprovedAnswer, ReuseKind
from tests.fixtures.fakes import FOUND_QUESTION, ORG, START_TIME


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def mfa_chunk_id(evidence_store, embedder):
    rows = run(evidence_store.vector_search(ORG, embedder.embed("mfa"), 1))
    return rows[0].chunk_id


def approval(
    question,
    answer,
    chunk_ids,
    embedder=None,
    updated_offset=0,
    approval_id=None,
):
    normalized = normalize_for_match(question)
    updated_at = START_TIME + timedelta(minutes=updated_offset)
    record = ApprovedAnswer(
        org_id=ORG,
        question_id=f"q-{question}",
        answer_text=answer,
        citation_chunk_ids=list(chunk_ids),
        normalized_question_text=normalized,
        question_text_hash=question_text_hash(normalized),
        question_embedding=embedder.embed(question) if embedder else None,
        created_at=START_TIME,
        updated_at=updated_at,
    )
    if approval_id is not None:
        record.id = approval_id
    return record


def matcher_for(evidence_store, embedder, *approved):
    return ApprovedAnswerMatcher(evidence_store, embedder, ORG, approved)


class TestNearExactSimilarity:
    """Tests for near_exact_similarity()."""

    def test_normalized_equal(self):
        assert near_exact_similarity("Is MFA enforced?", "is  mfa ENFORCED") == 1.0

    def test_one_letter_difference_is_close(self):
        score = near_exact_similarity(
            "Is MFA enforced for admins?", "Is MFA enforced for admin?"
        )

        assert 0.93 <= score < 1.0

    def test_unrelated(self):
        assert near_exact_similarity("Is MFA enforced?", "Backups nightly?") < 0.5

    def test_empty(self):
        assert near_exact_similarity("", "Is MFA enforced?") == 0.0


class TestMatchTiers:
    """Tests for ApprovedAnswerMatcher.find()."""

    def test_exact_match(self, evidence_store, embedder, mfa_chunk_id):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(FOUND_QUESTION, "Yes, for all admins.", [mfa_chunk_id]),
        )

        reused = run(matcher.find("  is mfa ENFORCED "))

        assert reused.match_type is ReuseMatchType.EXACT
        assert reused.match_type.kind is ReuseKind.EXACT
        assert reused.answer == "Yes, for all admins."
        assert reused.citations[0].chunk_id == mfa_chunk_id
        assert reused.citations[0].doc_name == "security.md"
        assert "MFA is enforced" in reused.citations[0].quoted_snippet

    def test_exact_match_needs_no_embedding(
        self, evidence_store, embedder, mfa_chunk_id
    ):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(FOUND_QUESTION, "Yes.", [mfa_chunk_id]),
        )
        embedder.calls.clear()

        run(matcher.find(FOUND_QUESTION))

        assert embedder.calls == []

    def test_near_exact_match(self, evidence_store, embedder, mfa_chunk_id):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval("Is MFA enforced for admins?", "Yes.", [mfa_chunk_id]),
        )

        reused = run(matcher.find("Is MFA enforced for admin?"))

        assert reused.match_type is ReuseMatchType.NEAR_EXACT
        assert reused.match_type.kind is ReuseKind.SEMANTIC

    def test_semantic_match(self, evidence_store, embedder, mfa_chunk_id):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(FOUND_QUESTION, "Yes.", [mfa_chunk_id], embedder=embedder),
        )

        reused = run(matcher.find("Do administrators log in with MFA?"))

        assert reused.match_type is ReuseMatchType.SEMANTIC
        assert reused.match_type.kind is ReuseKind.SEMANTIC
        assert reused.score == pytest.approx(1.0)

    def test_semantic_below_threshold(self, evidence_store, embedder, mfa_chunk_id):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(FOUND_QUESTION, "Yes.", [mfa_chunk_id], embedder=embedder),
        )

        assert run(matcher.find("How long is backup retention?")) is None

    def test_no_approvals(self, evidence_store, embedder):
        matcher = matcher_for(evidence_store, embedder)
        embedder.calls.clear()

        assert run(matcher.find(FOUND_QUESTION)) is None
        assert embedder.calls == []

    def test_for_org_without_approvals(self, evidence_store, embedder):
        matcher = run(
            ApprovedAnswerMatcher.for_org(evidence_store, evidence_store, embedder, ORG)
        )

        assert matcher.candidates == []


class TestUsability:
    """Tests for candidates that must be skipped."""

    def test_sentinel_answer_never_reused(
        self, evidence_store, embedder, mfa_chunk_id
    ):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(
                FOUND_QUESTION,
                NOT_SPECIFIED_RESPONSE_TEXT,
                [mfa_chunk_id],
                embedder=embedder,
            ),
        )

        assert run(matcher.find(FOUND_QUESTION)) is None

    def test_sentinel_skipped_for_next_candidate(
        self, evidence_store, embedder, mfa_chunk_id
    ):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(
                FOUND_QUESTION,
                f"Unknown. {NOT_SPECIFIED_RESPONSE_TEXT}",
                [mfa_chunk_id],
                updated_offset=5,
            ),
            approval(FOUND_QUESTION, "Yes.", [mfa_chunk_id], approval_id="older"),
        )

        reused = run(matcher.find(FOUND_QUESTION))

        assert reused.approved_answer_id == "older"

    def test_missing_chunk_skipped(self, evidence_store, embedder, mfa_chunk_id):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(FOUND_QUESTION, "Yes.", [mfa_chunk_id, "deleted-chunk"]),
        )

        assert run(matcher.find(FOUND_QUESTION)) is None

    def test_other_org_chunk_skipped(self, evidence_store, embedder, mfa_chunk_id):
        matcher = ApprovedAnswerMatcher(
            evidence_store,
            embedder,
            "globex",
            [approval(FOUND_QUESTION, "Yes.", [mfa_chunk_id])],
        )

        assert run(matcher.find(FOUND_QUESTION)) is None

    def test_long_chunk_truncated(self, evidence_store, embedder, ingestor):
        run(ingestor.ingest_text(ORG, "long.md", "bounty " * 400))
        run(ingestor.embed_pending(ORG))
        chunk_id = run(
            evidence_store.vector_search(ORG, embedder.embed("bounty"), 1)
        )[0].chunk_id
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval("Bug bounty?", "Yes.", [chunk_id]),
        )

        snippet = run(matcher.find("Bug bounty?")).citations[0].quoted_snippet

        assert len(snippet) <= MAX_REUSED_SNIPPET_CHARS
        assert snippet.endswith("...")


class TestOrdering:
    """Tests for candidate order within a tier."""

    def test_most_recent_exact_wins(self, evidence_store, embedder, mfa_chunk_id):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(FOUND_QUESTION, "Old.", [mfa_chunk_id], approval_id="a"),
            approval(
                FOUND_QUESTION,
                "New.",
                [mfa_chunk_id],
                updated_offset=10,
                approval_id="b",
            ),
        )

        assert run(matcher.find(FOUND_QUESTION)).answer == "New."

    def test_same_update_time_breaks_on_id(
        self, evidence_store, embedder, mfa_chunk_id
    ):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(FOUND_QUESTION, "Second.", [mfa_chunk_id], approval_id="b"),
            approval(FOUND_QUESTION, "First.", [mfa_chunk_id], approval_id="a"),
        )

        assert run(matcher.find(FOUND_QUESTION)).answer == "First."

    def test_higher_score_beats_recency(self, evidence_store, embedder, mfa_chunk_id):
        matcher = matcher_for(
            evidence_store,
            embedder,
            approval(
                "Is MFA enforced for admins?",
                "Closer.",
                [mfa_chunk_id],
            ),
            approval(
                "Is MFA enforced for admin 2?",
                "Newer.",
                [mfa_chunk_id],
                updated_offset=10,
            ),
        )

        assert run(matcher.find("Is MFA enforced for admin?")).answer == "Closer."
