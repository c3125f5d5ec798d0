"""
Grounded answering.

    models.py        Citation, AnswerResult, DebugTrace, sentinel text
    claim_check.py   Lexical guardrail over the cited snippets
    citations.py     Citation display formatting
    answer_engine.py AnswerEngine orchestrating retrieval and generation

The answer engine is imported from its module directly:

    from answerforge.query.answer_engine import AnswerEngine
"""

from answerforge.query.claim_check import (
    ClaimCheckResult,
    apply_claim_check_guardrails,
)
from answerforge.query.models import (
    NOT_SPECIFIED_RESPONSE_TEXT,
    AnswerResult,
    Citation,
    Confidence,
    DebugTrace,
    NotFoundReason,
)

__all__ = [
    "NOT_SPECIFIED_RESPONSE_TEXT",
    "AnswerResult",
    "Citation",
    "ClaimCheckResult",
    "Confidence",
    "DebugTrace",
    "NotFoundReason",
    "apply_claim_check_guardrails",
]
