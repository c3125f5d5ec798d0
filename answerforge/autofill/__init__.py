"""
Questionnaire Autofill for AnswerForge.

Runs the grounded answer engine over every question of a questionnaire in
small sequential batches with persistent, resumable run state.

Architecture Context
--------------------

    ┌──────────────────┐     ┌──────────────────┐     ┌─────────────────┐
    │   CLI autofill   │────→│ QuestionnaireAuto│────→│  AnswerEngine   │
    │  rerun-missing   │     │ fill (batches)   │     │ (one question)  │
    └──────────────────┘     └────────┬─────────┘     └─────────────────┘
                                      │
                          WorkQueue + DelayStrategy
                                      │
                                      ↓
                             ┌─────────────────┐
                             │   SQLiteStore   │
                             │ (rows + run)    │
                             └─────────────────┘
"""

from answerforge.autofill.factory import Components, create_components
from answerforge.autofill.models import RunMode, RunProgress, RunStatus
from answerforge.autofill.reuse import (
    ApprovedAnswerMatcher,
    ReusedAnswer,
    ReuseMatchType,
)
from answerforge.autofill.review import AnswerReview, ReusedApprovalSummary
from answerforge.autofill.scheduler import DelayStrategy, FixedDelay, NoDelay, WorkQueue
from answerforge.autofill.service import QuestionnaireAutofill

__all__ = [
    "AnswerReview",
    "ApprovedAnswerMatcher",
    "Components",
    "DelayStrategy",
    "FixedDelay",
    "NoDelay",
    "QuestionnaireAutofill",
    "ReuseMatchType",
    "ReusedAnswer",
    "ReusedApprovalSummary",
    "RunMode",
    "RunProgress",
    "RunStatus",
    "WorkQueue",
    "create_components",
]
