"""
Storage for evidence and questionnaires.

Storage Backends
----------------
**SQLiteStore**
    Single-file storage for evidence, questionnaires, and approved answers.
    Embeddings are JSON arrays, searched with numpy cosine distance.

Usage
-----
    from answerforge.storage import SQLiteStore

    store = SQLiteStore(config.db_path)
    rows = await store.vector_search(org_id, query_vector, limit=5)
"""

from answerforge.storage.base import (
    EvidenceChunk,
    EvidenceRepository,
    QuestionnaireRepository,
    VectorSearchRow,
)
from answerforge.storage.models import (
    AnswerSummary,
    ApprovalSource,
    ApprovedAnswer,
    Document,
    EmbeddingAvailability,
    Question,
    Questionnaire,
    ReuseKind,
    ReviewStatus,
    RunStatus,
    StoredChunk,
)
from answerforge.storage.sqlite import SQLiteStore

__all__ = [
    "AnswerSummary",
    "ApprovalSource",
    "ApprovedAnswer",
    "Document",
    "EmbeddingAvailability",
    "EvidenceChunk",
    "EvidenceRepository",
    "Question",
    "Questionnaire",
    "QuestionnaireRepository",
    "ReuseKind",
    "ReviewStatus",
    "RunStatus",
    "SQLiteStore",
    "StoredChunk",
    "VectorSearchRow",
]
