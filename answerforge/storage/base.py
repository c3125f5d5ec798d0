"""
Base Interfaces for Storage Backends.

Two repositories are defined. A backend may implement both over one database.

Architecture Context
--------------------

    ┌─────────────────┐   ┌─────────────────┐   ┌─────────────────┐
    │ DocumentIngestor│   │   Retriever /   │   │  Questionnaire  │
    │ (writes chunks) │   │  AnswerEngine   │   │    Autofill     │
    └────────┬────────┘   └────────┬────────┘   └────────┬────────┘
             │                     │                     │
             └──────────┬──────────┘                     │
                        ↓                                ↓
             ┌─────────────────────┐        ┌─────────────────────────┐
             │ EvidenceRepository  │        │ QuestionnaireRepository │
             └──────────┬──────────┘        └────────────┬────────────┘
                        └───────────────┬────────────────┘
                                        ↓
                                 ┌─────────────┐
                                 │ SQLiteStore │
                                 └─────────────┘

vector_search contract: rows ordered by ascending cosine distance, ties
broken by chunk id ascending, at most ``limit`` rows, only chunks that have
an embedding and belong to the organization.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from answerforge.storage.models import (
    AnswerSummary,
    ApprovedAnswer,
    Document,
    EmbeddingAvailability,
    Question,
    Questionnaire,
    ReviewStatus,
    StoredChunk,
)


@dataclass(frozen=True)
class VectorSearchRow:
    """Raw nearest-neighbour result."""

    chunk_id: str
    doc_name: str
    content: str
    distance: float


@dataclass(frozen=True)
class EvidenceChunk:
    """A chunk looked up by id, with its document name."""

    chunk_id: str
    doc_name: str
    content: str


class EvidenceRepository(ABC):
    """Documents, chunks, and similarity search."""

    @abstractmethod
    async def add_document(
        self, document: Document, chunks: Sequence[StoredChunk]
    ) -> None:
        """Store a document and its chunks in one transaction."""

    @abstractmethod
    async def list_documents(self, org_id: str) -> List[Document]:
        """Documents of an organization, oldest first."""

    @abstractmethod
    async def count_embedded_chunks(self, org_id: str) -> int:
        """Number of chunks with an embedding."""

    @abstractmethod
    async def embedding_availability(self, org_id: str) -> EmbeddingAvailability:
        """Embedded and missing chunk counts."""

    @abstractmethod
    async def chunks_missing_embeddings(
        self, org_id: str, limit: int
    ) -> List[StoredChunk]:
        """Chunks without an embedding in document/index order."""

    @abstractmethod
    async def set_chunk_embedding(
        self, chunk_id: str, embedding: Sequence[float]
    ) -> None:
        """Attach an embedding to a chunk."""

    @abstractmethod
    async def vector_search(
        self, org_id: str, query_vector: Sequence[float], limit: int
    ) -> List[VectorSearchRow]:
        """Nearest chunks by cosine distance."""

    @abstractmethod
    async def get_chunks(
        self, org_id: str, chunk_ids: Sequence[str]
    ) -> List[EvidenceChunk]:
        """Chunks of the organization among chunk_ids. Unknown ids are omitted."""


class QuestionnaireRepository(ABC):
    """Questionnaires, their run state, question rows, and approvals."""

    @abstractmethod
    async def create_questionnaire(
        self, questionnaire: Questionnaire, questions: Sequence[Question]
    ) -> None:
        """Insert a questionnaire and its rows."""

    @abstractmethod
    async def get_questionnaire(
        self, questionnaire_id: str, org_id: Optional[str] = None
    ) -> Optional[Questionnaire]:
        """Fetch a questionnaire. Archived or foreign rows give None."""

    @abstractmethod
    async def archive_questionnaire(self, questionnaire_id: str) -> bool:
        """Archive a questionnaire. Returns False if it was not active."""

    @abstractmethod
    async def update_run_state(self, questionnaire: Questionnaire) -> None:
        """Persist status, counts, error, and timestamps."""

    @abstractmethod
    async def list_questions(self, questionnaire_id: str) -> List[Question]:
        """All rows ordered by row index."""

    @abstractmethod
    async def select_unanswered(
        self, questionnaire_id: str, limit: Optional[int] = None
    ) -> List[Question]:
        """Rows with a null answer ordered by row index."""

    @abstractmethod
    async def select_rerun_candidates(
        self,
        questionnaire_id: str,
        run_started_at: datetime,
        limit: Optional[int] = None,
    ) -> List[Question]:
        """Null or sentinel rows not yet touched since run_started_at."""

    @abstractmethod
    async def save_answer(self, question: Question) -> None:
        """Persist the answer, reuse fields, and last_rerun_at of one row."""

    @abstractmethod
    async def summarize_answers(self, questionnaire_id: str) -> AnswerSummary:
        """Counts derived from current row state."""

    @abstractmethod
    async def get_question(
        self, question_id: str, org_id: Optional[str] = None
    ) -> Optional[Question]:
        """Fetch one row. Rows of archived or foreign questionnaires give None."""

    @abstractmethod
    async def set_review_status(
        self, question_id: str, status: ReviewStatus
    ) -> None:
        """Persist the review status of one row."""

    @abstractmethod
    async def upsert_approved_answer(self, approved: ApprovedAnswer) -> ApprovedAnswer:
        """Store the approval of a question and mark the row APPROVED.

        An existing approval of the same question keeps its id and
        created_at. Returns the stored record.
        """

    @abstractmethod
    async def get_approved_answer(
        self, question_id: str
    ) -> Optional[ApprovedAnswer]:
        """Approval of one question, if any."""

    @abstractmethod
    async def delete_approved_answer(self, question_id: str) -> bool:
        """Remove a question's approval and set the row back to DRAFT."""

    @abstractmethod
    async def list_approved_answers(self, org_id: str) -> List[ApprovedAnswer]:
        """Approvals of an organization, most recently updated first."""
