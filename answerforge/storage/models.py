"""
Persistent record models.

Defines dataclasses for documents, chunks, questionnaires, questions, and
approved answers with to_dict/from_dict conversions to flat SQLite rows.
Timestamps are timezone aware UTC datetimes in memory and ISO-8601 strings in storage.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from answerforge.query.models import Citation, Confidence, NotFoundReason


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def to_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width ISO string, so stored timestamps compare lexically."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class RunStatus(Enum):
    """Questionnaire run status."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ReviewStatus(Enum):
    """Human review state of one question row."""

    DRAFT = "DRAFT"
    NEEDS_REVIEW = "NEEDS_REVIEW"
    APPROVED = "APPROVED"


class ReuseKind(Enum):
    """How a reused answer matched. Near-exact matches count as SEMANTIC."""

    EXACT = "EXACT"
    SEMANTIC = "SEMANTIC"


class ApprovalSource(Enum):
    """Where an approved answer's text came from."""

    GENERATED = "GENERATED"
    MANUAL_EDIT = "MANUAL_EDIT"


@dataclass
class Document:
    """An ingested evidence document."""

    org_id: str
    name: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "created_at": to_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        return cls(
            id=data["id"],
            org_id=data["org_id"],
            name=data["name"],
            created_at=from_timestamp(data["created_at"]) or utcnow(),
        )


@dataclass
class StoredChunk:
    """A chunk row. embedding is None until backfilled."""

    document_id: str
    org_id: str
    chunk_index: int
    content: str
    id: str = field(default_factory=new_id)
    embedding: Optional[List[float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "org_id": self.org_id,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "embedding": json.dumps(self.embedding) if self.embedding else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredChunk":
        return cls(
            id=data["id"],
            document_id=data["document_id"],
            org_id=data["org_id"],
            chunk_index=data["chunk_index"],
            content=data["content"],
            embedding=json.loads(data["embedding"]) if data.get("embedding") else None,
        )


@dataclass
class Questionnaire:
    """
    A questionnaire and its run state.

    Attributes:
        id: Unique questionnaire identifier
        org_id: Owning organization
        name: Display name
        status: Run status
        total_count: Number of question rows
        processed_count: Rows with a non-null answer
        found_count: processed_count - not_found_count
        not_found_count: Rows whose answer is the sentinel
        last_error: Message of the failure that stopped the last batch
        started_at: When the current run started
        finished_at: When the run last completed
        created_at: Import time
        archived_at: Set when archived; archived rows behave as missing
    """

    org_id: str
    name: str
    id: str = field(default_factory=new_id)
    status: RunStatus = RunStatus.PENDING
    total_count: int = 0
    processed_count: int = 0
    found_count: int = 0
    not_found_count: int = 0
    last_error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    archived_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "status": self.status.value,
            "total_count": self.total_count,
            "processed_count": self.processed_count,
            "found_count": self.found_count,
            "not_found_count": self.not_found_count,
            "last_error": self.last_error,
            "started_at": to_timestamp(self.started_at),
            "finished_at": to_timestamp(self.finished_at),
            "created_at": to_timestamp(self.created_at),
            "archived_at": to_timestamp(self.archived_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Questionnaire":
        """Create Questionnaire from dictionary."""
        return cls(
            id=data["id"],
            org_id=data["org_id"],
            name=data["name"],
            status=RunStatus(data["status"]),
            total_count=data["total_count"],
            processed_count=data["processed_count"],
            found_count=data["found_count"],
            not_found_count=data["not_found_count"],
            last_error=data["last_error"],
            started_at=from_timestamp(data["started_at"]),
            finished_at=from_timestamp(data["finished_at"]),
            created_at=from_timestamp(data["created_at"]) or utcnow(),
            archived_at=from_timestamp(data["archived_at"]),
        )


@dataclass
class Question:
    """
    One questionnaire row. answer is None until processed.

    The reused_* fields are set when the answer was copied from an approved
    answer instead of being generated, and cleared when it is generated.
    """

    questionnaire_id: str
    row_index: int
    text: str
    id: str = field(default_factory=new_id)
    answer: Optional[str] = None
    citations: List[Citation] = field(default_factory=list)
    confidence: Optional[Confidence] = None
    needs_review: bool = False
    not_found_reason: Optional[NotFoundReason] = None
    last_rerun_at: Optional[datetime] = None
    debug: Optional[Dict[str, Any]] = None
    review_status: ReviewStatus = ReviewStatus.DRAFT
    reused_from_approved_answer_id: Optional[str] = None
    reuse_kind: Optional[ReuseKind] = None
    reused_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "questionnaire_id": self.questionnaire_id,
            "row_index": self.row_index,
            "text": self.text,
            "answer": self.answer,
            "citations": json.dumps([c.to_dict() for c in self.citations]),
            "confidence": self.confidence.value if self.confidence else None,
            "needs_review": 1 if self.needs_review else 0,
            "not_found_reason": (
                self.not_found_reason.value if self.not_found_reason else None
            ),
            "last_rerun_at": to_timestamp(self.last_rerun_at),
            "debug": json.dumps(self.debug) if self.debug is not None else None,
            "review_status": self.review_status.value,
            "reused_from_approved_answer_id": self.reused_from_approved_answer_id,
            "reuse_match_type": self.reuse_kind.value if self.reuse_kind else None,
            "reused_at": to_timestamp(self.reused_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        """Create Question from dictionary."""
        citations = json.loads(data["citations"]) if data.get("citations") else []
        return cls(
            id=data["id"],
            questionnaire_id=data["questionnaire_id"],
            row_index=data["row_index"],
            text=data["text"],
            answer=data["answer"],
            citations=[Citation.from_dict(c) for c in citations],
            confidence=Confidence(data["confidence"]) if data["confidence"] else None,
            needs_review=bool(data["needs_review"]),
            not_found_reason=(
                NotFoundReason(data["not_found_reason"])
                if data["not_found_reason"]
                else None
            ),
            last_rerun_at=from_timestamp(data["last_rerun_at"]),
            debug=json.loads(data["debug"]) if data.get("debug") else None,
            review_status=ReviewStatus(data.get("review_status") or "DRAFT"),
            reused_from_approved_answer_id=data.get("reused_from_approved_answer_id"),
            reuse_kind=(
                ReuseKind(data["reuse_match_type"])
                if data.get("reuse_match_type")
                else None
            ),
            reused_at=from_timestamp(data.get("reused_at")),
        )


@dataclass
class ApprovedAnswer:
    """
    A reviewed answer that later questions with the same meaning reuse.

    One per question. The question text is kept in normalized form with its
    md5 hash for exact matching, and as an embedding for semantic matching.
    Citations are stored as chunk ids and re-quoted from the chunk when
    reused.
    """

    org_id: str
    question_id: str
    answer_text: str
    citation_chunk_ids: List[str]
    normalized_question_text: str
    question_text_hash: str
    question_embedding: Optional[List[float]] = None
    source: ApprovalSource = ApprovalSource.GENERATED
    approved_by: str = "system"
    note: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "org_id": self.org_id,
            "question_id": self.question_id,
            "answer_text": self.answer_text,
            "citation_chunk_ids": json.dumps(list(self.citation_chunk_ids)),
            "normalized_question_text": self.normalized_question_text,
            "question_text_hash": self.question_text_hash,
            "question_embedding": (
                json.dumps(self.question_embedding)
                if self.question_embedding
                else None
            ),
            "source": self.source.value,
            "approved_by": self.approved_by,
            "note": self.note,
            "created_at": to_timestamp(self.created_at),
            "updated_at": to_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApprovedAnswer":
        """Create ApprovedAnswer from dictionary."""
        embedding = data.get("question_embedding")
        return cls(
            id=data["id"],
            org_id=data["org_id"],
            question_id=data["question_id"],
            answer_text=data["answer_text"],
            citation_chunk_ids=json.loads(data["citation_chunk_ids"] or "[]"),
            normalized_question_text=data["normalized_question_text"],
            question_text_hash=data["question_text_hash"],
            question_embedding=json.loads(embedding) if embedding else None,
            source=ApprovalSource(data["source"]),
            approved_by=data["approved_by"],
            note=data.get("note"),
            created_at=from_timestamp(data["created_at"]) or utcnow(),
            updated_at=from_timestamp(data["updated_at"]) or utcnow(),
        )


@dataclass(frozen=True)
class AnswerSummary:
    """Counts derived from question rows."""

    total: int = 0
    answered: int = 0
    found: int = 0
    not_found: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "answered": self.answered,
            "found": self.found,
            "not_found": self.not_found,
        }


@dataclass(frozen=True)
class EmbeddingAvailability:
    """Embedding coverage of an organization's chunks."""

    total: int = 0
    embedded: int = 0
    missing: int = 0

    @property
    def ready(self) -> bool:
        return self.embedded > 0 and self.missing == 0
