"""
SQLite storage backend.

One database file holds documents, chunks with their embeddings,
questionnaires with their question rows, and approved answers. Embeddings
are stored as JSON arrays and searched with numpy cosine distance, which is
adequate for the evidence volume of a single organization.

Every async method hands its synchronous implementation to a worker thread
with ``asyncio.to_thread``, so queries and the numpy search never block the
event loop. Each call opens its own short-lived connection.
"""

import asyncio
import json
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, cast

import numpy as np

from answerforge.core.exceptions import StorageError
from answerforge.core.logging import get_logger
from answerforge.query.models import NOT_SPECIFIED_RESPONSE_TEXT
from answerforge.storage.base import (
    EvidenceChunk,
    EvidenceRepository,
    QuestionnaireRepository,
    VectorSearchRow,
)
from answerforge.storage.models import (
    AnswerSummary,
    ApprovedAnswer,
    Document,
    EmbeddingAvailability,
    Question,
    Questionnaire,
    ReviewStatus,
    StoredChunk,
    from_timestamp,
    to_timestamp,
    utcnow,
)

logger = get_logger(__name__)

# Question columns added after the first schema; older files get them on open
_ADDED_QUESTION_COLUMNS: Dict[str, str] = {
    "review_status": "TEXT NOT NULL DEFAULT 'DRAFT'",
    "reused_from_approved_answer_id": "TEXT",
    "reuse_match_type": "TEXT",
    "reused_at": "TEXT",
}

_ANSWER_FIELDS = (
    "answer",
    "citations",
    "confidence",
    "needs_review",
    "not_found_reason",
    "last_rerun_at",
    "debug",
    "reused_from_approved_answer_id",
    "reuse_match_type",
    "reused_at",
)

_RUN_STATE_FIELDS = (
    "status",
    "total_count",
    "processed_count",
    "found_count",
    "not_found_count",
    "last_error",
    "started_at",
    "finished_at",
)


class SQLiteStore(EvidenceRepository, QuestionnaireRepository):
    """
    SQLite-backed evidence, questionnaire, and approval storage.

    Public methods are coroutines that run the matching ``_name`` method
    in a worker thread.
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        org_id TEXT NOT NULL,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS document_chunks (
        id TEXT PRIMARY KEY,
        document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
        org_id TEXT NOT NULL,
        chunk_index INTEGER NOT NULL,
        content TEXT NOT NULL,
        embedding TEXT,
        UNIQUE (document_id, chunk_index)
    );

    CREATE TABLE IF NOT EXISTS questionnaires (
        id TEXT PRIMARY KEY,
        org_id TEXT NOT NULL,
        name TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'PENDING',
        total_count INTEGER DEFAULT 0,
        processed_count INTEGER DEFAULT 0,
        found_count INTEGER DEFAULT 0,
        not_found_count INTEGER DEFAULT 0,
        last_error TEXT,
        started_at TEXT,
        finished_at TEXT,
        created_at TEXT NOT NULL,
        archived_at TEXT
    );

    CREATE TABLE IF NOT EXISTS questions (
        id TEXT PRIMARY KEY,
        questionnaire_id TEXT NOT NULL REFERENCES questionnaires(id) ON DELETE CASCADE,
        row_index INTEGER NOT NULL,
        text TEXT NOT NULL,
        answer TEXT,
        citations TEXT,
        confidence TEXT,
        needs_review INTEGER DEFAULT 0,
        not_found_reason TEXT,
        last_rerun_at TEXT,
        debug TEXT,
        review_status TEXT NOT NULL DEFAULT 'DRAFT',
        reused_from_approved_answer_id TEXT,
        reuse_match_type TEXT,
        reused_at TEXT,
        UNIQUE (questionnaire_id, row_index)
    );

    CREATE TABLE IF NOT EXISTS approved_answers (
        id TEXT PRIMARY KEY,
        org_id TEXT NOT NULL,
        question_id TEXT NOT NULL UNIQUE REFERENCES questions(id) ON DELETE CASCADE,
        answer_text TEXT NOT NULL,
        citation_chunk_ids TEXT NOT NULL,
        normalized_question_text TEXT NOT NULL,
        question_text_hash TEXT NOT NULL,
        question_embedding TEXT,
        source TEXT NOT NULL,
        approved_by TEXT NOT NULL,
        note TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_chunks_org ON document_chunks(org_id);
    CREATE INDEX IF NOT EXISTS idx_questions_row
        ON questions(questionnaire_id, row_index);
    CREATE INDEX IF NOT EXISTS idx_approved_org_hash
        ON approved_answers(org_id, question_text_hash);
    """

    def __init__(self, db_path: Path) -> None:
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._init_schema()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            existing = {
                row["name"] for row in conn.execute("PRAGMA table_info(questions)")
            }
            if existing:
                for name, definition in _ADDED_QUESTION_COLUMNS.items():
                    if name not in existing:
                        conn.execute(
                            f"ALTER TABLE questions ADD COLUMN {name} {definition}"
                        )
            conn.executescript(self.SCHEMA)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Connection that commits on success and is always closed."""
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self.db_path}: {e}") from e
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _insert(conn: sqlite3.Connection, table: str, row: Dict[str, Any]) -> None:
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" * len(row))
        conn.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            list(row.values()),
        )

    # ------------------------------------------------------------------
    # Evidence
    # ------------------------------------------------------------------

    async def add_document(
        self, document: Document, chunks: Sequence[StoredChunk]
    ) -> None:
        await asyncio.to_thread(self._add_document, document, chunks)

    def _add_document(self, document: Document, chunks: Sequence[StoredChunk]) -> None:
        with self._connection() as conn:
            self._insert(conn, "documents", document.to_dict())
            for chunk in chunks:
                self._insert(conn, "document_chunks", chunk.to_dict())

    async def list_documents(self, org_id: str) -> List[Document]:
        return await asyncio.to_thread(self._list_documents, org_id)

    def _list_documents(self, org_id: str) -> List[Document]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM documents WHERE org_id = ? ORDER BY created_at, id",
                (org_id,),
            ).fetchall()
        return [Document.from_dict(dict(row)) for row in rows]

    async def count_embedded_chunks(self, org_id: str) -> int:
        return await asyncio.to_thread(self._count_embedded_chunks, org_id)

    def _count_embedded_chunks(self, org_id: str) -> int:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) FROM document_chunks
                WHERE org_id = ? AND embedding IS NOT NULL
                """,
                (org_id,),
            ).fetchone()
        return cast(int, row[0]) if row else 0

    async def embedding_availability(self, org_id: str) -> EmbeddingAvailability:
        return await asyncio.to_thread(self._embedding_availability, org_id)

    def _embedding_availability(self, org_id: str) -> EmbeddingAvailability:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(embedding IS NOT NULL), 0) AS embedded
                FROM document_chunks WHERE org_id = ?
                """,
                (org_id,),
            ).fetchone()
        total, embedded = int(row["total"]), int(row["embedded"])
        return EmbeddingAvailability(
            total=total, embedded=embedded, missing=total - embedded
        )

    async def chunks_missing_embeddings(
        self, org_id: str, limit: int
    ) -> List[StoredChunk]:
        return await asyncio.to_thread(self._chunks_missing_embeddings, org_id, limit)

    def _chunks_missing_embeddings(self, org_id: str, limit: int) -> List[StoredChunk]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT c.* FROM document_chunks c
                JOIN documents d ON d.id = c.document_id
                WHERE c.org_id = ? AND c.embedding IS NULL
                ORDER BY d.created_at, d.id, c.chunk_index
                LIMIT ?
                """,
                (org_id, limit),
            ).fetchall()
        return [StoredChunk.from_dict(dict(row)) for row in rows]

    async def set_chunk_embedding(
        self, chunk_id: str, embedding: Sequence[float]
    ) -> None:
        await asyncio.to_thread(self._set_chunk_embedding, chunk_id, embedding)

    def _set_chunk_embedding(self, chunk_id: str, embedding: Sequence[float]) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE document_chunks SET embedding = ? WHERE id = ?",
                (json.dumps([float(v) for v in embedding]), chunk_id),
            )

    async def vector_search(
        self, org_id: str, query_vector: Sequence[float], limit: int
    ) -> List[VectorSearchRow]:
        """Nearest chunks by cosine distance, ties by chunk id."""
        return await asyncio.to_thread(
            self._vector_search, org_id, query_vector, limit
        )

    def _vector_search(
        self, org_id: str, query_vector: Sequence[float], limit: int
    ) -> List[VectorSearchRow]:
        if limit <= 0:
            return []

        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT c.id, c.content, c.embedding, d.name AS doc_name
                FROM document_chunks c
                JOIN documents d ON d.id = c.document_id
                WHERE c.org_id = ? AND c.embedding IS NOT NULL
                """,
                (org_id,),
            ).fetchall()
        if not rows:
            return []

        logger.debug("Vector search", org_id=org_id, candidates=len(rows), limit=limit)
        matrix = np.array([json.loads(row["embedding"]) for row in rows], dtype=float)
        query = np.asarray(query_vector, dtype=float)
        if matrix.shape[1] != query.shape[0]:
            raise StorageError(
                f"Query vector has {query.shape[0]} dimensions, "
                f"stored embeddings have {matrix.shape[1]}"
            )

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        with np.errstate(divide="ignore", invalid="ignore"):
            similarity = np.where(norms > 0, dots / norms, 0.0)
        distances = 1.0 - similarity

        ranked = sorted(
            (float(distance), row["id"], row["doc_name"], row["content"])
            for distance, row in zip(distances, rows)
        )
        return [
            VectorSearchRow(
                chunk_id=chunk_id, doc_name=doc_name, content=content, distance=distance
            )
            for distance, chunk_id, doc_name, content in ranked[:limit]
        ]

    async def get_chunks(
        self, org_id: str, chunk_ids: Sequence[str]
    ) -> List[EvidenceChunk]:
        return await asyncio.to_thread(self._get_chunks, org_id, list(chunk_ids))

    def _get_chunks(self, org_id: str, chunk_ids: List[str]) -> List[EvidenceChunk]:
        wanted = list(dict.fromkeys(chunk_ids))
        if not wanted:
            return []

        placeholders = ", ".join("?" * len(wanted))
        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT c.id, c.content, d.name AS doc_name
                FROM document_chunks c
                JOIN documents d ON d.id = c.document_id
                WHERE c.org_id = ? AND c.id IN ({placeholders})
                """,
                [org_id, *wanted],
            ).fetchall()
        by_id = {
            row["id"]: EvidenceChunk(
                chunk_id=row["id"], doc_name=row["doc_name"], content=row["content"]
            )
            for row in rows
        }
        return [by_id[chunk_id] for chunk_id in wanted if chunk_id in by_id]

    # ------------------------------------------------------------------
    # Questionnaires
    # ------------------------------------------------------------------

    async def create_questionnaire(
        self, questionnaire: Questionnaire, questions: Sequence[Question]
    ) -> None:
        await asyncio.to_thread(self._create_questionnaire, questionnaire, questions)

    def _create_questionnaire(
        self, questionnaire: Questionnaire, questions: Sequence[Question]
    ) -> None:
        with self._connection() as conn:
            self._insert(conn, "questionnaires", questionnaire.to_dict())
            for question in questions:
                self._insert(conn, "questions", question.to_dict())

    async def get_questionnaire(
        self, questionnaire_id: str, org_id: Optional[str] = None
    ) -> Optional[Questionnaire]:
        return await asyncio.to_thread(
            self._get_questionnaire, questionnaire_id, org_id
        )

    def _get_questionnaire(
        self, questionnaire_id: str, org_id: Optional[str]
    ) -> Optional[Questionnaire]:
        query = "SELECT * FROM questionnaires WHERE id = ? AND archived_at IS NULL"
        params: List[Any] = [questionnaire_id]
        if org_id is not None:
            query += " AND org_id = ?"
            params.append(org_id)

        with self._connection() as conn:
            row = conn.execute(query, params).fetchone()
        if not row:
            return None
        return Questionnaire.from_dict(dict(row))

    async def archive_questionnaire(self, questionnaire_id: str) -> bool:
        return await asyncio.to_thread(self._archive_questionnaire, questionnaire_id)

    def _archive_questionnaire(self, questionnaire_id: str) -> bool:
        with self._connection() as conn:
            result = conn.execute(
                """
                UPDATE questionnaires SET archived_at = ?
                WHERE id = ? AND archived_at IS NULL
                """,
                (to_timestamp(utcnow()), questionnaire_id),
            )
            return result.rowcount > 0

    async def update_run_state(self, questionnaire: Questionnaire) -> None:
        await asyncio.to_thread(self._update_run_state, questionnaire)

    def _update_run_state(self, questionnaire: Questionnaire) -> None:
        data = questionnaire.to_dict()
        updates = ", ".join(f"{name} = ?" for name in _RUN_STATE_FIELDS)
        values = [data[name] for name in _RUN_STATE_FIELDS]
        values.append(questionnaire.id)

        with self._connection() as conn:
            conn.execute(f"UPDATE questionnaires SET {updates} WHERE id = ?", values)

    async def list_questions(self, questionnaire_id: str) -> List[Question]:
        return await asyncio.to_thread(
            self._select_questions, "questionnaire_id = ?", [questionnaire_id], None
        )

    def _select_questions(
        self, where: str, params: List[Any], limit: Optional[int]
    ) -> List[Question]:
        query = f"SELECT * FROM questions WHERE {where} ORDER BY row_index ASC"
        if limit is not None:
            query += " LIMIT ?"
            params = params + [limit]
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Question.from_dict(dict(row)) for row in rows]

    async def select_unanswered(
        self, questionnaire_id: str, limit: Optional[int] = None
    ) -> List[Question]:
        return await asyncio.to_thread(
            self._select_questions,
            "questionnaire_id = ? AND answer IS NULL",
            [questionnaire_id],
            limit,
        )

    async def select_rerun_candidates(
        self,
        questionnaire_id: str,
        run_started_at: datetime,
        limit: Optional[int] = None,
    ) -> List[Question]:
        return await asyncio.to_thread(
            self._select_questions,
            """
            questionnaire_id = ?
            AND (answer IS NULL OR answer = ?)
            AND (last_rerun_at IS NULL OR last_rerun_at < ?)
            """,
            [
                questionnaire_id,
                NOT_SPECIFIED_RESPONSE_TEXT,
                to_timestamp(run_started_at),
            ],
            limit,
        )

    async def save_answer(self, question: Question) -> None:
        await asyncio.to_thread(self._save_answer, question)

    def _save_answer(self, question: Question) -> None:
        data = question.to_dict()
        updates = ", ".join(f"{name} = ?" for name in _ANSWER_FIELDS)
        values = [data[name] for name in _ANSWER_FIELDS]
        values.append(question.id)

        with self._connection() as conn:
            conn.execute(f"UPDATE questions SET {updates} WHERE id = ?", values)

    async def summarize_answers(self, questionnaire_id: str) -> AnswerSummary:
        return await asyncio.to_thread(self._summarize_answers, questionnaire_id)

    def _summarize_answers(self, questionnaire_id: str) -> AnswerSummary:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(answer IS NOT NULL), 0) AS answered,
                       COALESCE(SUM(answer = ?), 0) AS not_found
                FROM questions WHERE questionnaire_id = ?
                """,
                (NOT_SPECIFIED_RESPONSE_TEXT, questionnaire_id),
            ).fetchone()
        answered, not_found = int(row["answered"]), int(row["not_found"])
        return AnswerSummary(
            total=int(row["total"]),
            answered=answered,
            found=answered - not_found,
            not_found=not_found,
        )

    # ------------------------------------------------------------------
    # Review and approvals
    # ------------------------------------------------------------------

    async def get_question(
        self, question_id: str, org_id: Optional[str] = None
    ) -> Optional[Question]:
        return await asyncio.to_thread(self._get_question, question_id, org_id)

    def _get_question(
        self, question_id: str, org_id: Optional[str]
    ) -> Optional[Question]:
        query = """
            SELECT q.* FROM questions q
            JOIN questionnaires n ON n.id = q.questionnaire_id
            WHERE q.id = ? AND n.archived_at IS NULL
        """
        params: List[Any] = [question_id]
        if org_id is not None:
            query += " AND n.org_id = ?"
            params.append(org_id)

        with self._connection() as conn:
            row = conn.execute(query, params).fetchone()
        if not row:
            return None
        return Question.from_dict(dict(row))

    async def set_review_status(
        self, question_id: str, status: ReviewStatus
    ) -> None:
        await asyncio.to_thread(self._set_review_status, question_id, status)

    def _set_review_status(self, question_id: str, status: ReviewStatus) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE questions SET review_status = ? WHERE id = ?",
                (status.value, question_id),
            )

    async def upsert_approved_answer(self, approved: ApprovedAnswer) -> ApprovedAnswer:
        return await asyncio.to_thread(self._upsert_approved_answer, approved)

    def _upsert_approved_answer(self, approved: ApprovedAnswer) -> ApprovedAnswer:
        with self._connection() as conn:
            existing = conn.execute(
                "SELECT id, created_at FROM approved_answers WHERE question_id = ?",
                (approved.question_id,),
            ).fetchone()
            if existing:
                approved = replace(
                    approved,
                    id=existing["id"],
                    created_at=(
                        from_timestamp(existing["created_at"]) or approved.created_at
                    ),
                )
                conn.execute(
                    "DELETE FROM approved_answers WHERE id = ?", (existing["id"],)
                )
            self._insert(conn, "approved_answers", approved.to_dict())
            conn.execute(
                "UPDATE questions SET review_status = ? WHERE id = ?",
                (ReviewStatus.APPROVED.value, approved.question_id),
            )
        return approved

    async def get_approved_answer(
        self, question_id: str
    ) -> Optional[ApprovedAnswer]:
        return await asyncio.to_thread(self._get_approved_answer, question_id)

    def _get_approved_answer(self, question_id: str) -> Optional[ApprovedAnswer]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM approved_answers WHERE question_id = ?", (question_id,)
            ).fetchone()
        if not row:
            return None
        return ApprovedAnswer.from_dict(dict(row))

    async def delete_approved_answer(self, question_id: str) -> bool:
        return await asyncio.to_thread(self._delete_approved_answer, question_id)

    def _delete_approved_answer(self, question_id: str) -> bool:
        with self._connection() as conn:
            result = conn.execute(
                "DELETE FROM approved_answers WHERE question_id = ?", (question_id,)
            )
            if result.rowcount == 0:
                return False
            conn.execute(
                "UPDATE questions SET review_status = ? WHERE id = ?",
                (ReviewStatus.DRAFT.value, question_id),
            )
            return True

    async def list_approved_answers(self, org_id: str) -> List[ApprovedAnswer]:
        return await asyncio.to_thread(self._list_approved_answers, org_id)

    def _list_approved_answers(self, org_id: str) -> List[ApprovedAnswer]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM approved_answers WHERE org_id = ?
                ORDER BY updated_at DESC, id ASC
                """,
                (org_id,),
            ).fetchall()
        return [ApprovedAnswer.from_dict(dict(row)) for row in rows]
