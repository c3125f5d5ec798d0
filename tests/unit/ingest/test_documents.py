"""
Tests for document ingestion and embedding backfill.

Organization
------------
- TestIngestText: Chunking and storing raw text
- TestIngestFile: File type and existence checks
- TestEmbedPending: Backfilling missing embeddings
"""

import asyncio
from pathlib import Path

import pytest

from answerforge.core.exceptions import EmbeddingError, NotFoundError, ValidationError
from tests.fixtures.fakes import ORG, SECURITY_POLICY


def run(coro):
    return asyncio.run(coro)


class TestIngestText:
    """Tests for DocumentIngestor.ingest_text()."""

    def test_stores_document_and_chunks(self, ingestor, store):
        result = run(ingestor.ingest_text(ORG, "security.md", SECURITY_POLICY))

        assert result.name == "security.md"
        assert result.chunk_count >= 1
        assert [d.name for d in run(store.list_documents(ORG))] == ["security.md"]
        availability = run(store.embedding_availability(ORG))
        assert availability.total == result.chunk_count
        assert availability.embedded == 0

    def test_blank_text_rejected(self, ingestor, store):
        with pytest.raises(ValidationError):
            run(ingestor.ingest_text(ORG, "empty.md", "   \n\n"))

        assert run(store.list_documents(ORG)) == []


class TestIngestFile:
    """Tests for DocumentIngestor.ingest_file()."""

    def test_markdown_file(self, ingestor, tmp_path: Path):
        path = tmp_path / "security.md"
        path.write_text(SECURITY_POLICY, encoding="utf-8")

        result = run(ingestor.ingest_file(ORG, path))

        assert result.name == "security.md"

    def test_missing_file(self, ingestor, tmp_path: Path):
        with pytest.raises(NotFoundError):
            run(ingestor.ingest_file(ORG, tmp_path / "missing.md"))

    def test_unsupported_type(self, ingestor, tmp_path: Path):
        path = tmp_path / "policy.pdf"
        path.write_bytes(b"%PDF-1.4")

        with pytest.raises(ValidationError) as exc_info:
            run(ingestor.ingest_file(ORG, path))

        assert ".pdf" in str(exc_info.value)


class TestEmbedPending:
    """Tests for DocumentIngestor.embed_pending()."""

    def test_embeds_every_chunk(self, ingestor, store):
        first = run(ingestor.ingest_text(ORG, "a.md", "MFA is enforced."))
        second = run(ingestor.ingest_text(ORG, "b.md", "Backups run nightly."))

        embedded = run(ingestor.embed_pending(ORG, batch_size=1))

        assert embedded == first.chunk_count + second.chunk_count
        assert run(store.embedding_availability(ORG)).ready
        assert run(ingestor.embed_pending(ORG)) == 0

    def test_only_target_org(self, ingestor, store):
        run(ingestor.ingest_text(ORG, "a.md", "MFA is enforced."))
        run(ingestor.ingest_text("globex", "b.md", "Backups run nightly."))

        run(ingestor.embed_pending(ORG))

        assert run(store.embedding_availability("globex")).embedded == 0

    def test_failure_propagates(self, ingestor, embedder, store):
        run(ingestor.ingest_text(ORG, "a.md", "MFA is enforced."))
        embedder.fail_with = EmbeddingError("quota exceeded")

        with pytest.raises(EmbeddingError):
            run(ingestor.embed_pending(ORG))

        assert run(store.embedding_availability(ORG)).embedded == 0
