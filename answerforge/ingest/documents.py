"""
Document ingestion and embedding backfill.

Text documents are chunked and stored without embeddings. embed_pending()
fills in embeddings afterwards, one chunk at a time, so an interrupted
backfill can simply be run again.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from answerforge.chunking.fixed_chunker import FixedChunker
from answerforge.core.config.chunking import ChunkingConfig
from answerforge.core.exceptions import NotFoundError, ValidationError
from answerforge.core.logging import get_logger
from answerforge.llm.base import Embedder
from answerforge.shared.text_utils import read_text_with_fallback
from answerforge.storage.base import EvidenceRepository
from answerforge.storage.models import Document, StoredChunk

logger = get_logger(__name__)

SUPPORTED_EXTENSIONS = frozenset({".txt", ".md", ".markdown"})
DEFAULT_EMBED_BATCH_SIZE = 32


@dataclass(frozen=True)
class IngestResult:
    """Outcome of ingesting one document."""

    document_id: str
    name: str
    chunk_count: int


class DocumentIngestor:
    """
    Chunk, store, and embed evidence documents.

    Example:
        ingestor = DocumentIngestor(store, OpenAIClient())
        result = await ingestor.ingest_file("acme", Path("security.md"))
        await ingestor.embed_pending("acme")
    """

    def __init__(
        self,
        store: EvidenceRepository,
        embedder: Embedder,
        chunking: Optional[ChunkingConfig] = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.chunker = FixedChunker(chunking)

    async def ingest_text(self, org_id: str, name: str, text: str) -> IngestResult:
        """Chunk text and store it as a document.

        Raises:
            ValidationError: If the text yields no chunks
        """
        chunks = self.chunker.chunk(text)
        if not chunks:
            raise ValidationError(f"Document '{name}' has no extractable text")

        document = Document(org_id=org_id, name=name)
        stored = [
            StoredChunk(
                document_id=document.id,
                org_id=org_id,
                chunk_index=chunk.index,
                content=chunk.content,
            )
            for chunk in chunks
        ]
        await self.store.add_document(document, stored)

        logger.info(
            "Document ingested",
            org_id=org_id,
            document=name,
            chunks=len(stored),
        )
        return IngestResult(document_id=document.id, name=name, chunk_count=len(stored))

    async def ingest_file(self, org_id: str, path: Path) -> IngestResult:
        """Read a .txt or .md file and ingest it under its file name.

        Raises:
            NotFoundError: If the file does not exist
            ValidationError: For unsupported file types or empty files
        """
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(f"File not found: {path}")
        if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            raise ValidationError(
                f"Unsupported file type '{path.suffix}'",
                how_to_fix=[
                    "Convert the document to .txt or .md before ingesting",
                ],
            )
        return await self.ingest_text(org_id, path.name, read_text_with_fallback(path))

    async def embed_pending(
        self, org_id: str, batch_size: int = DEFAULT_EMBED_BATCH_SIZE
    ) -> int:
        """Embed every chunk that has no embedding yet.

        Chunks are embedded sequentially. A failure stops the backfill and
        propagates; chunks embedded before it keep their vectors.

        Returns:
            Number of chunks embedded.
        """
        embedded = 0
        while True:
            pending = await self.store.chunks_missing_embeddings(org_id, batch_size)
            if not pending:
                break
            for chunk in pending:
                vector = await asyncio.to_thread(self.embedder.embed, chunk.content)
                await self.store.set_chunk_embedding(chunk.id, vector)
                embedded += 1
            logger.debug("Embedded chunk batch", org_id=org_id, embedded=embedded)

        if embedded:
            logger.info("Embeddings backfilled", org_id=org_id, embedded=embedded)
        return embedded
