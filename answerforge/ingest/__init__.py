"""Evidence document ingestion."""

from answerforge.ingest.documents import DocumentIngestor, IngestResult

__all__ = ["DocumentIngestor", "IngestResult"]
