"""
Chunking Module.

Splits ingested evidence text into overlapping fixed-size windows with
stable, contiguous indices.

    ┌─────────────────┐     ┌─────────────────┐     ┌─────────────────┐
    │  Extracted Text │────→│  FixedChunker   │────→│  Chunk records  │
    │  (raw string)   │     │  (1500 / 200)   │     │  index, content │
    └─────────────────┘     └─────────────────┘     └─────────────────┘

Cut points never split an identifier such as "AES-256" or "TLS 1.2+".
"""

from answerforge.chunking.fixed_chunker import Chunk, FixedChunker, chunk_text

__all__ = ["Chunk", "FixedChunker", "chunk_text"]
