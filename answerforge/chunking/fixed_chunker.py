"""Fixed-size overlapping chunker.

Splits sanitized text into windows of at most ``max_chars`` characters where
each window starts ``max_chars - overlap_chars`` characters after the previous
window's nominal start. Cut points that land inside a token are moved outward
to the token edge so identifiers like "AES-256", "v2.3.1" or "TLS 1.2+" are
never split across two chunks. The shift is bounded by MAX_BOUNDARY_SHIFT so
a pathological run of token characters still gets cut.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from answerforge.core.config.chunking import ChunkingConfig
from answerforge.core.exceptions import ConfigurationError
from answerforge.shared.text_utils import normalize_newlines, sanitize_extracted_text

DEFAULT_MAX_CHARS = 1500
DEFAULT_OVERLAP_CHARS = 200
MAX_BOUNDARY_SHIFT = 48

# Characters that belong to a token for boundary purposes
_TOKEN_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_.+/"
)

# Multi-word tokens that must stay together even though they contain spaces
PROTECTED_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(?:tls|ssl)\s*v?\d+(?:\.\d+)*\+?", re.IGNORECASE),
)

Span = Tuple[int, int]


@dataclass(frozen=True)
class Chunk:
    """One window of a document's text."""

    index: int
    content: str


def _is_token_char(char: str) -> bool:
    return char in _TOKEN_CHARS


def _protected_spans(text: str) -> List[Span]:
    spans: List[Span] = []
    for pattern in PROTECTED_PATTERNS:
        spans.extend(match.span() for match in pattern.finditer(text))
    return sorted(spans)


def _containing_span(spans: Sequence[Span], pos: int) -> Optional[Span]:
    for start, end in spans:
        if start < pos < end:
            return start, end
        if start >= pos:
            break
    return None


def _snap_end(text: str, pos: int, spans: Sequence[Span]) -> int:
    """Move a window end forward so it does not cut a token."""
    if pos >= len(text):
        return len(text)

    span = _containing_span(spans, pos)
    if span and span[1] - pos <= MAX_BOUNDARY_SHIFT:
        pos = span[1]

    limit = min(len(text), pos + MAX_BOUNDARY_SHIFT)
    cursor = pos
    while (
        0 < cursor < limit
        and _is_token_char(text[cursor - 1])
        and _is_token_char(text[cursor])
    ):
        cursor += 1
    if cursor < len(text) and cursor == limit and _is_token_char(text[cursor]):
        return pos
    return cursor


def _snap_start(text: str, pos: int, spans: Sequence[Span]) -> int:
    """Move a window start backward so it does not cut a token."""
    if pos <= 0:
        return 0

    span = _containing_span(spans, pos)
    if span and pos - span[0] <= MAX_BOUNDARY_SHIFT:
        pos = span[0]

    limit = max(0, pos - MAX_BOUNDARY_SHIFT)
    cursor = pos
    while (
        cursor > limit
        and cursor < len(text)
        and _is_token_char(text[cursor - 1])
        and _is_token_char(text[cursor])
    ):
        cursor -= 1
    if cursor > 0 and cursor == limit and _is_token_char(text[cursor - 1]):
        return pos
    return cursor


def validate_chunk_params(max_chars: int, overlap_chars: int) -> None:
    """Raise ConfigurationError for unusable window settings."""
    if max_chars <= 0:
        raise ConfigurationError("maxChars must be positive")
    if overlap_chars < 0 or overlap_chars >= max_chars:
        raise ConfigurationError("overlapChars must be >= 0 and less than maxChars")


def chunk_text(
    text: str,
    max_chars: int = DEFAULT_MAX_CHARS,
    overlap_chars: int = DEFAULT_OVERLAP_CHARS,
) -> List[Chunk]:
    """Split text into overlapping chunks.

    Args:
        text: Raw extracted text
        max_chars: Nominal window size in characters
        overlap_chars: Characters shared by consecutive windows

    Returns:
        Chunks with contiguous indices starting at 0. Blank input gives [].

    Raises:
        ConfigurationError: If overlap_chars < 0 or overlap_chars >= max_chars
    """
    validate_chunk_params(max_chars, overlap_chars)

    normalized = normalize_newlines(sanitize_extracted_text(text)).strip()
    if not normalized:
        return []

    length = len(normalized)
    step = max_chars - overlap_chars
    spans = _protected_spans(normalized)

    chunks: List[Chunk] = []
    nominal_start = 0
    while nominal_start < length:
        raw_end = min(nominal_start + max_chars, length)
        start = _snap_start(normalized, nominal_start, spans)
        end = _snap_end(normalized, raw_end, spans)

        content = normalized[start:end].strip()
        if content:
            chunks.append(Chunk(index=len(chunks), content=content))

        if end >= length:
            break
        nominal_start += step

    return chunks


class FixedChunker:
    """Chunker bound to a ChunkingConfig.

    Example:
        chunker = FixedChunker(ChunkingConfig(max_chars=800, overlap_chars=100))
        chunks = chunker.chunk(document_text)
    """

    def __init__(self, config: Optional[ChunkingConfig] = None) -> None:
        self.config = config or ChunkingConfig()
        validate_chunk_params(self.config.max_chars, self.config.overlap_chars)

    def chunk(self, text: str) -> List[Chunk]:
        """Chunk text with the configured window settings."""
        return chunk_text(text, self.config.max_chars, self.config.overlap_chars)
