"""Citation display formatting for CLI output and exports."""

from __future__ import annotations

from typing import List, Sequence

from answerforge.query.models import Citation
from answerforge.shared.text_utils import normalize_whitespace

MAX_SNIPPET_DISPLAY_CHARS = 150
DEFAULT_COMPACT_MAX_CHARS = 1200
COMPACT_SEPARATOR = " | "
ELLIPSIS = "…"


def format_citation(citation: Citation) -> str:
    """Render one citation as docName#chunkId:"snippet".

    Example:
        >>> format_citation(Citation("policy.md", "c-1", "TLS 1.2 is required."))
        'policy.md#c-1:"TLS 1.2 is required."'
    """
    snippet = normalize_whitespace(citation.quoted_snippet)
    if len(snippet) > MAX_SNIPPET_DISPLAY_CHARS:
        snippet = snippet[:MAX_SNIPPET_DISPLAY_CHARS].rstrip() + ELLIPSIS
    return f'{citation.doc_name}#{citation.chunk_id}:"{snippet}"'


def format_citations_compact(
    citations: Sequence[Citation],
    max_chars: int = DEFAULT_COMPACT_MAX_CHARS,
) -> str:
    """Join formatted citations, stopping before max_chars would be exceeded."""
    parts: List[str] = []
    used = 0
    for citation in citations:
        rendered = format_citation(citation)
        cost = len(rendered) + (len(COMPACT_SEPARATOR) if parts else 0)
        if used + cost > max_chars:
            break
        parts.append(rendered)
        used += cost
    return COMPACT_SEPARATOR.join(parts)
