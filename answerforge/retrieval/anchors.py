"""Anchor-token extraction.

Anchor tokens are the significant words and identifiers of a question. The
snippet selector uses them to find the part of a retrieved chunk worth
quoting.

Token families are data: an ordered tuple of AnchorFamily entries, each a
named regex with its own exclusion set. Extraction walks the families in
order, so protocol versions and acronyms are collected before generic words
when the 24-token cap is reached.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, List, Optional, Sequence, Tuple

MAX_ANCHOR_TOKENS = 24

# Generic and question-framing words that never anchor a snippet
ANCHOR_STOPWORDS: FrozenSet[str] = frozenset(
    {
        "about",
        "after",
        "also",
        "among",
        "any",
        "are",
        "been",
        "before",
        "being",
        "between",
        "both",
        "can",
        "company",
        "could",
        "currently",
        "describe",
        "details",
        "does",
        "doing",
        "each",
        "ensure",
        "evidence",
        "explain",
        "from",
        "have",
        "into",
        "including",
        "information",
        "more",
        "other",
        "please",
        "provide",
        "provided",
        "question",
        "should",
        "some",
        "such",
        "that",
        "their",
        "them",
        "then",
        "there",
        "these",
        "they",
        "this",
        "those",
        "what",
        "when",
        "where",
        "which",
        "will",
        "with",
        "within",
        "would",
        "your",
        "yours",
    }
)

# All-caps words that read as shouting rather than acronyms
_CAPS_NOISE: FrozenSet[str] = frozenset(
    {"and", "are", "does", "the", "you", "yes", "not"}
)


@dataclass(frozen=True)
class AnchorFamily:
    """A named token pattern with its own exclusions."""

    name: str
    pattern: re.Pattern[str]
    exclusions: FrozenSet[str] = field(default_factory=frozenset)


ANCHOR_FAMILIES: Tuple[AnchorFamily, ...] = (
    AnchorFamily(
        "protocol_version",
        re.compile(r"\b(?:tls|ssl)\s*v?\d+(?:\.\d+)*\b", re.IGNORECASE),
    ),
    AnchorFamily("acronym", re.compile(r"\b[A-Z]{2,}[0-9]*\b"), _CAPS_NOISE),
    AnchorFamily("camel_case", re.compile(r"\b[a-z]+[A-Z][a-zA-Z0-9]*\b")),
    AnchorFamily("dotted_version", re.compile(r"\b\d+(?:\.\d+)+\b")),
    AnchorFamily("word", re.compile(r"\b[a-zA-Z0-9][a-zA-Z0-9-]{3,}\b")),
)


def normalize_token(token: str) -> str:
    """Lowercase a token and collapse inner whitespace."""
    return re.sub(r"\s+", " ", token).strip().lower()


def extract_anchor_tokens(
    question: str,
    families: Sequence[AnchorFamily] = ANCHOR_FAMILIES,
    stopwords: FrozenSet[str] = ANCHOR_STOPWORDS,
    limit: int = MAX_ANCHOR_TOKENS,
) -> List[str]:
    """Extract distinct anchor tokens from a question.

    Args:
        question: Question text
        families: Ordered token families to apply
        stopwords: Words excluded from every family
        limit: Maximum number of tokens returned

    Returns:
        Lowercased tokens in discovery order, at most ``limit`` of them.

    Examples:
        >>> extract_anchor_tokens("Do you enforce TLS 1.2 for all APIs?")
        ['tls 1.2', 'tls', '1.2', 'enforce', 'apis']
    """
    tokens: List[str] = []
    seen: set[str] = set()

    for family in families:
        for match in family.pattern.finditer(question or ""):
            token = normalize_token(match.group(0))
            if not token or token in seen:
                continue
            if token in stopwords or token in family.exclusions:
                continue
            seen.add(token)
            tokens.append(token)
            if len(tokens) >= limit:
                return tokens

    return tokens


@lru_cache(maxsize=1024)
def token_pattern(token: str) -> re.Pattern[str]:
    """Compile a boundary-aware pattern for a lowercased token.

    Whitespace inside the token matches any whitespace run (or none), so
    "tls 1.2" also finds "TLS1.2".
    """
    parts = [re.escape(part) for part in token.split()]
    body = r"\s*".join(parts)
    return re.compile(rf"(?<![a-z0-9]){body}(?![a-z0-9])")


def find_token(text_lower: str, token: str) -> Optional[Tuple[int, int]]:
    """Return the span of the first boundary-aware occurrence of token."""
    match = token_pattern(token).search(text_lower)
    if match is None:
        return None
    return match.span()


def has_token(text_lower: str, token: str) -> bool:
    return find_token(text_lower, token) is not None


def count_token_hits(text_lower: str, tokens: Sequence[str]) -> int:
    """Count how many distinct tokens occur in the text."""
    return sum(1 for token in tokens if has_token(text_lower, token))


def earliest_token_span(
    text_lower: str, tokens: Sequence[str]
) -> Optional[Tuple[int, int]]:
    """Span of the earliest occurrence of any token."""
    best: Optional[Tuple[int, int]] = None
    for token in tokens:
        span = find_token(text_lower, token)
        if span and (best is None or span[0] < best[0]):
            best = span
    return best
