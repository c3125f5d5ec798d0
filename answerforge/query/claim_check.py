"""
Claim-check guardrail.

A lexical post-check on a generated answer. Key tokens are pulled out of the
answer with the TOKEN_FAMILIES table and each one must appear in the quoted
evidence. One unsupported token voids the whole answer: it is rewritten to
the sentinel with low confidence and flagged for review.

Checks run in a fixed order:

    1. Answer is (or contains) the sentinel  -> low / needs review
    2. Any unsupported token                 -> sentinel / low / needs review
    3. needs_review with high confidence     -> confidence downgraded to med
    4. Otherwise                             -> unchanged

The guardrail never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Sequence, Tuple

from answerforge.core.logging import get_logger
from answerforge.query.models import (
    NOT_SPECIFIED_RESPONSE_TEXT,
    Confidence,
    is_not_specified,
)

logger = get_logger(__name__)

# Hedging and meta words that carry no factual claim
GUARDRAIL_STOPWORDS: FrozenSet[str] = frozenset(
    {
        "about",
        "across",
        "after",
        "against",
        "answer",
        "based",
        "before",
        "between",
        "could",
        "details",
        "documents",
        "evidence",
        "given",
        "have",
        "into",
        "like",
        "likely",
        "maybe",
        "might",
        "only",
        "please",
        "provide",
        "provided",
        "question",
        "regarding",
        "should",
        "since",
        "than",
        "that",
        "their",
        "there",
        "these",
        "those",
        "using",
        "what",
        "when",
        "which",
        "while",
        "with",
        "within",
        "would",
    }
)


@dataclass(frozen=True)
class TokenFamily:
    """A named claim-token pattern."""

    name: str
    pattern: re.Pattern[str]
    exclusions: FrozenSet[str] = frozenset()


TOKEN_FAMILIES: Tuple[TokenFamily, ...] = (
    TokenFamily(
        "protocol_version",
        re.compile(r"\b(?:tls|ssl)\s*\d+(?:\.\d+)?\b", re.IGNORECASE),
    ),
    TokenFamily("hyphen_compound", re.compile(r"\b[a-zA-Z]+-\d+(?:\.\d+)?\b")),
    TokenFamily("camel_case", re.compile(r"\b[a-z]+[A-Z][a-zA-Z0-9]*\b")),
    TokenFamily("acronym", re.compile(r"\b[A-Z]{2,}(?:-\d+)?\b")),
    TokenFamily("dotted_version", re.compile(r"\b\d+(?:\.\d+)+\b")),
    TokenFamily("word", re.compile(r"\b[a-zA-Z][a-zA-Z0-9-]{4,}\b")),
)


@dataclass
class ClaimCheckResult:
    """Outcome of the guardrail."""

    answer: str
    confidence: Confidence
    needs_review: bool
    unsupported_tokens: List[str] = field(default_factory=list)

    @property
    def rewritten(self) -> bool:
        return bool(self.unsupported_tokens)


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().lower()


def extract_claim_tokens(
    answer: str,
    families: Sequence[TokenFamily] = TOKEN_FAMILIES,
    stopwords: FrozenSet[str] = GUARDRAIL_STOPWORDS,
) -> List[str]:
    """Extract normalized key tokens from an answer, in first-seen order.

    The sentinel text is removed first so an answer that quotes it is not
    checked against its own wording.

    Example:
        >>> extract_claim_tokens("Data is encrypted with AWS KMS.")
        ['aws', 'kms', 'encrypted']
    """
    text = re.sub(re.escape(NOT_SPECIFIED_RESPONSE_TEXT), " ", answer, flags=re.I)

    seen = set()
    tokens: List[str] = []
    for family in families:
        for match in family.pattern.finditer(text):
            token = _normalize(match.group(0))
            if not token or token in seen:
                continue
            if token in stopwords or token in family.exclusions:
                continue
            seen.add(token)
            tokens.append(token)
    return tokens


def find_unsupported_tokens(
    tokens: Iterable[str], quoted_snippets: Sequence[str]
) -> List[str]:
    """Tokens that do not occur in the joined, normalized snippets."""
    evidence = _normalize(" ".join(snippet for snippet in quoted_snippets if snippet))
    return [token for token in tokens if token not in evidence]


def apply_claim_check_guardrails(
    answer: str,
    quoted_snippets: Sequence[str],
    confidence: Confidence,
    needs_review: bool,
) -> ClaimCheckResult:
    """Verify an answer against the quoted evidence it cites.

    Args:
        answer: Draft answer text
        quoted_snippets: Snippets of the citations kept for this answer
        confidence: Generator confidence
        needs_review: Generator review flag

    Returns:
        ClaimCheckResult with the possibly rewritten answer.
    """
    if is_not_specified(answer):
        return ClaimCheckResult(
            answer=answer, confidence=Confidence.LOW, needs_review=True
        )

    unsupported = find_unsupported_tokens(extract_claim_tokens(answer), quoted_snippets)
    if unsupported:
        logger.warning(
            "Answer rewritten by claim check",
            unsupported=",".join(unsupported[:10]),
            count=len(unsupported),
        )
        return ClaimCheckResult(
            answer=NOT_SPECIFIED_RESPONSE_TEXT,
            confidence=Confidence.LOW,
            needs_review=True,
            unsupported_tokens=unsupported,
        )

    if needs_review and confidence == Confidence.HIGH:
        return ClaimCheckResult(
            answer=answer, confidence=Confidence.MED, needs_review=True
        )

    return ClaimCheckResult(
        answer=answer, confidence=confidence, needs_review=needs_review
    )
