"""
Answer data models.

The sentinel text below is a stable contract value. Callers compare answers
against it by exact or substring match, so changing it is a breaking change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

NOT_SPECIFIED_RESPONSE_TEXT = "Not specified in provided documents."


class Confidence(str, Enum):
    """Answer confidence reported by the generator, possibly downgraded."""

    LOW = "low"
    MED = "med"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> "Confidence":
        """Parse a loose confidence value, defaulting to LOW."""
        text = str(value or "").strip().lower()
        if text in ("medium", "moderate"):
            return cls.MED
        try:
            return cls(text)
        except ValueError:
            return cls.LOW


class NotFoundReason(str, Enum):
    """Why an answer is the sentinel."""

    NO_RELEVANT_EVIDENCE = "NO_RELEVANT_EVIDENCE"
    RETRIEVAL_BELOW_THRESHOLD = "RETRIEVAL_BELOW_THRESHOLD"
    FILTERED_AS_IRRELEVANT = "FILTERED_AS_IRRELEVANT"
    MODEL_FORMAT_VIOLATION = "MODEL_FORMAT_VIOLATION"


def is_not_specified(answer: Optional[str]) -> bool:
    """True when an answer is, or contains, the sentinel text."""
    return bool(answer) and NOT_SPECIFIED_RESPONSE_TEXT.lower() in answer.lower()


@dataclass(frozen=True)
class Citation:
    """Evidence reference attached to an answer."""

    doc_name: str
    chunk_id: str
    quoted_snippet: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "docName": self.doc_name,
            "chunkId": self.chunk_id,
            "quotedSnippet": self.quoted_snippet,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Citation":
        return cls(
            doc_name=str(data.get("docName", "")),
            chunk_id=str(data.get("chunkId", "")),
            quoted_snippet=str(data.get("quotedSnippet", "")),
        )


@dataclass
class DebugTrace:
    """Inspection data for one answer. Attached only when requested."""

    threshold: float
    retrieved_top_k: List[Dict[str, Any]] = field(default_factory=list)
    reranked: List[Dict[str, Any]] = field(default_factory=list)
    post_filter_chunk_ids: List[str] = field(default_factory=list)
    dropped_citations: List[Dict[str, str]] = field(default_factory=list)
    final_citation_ids: List[str] = field(default_factory=list)
    unsupported_tokens: List[str] = field(default_factory=list)
    not_found_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold,
            "retrieved_top_k": list(self.retrieved_top_k),
            "reranked": list(self.reranked),
            "post_filter_chunk_ids": list(self.post_filter_chunk_ids),
            "dropped_citations": list(self.dropped_citations),
            "final_citation_ids": list(self.final_citation_ids),
            "unsupported_tokens": list(self.unsupported_tokens),
            "not_found_reason": self.not_found_reason,
        }


@dataclass
class AnswerResult:
    """
    Final answer for one question.

    Attributes:
        answer: Answer text or the sentinel
        citations: Evidence used to justify the answer. May be non-empty
            for a sentinel answer when evidence was found but rejected.
        confidence: low/med/high. Always low for the sentinel.
        needs_review: Always True for the sentinel.
        not_found_reason: Set for sentinel answers
        debug: Trace, only when debug output was requested
    """

    answer: str
    citations: List[Citation] = field(default_factory=list)
    confidence: Confidence = Confidence.LOW
    needs_review: bool = True
    not_found_reason: Optional[NotFoundReason] = None
    debug: Optional[DebugTrace] = None

    @property
    def found(self) -> bool:
        return not is_not_specified(self.answer)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "answer": self.answer,
            "citations": [citation.to_dict() for citation in self.citations],
            "confidence": self.confidence.value,
            "needsReview": self.needs_review,
        }
        if self.not_found_reason is not None:
            data["notFoundReason"] = self.not_found_reason.value
        if self.debug is not None:
            data["debug"] = self.debug.to_dict()
        return data


def not_found_result(
    reason: NotFoundReason,
    citations: Optional[List[Citation]] = None,
    debug: Optional[DebugTrace] = None,
) -> AnswerResult:
    """Build the sentinel answer at low confidence, flagged for review."""
    if debug is not None:
        debug.not_found_reason = reason.value
    return AnswerResult(
        answer=NOT_SPECIFIED_RESPONSE_TEXT,
        citations=list(citations or []),
        confidence=Confidence.LOW,
        needs_review=True,
        not_found_reason=reason,
        debug=debug,
    )
