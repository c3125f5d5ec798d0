"""
Centralized Exception Hierarchy for AnswerForge.

All exceptions inherit from AnswerForgeError for easy catching.

Each exception includes:
- error_code: Unique identifier for documentation lookup (e.g., "AF-CFG-001")
- why_it_happened: Explanation of the root cause
- how_to_fix: Actionable steps to resolve the issue

Exception Hierarchy
-------------------
    AnswerForgeError (base)
    ├── ConfigurationError
    ├── NotFoundError
    ├── ValidationError
    │   └── EvidenceNotReadyError
    └── CollaboratorError
        ├── EmbeddingError
        ├── GenerationError
        │   └── LLMError (answerforge.llm.base)
        └── StorageError

Insufficient evidence is not an exception. It is a normal answer carrying
the sentinel text and a NotFoundReason.

Usage
-----
    from answerforge.core.exceptions import CollaboratorError, NotFoundError

    try:
        progress = await autofill.process_batch(org_id, questionnaire_id)
    except NotFoundError as e:
        print(e.how_to_fix)
"""

import re
from typing import List, Optional


def sanitize_message(message: str) -> str:
    """Sanitize an error message to avoid leaking sensitive info.

    Masks API keys, bearer tokens, and credentials embedded in URLs.

    Args:
        message: Original error message

    Returns:
        Sanitized message with sensitive info replaced
    """
    if not message:
        return message

    patterns = [
        (r"(sk-|pk-|api_key[=:][\s]*)[a-zA-Z0-9_-]{20,}", r"\1<api-key>"),
        (r"(OPENAI_API_KEY|API_KEY)[=:]\s*[^\s]+", r"\1=<hidden>"),
        (r"Bearer\s+[a-zA-Z0-9_.-]+", r"Bearer <token>"),
        (r"://[^:/\s]+:[^@/\s]+@", r"://<user>:<pass>@"),
    ]

    result = message
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)
    return result


class AnswerForgeError(Exception):
    """
    Base exception for all AnswerForge errors.

    Example
    -------
        try:
            chunk_text(text, max_chars=100, overlap_chars=100)
        except AnswerForgeError as e:
            logger.error("Chunking failed", error=str(e), code=e.error_code)
    """

    error_code: str = "AF-ERR-000"
    why_it_happened: str = "An unexpected error occurred"
    how_to_fix: List[str] = ["Check the error message for details"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        """Initialize AnswerForgeError with helpful information.

        Args:
            message: Human-readable error message
            error_code: Unique identifier (e.g., "AF-CFG-001")
            why_it_happened: Explanation of root cause
            how_to_fix: List of actionable fix suggestions
        """
        super().__init__(sanitize_message(message))

        if error_code is not None:
            self.error_code = error_code
        if why_it_happened is not None:
            self.why_it_happened = why_it_happened
        if how_to_fix is not None:
            self.how_to_fix = how_to_fix

    @property
    def user_message(self) -> str:
        """Get the user-friendly error message."""
        return str(self)


class ConfigurationError(AnswerForgeError):
    """
    Raised for invalid parameters or missing settings.

    This is a caller bug: for example chunk overlap that is not smaller
    than the chunk size, or a missing OpenAI API key.
    """

    error_code = "AF-CFG-001"
    why_it_happened = "A configuration value is missing or out of range"
    how_to_fix = [
        "Check answerforge.yaml for the named setting",
        "Ensure chunking.overlap_chars is >= 0 and less than chunking.max_chars",
        "Set OPENAI_API_KEY when using the OpenAI collaborators",
    ]


class NotFoundError(AnswerForgeError):
    """Raised when a questionnaire, question, or document does not exist."""

    error_code = "AF-NF-001"
    why_it_happened = (
        "The requested record does not exist for this organization "
        "or it has been archived"
    )
    how_to_fix = [
        "Check the identifier and the --org value",
        "Archived questionnaires cannot be processed; import it again",
    ]


class ValidationError(AnswerForgeError):
    """Raised when input records are malformed or empty."""

    error_code = "AF-VAL-001"
    why_it_happened = "The input could not be used as provided"
    how_to_fix = ["Check the input file or arguments and try again"]


class EvidenceNotReadyError(ValidationError):
    """Raised when an organization's evidence is not fully embedded."""

    error_code = "AF-VAL-002"
    why_it_happened = (
        "Autofill needs every evidence chunk to have an embedding before a run starts"
    )
    how_to_fix = [
        "Ingest at least one evidence document",
        "Run `answerforge embed --org <org>` to backfill missing embeddings",
    ]


class CollaboratorError(AnswerForgeError):
    """
    Base exception for failures of external calls.

    Embedding, generation, and storage failures abort the current question.
    At the batch level they are recorded as the run's last error.
    """

    error_code = "AF-COL-000"
    why_it_happened = "An external service call failed"
    how_to_fix = ["Retry the operation", "Check network access and credentials"]


class EmbeddingError(CollaboratorError):
    """Raised when an embedding call fails or returns an unusable vector."""

    error_code = "AF-COL-001"
    why_it_happened = "The embedding service failed or returned an unexpected vector"
    how_to_fix = [
        "Check OPENAI_API_KEY and the configured embedding model",
        "Ensure llm.openai.embedding_dimensions matches the model output",
    ]


class GenerationError(CollaboratorError):
    """Raised when the answer generation call fails or returns garbage."""

    error_code = "AF-COL-002"
    why_it_happened = "The generation service failed or returned an unreadable reply"
    how_to_fix = [
        "Retry the batch; completed questions are kept",
        "Check the configured chat model supports JSON responses",
    ]


class StorageError(CollaboratorError):
    """Raised when a storage read or write fails."""

    error_code = "AF-COL-003"
    why_it_happened = "The database could not be read or written"
    how_to_fix = [
        "Check that storage.sqlite_path is writable",
        "Ensure no other process holds a write lock on the database",
    ]
