"""
Tests for the exception hierarchy and message sanitizing.

Organization
------------
- TestSanitizeMessage: Secrets masked in error text
- TestAnswerForgeError: Codes, fix hints, and hierarchy
"""

from answerforge.core.exceptions import (
    AnswerForgeError,
    CollaboratorError,
    EvidenceNotReadyError,
    GenerationError,
    NotFoundError,
    StorageError,
    ValidationError,
    sanitize_message,
)
from answerforge.llm.base import LLMError


class TestSanitizeMessage:
    """Tests for sanitize_message()."""

    def test_masks_api_key(self):
        message = sanitize_message("Invalid key sk-abcdefghijklmnopqrstuvwxyz123")

        assert "abcdefghijklmnop" not in message
        assert "sk-<api-key>" in message

    def test_masks_bearer_token(self):
        assert sanitize_message("Bearer abc.def-123") == "Bearer <token>"

    def test_masks_url_credentials(self):
        message = sanitize_message("postgres://admin:hunter2@db:5432")

        assert message == "postgres://<user>:<pass>@db:5432"

    def test_plain_message_unchanged(self):
        assert sanitize_message("model down") == "model down"
        assert sanitize_message("") == ""


class TestAnswerForgeError:
    """Tests for AnswerForgeError and subclasses."""

    def test_message_is_sanitized(self):
        error = GenerationError("OPENAI_API_KEY=sk-live-secret rejected")

        assert "sk-live-secret" not in error.user_message

    def test_class_defaults(self):
        error = NotFoundError("Questionnaire not found: q1")

        assert error.error_code == "AF-NF-001"
        assert error.how_to_fix

    def test_overrides(self):
        error = ValidationError("bad", error_code="AF-VAL-999", how_to_fix=["Fix it"])

        assert error.error_code == "AF-VAL-999"
        assert error.how_to_fix == ["Fix it"]
        assert ValidationError.how_to_fix != ["Fix it"]

    def test_hierarchy(self):
        assert issubclass(EvidenceNotReadyError, ValidationError)
        assert issubclass(StorageError, CollaboratorError)
        assert issubclass(LLMError, GenerationError)
        assert issubclass(CollaboratorError, AnswerForgeError)
