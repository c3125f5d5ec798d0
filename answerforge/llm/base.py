"""
Base Model Collaborator Interfaces.

The answering pipeline treats the language model as two opaque functions:

    embed(text)                  -> vector
    generate(question, snippets) -> GroundedDraft

Architecture Context
--------------------

    ┌─────────────────┐     ┌─────────────────┐
    │  AnswerEngine   │     │ DocumentIngestor│
    └───┬─────────┬───┘     └────────┬────────┘
        │         │                  │
        │         └──────────┬───────┘
        ↓                    ↓
    ┌───────────────┐  ┌──────────┐
    │AnswerGenerator│  │ Embedder │      (protocols)
    └───────┬───────┘  └────┬─────┘
            ↓               │
    ┌───────────────┐       │
    │GroundedAnswer │       │
    │  Generator    │       │
    └───────┬───────┘       │
            ↓               ↓
    ┌─────────────────────────────┐
    │   LLMClient / OpenAIClient  │
    └─────────────────────────────┘

Both calls are synchronous. Async callers run them in a worker thread.

Exception Hierarchy
-------------------
    GenerationError (core.exceptions)
    └── LLMError
        └── RateLimitError
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from answerforge.core.exceptions import GenerationError
from answerforge.query.models import Confidence


class LLMError(GenerationError):
    """Base exception for LLM call errors."""

    error_code = "AF-LLM-001"


class RateLimitError(LLMError):
    """Raised when rate limit is exceeded."""

    error_code = "AF-LLM-002"
    why_it_happened = "The model provider rejected the request with a rate limit"
    how_to_fix = [
        "Wait and retry the batch; answered questions are kept",
        "Increase autofill.question_delay_seconds",
    ]


@dataclass
class GenerationConfig:
    """
    Configuration for text generation.

    Attributes:
        max_tokens: Maximum tokens to generate
        temperature: 0 for deterministic, grounded answers
        top_p: Nucleus sampling parameter
        seed: Random seed for reproducibility (if supported)
        json_mode: Force a JSON object reply
    """

    max_tokens: int = 700
    temperature: float = 0.0
    top_p: float = 1.0
    seed: Optional[int] = None
    json_mode: bool = False


@dataclass(frozen=True)
class SnippetRef:
    """Evidence shown to the generator."""

    chunk_id: str
    doc_name: str
    quoted_snippet: str


@dataclass
class GroundedDraft:
    """Unverified generator output."""

    answer: str
    citation_chunk_ids: List[str] = field(default_factory=list)
    confidence: Confidence = Confidence.LOW
    needs_review: bool = True


@runtime_checkable
class Embedder(Protocol):
    """Text to vector."""

    def embed(self, text: str) -> List[float]:
        ...


@runtime_checkable
class AnswerGenerator(Protocol):
    """Question plus snippets to a draft answer."""

    def generate(self, question: str, snippets: Sequence[SnippetRef]) -> GroundedDraft:
        ...


class LLMClient(ABC):
    """
    Abstract base class for chat model providers.

    Tracks cumulative token usage for providers that report it.
    """

    def _get_usage(self) -> Dict[str, int]:
        """Get or initialize the usage accumulator."""
        if not hasattr(self, "_usage"):
            self._usage = {
                "prompt_tokens": 0,
                "completion_tokens": 0,
                "total_tokens": 0,
            }
        return self._usage

    def _record_usage(self, prompt_tokens: int = 0, completion_tokens: int = 0) -> None:
        usage = self._get_usage()
        usage["prompt_tokens"] += prompt_tokens
        usage["completion_tokens"] += completion_tokens
        usage["total_tokens"] += prompt_tokens + completion_tokens

    def get_usage(self) -> Dict[str, int]:
        """
        Get cumulative token usage.

        Returns:
            Dict with prompt_tokens, completion_tokens, total_tokens
        """
        return dict(self._get_usage())

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier used for requests."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured."""

    @abstractmethod
    def generate_with_context(
        self,
        system_prompt: str,
        user_prompt: str,
        context: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
        **kwargs: Any,
    ) -> str:
        """
        Generate text with system prompt and context.

        Args:
            system_prompt: System instructions
            user_prompt: User query
            context: Additional context (e.g., retrieved snippets)
            config: Generation configuration

        Returns:
            Generated text
        """
