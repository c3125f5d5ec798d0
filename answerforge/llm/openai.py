"""
OpenAI chat and embedding provider.

Uses the OpenAI SDK for API access. The SDK client is created on first use so
commands that never call the model do not need a key.
"""

import os
from typing import Any, Dict, List, Optional

from answerforge.core.exceptions import ConfigurationError, EmbeddingError
from answerforge.core.logging import get_logger
from answerforge.core.retry import RetryError, embedding_retry, llm_retry
from answerforge.llm.base import (
    GenerationConfig,
    LLMClient,
    LLMError,
    RateLimitError,
)
from answerforge.shared.lazy_imports import lazy_property

logger = get_logger(__name__)

DEFAULT_CHAT_MODEL = "gpt-4.1-mini"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536

_RATE_LIMIT_TERMS = ("rate limit", "429", "quota")


def _is_rate_limit(error: BaseException) -> bool:
    message = str(error).lower()
    return any(term in message for term in _RATE_LIMIT_TERMS)


class OpenAIClient(LLMClient):
    """
    OpenAI API client for chat completions and embeddings.

    Requires OPENAI_API_KEY environment variable or an explicit api_key.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_CHAT_MODEL,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        embedding_dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS,
    ) -> None:
        """
        Initialize OpenAI client.

        Args:
            api_key: API key (defaults to OPENAI_API_KEY env var)
            model: Chat model name
            embedding_model: Embedding model name
            embedding_dimensions: Expected embedding vector length
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        self._model_name = model
        self.embedding_model = embedding_model
        self.embedding_dimensions = embedding_dimensions

    @lazy_property
    def client(self) -> Any:
        """Lazy-load OpenAI client."""
        from openai import OpenAI

        self._require_key()
        return OpenAI(api_key=self.api_key)

    @property
    def model_name(self) -> str:
        return self._model_name

    def is_available(self) -> bool:
        """Check if OpenAI is configured."""
        return bool(self.api_key)

    def _require_key(self) -> None:
        if not self.api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY not set. Set it in environment or in answerforge.yaml."
            )

    def _build_request_params(self, config: GenerationConfig) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
            "top_p": config.top_p,
        }
        if config.seed is not None:
            params["seed"] = config.seed
        if config.json_mode:
            params["response_format"] = {"type": "json_object"}
        return params

    def generate_with_context(
        self,
        system_prompt: str,
        user_prompt: str,
        context: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
        **kwargs: Any,
    ) -> str:
        """Generate with system prompt and context.

        Raises:
            ConfigurationError: If no API key is configured
            RateLimitError: If retries were exhausted on rate limits
            LLMError: For any other failure
        """
        self._require_key()
        config = config or GenerationConfig()

        user_message = user_prompt
        if context:
            user_message = f"{context}\n\n{user_prompt}"
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]

        try:
            return self._create_completion(messages, self._build_request_params(config))
        except RetryError as e:
            if _is_rate_limit(e.last_exception):
                raise RateLimitError(f"Max retries exceeded: {e.last_exception}") from e
            raise LLMError(f"OpenAI generation failed: {e.last_exception}") from e

    @llm_retry
    def _create_completion(
        self, messages: List[Dict[str, str]], params: Dict[str, Any]
    ) -> str:
        response = self.client.chat.completions.create(
            model=self._model_name,
            messages=messages,
            **params,
        )
        if not response.choices or not response.choices[0].message.content:
            raise LLMError("Empty response from OpenAI")

        if response.usage:
            self._record_usage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
            )
        return str(response.choices[0].message.content).strip()

    def embed(self, text: str) -> List[float]:
        """Embed one text.

        Raises:
            EmbeddingError: For empty text, call failure, or a vector of the
                wrong dimension
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        self._require_key()

        try:
            vector = self._create_embedding(text)
        except RetryError as e:
            raise EmbeddingError(f"OpenAI embedding failed: {e.last_exception}") from e

        if len(vector) != self.embedding_dimensions:
            raise EmbeddingError(
                f"Embedding has {len(vector)} dimensions, "
                f"expected {self.embedding_dimensions}"
            )
        return vector

    @embedding_retry
    def _create_embedding(self, text: str) -> List[float]:
        response = self.client.embeddings.create(
            model=self.embedding_model,
            input=text,
        )
        if not response.data:
            raise EmbeddingError("Empty embedding response from OpenAI")
        return [float(value) for value in response.data[0].embedding]
