"""
LLM configuration.

Provides configuration for the OpenAI provider used for both answer
generation and embeddings.
"""

from dataclasses import dataclass, field


@dataclass
class LLMProviderConfig:
    """OpenAI provider configuration."""

    model: str = "gpt-4.1-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    api_key: str = ""
    temperature: float = 0.0  # deterministic
    max_tokens: int = 700


@dataclass
class LLMConfig:
    """LLM configuration."""

    openai: LLMProviderConfig = field(default_factory=LLMProviderConfig)
    max_citations: int = 5
