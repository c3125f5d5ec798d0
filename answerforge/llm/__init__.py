"""
Model collaborators: embedding and grounded answer generation.

    from answerforge.llm import GroundedAnswerGenerator, OpenAIClient

    client = OpenAIClient(api_key="...")
    generator = GroundedAnswerGenerator(client, max_citations=5)
"""

from answerforge.llm.base import (
    AnswerGenerator,
    Embedder,
    GenerationConfig,
    GroundedDraft,
    LLMClient,
    LLMError,
    RateLimitError,
    SnippetRef,
)
from answerforge.llm.grounded import GroundedAnswerGenerator, parse_grounded_reply
from answerforge.llm.openai import OpenAIClient

__all__ = [
    "AnswerGenerator",
    "Embedder",
    "GenerationConfig",
    "GroundedAnswerGenerator",
    "GroundedDraft",
    "LLMClient",
    "LLMError",
    "OpenAIClient",
    "RateLimitError",
    "SnippetRef",
    "parse_grounded_reply",
]
