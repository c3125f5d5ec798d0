"""
Retrieval configuration.

Controls how many chunks are retrieved per question, how long quoted
snippets may be, the similarity floor below which evidence is considered
too weak to answer from, and the weights of the rerank that orders the
chunks passed to the generator.
"""

from dataclasses import dataclass


@dataclass
class RetrievalConfig:
    """Retrieval configuration."""

    top_k: int = 5
    snippet_chars: int = 520
    min_top_similarity: float = 0.35
    vector_weight: float = 0.7
    lexical_weight: float = 0.3
