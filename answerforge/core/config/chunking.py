"""
Chunking configuration.

Fixed-size windows measured in characters, with overlap between neighbours.
"""

from dataclasses import dataclass


@dataclass
class ChunkingConfig:
    """Chunking configuration."""

    max_chars: int = 1500
    overlap_chars: int = 200
