"""
Questionnaire autofill configuration.

Batch sizing, the courtesy delay between generation calls, and the debug
flags that are passed explicitly into every autofill call.
"""

from dataclasses import dataclass


@dataclass
class AutofillConfig:
    """Autofill batch configuration."""

    batch_size: int = 5
    question_delay_seconds: float = 0.25
    max_batches: int = 1000
    debug_enabled: bool = False
    persist_debug: bool = False
