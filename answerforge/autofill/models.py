"""
Data models for questionnaire autofill runs.

RunStatus lives with the persisted questionnaire record and is re-exported
here. RunProgress is the snapshot returned by every batch call.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from answerforge.storage.models import Questionnaire, RunStatus, to_timestamp


class RunMode(Enum):
    """Which rows a batch call considers eligible."""

    AUTOFILL = "autofill"
    RERUN_MISSING = "rerun-missing"


@dataclass
class RunProgress:
    """
    Run state after one batch call.

    Attributes:
        questionnaire_id: Questionnaire the call worked on
        status: Run status after the call
        total_count: Number of rows
        processed_count: Rows with an answer
        found_count: Answered rows that are not the sentinel
        not_found_count: Rows answered with the sentinel
        last_error: Error that failed the run, if any
        started_at: Start of the current run
        finished_at: Completion time, if completed
        batch_processed: Rows answered by this call
        remaining: Rows still eligible for the same mode
        batch_reused: Rows of this call answered from approved answers
    """

    questionnaire_id: str
    status: RunStatus
    total_count: int
    processed_count: int
    found_count: int
    not_found_count: int
    last_error: Optional[str]
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    batch_processed: int = 0
    remaining: int = 0
    batch_reused: int = 0

    @classmethod
    def from_questionnaire(
        cls,
        questionnaire: Questionnaire,
        batch_processed: int,
        remaining: int,
        batch_reused: int = 0,
    ) -> "RunProgress":
        return cls(
            questionnaire_id=questionnaire.id,
            status=questionnaire.status,
            total_count=questionnaire.total_count,
            processed_count=questionnaire.processed_count,
            found_count=questionnaire.found_count,
            not_found_count=questionnaire.not_found_count,
            last_error=questionnaire.last_error,
            started_at=questionnaire.started_at,
            finished_at=questionnaire.finished_at,
            batch_processed=batch_processed,
            remaining=remaining,
            batch_reused=batch_reused,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "questionnaireId": self.questionnaire_id,
            "status": self.status.value,
            "totalCount": self.total_count,
            "processedCount": self.processed_count,
            "foundCount": self.found_count,
            "notFoundCount": self.not_found_count,
            "lastError": self.last_error,
            "startedAt": to_timestamp(self.started_at),
            "finishedAt": to_timestamp(self.finished_at),
            "batchProcessed": self.batch_processed,
            "remaining": self.remaining,
            "batchReused": self.batch_reused,
        }


__all__ = ["RunMode", "RunProgress", "RunStatus"]
