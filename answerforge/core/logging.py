"""
Structured Logging for AnswerForge.

This module provides a logging infrastructure with key-value fields,
a run-scoped logger for questionnaire batches, and consistent formatting
across the entire application.

Architecture Context
--------------------
Logging is a Core layer service used by every module in the system. All modules
should import get_logger() from here rather than using Python's logging directly:

    from answerforge.core.logging import get_logger
    logger = get_logger(__name__)

    logger.info("Answered question", question_id="q_12", confidence="high")
    # -> Answered question | question_id=q_12 | confidence=high

Logger Types
------------
**StructuredLogger**
    Base logger. Keyword arguments become " | key=value" suffixes:

        logger = get_logger(__name__)
        logger.info("Retrieval done", org_id="org_1")
        # -> Retrieval done | org_id=org_1

**RunLogger**
    Specialized for autofill runs. Tracks one batch invocation with timing and
    per-question progress:

        rlog = RunLogger(questionnaire_id, mode="autofill")
        rlog.start(pending=5)
        rlog.question_done(row_index=3, found=True)
        rlog.finish(status="RUNNING", processed=10, total=12)

Module-Level Factory
--------------------
The get_logger() function provides cached logger instances. Loggers are cached
by name, so multiple calls return the same instance.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from rich.logging import RichHandler


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file_path: Optional[Path] = None
    console: bool = True


class StructuredLogger:
    """
    Structured logger with key-value fields.

    Provides consistent logging across the application with
    support for structured fields.
    """

    def __init__(self, name: str, config: Optional[LogConfig] = None) -> None:
        self.logger = logging.getLogger(name)
        self.config = config or LogConfig()
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Configure the logger."""
        level = getattr(logging, self.config.level.upper(), logging.INFO)
        self.logger.setLevel(level)

        # Remove existing handlers
        self.logger.handlers.clear()

        if self.config.console:
            console_handler = RichHandler(
                show_time=True,
                show_path=False,
                markup=False,
                rich_tracebacks=True,
            )
            console_handler.setLevel(level)
            self.logger.addHandler(console_handler)

        if self.config.file_path:
            formatter = logging.Formatter(
                self.config.format,
                datefmt=self.config.date_format,
            )
            self.config.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.file_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def reconfigure(self, config: LogConfig) -> None:
        """Swap in a new configuration and rebuild handlers."""
        self.config = config
        self._setup_logger()

    def _format_message(self, message: str, **kwargs: Any) -> str:
        """Append extra fields to the message."""
        if kwargs:
            field_str = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} | {field_str}"
        return message

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message, **kwargs))


class _ConfigHolder:
    """Holds default logging configuration."""

    _config: LogConfig = LogConfig()

    @classmethod
    def get_config(cls) -> LogConfig:
        """Get the default config."""
        return cls._config

    @classmethod
    def set_config(cls, config: LogConfig) -> None:
        """Set the default config."""
        cls._config = config


# Module-level logger factory
_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str, config: Optional[LogConfig] = None) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (typically __name__).
        config: Optional logging configuration. Defaults to the config set
            by configure_logging().

    Returns:
        Configured StructuredLogger instance.
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, config or _ConfigHolder.get_config())
    return _loggers[name]


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Configure global logging settings.

    Loggers that were already created are rebuilt with the new settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional file path for log output.
        console: Whether to log to console.
    """
    config = LogConfig(
        level=level,
        file_path=log_file,
        console=console,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _ConfigHolder.set_config(config)

    for structured in _loggers.values():
        structured.reconfigure(config)


class RunLogger:
    """
    Specialized logger for a single autofill batch invocation.

    Tracks the batch start, per-question outcomes, and final run state.
    """

    def __init__(self, questionnaire_id: str, mode: str = "autofill") -> None:
        self.questionnaire_id = questionnaire_id
        self.mode = mode
        self.logger = get_logger("answerforge.autofill.run")
        self._started: Optional[float] = None
        self._answered = 0

    def start(self, pending: int) -> None:
        """Mark the start of a batch."""
        self._started = time.monotonic()
        self.logger.info(
            "Batch started",
            questionnaire_id=self.questionnaire_id,
            mode=self.mode,
            pending=pending,
        )

    def question_done(self, row_index: int, found: bool) -> None:
        """Log one persisted answer."""
        self._answered += 1
        self.logger.debug(
            "Question answered",
            questionnaire_id=self.questionnaire_id,
            row_index=row_index,
            found=found,
        )

    def finish(self, status: str, processed: int, total: int) -> None:
        """Log batch completion with the resulting run state."""
        duration = time.monotonic() - self._started if self._started else 0.0
        self.logger.info(
            "Batch finished",
            questionnaire_id=self.questionnaire_id,
            mode=self.mode,
            status=status,
            answered_in_batch=self._answered,
            processed=processed,
            total=total,
            duration_sec=f"{duration:.2f}",
        )

    def failed(self, row_index: int, error: str) -> None:
        """Log the question that stopped the batch."""
        self.logger.exception(
            "Batch failed",
            questionnaire_id=self.questionnaire_id,
            mode=self.mode,
            row_index=row_index,
            error=error,
        )
