"""
Tests for structured logging.

Organization
------------
- TestStructuredLogger: Key-value message formatting
- TestConfigureLogging: Reconfiguring cached loggers
- TestRunLogger: Batch lifecycle records
"""

import logging

import pytest

from answerforge.core.logging import (
    LogConfig,
    RunLogger,
    StructuredLogger,
    configure_logging,
    get_logger,
)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    configure_logging(level="INFO")


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_fields_appended(self):
        logger = StructuredLogger("answerforge.test.fields", LogConfig(console=False))

        message = logger._format_message("Answered", question_id="q1", found=True)

        assert message == "Answered | question_id=q1 | found=True"

    def test_plain_message(self):
        logger = StructuredLogger("answerforge.test.plain", LogConfig(console=False))

        assert logger._format_message("Started") == "Started"

    def test_records_reach_handlers(self, caplog):
        logger = StructuredLogger("answerforge.test.caplog", LogConfig(console=False))
        logger.logger.propagate = True

        with caplog.at_level(logging.INFO, logger="answerforge.test.caplog"):
            logger.info("Retrieval done", org_id="acme")

        assert "Retrieval done | org_id=acme" in caplog.text


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_cached_loggers_rebuilt(self, tmp_path):
        logger = get_logger("answerforge.test.reconfigure")
        log_file = tmp_path / "logs" / "answerforge.log"

        configure_logging(level="DEBUG", log_file=log_file, console=False)
        logger.debug("Written", key="value")

        assert logger.logger.level == logging.DEBUG
        assert [type(h) for h in logger.logger.handlers] == [logging.FileHandler]
        for handler in logger.logger.handlers:
            handler.flush()
        assert "Written | key=value" in log_file.read_text(encoding="utf-8")

    def test_get_logger_caches(self):
        assert get_logger("answerforge.test.cache") is get_logger(
            "answerforge.test.cache"
        )


class TestRunLogger:
    """Tests for RunLogger."""

    def test_batch_lifecycle(self, caplog):
        run_logger = RunLogger("n1", mode="autofill")
        run_logger.logger.logger.propagate = True

        with caplog.at_level(logging.DEBUG, logger="answerforge.autofill.run"):
            run_logger.start(pending=2)
            run_logger.question_done(row_index=0, found=True)
            run_logger.finish(status="RUNNING", processed=1, total=2)

        assert "Batch started | questionnaire_id=n1" in caplog.text
        assert "row_index=0 | found=True" in caplog.text
        assert "answered_in_batch=1" in caplog.text
