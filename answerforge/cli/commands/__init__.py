"""CLI command implementations."""

from answerforge.cli.commands.ask import ask_command
from answerforge.cli.commands.documents import embed_command, ingest_command
from answerforge.cli.commands.questionnaires import (
    archive_command,
    autofill_command,
    import_questions_command,
    rerun_missing_command,
    status_command,
)
from answerforge.cli.commands.review import (
    approve_command,
    approve_reused_command,
    questions_command,
    review_command,
    unapprove_command,
)

__all__ = [
    "approve_command",
    "approve_reused_command",
    "archive_command",
    "ask_command",
    "autofill_command",
    "embed_command",
    "import_questions_command",
    "ingest_command",
    "questions_command",
    "rerun_missing_command",
    "review_command",
    "status_command",
    "unapprove_command",
]
