"""Console output helpers.

Provides consistent formatting for CLI output and helpful error panels.
"""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from answerforge.autofill.models import RunProgress
from answerforge.core.exceptions import AnswerForgeError, sanitize_message
from answerforge.query.citations import format_citation
from answerforge.query.models import AnswerResult
from answerforge.storage.models import Question

# Shared console instance
_console: Console | None = None


def get_console() -> Console:
    """Get shared console instance (lazy-loaded)."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def tip(message: str) -> None:
    """Display a dim tip line."""
    get_console().print(f"  [dim]Tip: {message}[/dim]")


def render_error(exc: BaseException, operation: str) -> None:
    """Render an exception as an error panel.

    AnswerForgeError subclasses include their code and the why / how-to-fix
    guidance. Anything else shows its type and sanitized message.
    """
    message = sanitize_message(str(exc)) or type(exc).__name__
    content = Text()
    content.append(f"{operation} failed: ", style="bold")
    content.append(message)

    if isinstance(exc, AnswerForgeError):
        title = f"[bold red]Error: {exc.error_code}[/bold red]"
        content.append("\n\nWhy it happened:\n", style="bold yellow")
        content.append(exc.why_it_happened)
        content.append("\n\nHow to fix:\n", style="bold green")
        content.append("\n".join(f"  - {step}" for step in exc.how_to_fix))
    else:
        title = f"[bold red]Error: {type(exc).__name__}[/bold red]"

    get_console().print(Panel(content, title=title, border_style="red", padding=(1, 2)))


def answer_table(result: AnswerResult) -> Table:
    """Table view of one answer."""
    table = Table(title="Answer", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Answer", result.answer)
    table.add_row("Confidence", result.confidence.value)
    table.add_row("Needs review", "yes" if result.needs_review else "no")
    if result.not_found_reason is not None:
        table.add_row("Reason", result.not_found_reason.value)
    for index, citation in enumerate(result.citations, start=1):
        table.add_row(f"Citation {index}", format_citation(citation))
    return table


def progress_table(progress: RunProgress, title: Optional[str] = None) -> Table:
    """Table view of a run's state."""
    table = Table(title=title or "Run status", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    rows: List[tuple[str, str]] = [
        ("Questionnaire", progress.questionnaire_id),
        ("Status", progress.status.value),
        ("Processed", f"{progress.processed_count}/{progress.total_count}"),
        ("Found", str(progress.found_count)),
        ("Not found", str(progress.not_found_count)),
        ("Answered this call", str(progress.batch_processed)),
        ("Reused approvals", str(progress.batch_reused)),
        ("Remaining", str(progress.remaining)),
        ("Started", progress.started_at.isoformat() if progress.started_at else "-"),
        ("Finished", progress.finished_at.isoformat() if progress.finished_at else "-"),
    ]
    if progress.last_error:
        rows.append(("Last error", progress.last_error))

    for field, value in rows:
        table.add_row(field, value)
    return table


def questions_table(questions: List[Question], title: str = "Questions") -> Table:
    """Rows of a questionnaire with their answer and review state."""
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Question")
    table.add_column("Answer")
    table.add_column("Review")
    table.add_column("Reuse")

    for question in questions:
        table.add_row(
            str(question.row_index),
            question.id,
            question.text,
            question.answer if question.answer is not None else "-",
            question.review_status.value,
            question.reuse_kind.value if question.reuse_kind else "-",
        )
    return table
