"""AnswerForge CLI - Main application entry point.

Registers the evidence, answering, questionnaire, and review commands.
"""

from __future__ import annotations

import logging
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Optional

import typer

from answerforge.cli.commands import (
    approve_command,
    approve_reused_command,
    archive_command,
    ask_command,
    autofill_command,
    embed_command,
    import_questions_command,
    ingest_command,
    questions_command,
    rerun_missing_command,
    review_command,
    status_command,
    unapprove_command,
)
from answerforge.cli.console import get_console, render_error


def _handle_cli_error(e: Exception, operation_name: str, show_debug: bool) -> None:
    """
    Render a failed command and log it.

    Args:
        e: The exception that occurred
        operation_name: Human-readable operation name
        show_debug: Whether to print the traceback
    """
    render_error(e, operation_name)
    if show_debug:
        get_console().print_exception()

    logger = logging.getLogger(__name__)
    logger.error(f"[{operation_name}] {type(e).__name__}: {e}", exc_info=True)


def safe_cli_command(
    operation_name: str,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator to wrap CLI commands with user-friendly error handling.

    typer.Exit passes through so commands keep their own exit codes.

    Args:
        operation_name: Human-readable operation name for error context

    Returns:
        Decorator function that wraps the command with error handling
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except typer.Exit:
                raise
            except Exception as e:
                show_debug = kwargs.get("debug", False)
                _handle_cli_error(e, operation_name, show_debug)
                raise typer.Exit(code=1)

        return wrapper

    return decorator


# Create main Typer application
app = typer.Typer(
    name="answerforge",
    help="Evidence-grounded answers for security questionnaires",
    add_completion=False,
    pretty_exceptions_enable=False,
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to answerforge.yaml"
    ),
) -> None:
    """AnswerForge - grounded questionnaire answering."""
    if version:
        from answerforge import __version__

        typer.echo(f"AnswerForge {__version__}")
        raise typer.Exit()

    ctx.obj = {"config_path": config}

    # If no command provided, show help
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


# Register commands
app.command("ingest", rich_help_panel="Evidence")(
    safe_cli_command("Ingest")(ingest_command)
)
app.command("embed", rich_help_panel="Evidence")(
    safe_cli_command("Embedding backfill")(embed_command)
)
app.command("ask", rich_help_panel="Answering")(safe_cli_command("Ask")(ask_command))
app.command("import-questions", rich_help_panel="Questionnaires")(
    safe_cli_command("Questionnaire import")(import_questions_command)
)
app.command("autofill", rich_help_panel="Questionnaires")(
    safe_cli_command("Autofill")(autofill_command)
)
app.command("rerun-missing", rich_help_panel="Questionnaires")(
    safe_cli_command("Rerun missing")(rerun_missing_command)
)
app.command("status", rich_help_panel="Questionnaires")(
    safe_cli_command("Status")(status_command)
)
app.command("archive", rich_help_panel="Questionnaires")(
    safe_cli_command("Archive")(archive_command)
)
app.command("questions", rich_help_panel="Review")(
    safe_cli_command("List questions")(questions_command)
)
app.command("approve", rich_help_panel="Review")(
    safe_cli_command("Approve")(approve_command)
)
app.command("unapprove", rich_help_panel="Review")(
    safe_cli_command("Unapprove")(unapprove_command)
)
app.command("review", rich_help_panel="Review")(
    safe_cli_command("Review")(review_command)
)
app.command("approve-reused", rich_help_panel="Review")(
    safe_cli_command("Approve reused")(approve_reused_command)
)


def cli_main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    cli_main()
