"""Questionnaire commands - import, autofill, rerun, and inspect runs.

Examples:
    answerforge import-questions questions.txt --org acme --name "Vendor Q3"
    answerforge autofill <questionnaire-id> --org acme
    answerforge rerun-missing <questionnaire-id> --org acme
    answerforge status <questionnaire-id> --org acme
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

import typer

from answerforge.autofill.models import RunMode, RunProgress, RunStatus
from answerforge.autofill.service import QuestionnaireAutofill
from answerforge.cli import context
from answerforge.cli.console import get_console, progress_table, tip
from answerforge.core.config import Config
from answerforge.core.exceptions import NotFoundError
from answerforge.shared.text_utils import read_text_with_fallback


def read_questions(path: Path) -> List[str]:
    """One question per non-blank line."""
    if not path.is_file():
        raise NotFoundError(f"File not found: {path}")
    lines = read_text_with_fallback(path).splitlines()
    return [line.strip() for line in lines if line.strip()]


def _print_batch(progress: RunProgress) -> None:
    get_console().print(
        f"  [dim]{progress.processed_count}/{progress.total_count} answered "
        f"({progress.found_count} found, {progress.remaining} remaining)[/dim]"
    )


async def _run(
    autofill: QuestionnaireAutofill,
    config: Config,
    org: str,
    questionnaire_id: str,
    mode: RunMode,
    batch_size: int,
    max_batches: int,
    debug: bool,
) -> RunProgress:
    await autofill.ensure_evidence_ready(org)
    return await autofill.run_until_settled(
        org,
        questionnaire_id,
        mode,
        batch_size,
        max_batches,
        debug_enabled=debug or config.autofill.debug_enabled,
        persist_debug=config.autofill.persist_debug,
        on_progress=_print_batch,
    )


def _run_command(
    ctx: typer.Context,
    questionnaire_id: str,
    org: str,
    mode: RunMode,
    batch_size: Optional[int],
    max_batches: Optional[int],
    debug: bool,
) -> None:
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    progress = asyncio.run(
        _run(
            components.autofill,
            config,
            org,
            questionnaire_id,
            mode,
            batch_size or config.autofill.batch_size,
            max_batches or config.autofill.max_batches,
            debug,
        )
    )

    get_console().print(progress_table(progress, title=f"{mode.value} run"))
    if progress.status is RunStatus.FAILED:
        tip("run the same command again to resume after the failed row")
        raise typer.Exit(code=1)
    if progress.status is RunStatus.RUNNING:
        tip("max batches reached; run the command again to continue")


def import_questions_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Text file with one question per line"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="Questionnaire name (default: file name)"
    ),
) -> None:
    """Import a questionnaire from a text file."""
    questions = read_questions(file)
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    questionnaire = asyncio.run(
        components.autofill.import_questionnaire(org, name or file.stem, questions)
    )

    console = get_console()
    console.print(
        f"[green]Imported {questionnaire.total_count} question(s)[/green] "
        f"as '{questionnaire.name}'"
    )
    console.print(f"Questionnaire id: [bold]{questionnaire.id}[/bold]")


def autofill_command(
    ctx: typer.Context,
    questionnaire_id: str = typer.Argument(..., help="Questionnaire id"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", "-b", min=1, help="Questions per batch"
    ),
    max_batches: Optional[int] = typer.Option(
        None, "--max-batches", min=1, help="Stop after this many batches"
    ),
    debug: bool = typer.Option(False, "--debug", help="Log answer traces"),
) -> None:
    """Answer every unanswered question of a questionnaire."""
    _run_command(
        ctx, questionnaire_id, org, RunMode.AUTOFILL, batch_size, max_batches, debug
    )


def rerun_missing_command(
    ctx: typer.Context,
    questionnaire_id: str = typer.Argument(..., help="Questionnaire id"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", "-b", min=1, help="Questions per batch"
    ),
    max_batches: Optional[int] = typer.Option(
        None, "--max-batches", min=1, help="Stop after this many batches"
    ),
    debug: bool = typer.Option(False, "--debug", help="Log answer traces"),
) -> None:
    """Re-answer questions that are unanswered or were not found."""
    _run_command(
        ctx,
        questionnaire_id,
        org,
        RunMode.RERUN_MISSING,
        batch_size,
        max_batches,
        debug,
    )


def status_command(
    ctx: typer.Context,
    questionnaire_id: str = typer.Argument(..., help="Questionnaire id"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
) -> None:
    """Show a questionnaire's run state."""
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    progress = asyncio.run(components.autofill.get_progress(org, questionnaire_id))
    get_console().print(progress_table(progress))


def archive_command(
    ctx: typer.Context,
    questionnaire_id: str = typer.Argument(..., help="Questionnaire id"),
) -> None:
    """Archive a questionnaire so runs no longer see it."""
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    if not asyncio.run(components.store.archive_questionnaire(questionnaire_id)):
        raise NotFoundError(f"Questionnaire not found: {questionnaire_id}")
    get_console().print(f"[green]Archived {questionnaire_id}[/green]")
