"""Review commands - list rows, approve answers, and set review status.

Examples:
    answerforge questions <questionnaire-id> --org acme
    answerforge approve <question-id> --org acme --note "checked by security"
    answerforge approve <question-id> --org acme --text "Yes." --cite <chunk-id>
    answerforge unapprove <question-id> --org acme
    answerforge review <question-id> --org acme --status needs-review
    answerforge approve-reused <questionnaire-id> --org acme
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import List, Optional

import typer

from answerforge.cli import context
from answerforge.cli.console import get_console, questions_table, tip
from answerforge.core.exceptions import NotFoundError
from answerforge.storage.models import ReviewStatus


class ReviewChoice(str, Enum):
    """Statuses a reviewer may set directly."""

    NEEDS_REVIEW = "needs-review"
    DRAFT = "draft"

    @property
    def status(self) -> ReviewStatus:
        if self is ReviewChoice.NEEDS_REVIEW:
            return ReviewStatus.NEEDS_REVIEW
        return ReviewStatus.DRAFT


def questions_command(
    ctx: typer.Context,
    questionnaire_id: str = typer.Argument(..., help="Questionnaire id"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
) -> None:
    """List a questionnaire's rows with their ids and review state."""
    config = context.load_cli_config(ctx)
    store = context.create_components(config).store

    async def _load():
        questionnaire = await store.get_questionnaire(questionnaire_id, org)
        if questionnaire is None:
            raise NotFoundError(f"Questionnaire not found: {questionnaire_id}")
        return questionnaire, await store.list_questions(questionnaire.id)

    questionnaire, questions = asyncio.run(_load())
    get_console().print(questions_table(questions, title=questionnaire.name))


def approve_command(
    ctx: typer.Context,
    question_id: str = typer.Argument(..., help="Question id"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
    text: Optional[str] = typer.Option(
        None, "--text", "-t", help="Replacement answer text"
    ),
    cite: Optional[List[str]] = typer.Option(
        None, "--cite", help="Chunk id to cite (repeatable); replaces citations"
    ),
    by: str = typer.Option("system", "--by", help="Reviewer name"),
    note: Optional[str] = typer.Option(None, "--note", help="Review note"),
) -> None:
    """Approve a question's answer for reuse by later runs."""
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    approved = asyncio.run(
        components.review.approve(
            org,
            question_id,
            answer_text=text,
            citation_chunk_ids=cite or None,
            approved_by=by,
            note=note,
        )
    )

    console = get_console()
    console.print(
        f"[green]Approved[/green] {question_id} "
        f"({approved.source.value.lower()}, "
        f"{len(approved.citation_chunk_ids)} citation(s))"
    )
    console.print(f"Approved answer id: [bold]{approved.id}[/bold]")


def unapprove_command(
    ctx: typer.Context,
    question_id: str = typer.Argument(..., help="Question id"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
) -> None:
    """Remove a question's approval."""
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    if asyncio.run(components.review.unapprove(org, question_id)):
        get_console().print(f"[green]Approval removed from {question_id}[/green]")
    else:
        get_console().print(f"[yellow]{question_id} was not approved[/yellow]")


def review_command(
    ctx: typer.Context,
    question_id: str = typer.Argument(..., help="Question id"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
    status: ReviewChoice = typer.Option(
        ReviewChoice.NEEDS_REVIEW, "--status", "-s", help="New review status"
    ),
) -> None:
    """Flag a row for review or move it back to draft."""
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    question = asyncio.run(
        components.review.set_review_status(org, question_id, status.status)
    )
    get_console().print(f"{question.id}: [cyan]{question.review_status.value}[/cyan]")


def approve_reused_command(
    ctx: typer.Context,
    questionnaire_id: str = typer.Argument(..., help="Questionnaire id"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
) -> None:
    """Approve every row that reused an approved answer by exact match."""
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    summary = asyncio.run(
        components.review.approve_reused_exact(org, questionnaire_id)
    )

    console = get_console()
    console.print(
        f"[green]Approved {summary.approved}[/green] of "
        f"{summary.exact_reused} exact reuse(s); "
        f"{summary.already_approved} already approved, {summary.skipped} skipped"
    )
    if summary.skipped:
        tip("skipped rows have no usable answer or cite missing evidence")
