"""Ask command - answer one question from the organization's evidence.

Examples:
    answerforge ask "Is data encrypted at rest?" --org acme
    answerforge ask "Do you support SSO?" --org acme --debug
    answerforge ask "Is MFA enforced?" --org acme --plain
"""

from __future__ import annotations

import asyncio
import json

import typer

from answerforge.cli import context
from answerforge.cli.console import answer_table, get_console
from answerforge.query.citations import format_citations_compact


def ask_command(
    ctx: typer.Context,
    question: str = typer.Argument(..., help="Question to answer"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
    debug: bool = typer.Option(False, "--debug", help="Print the retrieval trace"),
    plain: bool = typer.Option(
        False, "--plain", help="Plain text output for copying into a questionnaire"
    ),
) -> None:
    """Answer a single question with citations."""
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    result = asyncio.run(
        components.engine.answer_question(org, question, debug=debug)
    )

    if plain:
        typer.echo(result.answer)
        typer.echo(f"Confidence: {result.confidence.value}")
        if result.citations:
            typer.echo(f"Sources: {format_citations_compact(result.citations)}")
    else:
        get_console().print(answer_table(result))

    if debug and result.debug is not None:
        get_console().print_json(json.dumps(result.debug.to_dict()))
