"""Shared command setup: configuration, logging, and pipeline wiring.

Commands build their components through ``context.create_components``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from answerforge.autofill.factory import create_components
from answerforge.core.config import Config, load_config
from answerforge.core.logging import configure_logging


def config_path_from(ctx: typer.Context) -> Optional[Path]:
    obj = ctx.obj or {}
    return obj.get("config_path")


def load_cli_config(ctx: typer.Context) -> Config:
    """Load configuration for a command and apply its logging settings."""
    config = load_config(config_path=config_path_from(ctx))
    configure_logging(level=config.project.log_level, log_file=config.log_path)
    return config

