"""
Base configuration classes for project and storage settings.

Provides the dataclasses that define where AnswerForge keeps its data.
"""

from dataclasses import dataclass


@dataclass
class ProjectConfig:
    """Project-level configuration."""

    name: str = "answerforge"
    data_dir: str = ".data"
    log_level: str = "INFO"
    log_file: str = ""  # empty disables file logging


@dataclass
class StorageConfig:
    """SQLite storage configuration."""

    sqlite_path: str = ".data/answerforge.db"
