"""
Configuration Loading and Management Functions.

Handles loading, saving, and applying environment overrides to the
AnswerForge configuration.

Precedence: 1. Environment variables, 2. YAML file, 3. Defaults.

Recognized environment variables:

    OPENAI_API_KEY               llm.openai.api_key
    ANSWERFORGE_CHAT_MODEL       llm.openai.model
    ANSWERFORGE_EMBEDDING_MODEL  llm.openai.embedding_model
    ANSWERFORGE_DB_PATH          storage.sqlite_path
    ANSWERFORGE_BATCH_SIZE       autofill.batch_size
    ANSWERFORGE_DEBUG            autofill.debug_enabled
    ANSWERFORGE_PERSIST_DEBUG    autofill.persist_debug
"""

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import yaml

from answerforge.core.exceptions import ConfigurationError
from answerforge.core.logging import get_logger

if TYPE_CHECKING:
    from answerforge.core.config import Config

logger = get_logger(__name__)

CONFIG_FILENAMES = ("answerforge.yaml", "config.yaml")

_MODEL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._:\-/]+$")
_TRUTHY = {"true", "yes", "1", "on"}
_FALSY = {"false", "no", "0", "off", ""}


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values.

    Handles strings with ${VAR_NAME} or ${VAR_NAME:default} syntax inside
    nested dictionaries and lists.

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with all environment variables expanded
    """
    if isinstance(value, str):
        pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

        def replace_env_var(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _get_env_int(name: str, min_value: int = 1) -> Optional[int]:
    """Read a bounded integer, ignoring invalid values."""
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer environment value", name=name)
        return None
    return max(value, min_value)


def _get_env_bool(name: str) -> Optional[bool]:
    """Read a boolean flag, ignoring unrecognized values."""
    raw = os.environ.get(name)
    if raw is None:
        return None
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    logger.warning("Ignoring non-boolean environment value", name=name)
    return None


def _apply_env_overrides(config: "Config") -> "Config":
    """
    Apply environment variable overrides to configuration.

    Environment variables take precedence over config file values.
    """
    _apply_llm_overrides(config)
    _apply_storage_overrides(config)
    _apply_autofill_overrides(config)
    config.validate()
    return config


def _apply_llm_overrides(config: "Config") -> None:
    """Apply API key and model overrides."""
    openai_key = os.environ.get("OPENAI_API_KEY")
    if openai_key:
        config.llm.openai.api_key = openai_key

    chat_model = os.environ.get("ANSWERFORGE_CHAT_MODEL")
    if chat_model and _MODEL_NAME_PATTERN.match(chat_model):
        config.llm.openai.model = chat_model

    embedding_model = os.environ.get("ANSWERFORGE_EMBEDDING_MODEL")
    if embedding_model and _MODEL_NAME_PATTERN.match(embedding_model):
        config.llm.openai.embedding_model = embedding_model


def _apply_storage_overrides(config: "Config") -> None:
    """Apply database path override."""
    db_path = os.environ.get("ANSWERFORGE_DB_PATH")
    if db_path:
        config.storage.sqlite_path = db_path


def _apply_autofill_overrides(config: "Config") -> None:
    """Apply batch size and debug flag overrides."""
    batch_size = _get_env_int("ANSWERFORGE_BATCH_SIZE")
    if batch_size is not None:
        config.autofill.batch_size = batch_size

    debug = _get_env_bool("ANSWERFORGE_DEBUG")
    if debug is not None:
        config.autofill.debug_enabled = debug

    persist_debug = _get_env_bool("ANSWERFORGE_PERSIST_DEBUG")
    if persist_debug is not None:
        config.autofill.persist_debug = persist_debug


def _find_config_file(base_path: Path) -> Optional[Path]:
    for filename in CONFIG_FILENAMES:
        candidate = base_path / filename
        if candidate.exists():
            return candidate
    return None


def load_config(
    config_path: Optional[Path] = None, base_path: Optional[Path] = None
) -> "Config":
    """
    Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config file. Defaults to answerforge.yaml or
            config.yaml in base_path.
        base_path: Base path for the project. Defaults to current directory.

    Returns:
        Config object with all settings.

    Raises:
        ConfigurationError: If the file exists but cannot be parsed or holds
            out-of-range values.
    """
    from answerforge.core.config import Config

    base_path = base_path or Path.cwd()

    if config_path is None:
        config_path = _find_config_file(base_path)
    if config_path is None or not config_path.exists():
        return _create_default_config(base_path)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {config_path.name}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path.name} must contain a mapping")

    try:
        config = Config.from_dict(data, base_path)
    except TypeError as e:
        raise ConfigurationError(f"Invalid value in {config_path.name}: {e}") from e

    logger.debug("Loaded configuration", path=str(config_path))
    return _apply_env_overrides(config)


def _create_default_config(base_path: Path) -> "Config":
    """Create default configuration with environment overrides."""
    from answerforge.core.config import Config

    config = Config()
    config._base_path = base_path
    return _apply_env_overrides(config)


def save_config(config: "Config", config_path: Optional[Path] = None) -> Path:
    """Save configuration to YAML file and return the path written."""
    if config_path is None:
        config_path = config.base_path / CONFIG_FILENAMES[0]

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)

    return config_path
