"""
Configuration Management for AnswerForge.

Configuration is a hierarchy of dataclasses that map to a YAML file, with
environment variable expansion for secrets.

    config/
    ├── base.py          # ProjectConfig, StorageConfig
    ├── chunking.py      # ChunkingConfig
    ├── retrieval.py     # RetrievalConfig
    ├── llm.py           # LLMConfig, LLMProviderConfig
    ├── autofill.py      # AutofillConfig
    └── config.py        # Main Config class

Usage Example
-------------
    from answerforge.core.config import load_config

    config = load_config()
    top_k = config.retrieval.top_k
"""

from answerforge.core.config.autofill import AutofillConfig
from answerforge.core.config.base import ProjectConfig, StorageConfig
from answerforge.core.config.chunking import ChunkingConfig
from answerforge.core.config.config import Config
from answerforge.core.config.llm import LLMConfig, LLMProviderConfig
from answerforge.core.config.retrieval import RetrievalConfig
from answerforge.core.config_loaders import expand_env_vars, load_config, save_config

__all__ = [
    "Config",
    "ProjectConfig",
    "StorageConfig",
    "ChunkingConfig",
    "RetrievalConfig",
    "LLMConfig",
    "LLMProviderConfig",
    "AutofillConfig",
    "expand_env_vars",
    "load_config",
    "save_config",
]
