"""
Main configuration class for AnswerForge.

This module provides the Config dataclass that aggregates all sub-configs
and handles validation, path management, and dictionary parsing.

Architecture Context
--------------------
The Config object is created once at startup (usually by the CLI) and the
values it holds are passed explicitly to the components that need them:

    answerforge.yaml
           ↓
    load_config() → Config object
           ↓
    chunking → DocumentIngestor, retrieval → AnswerEngine,
    autofill → QuestionnaireAutofill, llm → OpenAIClient

Configuration Hierarchy
-----------------------
    Config
    ├── ProjectConfig      # Project name, data directory, log settings
    ├── StorageConfig      # SQLite database path
    ├── ChunkingConfig     # Window size and overlap
    ├── RetrievalConfig    # top-k, snippet length, similarity floor, rerank
    ├── LLMConfig          # OpenAI models, API key, citation cap
    └── AutofillConfig     # Batch size, delay, debug flags

Environment Variables
---------------------
Secrets use ${VAR_NAME} syntax inside YAML:

    llm:
      openai:
        api_key: ${OPENAI_API_KEY}
        model: ${ANSWERFORGE_CHAT_MODEL:gpt-4.1-mini}
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from answerforge.core.config.autofill import AutofillConfig
from answerforge.core.config.base import ProjectConfig, StorageConfig
from answerforge.core.config.chunking import ChunkingConfig
from answerforge.core.config.llm import LLMConfig, LLMProviderConfig
from answerforge.core.config.retrieval import RetrievalConfig
from answerforge.core.exceptions import ConfigurationError

MIN_SNIPPET_CHARS = 80


@dataclass
class Config:
    """Main AnswerForge configuration."""

    project: ProjectConfig = field(default_factory=ProjectConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    autofill: AutofillConfig = field(default_factory=AutofillConfig)

    # Runtime paths (set after loading)
    _base_path: Path = field(default_factory=Path.cwd, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigurationError: On the first out-of-range value.
        """
        chunking = self.chunking
        if chunking.max_chars <= 0:
            raise ConfigurationError("chunking.max_chars must be positive")
        if chunking.overlap_chars < 0 or chunking.overlap_chars >= chunking.max_chars:
            raise ConfigurationError(
                "chunking.overlap_chars must be >= 0 and less than chunking.max_chars"
            )

        retrieval = self.retrieval
        if retrieval.top_k < 1:
            raise ConfigurationError("retrieval.top_k must be at least 1")
        if retrieval.snippet_chars < MIN_SNIPPET_CHARS:
            raise ConfigurationError(
                f"retrieval.snippet_chars must be at least {MIN_SNIPPET_CHARS}"
            )
        if not 0.0 <= retrieval.min_top_similarity <= 1.0:
            raise ConfigurationError(
                "retrieval.min_top_similarity must be between 0 and 1"
            )
        if retrieval.vector_weight < 0 or retrieval.lexical_weight < 0:
            raise ConfigurationError("retrieval rerank weights must be >= 0")
        if retrieval.vector_weight + retrieval.lexical_weight <= 0:
            raise ConfigurationError(
                "retrieval.vector_weight and retrieval.lexical_weight cannot both be 0"
            )

        if self.llm.max_citations < 1:
            raise ConfigurationError("llm.max_citations must be at least 1")

        autofill = self.autofill
        if autofill.batch_size < 1:
            raise ConfigurationError("autofill.batch_size must be at least 1")
        if autofill.question_delay_seconds < 0:
            raise ConfigurationError("autofill.question_delay_seconds must be >= 0")
        if autofill.max_batches < 1:
            raise ConfigurationError("autofill.max_batches must be at least 1")

        if self.project.data_dir in ("/", "\\", ""):
            raise ConfigurationError(
                f"project.data_dir must not be root or empty: {self.project.data_dir!r}"
            )

    @property
    def base_path(self) -> Path:
        """Directory that relative paths resolve against."""
        return self._base_path

    @property
    def data_path(self) -> Path:
        """Get absolute path to data directory."""
        return self._resolve(self.project.data_dir)

    @property
    def db_path(self) -> Path:
        """Get absolute path to the SQLite database."""
        return self._resolve(self.storage.sqlite_path)

    @property
    def log_path(self) -> Optional[Path]:
        """Get the log file path, or None when file logging is off."""
        if not self.project.log_file:
            return None
        return self._resolve(self.project.log_file)

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        if path.is_absolute():
            return path
        return self._base_path / path

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        result: dict[str, Any] = {}
        for key, value in asdict(self).items():
            if key.startswith("_"):
                continue
            result[key] = value
        return result

    @staticmethod
    def _filter_fields(cls_type: Any, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Filter dict to only keys that match dataclass fields, handling None."""
        if not data:
            return {}
        valid_keys = {f.name for f in fields(cls_type)}
        return {k: v for k, v in data.items() if k in valid_keys}

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_path: Optional[Path] = None
    ) -> "Config":
        """Create Config from dictionary."""
        # Import here to avoid circular dependency
        from answerforge.core.config_loaders import expand_env_vars

        data = expand_env_vars(data or {})

        config = cls(
            project=ProjectConfig(
                **cls._filter_fields(ProjectConfig, data.get("project"))
            ),
            storage=StorageConfig(
                **cls._filter_fields(StorageConfig, data.get("storage"))
            ),
            chunking=ChunkingConfig(
                **cls._filter_fields(ChunkingConfig, data.get("chunking"))
            ),
            retrieval=RetrievalConfig(
                **cls._filter_fields(RetrievalConfig, data.get("retrieval"))
            ),
            llm=cls._parse_llm_config(data),
            autofill=AutofillConfig(
                **cls._filter_fields(AutofillConfig, data.get("autofill"))
            ),
        )

        if base_path:
            config._base_path = base_path

        return config

    @classmethod
    def _parse_llm_config(cls, data: Dict[str, Any]) -> LLMConfig:
        """Parse LLM config with the nested provider block."""
        llm_data = data.get("llm") or {}
        openai = LLMProviderConfig(
            **cls._filter_fields(LLMProviderConfig, llm_data.get("openai"))
        )
        return LLMConfig(
            openai=openai,
            max_citations=llm_data.get("max_citations", 5),
        )
