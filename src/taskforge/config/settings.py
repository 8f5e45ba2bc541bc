"""Application configuration settings.

This module provides the AppConfig class and settings singleton.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from taskforge.config.bootstrap import DEFAULT_HOME
from taskforge.config.env_loader import Environment, get_environment, load_env_files
from taskforge.config.validators import (
    resolve_home_path,
    validate_log_format,
    validate_log_level,
    validate_skip_policy,
)
from taskforge.telemetry import get_logger

log = get_logger(__name__)


class AppConfig(BaseSettings):
    """Unified application configuration.

    Loads configuration from environment variables (``TASKFORGE_*``), ``.env``
    files and defaults. Every path-valued helper hangs off ``home`` so a single
    ``TASKFORGE_HOME`` relocates all state.
    """

    model_config = SettingsConfigDict(
        # .env files are loaded manually via env_loader to support priority order
        env_prefix="TASKFORGE_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        protected_namespaces=(),
    )

    # Environment
    environment: Environment = Field(
        default_factory=get_environment, description="Current environment"
    )
    home: Path = Field(
        default=Path(DEFAULT_HOME),
        description="Directory holding sessions, worktrees, ledger, notebooks and logs",
    )

    # Telemetry
    log_level: str = Field(
        default="WARNING",
        description="Console logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(default="console", description="Console log format (json or console)")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        return validate_log_level(v)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        return validate_log_format(v)

    @field_validator("home", mode="before")
    @classmethod
    def resolve_home(cls, v: Path | str) -> Path:
        """Expand ``~`` and resolve the home directory."""
        return resolve_home_path(v)

    # Human checkpoints
    auto_approve: bool = Field(
        default=False,
        description="Approve every checkpoint without prompting (tests, automation)",
    )

    # Cost guard
    cost_warning_threshold: float = Field(
        default=0.5, ge=0, description="Warn when a single task is estimated above this (USD)"
    )
    cost_hard_stop: float = Field(
        default=2.0, ge=0, description="Refuse tasks estimated above this (USD) unless forced"
    )

    # Escalation
    auto_escalate: bool = Field(default=True, description="Escalate insufficient answers")
    escalation_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum quality-judge confidence required to act on an INADEQUATE verdict",
    )
    quality_judge_enabled: bool = Field(
        default=False, description="Use a judge model instead of length/pattern heuristics"
    )
    quality_judge_model: str = Field(
        default="gemini-2.5-flash", description="Model asked to grade primary answers"
    )
    review_stage_model: str = Field(
        default="gemini-2.5-flash",
        description="Model for the spec-compliance stage of the two-stage review",
    )

    # Execution
    backend_timeout_seconds: float = Field(
        default=300.0, gt=0, description="Per-invocation backend timeout"
    )
    pipeline_context_budget_chars: int = Field(
        default=12000,
        ge=100,
        description="Prior-step context above this size is compressed between pipeline steps",
    )
    checkpoint_skip_policy: str = Field(
        default="continue",
        description="What a pipeline does after a declined checkpoint (continue or abort)",
    )
    brain_max_concurrency: int = Field(
        default=4, ge=1, description="Maximum concurrent notebook reads"
    )
    report_interval: int = Field(
        default=50, ge=1, description="Write routing reports every N ledger entries"
    )

    @field_validator("checkpoint_skip_policy")
    @classmethod
    def validate_checkpoint_skip_policy(cls, v: str) -> str:
        """Validate checkpoint skip policy."""
        return validate_skip_policy(v)

    # Ollama
    ollama_host: str = Field(default="http://localhost:11434", description="Ollama base URL")
    ollama_default_model: str = Field(default="qwen2.5-coder:7b", description="Fallback model")
    ollama_code_model: str = Field(default="qwen2.5-coder:7b", description="Code model tag")
    ollama_general_model: str = Field(default="llama3.1:8b", description="General model tag")
    ollama_reasoning_model: str = Field(
        default="deepseek-r1:7b", description="Reasoning model tag"
    )

    # CLI backends
    claude_default_model: str = Field(default="sonnet", description="Model passed to claude CLI")
    gemini_default_model: str = Field(
        default="gemini-2.5-pro", description="Model passed to gemini CLI"
    )

    # OpenAI-compatible HTTP backend
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", description="Base URL for chat completions"
    )
    openai_api_key: str | None = Field(default=None, description="API key for the openai backend")

    @property
    def sessions_dir(self) -> Path:
        """Directory of persisted session records."""
        return self.home / "sessions"

    @property
    def worktrees_dir(self) -> Path:
        """Directory holding per-task git worktrees."""
        return self.home / "worktrees"

    @property
    def notebooks_dir(self) -> Path:
        """Directory of knowledge-base notebooks."""
        return self.home / "notebooks"

    @property
    def reports_dir(self) -> Path:
        """Directory of routing performance reports."""
        return self.home / "reports"

    @property
    def logs_dir(self) -> Path:
        """Directory of JSON log files."""
        return self.home / "logs"

    @property
    def ledger_path(self) -> Path:
        """SQLite ledger database file."""
        return self.home / "ledger.db"

    @property
    def models_path(self) -> Path:
        """Model capability registry."""
        return self.home / "models.yaml"

    @property
    def brain_path(self) -> Path:
        """Notebook registry."""
        return self.home / "brain.yaml"

    @property
    def intent_path(self) -> Path:
        """Identity document."""
        return self.home / "Intent.md"

    @property
    def learned_patterns_path(self) -> Path:
        """Learned routing overrides keyed by ``command:complexity``."""
        return self.home / "learned-patterns.json"


_settings: AppConfig | None = None


def load_app_config() -> AppConfig:
    """Load and validate application configuration.

    This function:
    1. Loads .env files in priority order (via env_loader)
    2. Creates AppConfig instance (reads from environment variables)
    3. Validates all values using Pydantic

    Returns:
        Validated AppConfig instance.

    Raises:
        ValidationError: If configuration validation fails.
    """
    load_env_files()

    try:
        config = AppConfig()
        log.debug(
            "app_config_loaded",
            environment=config.environment.value,
            home=str(config.home),
            log_level=config.log_level,
        )
        return config
    except Exception as e:
        log.error("app_config_load_failed", error=str(e), error_type=type(e).__name__)
        raise


def get_settings() -> AppConfig:
    """Get the application settings singleton.

    Returns:
        AppConfig instance (singleton pattern).
    """
    global _settings
    if _settings is None:
        _settings = load_app_config()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next ``get_settings`` call reloads them."""
    global _settings
    _settings = None
