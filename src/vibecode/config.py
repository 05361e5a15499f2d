"""Configuration management - Pydantic model with YAML loading and CLI overrides."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

DEFAULT_CONFIG_DIR = Path.home() / ".vibecode"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

OLLAMA_DEFAULT_API_BASE = "http://localhost:11434"
DEFAULT_MODEL = "ollama_chat/qwen3-coder:latest"


def is_ollama_model(model: str) -> bool:
    """Return True if the model string uses the Ollama provider prefix."""
    return model.startswith(("ollama/", "ollama_chat/"))


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


class AgentConfig(BaseModel):
    """Agent configuration with validation."""

    model_config = ConfigDict(extra="forbid")

    model: str = DEFAULT_MODEL
    api_base: str
    api_key: str | None = None
    https_proxy: str | None = None

    # Model sampling parameters
    temperature: float = 0.0
    max_output_tokens: int = 4096
    top_p: float = 1.0
    request_timeout: float = 300.0

    # Workspace and execution
    tree_max_depth: int = 3
    max_file_chars: int = 30000
    script_language: Literal["ruby", "python"] = "ruby"
    vcs_program: str = "git"
    command_timeout: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _apply_ollama_defaults(cls, values: dict) -> dict:
        """Auto-set api_base for Ollama models when not explicitly provided."""
        if isinstance(values, dict) and "api_base" not in values:
            if is_ollama_model(values.get("model", DEFAULT_MODEL)):
                values = dict(values)
                values["api_base"] = OLLAMA_DEFAULT_API_BASE
        return values

    @field_validator("api_base")
    @classmethod
    def validate_api_base(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("tree_max_depth")
    @classmethod
    def validate_tree_depth(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Must be zero or greater")
        return v

    @field_validator("command_timeout")
    @classmethod
    def validate_command_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("Must be a positive number of seconds")
        return v

    def __repr__(self) -> str:
        api_key_display = "***" if self.api_key else "None"
        return (
            f"AgentConfig(model={self.model!r}, "
            f"api_base={self.api_base!r}, "
            f"api_key={api_key_display!r}, "
            f"script_language={self.script_language!r}, "
            f"temperature={self.temperature!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


def _format_validation_error(e: ValidationError) -> str:
    errors = []
    for err in e.errors():
        field = ".".join(str(loc) for loc in err["loc"])
        errors.append(f"  - {field}: {err['msg']}")
    return "\n".join(errors)


def ensure_config(config_path: Path | None = None) -> Path:
    """Write a default config file if none exists yet.

    Returns:
        The config file path.
    """
    path = config_path or DEFAULT_CONFIG_FILE
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump({"model": DEFAULT_MODEL}), encoding="utf-8")
    return path


def load_config(config_path: Path | None = None) -> AgentConfig:
    """Load and validate config from YAML file.

    Args:
        config_path: Path to config file. Defaults to ~/.vibecode/config.yaml.

    Returns:
        Validated AgentConfig instance.

    Raises:
        ConfigError: If file is missing, empty, or contains invalid config.
    """
    path = config_path or DEFAULT_CONFIG_FILE

    if not path.exists():
        raise ConfigError(
            f"Configuration file not found.\n\n"
            f"Expected location: {path}\n\n"
            f"For local Ollama models (api_base defaults to {OLLAMA_DEFAULT_API_BASE}):\n"
            f"  model: {DEFAULT_MODEL}\n\n"
            f"For LiteLLM proxy / OpenAI-compatible APIs:\n"
            f"  model: litellm/gpt-4o\n"
            f"  api_base: http://localhost:4000"
        )

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}\n\n  {e}") from None

    if not isinstance(data, dict):
        raise ConfigError(
            f"Invalid configuration in {path}\n\n"
            f"  Config file is empty or not a valid YAML mapping.\n\n"
            f"Minimal example:\n"
            f"  model: {DEFAULT_MODEL}"
        )

    try:
        return AgentConfig(**data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in {path}\n\n{_format_validation_error(e)}"
        ) from None


def save_config(config: AgentConfig, config_path: Path | None = None) -> Path:
    """Persist config as YAML, omitting unset optional values."""
    path = config_path or DEFAULT_CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(exclude_none=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


def apply_cli_overrides(
    config: AgentConfig,
    model: str | None = None,
    api_base: str | None = None,
    temperature: float | None = None,
    script_language: str | None = None,
) -> AgentConfig:
    """Apply CLI flag overrides to config. Returns a new AgentConfig instance.

    Override precedence: Defaults → YAML → CLI flags.
    """
    overrides = {}
    if model is not None:
        overrides["model"] = model
        if api_base is None and is_ollama_model(model) and not is_ollama_model(config.model):
            overrides["api_base"] = OLLAMA_DEFAULT_API_BASE
    if api_base is not None:
        overrides["api_base"] = api_base
    if temperature is not None:
        overrides["temperature"] = temperature
    if script_language is not None:
        overrides["script_language"] = script_language

    if not overrides:
        return config

    try:
        return AgentConfig.model_validate(config.model_dump() | overrides)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid CLI override:\n\n{_format_validation_error(e)}"
        ) from None
