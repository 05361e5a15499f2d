"""Tests for configuration system."""

import pytest
import yaml
from pydantic import ValidationError

from vibecode.config import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    DEFAULT_MODEL,
    OLLAMA_DEFAULT_API_BASE,
    AgentConfig,
    ConfigError,
    apply_cli_overrides,
    ensure_config,
    load_config,
    save_config,
)


class TestAgentConfigModel:
    """Test Pydantic config model validation."""

    def test_defaults(self):
        """An empty config targets the local Ollama model."""
        config = AgentConfig()
        assert config.model == DEFAULT_MODEL
        assert config.api_base == OLLAMA_DEFAULT_API_BASE
        assert config.script_language == "ruby"
        assert config.vcs_program == "git"
        assert config.tree_max_depth == 3
        assert config.command_timeout is None

    def test_non_ollama_model_requires_api_base(self):
        with pytest.raises(ValidationError):
            AgentConfig(model="litellm/gpt-4o")

    def test_unknown_field_rejected(self):
        """Extra fields are rejected (ConfigDict extra=forbid)."""
        with pytest.raises(ValidationError):
            AgentConfig(unknown_field="value")

    def test_invalid_api_base_no_protocol(self):
        with pytest.raises(ValidationError):
            AgentConfig(model="litellm/gpt-4o", api_base="localhost:4000")

    def test_api_base_trailing_slash_stripped(self):
        config = AgentConfig(model="litellm/gpt-4o", api_base="http://localhost:4000/")
        assert config.api_base == "http://localhost:4000"

    def test_unknown_script_language_rejected(self):
        with pytest.raises(ValidationError):
            AgentConfig(script_language="perl")

    def test_negative_tree_depth_rejected(self):
        with pytest.raises(ValidationError):
            AgentConfig(tree_max_depth=-1)

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            AgentConfig(command_timeout=0)

    def test_api_key_masked_in_repr(self):
        config = AgentConfig(model="litellm/gpt-4o", api_base="http://x", api_key="sk-secret")
        assert "sk-secret" not in repr(config)
        assert "***" in str(config)

    def test_default_config_paths(self):
        assert DEFAULT_CONFIG_DIR.name == ".vibecode"
        assert DEFAULT_CONFIG_FILE == DEFAULT_CONFIG_DIR / "config.yaml"


class TestLoadConfig:
    """Loading YAML configuration files."""

    def test_missing_config_file_raises_error(self, tmp_path):
        with pytest.raises(ConfigError, match="Configuration file not found"):
            load_config(tmp_path / "nonexistent" / "config.yaml")

    def test_valid_yaml_loads(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({
            "model": "litellm/gpt-4o",
            "api_base": "http://localhost:4000",
            "script_language": "python",
            "command_timeout": 30,
        }))
        config = load_config(config_file)
        assert config.model == "litellm/gpt-4o"
        assert config.script_language == "python"
        assert config.command_timeout == 30

    def test_invalid_yaml_syntax(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("model: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_file)

    def test_empty_yaml_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        with pytest.raises(ConfigError, match="empty or not a valid YAML mapping"):
            load_config(config_file)

    def test_invalid_field_reported(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"model": "litellm/gpt-4o", "api_base": "nope"}))
        with pytest.raises(ConfigError, match="api_base"):
            load_config(config_file)


class TestEnsureAndSave:
    """Creating the default file and persisting changes."""

    def test_ensure_creates_default(self, tmp_path):
        path = ensure_config(tmp_path / "dir" / "config.yaml")
        assert path.exists()
        assert load_config(path).model == DEFAULT_MODEL

    def test_ensure_keeps_existing(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"model": "ollama_chat/llama3"}))
        ensure_config(config_file)
        assert load_config(config_file).model == "ollama_chat/llama3"

    def test_save_round_trip(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config = AgentConfig(model="ollama_chat/llama3", command_timeout=12)
        save_config(config, config_file)
        assert load_config(config_file) == config
        assert "api_key" not in config_file.read_text()


class TestCliOverrides:
    """apply_cli_overrides() returns a new validated config."""

    def test_no_overrides_returns_same(self):
        config = AgentConfig()
        assert apply_cli_overrides(config) is config

    def test_model_override(self):
        config = AgentConfig(model="litellm/gpt-4o", api_base="http://localhost:4000")
        updated = apply_cli_overrides(config, model="litellm/claude")
        assert updated.model == "litellm/claude"
        assert updated.api_base == "http://localhost:4000"
        assert config.model == "litellm/gpt-4o"

    def test_switch_to_ollama_resets_api_base(self):
        config = AgentConfig(model="litellm/gpt-4o", api_base="http://localhost:4000")
        updated = apply_cli_overrides(config, model="ollama_chat/llama3")
        assert updated.api_base == OLLAMA_DEFAULT_API_BASE

    def test_script_language_override(self):
        assert apply_cli_overrides(AgentConfig(), script_language="python").script_language == "python"

    def test_invalid_override_rejected(self):
        with pytest.raises(ConfigError, match="Invalid CLI override"):
            apply_cli_overrides(AgentConfig(), api_base="ftp://nope")
