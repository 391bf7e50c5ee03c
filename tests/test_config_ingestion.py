"""Unit tests for config.json loading and validation."""
import json
from pathlib import Path

import pytest

from agents.config_ingestion_agent import ConfigIngestionAgent, ConfigValidationError


def test_valid_config_gets_cli_default(config, config_file, monkeypatch):
    monkeypatch.delenv("CLAUDE_CLI", raising=False)
    config.pop("cli")
    config_file.write_text(json.dumps(config), encoding="utf-8")

    loaded = ConfigIngestionAgent(config_file).load_and_validate()
    assert loaded["cli"]["command"] == "claude"
    assert loaded["paths"]["forms"] == "Forms"


def test_env_var_overrides_cli_command(config_file, monkeypatch):
    monkeypatch.setenv("CLAUDE_CLI", "/opt/bin/claude-dev")
    loaded = ConfigIngestionAgent(config_file).load_and_validate()
    assert loaded["cli"]["command"] == "/opt/bin/claude-dev"


def test_missing_required_key_fails_validation(config, config_file):
    del config["referenceProjects"]["crewingUi"]
    config_file.write_text(json.dumps(config), encoding="utf-8")
    with pytest.raises(ConfigValidationError, match="crewingUi"):
        ConfigIngestionAgent(config_file).load_and_validate()


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigIngestionAgent(tmp_path / "config.json").load_and_validate()


def test_shipped_config_is_valid(monkeypatch):
    """config/config.json in the repository passes its own schema."""
    monkeypatch.delenv("CLAUDE_CLI", raising=False)
    shipped = Path(__file__).parent.parent / "config" / "config.json"
    loaded  = ConfigIngestionAgent(shipped).load_and_validate()
    assert loaded["cli"]["command"] == "claude"
