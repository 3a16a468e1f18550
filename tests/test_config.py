from pathlib import Path

import pytest
from pydantic import ValidationError

from ollama_agent.config import ModelConfig, Settings, load_settings


def test_defaults_without_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("OLLAMA_AGENT_MODEL", raising=False)
    settings = load_settings(tmp_path)
    assert settings.ollama_host == "http://localhost:11434"
    assert settings.match_threshold == 2.0
    assert settings.poll_interval == 0.05
    assert settings.log_level is None


def test_environment_prefix_is_read(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("OLLAMA_AGENT_MODEL", "qwen2.5-coder")
    monkeypatch.setenv("OLLAMA_AGENT_AUTO_APPROVE_SAFE", '["git.add", "fs.write"]')
    settings = load_settings(tmp_path)
    assert settings.model == "qwen2.5-coder"
    assert settings.auto_approve_safe == ["git.add", "fs.write"]


def test_workspace_env_file_is_read(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("OLLAMA_AGENT_TEMPERATURE", raising=False)
    (tmp_path / ".env").write_text("OLLAMA_AGENT_TEMPERATURE=0.1\n")
    assert load_settings(tmp_path).temperature == pytest.approx(0.1)


def test_overrides_skip_none(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("OLLAMA_AGENT_MODEL", "from-env")
    assert load_settings(tmp_path, model=None).model == "from-env"
    assert load_settings(tmp_path, model="from-flag").model == "from-flag"


def test_overrides_are_validated(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("OLLAMA_AGENT_POLL_INTERVAL", raising=False)
    with pytest.raises(ValidationError):
        load_settings(tmp_path, poll_interval=0.5)
    with pytest.raises(ValidationError):
        load_settings(tmp_path, temperature=5.0)
    assert load_settings(tmp_path, temperature="0.2").temperature == pytest.approx(0.2)


def test_poll_interval_is_capped(monkeypatch) -> None:
    monkeypatch.setenv("OLLAMA_AGENT_POLL_INTERVAL", "0.2")
    with pytest.raises(ValidationError):
        Settings()


def test_model_parameters_map_to_ollama_options() -> None:
    config = Settings(temperature=0.3, max_tokens=128, context_length=8192).model_parameters()
    assert isinstance(config, ModelConfig)
    options = config.to_options()
    assert options["temperature"] == pytest.approx(0.3)
    assert options["num_predict"] == 128
    assert options["num_ctx"] == 8192
