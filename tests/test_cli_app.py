import importlib
from collections.abc import Iterator
from pathlib import Path

import pytest
from conftest import FakeBackend
from typer.testing import CliRunner

from ollama_agent.errors import BackendUnavailableError
from ollama_agent.integrations.ollama import ModelDetails, ModelInfo

cli_app_module = importlib.import_module("ollama_agent.cli.app")


class _FakeOllama(FakeBackend):
    def __init__(self, *args, healthy: bool = True, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.healthy = healthy
        self.pulled: list[str] = []
        self.deleted: list[str] = []

    def pull(self, name: str) -> Iterator[str]:
        self.pulled.append(name)
        yield from ("pulling manifest", "pulling 8eeb52dfb3bb 50%", "pulling 8eeb52dfb3bb 50%", "success")

    def show(self, name: str) -> ModelDetails:
        return ModelDetails(name=name, family="llama", parameter_size="3.2B", context_length=131072)

    def delete(self, name: str) -> None:
        self.deleted.append(name)

    def is_healthy(self) -> bool:
        return self.healthy


@pytest.fixture(autouse=True)
def _quiet_cli(monkeypatch) -> None:
    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.delenv("OLLAMA_AGENT_MODEL", raising=False)
    monkeypatch.setattr(cli_app_module, "configure_logging", lambda **kwargs: None)


def _use_backend(monkeypatch, backend: _FakeOllama) -> None:
    monkeypatch.setattr(cli_app_module, "_create_backend", lambda settings: backend)


def test_run_direct_command_exits_zero(monkeypatch, tmp_path: Path) -> None:
    (tmp_path / "hello.txt").write_text("hi")
    backend = _FakeOllama()
    _use_backend(monkeypatch, backend)

    result = CliRunner().invoke(cli_app_module.app, ["run", "ls", "--workspace", str(tmp_path)])

    assert result.exit_code == 0
    assert "hello.txt" in result.stdout
    assert backend.prompts == []


def test_run_denied_request_exits_one(monkeypatch, tmp_path: Path) -> None:
    _use_backend(monkeypatch, _FakeOllama(["I will delete all files in /"]))

    result = CliRunner().invoke(
        cli_app_module.app,
        ["run", "delete all files in /", "--workspace", str(tmp_path)],
        input="n\n",
    )

    assert result.exit_code == 1
    assert "POTENTIALLY DANGEROUS" in result.stdout
    assert "Action denied" in result.stdout


def test_run_reports_unreachable_backend(monkeypatch, tmp_path: Path) -> None:
    _use_backend(monkeypatch, _FakeOllama(error=BackendUnavailableError("connection refused")))

    result = CliRunner().invoke(cli_app_module.app, ["run", "hello there", "--workspace", str(tmp_path)])

    assert result.exit_code == 1
    assert "connection refused" in result.stdout


def test_run_rejects_missing_workspace(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli_app_module.app, ["run", "ls", "--workspace", str(tmp_path / "nope")])
    assert result.exit_code == 1
    assert "Workspace does not exist" in result.stdout


def test_tools_command_lists_catalog(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli_app_module.app, ["tools", "--workspace", str(tmp_path)])
    assert result.exit_code == 0
    assert "fs.delete" in result.stdout
    assert "git.push" in result.stdout


def test_models_command_marks_active_model(monkeypatch, tmp_path: Path) -> None:
    installed = [ModelInfo(name="llama3.2", size=2_147_483_648, family="llama", parameter_size="3B")]
    _use_backend(monkeypatch, _FakeOllama(models=installed))

    result = CliRunner().invoke(cli_app_module.app, ["models", "--workspace", str(tmp_path)])

    assert result.exit_code == 0
    assert "llama3.2 (active)" in result.stdout
    assert "2.0 GB" in result.stdout


def test_status_command_fails_when_unhealthy(monkeypatch, tmp_path: Path) -> None:
    _use_backend(monkeypatch, _FakeOllama(healthy=False))

    result = CliRunner().invoke(cli_app_module.app, ["status", "--workspace", str(tmp_path)])

    assert result.exit_code == 1
    assert "not reachable" in result.stdout


def test_status_command_reports_running(monkeypatch, tmp_path: Path) -> None:
    _use_backend(monkeypatch, _FakeOllama())

    result = CliRunner().invoke(cli_app_module.app, ["status", "--workspace", str(tmp_path), "--model", "mistral"])

    assert result.exit_code == 0
    assert "Ollama is running" in result.stdout
    assert "mistral" in result.stdout


def test_pull_command_prints_each_progress_line_once(monkeypatch, tmp_path: Path) -> None:
    backend = _FakeOllama()
    _use_backend(monkeypatch, backend)

    result = CliRunner().invoke(cli_app_module.app, ["pull", "llama3.2", "--workspace", str(tmp_path)])

    assert result.exit_code == 0
    assert backend.pulled == ["llama3.2"]
    assert result.stdout.count("pulling 8eeb52dfb3bb 50%") == 1
    assert "Pulled llama3.2" in result.stdout


def test_show_command_renders_details(monkeypatch, tmp_path: Path) -> None:
    _use_backend(monkeypatch, _FakeOllama())

    result = CliRunner().invoke(cli_app_module.app, ["show", "llama3.2", "--workspace", str(tmp_path)])

    assert result.exit_code == 0
    assert "3.2B" in result.stdout
    assert "131072" in result.stdout


def test_delete_command_asks_first(monkeypatch, tmp_path: Path) -> None:
    backend = _FakeOllama()
    _use_backend(monkeypatch, backend)

    declined = CliRunner().invoke(
        cli_app_module.app,
        ["delete", "llama3.2", "--workspace", str(tmp_path)],
        input="n\n",
    )
    assert declined.exit_code == 1
    assert backend.deleted == []

    confirmed = CliRunner().invoke(cli_app_module.app, ["delete", "llama3.2", "--yes", "--workspace", str(tmp_path)])
    assert confirmed.exit_code == 0
    assert backend.deleted == ["llama3.2"]
    assert "Deleted llama3.2" in confirmed.stdout
