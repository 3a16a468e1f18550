"""CLI main module for ollama-agent."""

from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from pydantic import ValidationError
from rich.markup import escape

from ollama_agent.config import Settings, load_settings
from ollama_agent.core.session import TurnOutcome
from ollama_agent.errors import BackendFatalError, BackendUnavailableError, ConfigurationError
from ollama_agent.integrations.ollama import OllamaBackend
from ollama_agent.logging_utils import LogProfile, configure_logging
from ollama_agent.runtime import AgentRuntime
from ollama_agent.tools import build_builtin_registry

from .live import RenderingListener, run_chat
from .render import Renderer, create_cli_renderer

app = typer.Typer(
    name="ollama-agent",
    help="Terminal assistant that runs local tools through a local Ollama model.",
    add_completion=False,
    rich_markup_mode="rich",
)

WorkspaceOption = Annotated[
    Optional[Path],
    typer.Option("--workspace", "-w", help="Directory tools run in (defaults to the current directory)"),
]
ModelOption = Annotated[Optional[str], typer.Option("--model", "-m", help="Ollama model to use")]
ModelArgument = Annotated[str, typer.Argument(help="Model name, e.g. llama3.2")]


@app.callback(invoke_without_command=True)
def main_callback(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        # Default to chat mode
        chat()


def _exit_with_error(renderer: Renderer, message: str) -> NoReturn:
    renderer.error(message)
    raise typer.Exit(1)


def _create_backend(settings: Settings) -> OllamaBackend:
    return OllamaBackend(settings.ollama_host, settings.model, timeout=settings.request_timeout)


def _load(renderer: Renderer, workspace: Optional[Path], model: Optional[str]) -> tuple[Path, Settings]:
    workspace_path = (workspace or Path.cwd()).expanduser()
    if not workspace_path.is_dir():
        _exit_with_error(renderer, f"Workspace does not exist: {workspace_path}")
    try:
        settings = load_settings(workspace_path, model=model)
    except ValidationError as exc:
        _exit_with_error(renderer, f"Invalid configuration: {exc!s}")
    return workspace_path, settings


def _build_runtime(
    renderer: Renderer,
    workspace: Optional[Path],
    model: Optional[str],
    *,
    profile: LogProfile,
) -> AgentRuntime:
    workspace_path, settings = _load(renderer, workspace, model)
    configure_logging(profile=profile, level=settings.log_level)
    try:
        return AgentRuntime.build(
            workspace_path,
            settings,
            backend=_create_backend(settings),
            confirm=renderer.confirm,
            disambiguate=renderer.choose_tool,
        )
    except ConfigurationError as exc:
        _exit_with_error(renderer, str(exc))


@app.command()
def chat(workspace: WorkspaceOption = None, model: ModelOption = None) -> None:
    """Start an interactive session."""
    renderer = create_cli_renderer()
    runtime = _build_runtime(renderer, workspace, model, profile="chat")
    try:
        run_chat(runtime, renderer)
    except BackendFatalError as exc:
        _exit_with_error(renderer, f"Model backend failed: {exc!s}")


@app.command()
def run(
    utterance: Annotated[str, typer.Argument(help="One command or request, e.g. 'git status'")],
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Run a single turn and exit."""
    renderer = create_cli_renderer()
    runtime = _build_runtime(renderer, workspace, model, profile="default")
    if not utterance.strip():
        _exit_with_error(renderer, "Nothing to run")

    try:
        turn = runtime.pipeline.run(utterance, listener=RenderingListener(renderer))
    except BackendFatalError as exc:
        _exit_with_error(renderer, f"Model backend failed: {exc!s}")
    renderer.turn_summary(turn)
    if turn.outcome is not TurnOutcome.COMPLETED:
        raise typer.Exit(1)


@app.command()
def models(workspace: WorkspaceOption = None) -> None:
    """List the models installed on the Ollama server."""
    renderer = create_cli_renderer()
    _, settings = _load(renderer, workspace, None)
    try:
        installed = _create_backend(settings).list_models()
    except (BackendUnavailableError, BackendFatalError) as exc:
        _exit_with_error(renderer, str(exc))
    if not installed:
        renderer.info("No models installed. Pull one with: ollama-agent pull llama3.2")
        return
    renderer.models(installed, settings.model)


@app.command()
def pull(name: ModelArgument, workspace: WorkspaceOption = None) -> None:
    """Download a model onto the Ollama server."""
    renderer = create_cli_renderer()
    _, settings = _load(renderer, workspace, None)
    last = ""
    try:
        for line in _create_backend(settings).pull(name):
            if line != last:
                renderer.info(escape(line))
                last = line
    except (BackendUnavailableError, BackendFatalError) as exc:
        _exit_with_error(renderer, str(exc))
    renderer.info(f"[green]Pulled[/green] {escape(name)}")


@app.command()
def show(name: ModelArgument, workspace: WorkspaceOption = None) -> None:
    """Show details of an installed model."""
    renderer = create_cli_renderer()
    _, settings = _load(renderer, workspace, None)
    try:
        details = _create_backend(settings).show(name)
    except (BackendUnavailableError, BackendFatalError) as exc:
        _exit_with_error(renderer, str(exc))
    renderer.model_details(details)


@app.command()
def delete(
    name: ModelArgument,
    workspace: WorkspaceOption = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Remove an installed model from the Ollama server."""
    renderer = create_cli_renderer()
    _, settings = _load(renderer, workspace, None)
    if not yes and not renderer.ask(f"Delete model {escape(name)}?"):
        renderer.info("Nothing deleted")
        raise typer.Exit(1)
    try:
        _create_backend(settings).delete(name)
    except (BackendUnavailableError, BackendFatalError) as exc:
        _exit_with_error(renderer, str(exc))
    renderer.info(f"[green]Deleted[/green] {escape(name)}")


@app.command()
def status(workspace: WorkspaceOption = None, model: ModelOption = None) -> None:
    """Check that the Ollama server is reachable."""
    renderer = create_cli_renderer()
    _, settings = _load(renderer, workspace, model)
    if not _create_backend(settings).is_healthy():
        _exit_with_error(renderer, f"Ollama is not reachable at {settings.ollama_host}")
    renderer.info(f"[green]Ollama is running[/green] at {settings.ollama_host} (model: {settings.model})")


@app.command()
def tools(workspace: WorkspaceOption = None) -> None:
    """List the builtin tools and their risk tiers."""
    renderer = create_cli_renderer()
    workspace_path, settings = _load(renderer, workspace, None)
    registry = build_builtin_registry(workspace_path, command_timeout=settings.command_timeout)
    renderer.tools(registry.capabilities())


if __name__ == "__main__":
    app()
