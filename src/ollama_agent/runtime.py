"""Application runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from loguru import logger

from ollama_agent.config import Settings
from ollama_agent.core.extractor import ToolCallExtractor
from ollama_agent.core.permissions import ConfirmFn, PermissionGate
from ollama_agent.core.pipeline import DisambiguateFn, TurnPipeline
from ollama_agent.core.router import UtteranceRouter
from ollama_agent.core.session import Session
from ollama_agent.core.stream import GenerationStreamController, ModelBackend
from ollama_agent.errors import ConfigurationError, TurnInProgressError
from ollama_agent.integrations.ollama import ModelInfo
from ollama_agent.tools import ToolRegistry, build_builtin_registry
from ollama_agent.types import RiskTier


class ManagedBackend(ModelBackend, Protocol):
    """A model backend whose active model can be listed and switched."""

    model: str

    def list_models(self) -> list[ModelInfo]: ...


@dataclass
class AgentRuntime:
    """Everything one interactive session needs, built once at start-up."""

    workspace: Path
    settings: Settings
    registry: ToolRegistry
    session: Session
    backend: ManagedBackend
    pipeline: TurnPipeline

    @classmethod
    def build(
        cls,
        workspace: Path,
        settings: Settings,
        *,
        backend: ManagedBackend,
        confirm: ConfirmFn,
        disambiguate: DisambiguateFn | None = None,
    ) -> AgentRuntime:
        workspace = workspace.expanduser().resolve()
        if not workspace.is_dir():
            raise ConfigurationError(f"workspace is not a directory: {workspace}")

        registry = build_builtin_registry(workspace, command_timeout=settings.command_timeout)
        _check_auto_approve(registry, settings.auto_approve_safe)

        session = Session(settings.model, settings.model_parameters())
        pipeline = TurnPipeline(
            session=session,
            registry=registry,
            router=UtteranceRouter(registry),
            extractor=ToolCallExtractor(registry, threshold=settings.match_threshold),
            streams=GenerationStreamController(backend, poll_interval=settings.poll_interval),
            gate=PermissionGate(registry, auto_approve=settings.auto_approve_safe),
            confirm=confirm,
            disambiguate=disambiguate,
            history_turns=settings.history_turns,
        )
        logger.info(
            "runtime.ready workspace={} model={} tools={}",
            workspace,
            settings.model,
            len(registry.capabilities()),
        )
        return cls(
            workspace=workspace,
            settings=settings,
            registry=registry,
            session=session,
            backend=backend,
            pipeline=pipeline,
        )

    def switch_model(self, name: str) -> str:
        """Make an installed model the active one and return its full name.

        ``llama3.2`` also matches ``llama3.2:latest``. Raises
        ``ConfigurationError`` when the server has no such model.
        """
        if self.pipeline.busy:
            raise TurnInProgressError("cannot switch models while a turn is running")
        installed = [model.name for model in self.backend.list_models()]
        match = next((candidate for candidate in installed if candidate in (name, f"{name}:latest")), None)
        if match is None:
            available = ", ".join(installed) or "none"
            raise ConfigurationError(f"Model '{name}' not found. Available models: {available}")
        self.backend.model = match
        self.session.switch_model(match)
        logger.info("runtime.model.switch model={}", match)
        return match


def _check_auto_approve(registry: ToolRegistry, tool_ids: list[str]) -> None:
    for tool_id in tool_ids:
        capability = registry.get(tool_id)
        if capability is None:
            raise ConfigurationError(f"auto_approve_safe names an unknown tool: {tool_id}")
        if capability.risk is RiskTier.HIGH:
            logger.warning("runtime.auto_approve.ignored tool={} risk=high", tool_id)
