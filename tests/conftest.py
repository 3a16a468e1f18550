from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import pytest

from ollama_agent.config import ModelConfig
from ollama_agent.core.extractor import ToolCallExtractor
from ollama_agent.core.permissions import ApprovalRequest, PermissionGate
from ollama_agent.core.pipeline import DisambiguateFn, TurnPipeline
from ollama_agent.core.router import UtteranceRouter
from ollama_agent.core.session import Session
from ollama_agent.core.stream import GenerationStreamController
from ollama_agent.integrations.ollama import ModelInfo
from ollama_agent.tools import ToolRegistry, build_builtin_registry


class FakeBackend:
    """Scripted stand-in for the Ollama backend."""

    def __init__(
        self,
        fragments: Sequence[str] = (),
        *,
        error: Exception | None = None,
        delay: float = 0.0,
        hold_after: int | None = None,
        model: str = "test-model",
        models: Sequence[ModelInfo] = (),
    ) -> None:
        self.fragments = list(fragments)
        self.model = model
        self.installed = list(models)
        self.error = error
        self.delay = delay
        self.hold_after = hold_after
        self.release = threading.Event()
        self.prompts: list[str] = []
        self.configs: list[ModelConfig] = []

    def stream(self, prompt: str, config: ModelConfig) -> Iterator[str]:
        self.prompts.append(prompt)
        self.configs.append(config)
        for index, fragment in enumerate(self.fragments):
            if self.hold_after is not None and index == self.hold_after:
                self.release.wait(timeout=5)
            if self.delay:
                time.sleep(self.delay)
            yield fragment
        if self.error is not None:
            raise self.error

    def list_models(self) -> list[ModelInfo]:
        return self.installed


class RecordingConfirm:
    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.requests: list[ApprovalRequest] = []

    def __call__(self, request: ApprovalRequest) -> bool:
        self.requests.append(request)
        return self.answer


@pytest.fixture
def registry(tmp_path: Path) -> ToolRegistry:
    return build_builtin_registry(tmp_path, command_timeout=5.0)


@pytest.fixture
def make_pipeline(registry: ToolRegistry) -> Callable[..., TurnPipeline]:
    def _make(
        backend: FakeBackend | None = None,
        *,
        confirm: RecordingConfirm | None = None,
        disambiguate: DisambiguateFn | None = None,
        auto_approve: Sequence[str] = (),
        threshold: float = 2.0,
    ) -> TurnPipeline:
        return TurnPipeline(
            session=Session("test-model", ModelConfig()),
            registry=registry,
            router=UtteranceRouter(registry),
            extractor=ToolCallExtractor(registry, threshold=threshold),
            streams=GenerationStreamController(backend or FakeBackend(), poll_interval=0.01),
            gate=PermissionGate(registry, auto_approve=auto_approve),
            confirm=confirm or RecordingConfirm(False),
            disambiguate=disambiguate,
        )

    return _make
