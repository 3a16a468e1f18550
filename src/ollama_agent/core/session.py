"""Session state, turns and running statistics."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import StrEnum

from ollama_agent.config import ModelConfig
from ollama_agent.core.types import Classification, ErrorKind
from ollama_agent.types import PermissionDecision, ToolInvocation, ToolResult


class TurnOutcome(StrEnum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class TurnError:
    kind: ErrorKind
    detail: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.detail}"


@dataclass(frozen=True)
class Turn:
    """Immutable record of one processed input."""

    raw_input: str
    classification: Classification
    outcome: TurnOutcome
    started_at: float
    ended_at: float
    first_token_at: float | None = None
    generated_text: str | None = None
    invocation: ToolInvocation | None = None
    permission: PermissionDecision | None = None
    result: ToolResult | None = None
    error: TurnError | None = None

    @property
    def latency(self) -> float:
        return max(0.0, self.ended_at - self.started_at)

    @property
    def time_to_first_token(self) -> float | None:
        if self.first_token_at is None:
            return None
        return max(0.0, self.first_token_at - self.started_at)

    @property
    def tool_executed(self) -> bool:
        return self.result is not None


@dataclass(frozen=True)
class Statistics:
    """Aggregate counters over the turns of one session."""

    commands_processed: int = 0
    tools_executed: int = 0
    successes: int = 0
    failures: int = 0
    cancellations: int = 0
    average_latency: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.commands_processed == 0:
            return 0.0
        return self.successes / self.commands_processed

    def observe(self, turn: Turn) -> Statistics:
        """Return the statistics after one more turn."""
        processed = self.commands_processed + 1
        return replace(
            self,
            commands_processed=processed,
            tools_executed=self.tools_executed + (1 if turn.tool_executed else 0),
            successes=self.successes + (1 if turn.outcome is TurnOutcome.COMPLETED else 0),
            failures=self.failures + (1 if turn.outcome is TurnOutcome.FAILED else 0),
            cancellations=self.cancellations + (1 if turn.outcome is TurnOutcome.CANCELLED else 0),
            average_latency=self.average_latency + (turn.latency - self.average_latency) / processed,
        )

    @classmethod
    def from_turns(cls, turns: Iterable[Turn]) -> Statistics:
        stats = cls()
        for turn in turns:
            stats = stats.observe(turn)
        return stats


@dataclass(frozen=True)
class SessionSnapshot:
    model: str
    model_config: ModelConfig
    turns: tuple[Turn, ...]
    statistics: Statistics


class Session:
    """Append-only turn log of one interactive session.

    Turns are recorded by the pipeline; everything else reads snapshots. The
    active model and its generation parameters may change between turns.
    """

    def __init__(self, model: str, model_config: ModelConfig | None = None) -> None:
        self._model = model
        self._model_config = model_config or ModelConfig()
        self._turns: list[Turn] = []
        self._statistics = Statistics()
        self._lock = threading.Lock()

    @property
    def model(self) -> str:
        return self._model

    @property
    def model_config(self) -> ModelConfig:
        return self._model_config

    @property
    def turns(self) -> tuple[Turn, ...]:
        with self._lock:
            return tuple(self._turns)

    @property
    def statistics(self) -> Statistics:
        return self._statistics

    def switch_model(self, model: str) -> None:
        with self._lock:
            self._model = model

    def set_model_parameter(self, name: str, value: object) -> ModelConfig:
        """Replace one generation parameter.

        Raises ``KeyError`` for an unknown parameter and ``pydantic.ValidationError``
        when the value is out of range; the previous config is kept in both cases.
        """
        if name not in ModelConfig.model_fields:
            raise KeyError(name)
        with self._lock:
            self._model_config = ModelConfig.model_validate({**self._model_config.model_dump(), name: value})
            return self._model_config

    def record(self, turn: Turn) -> None:
        with self._lock:
            self._turns.append(turn)
            self._statistics = self._statistics.observe(turn)

    def recent(self, limit: int) -> list[Turn]:
        """The last ``limit`` turns that produced model text or tool output."""
        if limit <= 0:
            return []
        with self._lock:
            relevant = [turn for turn in self._turns if turn.generated_text or turn.result is not None]
        return relevant[-limit:]

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                model=self._model,
                model_config=self._model_config,
                turns=tuple(self._turns),
                statistics=self._statistics,
            )
