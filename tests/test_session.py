import pytest
from pydantic import ValidationError

from ollama_agent.config import ModelConfig
from ollama_agent.core.session import Session, Statistics, Turn, TurnError, TurnOutcome
from ollama_agent.core.types import Classification, ErrorKind
from ollama_agent.types import PermissionDecision, ToolInvocation, ToolResult


def _turn(outcome: TurnOutcome, *, latency: float = 1.0, executed: bool = False, text: str | None = None) -> Turn:
    return Turn(
        raw_input="input",
        classification=Classification.NATURAL_LANGUAGE,
        outcome=outcome,
        started_at=100.0,
        ended_at=100.0 + latency,
        generated_text=text,
        invocation=ToolInvocation("fs.list", {"path": "."}) if executed else None,
        permission=PermissionDecision.APPROVED if executed else None,
        result=ToolResult(success=True, output="a.txt") if executed else None,
    )


def test_observe_updates_counters_and_mean() -> None:
    stats = Statistics()
    stats = stats.observe(_turn(TurnOutcome.COMPLETED, latency=1.0, executed=True))
    stats = stats.observe(_turn(TurnOutcome.FAILED, latency=3.0))
    stats = stats.observe(_turn(TurnOutcome.CANCELLED, latency=2.0))

    assert stats.commands_processed == 3
    assert stats.tools_executed == 1
    assert stats.successes == 1
    assert stats.failures == 1
    assert stats.cancellations == 1
    assert stats.average_latency == pytest.approx(2.0)
    assert stats.success_rate == pytest.approx(1 / 3)


def test_empty_statistics_have_zero_rate() -> None:
    assert Statistics().success_rate == 0.0


def test_session_statistics_match_recomputation() -> None:
    session = Session("llama3.2", ModelConfig(temperature=0.2))
    for outcome in (TurnOutcome.COMPLETED, TurnOutcome.FAILED, TurnOutcome.COMPLETED):
        session.record(_turn(outcome, latency=0.5, executed=outcome is TurnOutcome.COMPLETED))

    assert session.statistics == Statistics.from_turns(session.turns)
    assert session.statistics.successes + session.statistics.failures == 3


def test_snapshot_is_detached_from_later_turns() -> None:
    session = Session("llama3.2")
    session.record(_turn(TurnOutcome.COMPLETED))
    snapshot = session.snapshot()

    session.record(_turn(TurnOutcome.FAILED))

    assert snapshot.model == "llama3.2"
    assert len(snapshot.turns) == 1
    assert snapshot.statistics.commands_processed == 1
    assert session.statistics.commands_processed == 2


def test_recent_skips_turns_without_content() -> None:
    session = Session("llama3.2")
    session.record(_turn(TurnOutcome.COMPLETED, text="first"))
    session.record(_turn(TurnOutcome.FAILED))
    session.record(_turn(TurnOutcome.COMPLETED, executed=True))
    session.record(_turn(TurnOutcome.COMPLETED, text="last"))

    assert [turn.generated_text for turn in session.recent(2)] == [None, "last"]
    assert len(session.recent(10)) == 3
    assert session.recent(0) == []


def test_turn_timing_properties() -> None:
    turn = Turn(
        raw_input="hi",
        classification=Classification.NATURAL_LANGUAGE,
        outcome=TurnOutcome.FAILED,
        started_at=10.0,
        ended_at=12.5,
        first_token_at=10.25,
        error=TurnError(ErrorKind.BACKEND_UNAVAILABLE, "connection refused"),
    )
    assert turn.latency == pytest.approx(2.5)
    assert turn.time_to_first_token == pytest.approx(0.25)
    assert turn.tool_executed is False
    assert str(turn.error) == "backend_unavailable: connection refused"


def test_set_model_parameter_validates_and_keeps_old_config_on_error() -> None:
    session = Session("llama3.2", ModelConfig(temperature=0.7))

    updated = session.set_model_parameter("temperature", "0.2")
    assert updated.temperature == pytest.approx(0.2)
    assert session.model_config is updated

    with pytest.raises(ValidationError):
        session.set_model_parameter("temperature", "3.5")
    with pytest.raises(KeyError):
        session.set_model_parameter("mirostat", "1")
    assert session.model_config.temperature == pytest.approx(0.2)


def test_switch_model_shows_in_later_snapshots() -> None:
    session = Session("llama3.2")
    before = session.snapshot()

    session.switch_model("qwen2.5-coder:7b")

    assert before.model == "llama3.2"
    assert session.model == "qwen2.5-coder:7b"
    assert session.snapshot().model == "qwen2.5-coder:7b"
