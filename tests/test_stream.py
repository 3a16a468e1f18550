import threading
import time

import pytest
from conftest import FakeBackend

from ollama_agent.config import ModelConfig
from ollama_agent.core.stream import (
    Cancelled,
    End,
    Fragment,
    GenerationStreamController,
    PollResult,
    StreamError,
    StreamHandle,
)
from ollama_agent.core.types import ErrorKind
from ollama_agent.errors import BackendFatalError, BackendUnavailableError

MAX_POLLS = 500


def _poll_until_terminal(controller: GenerationStreamController, handle: StreamHandle) -> tuple[list[str], PollResult]:
    delivered: list[str] = []
    for _ in range(MAX_POLLS):
        result = controller.poll(handle)
        if result is None:
            continue
        if isinstance(result, Fragment):
            delivered.append(result.text)
            continue
        return delivered, result
    raise AssertionError("stream never finished")


def test_poll_delivers_fragments_then_end() -> None:
    controller = GenerationStreamController(FakeBackend(["a", "b", "c"]), poll_interval=0.01)
    handle = controller.begin("prompt", ModelConfig())

    delivered, terminal = _poll_until_terminal(controller, handle)

    assert delivered == ["a", "b", "c"]
    assert terminal == End()
    assert handle.partial_text == "abc"


def test_terminal_result_is_sticky() -> None:
    controller = GenerationStreamController(FakeBackend(["x"]), poll_interval=0.01)
    handle = controller.begin("prompt", ModelConfig())
    _, terminal = _poll_until_terminal(controller, handle)

    assert controller.poll(handle) is terminal
    assert controller.poll(handle) is terminal
    controller.cancel(handle)
    assert controller.poll(handle) == End()


@pytest.mark.parametrize("delivered_count", range(11))
def test_cancel_keeps_exactly_the_fragments_already_polled(delivered_count: int) -> None:
    fragments = [f"f{i} " for i in range(10)]
    backend = FakeBackend(fragments, hold_after=delivered_count if delivered_count < len(fragments) else None)
    controller = GenerationStreamController(backend, poll_interval=0.01)
    handle = controller.begin("prompt", ModelConfig())

    delivered: list[str] = []
    for _ in range(MAX_POLLS):
        if len(delivered) == delivered_count:
            break
        result = controller.poll(handle)
        if isinstance(result, Fragment):
            delivered.append(result.text)

    controller.cancel(handle)
    controller.cancel(handle)
    backend.release.set()

    assert controller.poll(handle) == Cancelled()
    assert controller.poll(handle) == Cancelled()
    assert delivered == fragments[:delivered_count]
    assert handle.partial_text == "".join(fragments[:delivered_count])
    assert handle.fragment_count == delivered_count


def test_cancel_is_observed_within_one_poll_interval() -> None:
    backend = FakeBackend(["slow"] * 50, delay=0.2)
    controller = GenerationStreamController(backend, poll_interval=0.05)
    handle = controller.begin("prompt", ModelConfig())

    controller.cancel(handle)
    started = time.monotonic()
    result = controller.poll(handle)

    assert result == Cancelled()
    assert time.monotonic() - started <= 0.05


def test_idle_poll_returns_none_after_the_interval() -> None:
    backend = FakeBackend(["late"], hold_after=0)
    controller = GenerationStreamController(backend, poll_interval=0.02)
    handle = controller.begin("prompt", ModelConfig())

    started = time.monotonic()
    assert controller.poll(handle) is None
    assert time.monotonic() - started < 0.5

    backend.release.set()
    delivered, terminal = _poll_until_terminal(controller, handle)
    assert delivered == ["late"]
    assert terminal == End()


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (BackendUnavailableError("connection refused"), ErrorKind.BACKEND_UNAVAILABLE),
        (BackendFatalError("model not found"), ErrorKind.BACKEND_FATAL),
        (ValueError("bad chunk"), ErrorKind.BACKEND_UNAVAILABLE),
    ],
)
def test_backend_errors_become_stream_errors(error: Exception, kind: ErrorKind) -> None:
    controller = GenerationStreamController(FakeBackend(["partial"], error=error), poll_interval=0.01)
    handle = controller.begin("prompt", ModelConfig())

    delivered, terminal = _poll_until_terminal(controller, handle)

    assert delivered == ["partial"]
    assert isinstance(terminal, StreamError)
    assert terminal.kind is kind
    assert handle.partial_text == "partial"


def test_poll_interval_is_bounded() -> None:
    with pytest.raises(ValueError, match="poll_interval"):
        GenerationStreamController(FakeBackend(), poll_interval=0.5)


def test_worker_runs_off_the_calling_thread() -> None:
    seen: list[str] = []

    class _ThreadRecordingBackend:
        def stream(self, prompt: str, config: ModelConfig):
            seen.append(threading.current_thread().name)
            yield "ok"

    controller = GenerationStreamController(_ThreadRecordingBackend(), poll_interval=0.01)
    handle = controller.begin("prompt", ModelConfig())
    _poll_until_terminal(controller, handle)

    assert seen == [f"generation-{handle.id}"]
