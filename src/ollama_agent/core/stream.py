"""Pollable, cancellable generation streams."""

from __future__ import annotations

import queue
import threading
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, TypeAlias

from loguru import logger

from ollama_agent.config import ModelConfig
from ollama_agent.core.types import ErrorKind
from ollama_agent.errors import BackendFatalError, BackendUnavailableError

MAX_POLL_INTERVAL = 0.05


class ModelBackend(Protocol):
    """Anything that can stream text fragments for a prompt."""

    def stream(self, prompt: str, config: ModelConfig) -> Iterable[str]: ...


@dataclass(frozen=True)
class Fragment:
    text: str


@dataclass(frozen=True)
class End:
    pass


@dataclass(frozen=True)
class Cancelled:
    pass


@dataclass(frozen=True)
class StreamError:
    kind: ErrorKind
    message: str


PollResult: TypeAlias = Fragment | End | Cancelled | StreamError
Terminal: TypeAlias = End | Cancelled | StreamError


class StreamHandle:
    """One in-flight generation.

    ``partial_text`` is the concatenation of the fragments already handed out
    by :meth:`GenerationStreamController.poll`; fragments still queued when a
    cancel lands are discarded.
    """

    def __init__(self) -> None:
        self.id = uuid.uuid4().hex[:8]
        self._queue: queue.Queue[PollResult] = queue.Queue()
        self._cancel = threading.Event()
        self._lock = threading.RLock()
        self._parts: list[str] = []
        self._terminal: Terminal | None = None
        self._worker: threading.Thread | None = None

    @property
    def partial_text(self) -> str:
        with self._lock:
            return "".join(self._parts)

    @property
    def fragment_count(self) -> int:
        with self._lock:
            return len(self._parts)

    @property
    def terminal(self) -> Terminal | None:
        return self._terminal

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()


class GenerationStreamController:
    """Run backend generation on a worker thread and expose it through ``poll``."""

    def __init__(self, backend: ModelBackend, *, poll_interval: float = MAX_POLL_INTERVAL) -> None:
        if not 0 < poll_interval <= MAX_POLL_INTERVAL:
            raise ValueError(f"poll_interval must be in (0, {MAX_POLL_INTERVAL}], got {poll_interval}")
        self._backend = backend
        self._poll_interval = poll_interval

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    def begin(self, prompt: str, config: ModelConfig) -> StreamHandle:
        handle = StreamHandle()
        worker = threading.Thread(
            target=self._pump,
            args=(handle, prompt, config),
            name=f"generation-{handle.id}",
            daemon=True,
        )
        handle._worker = worker
        logger.debug("stream.begin id={} prompt_chars={}", handle.id, len(prompt))
        worker.start()
        return handle

    def poll(self, handle: StreamHandle, timeout: float | None = None) -> PollResult | None:
        """Wait at most one poll interval for the next event.

        Returns ``None`` when nothing arrived in time. Once a terminal result
        has been returned, every later call returns that same result.
        """
        wait = self._poll_interval if timeout is None else max(0.0, min(timeout, self._poll_interval))
        with handle._lock:
            if handle._terminal is not None:
                return handle._terminal
            if handle._cancel.is_set():
                return self._finish(handle, Cancelled())

        try:
            item = handle._queue.get(timeout=wait)
        except queue.Empty:
            return None

        with handle._lock:
            if handle._terminal is not None:
                return handle._terminal
            if handle._cancel.is_set():
                return self._finish(handle, Cancelled())
            if isinstance(item, Fragment):
                handle._parts.append(item.text)
                return item
            return self._finish(handle, item)

    def cancel(self, handle: StreamHandle) -> None:
        """Request cancellation; a no-op once the stream is terminal or already cancelled."""
        with handle._lock:
            if handle._terminal is not None or handle._cancel.is_set():
                return
            handle._cancel.set()
        logger.info("stream.cancel id={} delivered={}", handle.id, handle.fragment_count)

    def _finish(self, handle: StreamHandle, result: Terminal) -> Terminal:
        handle._terminal = result
        logger.debug("stream.end id={} result={}", handle.id, type(result).__name__)
        return result

    def _pump(self, handle: StreamHandle, prompt: str, config: ModelConfig) -> None:
        outcome: PollResult = End()
        fragments = None
        try:
            fragments = iter(self._backend.stream(prompt, config))
            for text in fragments:
                if handle._cancel.is_set():
                    break
                if text:
                    handle._queue.put(Fragment(text))
        except BackendFatalError as exc:
            outcome = StreamError(ErrorKind.BACKEND_FATAL, str(exc))
        except BackendUnavailableError as exc:
            outcome = StreamError(ErrorKind.BACKEND_UNAVAILABLE, str(exc))
        except Exception as exc:
            logger.exception("stream.worker.error id={}", handle.id)
            outcome = StreamError(ErrorKind.BACKEND_UNAVAILABLE, f"{type(exc).__name__}: {exc!s}")
        finally:
            close = getattr(fragments, "close", None)
            if callable(close):
                close()
        handle._queue.put(outcome)
