"""Turn execution pipeline."""

from __future__ import annotations

from typing import TypeAlias

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from ollama_agent.core.extractor import (
    AmbiguousMatch,
    Extraction,
    MalformedArguments,
    NoToolFound,
    ToolCallExtractor,
)
from ollama_agent.core.permissions import ConfirmFn, PermissionGate
from ollama_agent.core.prompt import build_prompt
from ollama_agent.core.router import UtteranceRouter
from ollama_agent.core.session import Session, Turn, TurnError, TurnOutcome
from ollama_agent.core.stream import (
    Cancelled,
    End,
    Fragment,
    GenerationStreamController,
    PollResult,
    StreamError,
)
from ollama_agent.core.types import Classification, Direct, ErrorKind
from ollama_agent.errors import BackendFatalError, TurnInProgressError
from ollama_agent.logging_utils import turn_context
from ollama_agent.tools.registry import ToolRegistry
from ollama_agent.types import PermissionDecision, ToolInvocation, ToolResult

DisambiguateFn: TypeAlias = Callable[[AmbiguousMatch], str | None]


class TurnState(StrEnum):
    ROUTING = "routing"
    GENERATING = "generating"
    EXTRACTING = "extracting"
    AUTHORIZING = "authorizing"
    EXECUTING = "executing"
    RECORDING = "recording"


class TurnListener:
    """Receives progress while a turn runs. Methods are no-ops by default."""

    def on_state(self, state: TurnState) -> None:
        return None

    def on_fragment(self, text: str) -> None:
        return None

    def on_invocation(self, invocation: ToolInvocation) -> None:
        return None

    def on_result(self, invocation: ToolInvocation, result: ToolResult) -> None:
        return None


@dataclass
class _TurnDraft:
    raw: str
    started_at: float
    classification: Classification = Classification.NATURAL_LANGUAGE
    first_token_at: float | None = None
    generated_text: str | None = None
    invocation: ToolInvocation | None = None
    permission: PermissionDecision | None = None
    result: ToolResult | None = None
    outcome: TurnOutcome | None = None
    error: TurnError | None = None

    def fail(self, kind: ErrorKind, detail: str) -> None:
        self.outcome = TurnOutcome.FAILED
        self.error = TurnError(kind, detail)

    def freeze(self, ended_at: float) -> Turn:
        return Turn(
            raw_input=self.raw,
            classification=self.classification,
            outcome=self.outcome or TurnOutcome.COMPLETED,
            started_at=self.started_at,
            ended_at=max(ended_at, self.started_at),
            first_token_at=self.first_token_at,
            generated_text=self.generated_text,
            invocation=self.invocation,
            permission=self.permission,
            result=self.result,
            error=self.error,
        )


class TurnPipeline:
    """Drive one raw input through routing, generation, extraction, authorization and execution.

    Every call to :meth:`run` records exactly one turn in the session, whatever
    the outcome. Only one turn may run at a time.
    """

    def __init__(
        self,
        *,
        session: Session,
        registry: ToolRegistry,
        router: UtteranceRouter,
        extractor: ToolCallExtractor,
        streams: GenerationStreamController,
        gate: PermissionGate,
        confirm: ConfirmFn,
        disambiguate: DisambiguateFn | None = None,
        history_turns: int = 3,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session = session
        self._registry = registry
        self._router = router
        self._extractor = extractor
        self._streams = streams
        self._gate = gate
        self._confirm = confirm
        self._disambiguate = disambiguate
        self._history_turns = history_turns
        self._clock = clock
        self._busy = threading.Lock()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def run(
        self,
        raw: str,
        *,
        cancel: threading.Event | None = None,
        listener: TurnListener | None = None,
    ) -> Turn:
        if not raw.strip():
            raise ValueError("empty input")
        if not self._busy.acquire(blocking=False):
            raise TurnInProgressError("a turn is already running")
        try:
            with turn_context(str(len(self._session.turns) + 1)):
                return self._run(raw, cancel, listener or TurnListener())
        finally:
            self._busy.release()

    def _run(self, raw: str, cancel: threading.Event | None, listener: TurnListener) -> Turn:
        draft = _TurnDraft(raw=raw, started_at=self._clock())
        logger.info("turn.start input_chars={}", len(raw))

        listener.on_state(TurnState.ROUTING)
        route = self._router.classify(raw)
        draft.classification = route.kind

        if isinstance(route, Direct):
            listener.on_state(TurnState.EXTRACTING)
            extraction: Extraction = self._extractor.extract_direct(route.command)
        else:
            listener.on_state(TurnState.GENERATING)
            self._generate(draft, route.text, cancel, listener)
            if draft.outcome is not None:
                return self._record(draft, listener)
            listener.on_state(TurnState.EXTRACTING)
            extraction = self._extractor.extract_text(draft.generated_text or "")

        if isinstance(extraction, AmbiguousMatch):
            extraction = self._resolve_ambiguity(extraction)

        match extraction:
            case NoToolFound():
                draft.outcome = TurnOutcome.COMPLETED
            case AmbiguousMatch(candidates=candidates):
                draft.fail(ErrorKind.AMBIGUOUS_MATCH, f"matches {', '.join(candidates)}")
            case MalformedArguments(tool_id=tool_id, detail=detail):
                draft.fail(ErrorKind.MALFORMED_ARGUMENTS, f"{tool_id}: {detail}")
            case ToolInvocation():
                self._authorize_and_execute(draft, extraction, listener)

        return self._record(draft, listener)

    def _generate(
        self,
        draft: _TurnDraft,
        text: str,
        cancel: threading.Event | None,
        listener: TurnListener,
    ) -> None:
        prompt = build_prompt(text, registry=self._registry, history=self._session.recent(self._history_turns))
        handle = self._streams.begin(prompt, self._session.model_config)
        result: PollResult | None = None
        while True:
            try:
                if cancel is not None and cancel.is_set():
                    self._streams.cancel(handle)
                result = self._streams.poll(handle)
                if result is None:
                    continue
                if isinstance(result, Fragment):
                    if draft.first_token_at is None:
                        draft.first_token_at = self._clock()
                    listener.on_fragment(result.text)
                    continue
            except KeyboardInterrupt:
                logger.info("turn.interrupt stream={}", handle.id)
                self._streams.cancel(handle)
                continue
            break

        draft.generated_text = handle.partial_text
        match result:
            case Cancelled():
                draft.outcome = TurnOutcome.CANCELLED
            case StreamError(kind=kind, message=message):
                draft.fail(kind, message)
            case End():
                pass

    def _resolve_ambiguity(self, match: AmbiguousMatch) -> Extraction:
        if self._disambiguate is None:
            return match
        try:
            choice = self._disambiguate(match)
        except (KeyboardInterrupt, EOFError):
            choice = None
        except Exception:
            logger.exception("turn.disambiguate.error candidates={}", ",".join(match.candidates))
            choice = None
        if choice is None or choice not in match.candidates:
            return match
        logger.info("turn.disambiguated tool={}", choice)
        return self._extractor.extract_for(choice, match.text)

    def _authorize_and_execute(self, draft: _TurnDraft, invocation: ToolInvocation, listener: TurnListener) -> None:
        draft.invocation = invocation
        capability = self._registry.require(invocation.tool_id)

        listener.on_state(TurnState.AUTHORIZING)
        try:
            decision = self._gate.authorize(invocation, capability.risk, self._confirm)
        except Exception as exc:
            logger.exception("turn.confirm.error tool={}", invocation.tool_id)
            draft.permission = PermissionDecision.ASKED_AND_DENIED
            draft.fail(ErrorKind.PERMISSION_DENIED, f"{invocation.tool_id}: confirmation failed: {exc!s}")
            return
        draft.permission = decision
        if not decision.granted:
            draft.fail(ErrorKind.PERMISSION_DENIED, f"{invocation.tool_id} was not approved")
            return

        listener.on_state(TurnState.EXECUTING)
        listener.on_invocation(invocation)
        try:
            result = self._registry.execute(invocation, decision=decision)
        except KeyboardInterrupt:
            logger.info("turn.interrupt tool={}", invocation.tool_id)
            draft.outcome = TurnOutcome.CANCELLED
            return
        draft.result = result
        listener.on_result(invocation, result)
        if result.success:
            draft.outcome = TurnOutcome.COMPLETED
        else:
            draft.fail(ErrorKind.TOOL_EXECUTION, result.detail)

    def _record(self, draft: _TurnDraft, listener: TurnListener) -> Turn:
        listener.on_state(TurnState.RECORDING)
        turn = draft.freeze(self._clock())
        self._session.record(turn)
        logger.info(
            "turn.end classification={} outcome={} tool={} elapsed_ms={}",
            turn.classification,
            turn.outcome,
            turn.invocation.tool_id if turn.invocation else "-",
            int(turn.latency * 1000),
        )
        if turn.error is not None and turn.error.kind is ErrorKind.BACKEND_FATAL:
            raise BackendFatalError(turn.error.detail)
        return turn
