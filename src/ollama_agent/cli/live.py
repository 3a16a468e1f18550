"""Interactive chat loop."""

from __future__ import annotations

from loguru import logger
from pydantic import ValidationError

from ollama_agent.config import ModelConfig
from ollama_agent.core.pipeline import TurnListener, TurnState
from ollama_agent.errors import BackendFatalError, BackendUnavailableError, ConfigurationError, TurnInProgressError
from ollama_agent.runtime import AgentRuntime
from ollama_agent.types import ToolInvocation, ToolResult

from .render import Renderer

EXIT_COMMANDS = frozenset({"quit", "exit", "bye"})
STATS_COMMANDS = frozenset({"stats", "> stats", "/stats"})


class RenderingListener(TurnListener):
    """Forward pipeline progress to the renderer."""

    def __init__(self, renderer: Renderer) -> None:
        self._renderer = renderer

    def on_state(self, state: TurnState) -> None:
        if state in (TurnState.EXTRACTING, TurnState.RECORDING):
            self._renderer.end_stream()

    def on_fragment(self, text: str) -> None:
        self._renderer.assistant_fragment(text)

    def on_invocation(self, invocation: ToolInvocation) -> None:
        self._renderer.tool_start(invocation)

    def on_result(self, invocation: ToolInvocation, result: ToolResult) -> None:
        self._renderer.tool_result(invocation, result)


def run_chat(runtime: AgentRuntime, renderer: Renderer) -> None:
    renderer.welcome()
    renderer.usage_info(str(runtime.workspace), runtime.session.model, len(runtime.registry.capabilities()))
    listener = RenderingListener(renderer)

    while True:
        try:
            user_input = renderer.get_user_input()
        except (KeyboardInterrupt, EOFError):
            renderer.info("\nGoodbye!")
            break

        stripped = user_input.strip()
        if not stripped:
            continue

        handled = _handle_meta_command(stripped, runtime, renderer)
        if handled is True:
            renderer.info("Goodbye!")
            break
        if handled is False:
            continue

        try:
            turn = runtime.pipeline.run(stripped, listener=listener)
        except BackendFatalError:
            raise
        except TurnInProgressError as exc:
            renderer.error(str(exc))
            continue
        except Exception as exc:
            logger.exception("chat.turn.error")
            renderer.error(f"Unexpected error in chat loop: {exc!s}")
            continue
        renderer.turn_summary(turn)

    renderer.statistics(runtime.session.snapshot().statistics)


def _handle_meta_command(text: str, runtime: AgentRuntime, renderer: Renderer) -> bool | None:
    """Return True to exit, False when handled, None when the text is a turn."""
    command = text.casefold()
    if command in EXIT_COMMANDS:
        return True
    if command in STATS_COMMANDS:
        renderer.statistics(runtime.session.snapshot().statistics)
        return False
    if command == "tools":
        renderer.tools(runtime.registry.capabilities())
        return False
    if command == "help":
        renderer.help()
        return False
    if command == "params":
        renderer.model_parameters(runtime.session.model_config)
        return False
    if command == "models":
        try:
            renderer.models(runtime.backend.list_models(), runtime.session.model)
        except (BackendUnavailableError, BackendFatalError) as exc:
            renderer.error(str(exc))
        return False

    words = text.split()
    head = words[0].casefold()
    if head == "model" and len(words) <= 2:
        if len(words) == 1:
            renderer.info(f"Active model: {runtime.session.model}")
        else:
            _switch_model(words[1], runtime, renderer)
        return False
    if head == "get" and len(words) == 2 and words[1] in ModelConfig.model_fields:
        renderer.info(f"{words[1]} = {getattr(runtime.session.model_config, words[1])!r}")
        return False
    if head == "set" and len(words) >= 3 and words[1] in ModelConfig.model_fields:
        _set_parameter(words[1], text.split(None, 2)[2], runtime, renderer)
        return False

    logger.debug("chat.input chars={}", len(text))
    return None


def _switch_model(name: str, runtime: AgentRuntime, renderer: Renderer) -> None:
    try:
        active = runtime.switch_model(name)
    except (ConfigurationError, BackendUnavailableError, BackendFatalError, TurnInProgressError) as exc:
        renderer.error(str(exc))
        return
    renderer.info(f"Switched to model: {active}")


def _set_parameter(name: str, raw_value: str, runtime: AgentRuntime, renderer: Renderer) -> None:
    try:
        config = runtime.session.set_model_parameter(name, raw_value)
    except ValidationError as exc:
        renderer.error(f"Invalid value for {name}: {exc.errors()[0]['msg']}")
        return
    logger.info("chat.param.set name={}", name)
    renderer.info(f"{name} = {getattr(config, name)!r}")
