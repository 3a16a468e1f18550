"""Runtime logging helpers."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "chat"]

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "chat": "{extra[turn]} | {message}",
    "default": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | turn={extra[turn]} | {message}",
}
_CONFIGURED_PROFILE: LogProfile | None = None
_CURRENT_TURN: ContextVar[str] = ContextVar("ollama_agent_turn", default="-")


def current_turn() -> str:
    return _CURRENT_TURN.get()


@contextmanager
def turn_context(turn_id: str) -> Iterator[None]:
    """Tag every record logged by this thread with ``turn_id``."""
    token = _CURRENT_TURN.set(turn_id)
    try:
        yield
    finally:
        _CURRENT_TURN.reset(token)


def _build_chat_handler() -> Handler:
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Configure process-level logging once per profile."""
    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    def inject_context(record: loguru.Record) -> None:
        record["extra"]["turn"] = current_turn()

    resolved = (level or os.getenv("OLLAMA_AGENT_LOG_LEVEL", "INFO")).upper()
    logger.remove()
    if profile == "chat":
        # Keep the interactive screen quiet unless asked otherwise.
        logger.add(
            _build_chat_handler(),
            level="WARNING" if level is None and "OLLAMA_AGENT_LOG_LEVEL" not in os.environ else resolved,
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=resolved,
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
    logger.configure(patcher=inject_context)
    _CONFIGURED_PROFILE = profile
