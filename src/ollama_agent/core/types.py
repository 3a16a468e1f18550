"""Shared core dataclasses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeAlias


class Classification(StrEnum):
    DIRECT = "direct"
    NATURAL_LANGUAGE = "natural_language"


class ErrorKind(StrEnum):
    BACKEND_UNAVAILABLE = "backend_unavailable"
    BACKEND_FATAL = "backend_fatal"
    AMBIGUOUS_MATCH = "ambiguous_match"
    MALFORMED_ARGUMENTS = "malformed_arguments"
    PERMISSION_DENIED = "permission_denied"
    TOOL_EXECUTION = "tool_execution"


@dataclass(frozen=True)
class DirectCommand:
    """Direct tool syntax detected in one line."""

    tool_id: str
    raw: str
    trigger: str  # alias words or ",<tool-id>"
    args_tokens: tuple[str, ...] = ()
    preset: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Direct:
    command: DirectCommand

    kind = Classification.DIRECT


@dataclass(frozen=True)
class NaturalLanguage:
    text: str
    ambiguity: str | None = None  # why a direct-looking line was not treated as direct

    kind = Classification.NATURAL_LANGUAGE


Route: TypeAlias = Direct | NaturalLanguage
