"""Tool-call extraction from direct commands and generated text."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, TypeAlias

from loguru import logger
from pydantic import ValidationError

from ollama_agent.core.commands import parse_kv_arguments
from ollama_agent.core.types import DirectCommand
from ollama_agent.tools.registry import WORD_RE, ParamSpec, ToolCapability, ToolRegistry
from ollama_agent.types import ToolInvocation

HINT_BONUS = 3.0
DEFAULT_THRESHOLD = 2.0
TEXT_PAIR_RE = re.compile(r"""\b([A-Za-z_][A-Za-z0-9_]*)=("[^"]*"|'[^']*'|\S+)""")
QUOTED_RE = re.compile(r""""([^"]+)"|'([^']+)'|`([^`]+)`""")
URL_RE = re.compile(r"""(?:https?://|www\.)[^\s"'<>`]+""")
SAFE_PATH_TOKEN_RE = re.compile(r"^[A-Za-z0-9._~/-]+$")
FILE_NAME_RE = re.compile(r"^[\w.-]*\.[A-Za-z0-9]{1,8}$")
EDGE_PUNCTUATION = "\"'`()[]{}<>,;:!?"


@dataclass(frozen=True)
class NoToolFound:
    text: str


@dataclass(frozen=True)
class AmbiguousMatch:
    candidates: tuple[str, ...]
    text: str
    score: float


@dataclass(frozen=True)
class MalformedArguments:
    tool_id: str
    detail: str
    parameter: str | None = None


Extraction: TypeAlias = ToolInvocation | NoToolFound | AmbiguousMatch | MalformedArguments


@dataclass(frozen=True)
class ToolHint:
    """Structured tool request a model wrote into its reply."""

    name: str
    arguments: Mapping[str, Any]


def _hint_from_object(data: Any) -> ToolHint | None:
    if not isinstance(data, dict):
        return None
    tools = data.get("tools")
    if isinstance(tools, list) and tools and isinstance(tools[0], dict):
        data = tools[0]

    name = data.get("tool") or data.get("tool_type") or data.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    arguments = data.get("arguments", data.get("parameters", data.get("args", {})))
    if not isinstance(arguments, dict):
        arguments = {}
    return ToolHint(name=name.strip(), arguments=arguments)


def find_tool_hint(text: str) -> ToolHint | None:
    """Return the first JSON object in ``text`` that names a tool."""
    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", text):
        try:
            data, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        hint = _hint_from_object(data)
        if hint is not None:
            return hint
    return None


def _strip_token(token: str) -> str:
    token = token.strip(EDGE_PUNCTUATION)
    if len(token) > 1 and token.endswith(".") and token not in ("..",) and not token.endswith("/."):
        token = token[:-1]
    return token


def _is_path_like(token: str) -> bool:
    if not token or "://" in token or SAFE_PATH_TOKEN_RE.fullmatch(token) is None:
        return False
    if token in ("/", ".", "..", "~"):
        return True
    if token.startswith(("./", "../", "/", "~/")) or "/" in token:
        return True
    return FILE_NAME_RE.fullmatch(token) is not None and not token.startswith("www.")


class ToolCallExtractor:
    """Turn a direct command or a block of generated text into a tool invocation.

    Direct commands bind arguments positionally and through flags. Free text is
    scored against every capability's match terms; a JSON tool hint in the text
    adds ``hint_bonus`` to the tool it names. The best score must reach
    ``threshold`` and be unique.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        threshold: float = DEFAULT_THRESHOLD,
        hint_bonus: float = HINT_BONUS,
    ) -> None:
        self._registry = registry
        self._threshold = threshold
        self._hint_bonus = hint_bonus

    def extract(self, source: DirectCommand | str) -> Extraction:
        if isinstance(source, DirectCommand):
            return self.extract_direct(source)
        return self.extract_text(source)

    # -- direct syntax

    def extract_direct(self, command: DirectCommand) -> ToolInvocation | MalformedArguments:
        capability = self._registry.get(command.tool_id)
        if capability is None:
            return MalformedArguments(command.tool_id, f"unknown tool: {command.tool_id}")

        specs = capability.parameters
        switches = {spec.name for spec in specs if spec.type_name == "bool"}
        parsed = parse_kv_arguments(command.args_tokens, short_flags=capability.short_flags, switches=switches)

        values: dict[str, Any] = dict(command.preset)
        for name, value in parsed.kwargs.items():
            spec = capability.parameter(name)
            if spec is None:
                return MalformedArguments(capability.id, f"unknown parameter: {name}", name)
            if spec.is_list and isinstance(value, str):
                value = [item for item in value.split(",") if item]
            values[name] = value

        positional = list(parsed.positional)
        open_slots = [spec for spec in specs if spec.name not in values]
        for index, spec in enumerate(open_slots):
            if not positional:
                break
            if spec.is_list:
                values[spec.name] = positional
                positional = []
                break
            if index == len(open_slots) - 1 and spec.kind == "text":
                values[spec.name] = " ".join(positional)
                positional = []
                break
            values[spec.name] = positional.pop(0)

        if positional:
            return MalformedArguments(capability.id, f"unexpected argument: {positional[0]}")
        return self._bind(capability, values)

    # -- free text

    def score(self, text: str, hint: ToolHint | None = None) -> dict[str, float]:
        words = set(WORD_RE.findall(text.casefold()))
        hinted = self._registry.resolve_name(hint.name) if hint is not None else None
        scores: dict[str, float] = {}
        for capability in self._registry.capabilities():
            value = float(len(capability.match_terms() & words))
            if capability.id == hinted:
                value += self._hint_bonus
            if value > 0:
                scores[capability.id] = value
        return scores

    def extract_text(self, text: str) -> Extraction:
        hint = find_tool_hint(text)
        scores = self.score(text, hint)
        best = max(scores.values(), default=0.0)
        if best < self._threshold:
            return NoToolFound(text)

        top = sorted(tool_id for tool_id, value in scores.items() if value == best)
        if len(top) > 1:
            logger.info("extractor.ambiguous candidates={} score={}", ",".join(top), best)
            return AmbiguousMatch(candidates=tuple(top), text=text, score=best)

        return self.extract_for(top[0], text, hint=hint)

    def extract_for(self, tool_id: str, text: str, *, hint: ToolHint | None = None) -> ToolInvocation | MalformedArguments:
        """Bind arguments for a tool that has already been chosen."""
        capability = self._registry.get(tool_id)
        if capability is None:
            return MalformedArguments(tool_id, f"unknown tool: {tool_id}")

        if hint is None:
            hint = find_tool_hint(text)
        values: dict[str, Any] = {}
        if hint is not None and self._registry.resolve_name(hint.name) == capability.id:
            for name, value in hint.arguments.items():
                if capability.parameter(name) is not None and value is not None:
                    values[name] = value

        for key, raw in TEXT_PAIR_RE.findall(text):
            if key in values or capability.parameter(key) is None:
                continue
            values[key] = raw.strip("\"'")

        used: set[str] = {value for value in values.values() if isinstance(value, str)}
        for spec in capability.parameters:
            if spec.name in values:
                continue
            guess = self._guess(spec, text, used)
            if guess is not None:
                values[spec.name] = guess
                used.add(guess)

        return self._bind(capability, values)

    @staticmethod
    def _guess(spec: ParamSpec, text: str, used: set[str]) -> str | None:
        if spec.choices:
            words = WORD_RE.findall(text.casefold())
            for word in words:
                if word in spec.choices:
                    return word
            return None

        if spec.kind == "url":
            for match in URL_RE.finditer(text):
                candidate = match.group(0).rstrip(".,;:!?)")
                if candidate not in used:
                    return candidate
            return None

        if spec.kind == "path":
            for raw in text.split():
                candidate = _strip_token(raw)
                if candidate not in used and _is_path_like(candidate):
                    return candidate
            return None

        if spec.kind == "text":
            for match in QUOTED_RE.finditer(text):
                candidate = next(group for group in match.groups() if group is not None)
                if candidate not in used:
                    return candidate
        return None

    # -- validation

    @staticmethod
    def _bind(capability: ToolCapability, values: Mapping[str, Any]) -> ToolInvocation | MalformedArguments:
        try:
            validated = capability.validate(values)
        except ValidationError as exc:
            error = exc.errors()[0]
            location = error.get("loc") or ()
            parameter = str(location[0]) if location else None
            detail = f"{parameter}: {error['msg']}" if parameter else str(error["msg"])
            return MalformedArguments(capability.id, detail, parameter)
        return ToolInvocation(capability.id, MappingProxyType(validated.model_dump()))
