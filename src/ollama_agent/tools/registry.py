"""Unified tool registry."""

from __future__ import annotations

import builtins
import json
import re
import time
import types
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Union, get_args, get_origin, TypeAlias

from loguru import logger
from pydantic import BaseModel

from ollama_agent.errors import PermissionDeniedError, ToolExecutionError, UnknownToolError
from ollama_agent.types import PermissionDecision, RiskTier, ToolInvocation, ToolResult

PATH_PARAM_NAMES = frozenset({"path", "directory", "database", "file", "cwd", "requirements"})
URL_PARAM_NAMES = frozenset({"url", "endpoint"})
WORD_RE = re.compile(r"[a-z0-9]+")


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed."""
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


@dataclass(frozen=True)
class ToolContext:
    """Process-wide facts handed to every handler."""

    workspace: Path
    command_timeout: float = 120.0

    def resolve(self, raw_path: str) -> Path:
        path = Path(raw_path).expanduser()
        if path.is_absolute():
            return path
        return self.workspace / path


Handler: TypeAlias = Callable[[Any, ToolContext], str]


@dataclass(frozen=True)
class ParamSpec:
    """One declared tool parameter, in declaration order."""

    name: str
    type_name: str
    required: bool
    default: Any = None
    is_list: bool = False
    kind: str = "value"  # path|url|text|list|value
    choices: tuple[str, ...] = ()


def _unwrap_optional(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


def _param_spec(name: str, info: Any) -> ParamSpec:
    annotation = _unwrap_optional(info.annotation)
    origin = get_origin(annotation)
    is_list = origin in (list, tuple, set)
    choices: tuple[str, ...] = ()
    if origin is Literal:
        choices = tuple(str(arg) for arg in get_args(annotation))
        type_name = "choice"
    elif is_list:
        type_name = "list"
    else:
        type_name = getattr(annotation, "__name__", str(annotation))

    extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
    kind = extra.get("kind")
    if not isinstance(kind, str):
        if is_list:
            kind = "list"
        elif name in PATH_PARAM_NAMES:
            kind = "path"
        elif name in URL_PARAM_NAMES:
            kind = "url"
        elif type_name == "str":
            kind = "text"
        else:
            kind = "value"

    required = info.is_required()
    default = None if required else info.get_default(call_default_factory=True)
    return ParamSpec(
        name=name,
        type_name=type_name,
        required=required,
        default=default,
        is_list=is_list,
        kind=kind,
        choices=choices,
    )


def normalize_alias(alias: str) -> str:
    return " ".join(alias.casefold().split())


class _FormatArgs(dict[str, Any]):
    def __missing__(self, key: str) -> str:
        return f"<{key}>"


@dataclass(frozen=True)
class ToolCapability:
    """Static descriptor of one executable tool."""

    id: str
    name: str
    description: str
    params_model: type[BaseModel]
    risk: RiskTier
    handler: Handler
    keywords: frozenset[str] = frozenset()
    aliases: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    short_flags: Mapping[str, str] = field(default_factory=dict)
    effect: str = ""

    @property
    def parameters(self) -> tuple[ParamSpec, ...]:
        return tuple(_param_spec(name, info) for name, info in self.params_model.model_fields.items())

    def parameter(self, name: str) -> ParamSpec | None:
        for spec in self.parameters:
            if spec.name == name:
                return spec
        return None

    def match_terms(self) -> frozenset[str]:
        """Lower-case words that identify this tool in free text."""
        terms: set[str] = set(self.keywords)
        terms.update(WORD_RE.findall(self.id.casefold()))
        terms.update(WORD_RE.findall(self.name.casefold()))
        for alias in self.aliases:
            terms.update(WORD_RE.findall(alias))
        return frozenset(terms)

    def validate(self, values: Mapping[str, Any]) -> BaseModel:
        """Validate raw values against the parameter model; raises ``pydantic.ValidationError``."""
        return self.params_model.model_validate(dict(values))

    def describe(self, arguments: Mapping[str, Any]) -> str:
        if self.effect:
            return self.effect.format_map(_FormatArgs(arguments))
        return ToolInvocation(self.id, dict(arguments)).render()


class ToolRegistry:
    """Registry of tool capabilities; read-only once sealed."""

    def __init__(self, context: ToolContext) -> None:
        self._context = context
        self._tools: dict[str, ToolCapability] = {}
        self._sealed = False

    @property
    def context(self) -> ToolContext:
        return self._context

    def register(self, capability: ToolCapability) -> ToolCapability:
        if self._sealed:
            raise RuntimeError(f"registry is sealed; cannot register {capability.id}")
        if capability.id in self._tools:
            raise ValueError(f"Duplicate tool id: {capability.id}")
        self._tools[capability.id] = capability
        return capability

    def tool(
        self,
        tool_id: str,
        *,
        params: type[BaseModel],
        risk: RiskTier,
        name: str | None = None,
        description: str = "",
        keywords: Iterable[str] = (),
        aliases: Iterable[str] | Mapping[str, Mapping[str, Any]] = (),
        short_flags: Mapping[str, str] | None = None,
        effect: str = "",
    ) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`."""
        if isinstance(aliases, Mapping):
            alias_map = {normalize_alias(alias): dict(preset) for alias, preset in aliases.items()}
        else:
            alias_map = {normalize_alias(alias): {} for alias in aliases}

        def decorator(handler: Handler) -> Handler:
            self.register(
                ToolCapability(
                    id=tool_id,
                    name=name or tool_id,
                    description=description or (params.__doc__ or "").strip(),
                    params_model=params,
                    risk=risk,
                    handler=handler,
                    keywords=frozenset(word.casefold() for word in keywords),
                    aliases=alias_map,
                    short_flags=dict(short_flags or {}),
                    effect=effect,
                )
            )
            return handler

        return decorator

    def seal(self) -> None:
        self._sealed = True

    def has(self, tool_id: str) -> bool:
        return tool_id in self._tools

    def get(self, tool_id: str) -> ToolCapability | None:
        return self._tools.get(tool_id)

    def require(self, tool_id: str) -> ToolCapability:
        capability = self._tools.get(tool_id)
        if capability is None:
            raise UnknownToolError(tool_id)
        return capability

    def capabilities(self) -> builtins.list[ToolCapability]:
        return sorted(self._tools.values(), key=lambda item: item.id)

    @staticmethod
    def to_model_name(tool_id: str) -> str:
        return tool_id.replace(".", "_")

    def resolve_name(self, raw: str) -> str | None:
        """Map an id as written by a human or a model back to a registered id."""
        candidate = raw.strip()
        if candidate in self._tools:
            return candidate
        folded = candidate.casefold()
        for tool_id in self._tools:
            if folded in (tool_id.casefold(), self.to_model_name(tool_id).casefold()):
                return tool_id
        return None

    def alias_index(self) -> dict[str, builtins.list[str]]:
        index: dict[str, builtins.list[str]] = {}
        for capability in self.capabilities():
            for alias in capability.aliases:
                index.setdefault(alias, []).append(capability.id)
        return index

    def compact_rows(self) -> builtins.list[str]:
        rows: builtins.list[str] = []
        for capability in self.capabilities():
            params = ", ".join(
                f"{spec.name}{'' if spec.required else '?'}: {spec.type_name}" for spec in capability.parameters
            )
            rows.append(f"{capability.id}({params}) [{capability.risk}]: {capability.description}")
        return rows

    def _log_tool_call(self, invocation: ToolInvocation) -> None:
        params: builtins.list[str] = []
        for key, value in invocation.arguments.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            params.append(f"{key}={_shorten_text(rendered)}")
        logger.info("tool.call.start name={} {{ {} }}", invocation.tool_id, ", ".join(params))

    def execute(self, invocation: ToolInvocation, *, decision: PermissionDecision) -> ToolResult:
        """Run the handler behind ``invocation``.

        Handler failures are folded into the returned ``ToolResult``; only a
        decision that does not cover the tool's risk tier raises.
        """
        capability = self.require(invocation.tool_id)
        if not decision.allows(capability.risk):
            raise PermissionDeniedError(
                f"{invocation.tool_id} ({capability.risk}) cannot run with decision {decision}"
            )

        self._log_tool_call(invocation)
        start = time.monotonic()
        try:
            params = capability.validate(invocation.arguments)
            output = capability.handler(params, self._context)
        except ToolExecutionError as exc:
            return ToolResult(success=False, error=str(exc), duration=time.monotonic() - start)
        except Exception as exc:
            logger.exception("tool.call.error name={}", invocation.tool_id)
            return ToolResult(success=False, error=f"{type(exc).__name__}: {exc!s}", duration=time.monotonic() - start)
        finally:
            logger.info(
                "tool.call.end name={} duration={:.3f}ms",
                invocation.tool_id,
                (time.monotonic() - start) * 1000,
            )
        return ToolResult(success=True, output=str(output), duration=time.monotonic() - start)
