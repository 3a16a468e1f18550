"""Utterance routing."""

from __future__ import annotations

from loguru import logger

from ollama_agent.core.commands import parse_command_words, parse_internal_command
from ollama_agent.core.types import Direct, DirectCommand, NaturalLanguage, Route
from ollama_agent.tools.registry import ToolRegistry

INTERNAL_PREFIX = ","
# Function words that make an alias-led line read as a sentence rather than a command.
PROSE_WORDS = frozenset({
    "a",
    "all",
    "an",
    "and",
    "are",
    "can",
    "every",
    "for",
    "from",
    "how",
    "i",
    "in",
    "is",
    "me",
    "my",
    "of",
    "please",
    "some",
    "that",
    "the",
    "this",
    "to",
    "what",
    "why",
    "with",
    "you",
})


class UtteranceRouter:
    """Classify a raw line as direct tool syntax or natural language.

    Direct syntax is either ``,<tool-id> args...`` or a line that starts with
    one of the registry's aliases (``git status``, ``ls src``, ``docker ps``).
    Anything that could reasonably be read both ways is natural language.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry
        self._aliases: dict[tuple[str, ...], list[str]] = {
            tuple(alias.split()): tool_ids for alias, tool_ids in registry.alias_index().items()
        }
        self._longest_alias = max((len(words) for words in self._aliases), default=0)

    def classify(self, raw: str) -> Route:
        stripped = raw.strip()
        if not stripped:
            return NaturalLanguage(text="")

        if stripped.startswith(INTERNAL_PREFIX):
            route = self._classify_internal(stripped)
        else:
            route = self._classify_alias(stripped)

        if isinstance(route, NaturalLanguage) and route.ambiguity:
            logger.debug("router.natural_language reason={}", route.ambiguity)
        return route

    def _classify_internal(self, line: str) -> Route:
        parsed = parse_internal_command(line)
        if parsed is None:
            return NaturalLanguage(text=line, ambiguity="unparseable command")

        name, args_tokens = parsed
        tool_id = self._registry.resolve_name(name)
        if tool_id is None:
            return NaturalLanguage(text=line, ambiguity=f"unknown tool: {name}")
        return Direct(
            DirectCommand(tool_id=tool_id, raw=line, trigger=f"{INTERNAL_PREFIX}{name}", args_tokens=tuple(args_tokens))
        )

    def _classify_alias(self, line: str) -> Route:
        if line.endswith("?"):
            return NaturalLanguage(text=line)

        words = parse_command_words(line)
        if words is None:
            return NaturalLanguage(text=line, ambiguity="unbalanced quoting")
        if not words:
            return NaturalLanguage(text=line)

        lowered = tuple(word.casefold() for word in words)
        for size in range(min(self._longest_alias, len(words)), 0, -1):
            tool_ids = self._aliases.get(lowered[:size])
            if tool_ids is None:
                continue

            alias = " ".join(lowered[:size])
            if len(tool_ids) > 1:
                return NaturalLanguage(text=line, ambiguity=f"alias '{alias}' matches {', '.join(tool_ids)}")

            rest = words[size:]
            if any(word.casefold() in PROSE_WORDS for word in rest):
                return NaturalLanguage(text=line, ambiguity=f"'{alias}' followed by prose")

            capability = self._registry.require(tool_ids[0])
            return Direct(
                DirectCommand(
                    tool_id=capability.id,
                    raw=line,
                    trigger=alias,
                    args_tokens=tuple(rest),
                    preset=dict(capability.aliases[alias]),
                )
            )

        return NaturalLanguage(text=line)
