"""Command parsing helpers."""

from __future__ import annotations

import re
import shlex
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass

KEY_VALUE_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_-]*)=(.*)$", re.DOTALL)
SHORT_FLAG_RE = re.compile(r"^-([A-Za-z][A-Za-z0-9]*)$")


@dataclass(frozen=True)
class ParsedArgs:
    """Parsed command arguments."""

    kwargs: dict[str, object]
    positional: list[str]


def parse_command_words(text: str) -> list[str] | None:
    """Split command text into words using shell rules; ``None`` when quoting is unbalanced."""

    try:
        return shlex.split(text)
    except ValueError:
        return None


def parse_internal_command(line: str) -> tuple[str, list[str]] | None:
    """Parse ',name ...' command line into name and args tokens."""

    body = line.strip()[1:].strip()
    words = parse_command_words(body)
    if not words:
        return None

    return words[0], words[1:]


def _key(raw: str) -> str:
    return raw.replace("-", "_")


def parse_kv_arguments(
    tokens: Sequence[str],
    *,
    short_flags: Mapping[str, str] | None = None,
    switches: Collection[str] = (),
) -> ParsedArgs:
    """Parse tool arguments from tokens.

    ``--key value``, ``--key=value`` and ``key=value`` become keyword arguments.
    ``-x`` is only treated as a flag when ``short_flags`` maps it to a parameter;
    otherwise it stays positional so it can be forwarded to the underlying tool.
    Parameters listed in ``switches`` never consume the following token.
    """

    short_flags = short_flags or {}
    kwargs: dict[str, object] = {}
    positional: list[str] = []
    idx = 0
    while idx < len(tokens):
        token = tokens[idx]

        if token == "--":
            positional.extend(tokens[idx + 1 :])
            break

        if token.startswith("--") and len(token) > 2:
            key = token[2:]
            if "=" in key:
                name, value = key.split("=", 1)
                kwargs[_key(name)] = value
                idx += 1
                continue

            name = _key(key)
            if name not in switches and idx + 1 < len(tokens) and not tokens[idx + 1].startswith("--"):
                kwargs[name] = tokens[idx + 1]
                idx += 2
                continue

            kwargs[name] = True
            idx += 1
            continue

        short = SHORT_FLAG_RE.match(token)
        if short and short.group(1) in short_flags:
            name = short_flags[short.group(1)]
            if name not in switches and idx + 1 < len(tokens):
                kwargs[name] = tokens[idx + 1]
                idx += 2
                continue

            kwargs[name] = True
            idx += 1
            continue

        pair = KEY_VALUE_RE.match(token)
        if pair:
            kwargs[_key(pair.group(1))] = pair.group(2)
            idx += 1
            continue

        positional.append(token)
        idx += 1

    return ParsedArgs(kwargs=kwargs, positional=positional)
