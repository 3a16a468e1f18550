"""Filesystem tool factories."""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from ollama_agent.errors import ToolExecutionError
from ollama_agent.tools.registry import ToolContext, ToolRegistry
from ollama_agent.types import RiskTier

from .shared import DeleteInput, EditInput, GrepInput, ListInput, ReadInput, SearchInput, WriteInput

MAX_GREP_MATCHES = 50
MAX_SEARCH_RESULTS = 200
IGNORED_DIRS = frozenset({".git", "node_modules", "target", "__pycache__", ".venv"})


def register_fs_tools(registry: ToolRegistry) -> None:
    """Register filesystem tools."""

    @registry.tool(
        "fs.read",
        params=ReadInput,
        risk=RiskTier.SAFE,
        name="read file",
        description="Read a text file",
        keywords={"read", "show", "display", "open", "contents", "file"},
        aliases=["cat"],
        short_flags={"n": "limit"},
    )
    def read(params: ReadInput, context: ToolContext) -> str:
        file_path = context.resolve(params.path)
        try:
            lines = file_path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeError) as exc:
            raise ToolExecutionError(str(exc)) from exc

        if params.limit is not None:
            lines = lines[: params.limit]
        return "\n".join(f"{idx:4}| {line}" for idx, line in enumerate(lines, start=1))

    @registry.tool(
        "fs.write",
        params=WriteInput,
        risk=RiskTier.MODERATE,
        name="write file",
        description="Create or overwrite a file",
        keywords={"write", "save", "create", "file", "overwrite"},
        effect="Create or overwrite {path}",
    )
    def write(params: WriteInput, context: ToolContext) -> str:
        file_path = context.resolve(params.path)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(params.content, encoding="utf-8")
        except OSError as exc:
            raise ToolExecutionError(str(exc)) from exc
        return f"wrote {len(params.content)} bytes to {file_path}"

    @registry.tool(
        "fs.edit",
        params=EditInput,
        risk=RiskTier.MODERATE,
        name="edit file",
        description="Replace text in, insert lines into, append to, or delete lines from a file",
        keywords={"edit", "modify", "replace", "insert", "append", "lines"},
        effect="Edit {path} in place ({operation})",
    )
    def edit(params: EditInput, context: ToolContext) -> str:
        file_path = context.resolve(params.path)
        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeError) as exc:
            raise ToolExecutionError(str(exc)) from exc

        updated, summary = apply_edit(text, params)
        try:
            file_path.write_text(updated, encoding="utf-8")
        except OSError as exc:
            raise ToolExecutionError(str(exc)) from exc
        return f"{summary} in {file_path}"

    @registry.tool(
        "fs.list",
        params=ListInput,
        risk=RiskTier.SAFE,
        name="list directory",
        description="List the entries of a directory",
        keywords={"list", "directory", "folder", "files", "ls"},
        aliases=["ls", "dir"],
    )
    def list_directory(params: ListInput, context: ToolContext) -> str:
        base = context.resolve(params.path)
        try:
            entries = sorted(base.iterdir(), key=lambda item: (not item.is_dir(), item.name))
        except OSError as exc:
            raise ToolExecutionError(str(exc)) from exc
        if not entries:
            return "(empty)"
        return "\n".join(f"{entry.name}/" if entry.is_dir() else entry.name for entry in entries)

    @registry.tool(
        "fs.search",
        params=SearchInput,
        risk=RiskTier.SAFE,
        name="find files",
        description="Find files whose names match a glob pattern",
        keywords={"find", "locate", "search", "files", "named", "glob"},
        aliases=["find"],
    )
    def search(params: SearchInput, context: ToolContext) -> str:
        base = context.resolve(params.directory)
        matches: list[str] = []
        for path in base.rglob(params.pattern):
            if _ignored(path, base):
                continue
            matches.append(str(path.relative_to(base)))
            if len(matches) >= MAX_SEARCH_RESULTS:
                break
        return "\n".join(sorted(matches)) if matches else "none"

    @registry.tool(
        "fs.grep",
        params=GrepInput,
        risk=RiskTier.SAFE,
        name="search content",
        description="Search file contents for a regex",
        keywords={"grep", "search", "content", "text", "occurrences", "containing"},
        aliases=["grep", "rg"],
    )
    def grep(params: GrepInput, context: ToolContext) -> str:
        base = context.resolve(params.directory)
        try:
            regex = re.compile(params.pattern)
        except re.error as exc:
            raise ToolExecutionError(f"bad pattern: {exc!s}") from exc

        matches: list[str] = []
        for file_path in base.rglob("*"):
            if not file_path.is_file() or _ignored(file_path, base):
                continue
            try:
                text = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeError):
                continue
            for idx, line in enumerate(text.splitlines(), start=1):
                if regex.search(line):
                    matches.append(f"{file_path.relative_to(base)}:{idx}:{line}")
                    if len(matches) >= MAX_GREP_MATCHES:
                        return "\n".join(matches)
        return "\n".join(matches) if matches else "none"

    @registry.tool(
        "fs.delete",
        params=DeleteInput,
        risk=RiskTier.HIGH,
        name="delete files",
        description="Delete a file, or a directory tree when recursive",
        keywords={"delete", "remove", "erase", "wipe", "rm", "files", "file"},
        aliases=["rm"],
        short_flags={"r": "recursive", "rf": "recursive"},
        effect="Permanently delete {path} (recursive={recursive}); this cannot be undone",
    )
    def delete(params: DeleteInput, context: ToolContext) -> str:
        target = context.resolve(params.path)
        if not target.exists():
            raise ToolExecutionError(f"no such file or directory: {target}")
        try:
            if target.is_dir():
                if not params.recursive:
                    raise ToolExecutionError(f"{target} is a directory; pass recursive=true")
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as exc:
            raise ToolExecutionError(str(exc)) from exc
        return f"deleted {target}"


def _ignored(path: Path, base: Path) -> bool:
    try:
        parts = path.relative_to(base).parts
    except ValueError:
        return False
    return any(part in IGNORED_DIRS for part in parts)


def apply_edit(text: str, params: EditInput) -> tuple[str, str]:
    """Return the edited text and a one-line summary of the change."""
    lines = text.splitlines(keepends=True)
    match params.operation:
        case "replace":
            if not params.old:
                raise ToolExecutionError("replace needs old")
            count = text.count(params.old)
            if count == 0:
                raise ToolExecutionError("old text not found")
            return text.replace(params.old, params.content or ""), f"replaced {count} occurrence(s)"
        case "insert":
            if params.line is None or params.content is None:
                raise ToolExecutionError("insert needs line and content")
            if params.line > len(lines) + 1:
                raise ToolExecutionError(f"line {params.line} is past the end ({len(lines)} lines)")
            if params.line == len(lines) + 1 and lines and not lines[-1].endswith("\n"):
                lines[-1] += "\n"
            lines.insert(params.line - 1, _as_line(params.content))
            return "".join(lines), f"inserted at line {params.line}"
        case "append":
            if params.content is None:
                raise ToolExecutionError("append needs content")
            prefix = "" if not text or text.endswith("\n") else "\n"
            return text + prefix + _as_line(params.content), "appended"
        case "delete":
            if params.line is None:
                raise ToolExecutionError("delete needs line")
            end = params.end_line or params.line
            if end < params.line or end > len(lines):
                raise ToolExecutionError(f"lines {params.line}-{end} are outside the file ({len(lines)} lines)")
            del lines[params.line - 1 : end]
            return "".join(lines), f"deleted lines {params.line}-{end}"
    raise ToolExecutionError(f"unknown operation: {params.operation}")


def _as_line(content: str) -> str:
    return content if content.endswith("\n") else content + "\n"
