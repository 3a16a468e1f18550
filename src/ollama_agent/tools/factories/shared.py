"""Shared tool input models and process helpers."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ollama_agent.errors import ToolExecutionError


class ToolInput(BaseModel):
    """Base for tool inputs: unknown parameters are rejected."""

    model_config = ConfigDict(extra="forbid")


# -- vcs


GitReadOnlyCommand = Literal["status", "log", "diff", "branch", "show"]

READ_ONLY_GIT_FLAGS: dict[str, frozenset[str]] = {
    "status": frozenset({"-s", "--short", "-b", "--branch", "--porcelain"}),
    "log": frozenset({
        "--oneline",
        "--stat",
        "--graph",
        "--all",
        "--decorate",
        "--reverse",
        "--first-parent",
        "--name-only",
        "--name-status",
        "-p",
        "--patch",
    }),
    "diff": frozenset({"--stat", "--shortstat", "--numstat", "--cached", "--staged", "--name-only", "--name-status"}),
    "show": frozenset({"--stat", "--name-only", "--name-status", "--oneline", "-s", "--no-patch"}),
    "branch": frozenset({"-a", "--all", "-r", "--remotes", "-v", "-vv", "--verbose", "--list", "--show-current"}),
}
# Subcommands where a bare word is a ref or path to inspect; for branch it would create one.
GIT_POSITIONALS_ALLOWED = frozenset({"status", "log", "diff", "show"})
LOG_COUNT_FLAGS = frozenset({"-n", "--max-count"})
REF_NAME_PATTERN = r"^[^\s-]\S*$"


def check_read_only_git_args(subcommand: str, args: Sequence[str]) -> None:
    """Raise ``ValueError`` unless ``git <subcommand> <args>`` can only read the repository."""
    allowed = READ_ONLY_GIT_FLAGS[subcommand]
    tokens = iter(args)
    only_paths = False
    for token in tokens:
        if only_paths or not token.startswith("-"):
            if subcommand not in GIT_POSITIONALS_ALLOWED:
                raise ValueError(f"git {subcommand} takes no names here; use git.exec to change branches")
            continue
        if token == "--":
            only_paths = True
            continue
        if subcommand == "log" and token in LOG_COUNT_FLAGS:
            count = next(tokens, "")
            if not count.isdigit():
                raise ValueError(f"{token} needs a number")
            continue
        if subcommand == "log" and (token[1:].isdigit() or token.removeprefix("--max-count=").isdigit()):
            continue
        if token not in allowed:
            raise ValueError(f"{token} is not a read-only option for git {subcommand}; use git.exec")


class GitInput(ToolInput):
    """Run a read-only git subcommand."""

    subcommand: GitReadOnlyCommand = Field(..., description="git subcommand")
    args: list[str] = Field(default_factory=list, description="Extra read-only options, refs or paths")

    @field_validator("args")
    @classmethod
    def validate_read_only(cls, value: list[str], info: ValidationInfo) -> list[str]:
        subcommand = info.data.get("subcommand")
        if subcommand is not None:
            check_read_only_git_args(subcommand, value)
        return value


class GitExecInput(ToolInput):
    """Run any git subcommand."""

    args: list[str] = Field(..., min_length=1, description="Subcommand and arguments, e.g. branch -D feature")


class GitAddInput(ToolInput):
    """Stage files."""

    files: list[str] = Field(default_factory=lambda: ["."], description="Paths to stage")


class GitCommitInput(ToolInput):
    """Create a commit."""

    message: str = Field(..., min_length=1, description="Commit message")


class GitRemoteInput(ToolInput):
    """Push to or pull from a remote."""

    remote: str | None = Field(default=None, pattern=REF_NAME_PATTERN, description="Remote name")
    branch: str | None = Field(default=None, pattern=REF_NAME_PATTERN, description="Branch name")


# -- containers


CONTAINER_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"


class DockerListInput(ToolInput):
    """List docker resources."""

    resource: Literal["containers", "images", "volumes", "networks"] = Field(default="containers")


class DockerContainerInput(ToolInput):
    """Target one container."""

    container: str = Field(..., pattern=CONTAINER_NAME_PATTERN, description="Container name or id")


class DockerLogsInput(ToolInput):
    """Show container logs."""

    container: str = Field(..., pattern=CONTAINER_NAME_PATTERN, description="Container name or id")
    tail: int | None = Field(default=100, ge=1, description="Number of lines")


class DockerRunInput(ToolInput):
    """Run a container in the background."""

    image: str = Field(..., pattern=r"^[^\s-]\S*$", description="Image reference")
    ports: list[str] = Field(default_factory=list, description="host:container port maps")


# -- packages


class PackageInput(ToolInput):
    """Install one package."""

    package: str = Field(..., description="Package name")


class PipListInput(ToolInput):
    """List installed Python packages."""


class NpmInstallInput(ToolInput):
    """Install node dependencies, or one package."""

    package: str | None = Field(default=None, description="Package name")
    dev: bool = Field(default=False, description="Install as dev dependency")


class NpmRunInput(ToolInput):
    """Run a package.json script."""

    script: str = Field(..., description="Script name")


class CargoInput(ToolInput):
    """Run a cargo operation."""

    operation: Literal["build", "test", "check", "run", "add", "remove"] = Field(..., description="cargo operation")
    package: str | None = Field(default=None, description="Crate for add/remove")


# -- filesystem


class ReadInput(ToolInput):
    """Read a file."""

    path: str = Field(..., description="Path to the file")
    limit: int | None = Field(default=None, ge=1, description="Maximum number of lines to read")


class WriteInput(ToolInput):
    """Write content to a file."""

    path: str = Field(..., description="Path to the file")
    content: str = Field(..., description="File contents")


class EditInput(ToolInput):
    """Edit a text file in place."""

    path: str = Field(..., description="Path to the file")
    operation: Literal["replace", "insert", "append", "delete"] = Field(..., description="Kind of edit")
    content: str | None = Field(default=None, description="New text for replace, insert and append")
    old: str | None = Field(default=None, description="Exact text to replace")
    line: int | None = Field(default=None, ge=1, description="1-based line to insert before, or first line to delete")
    end_line: int | None = Field(default=None, ge=1, description="Last line to delete, inclusive")


class ListInput(ToolInput):
    """List a directory."""

    path: str = Field(default=".", description="Directory to list")


class SearchInput(ToolInput):
    """Find files matching a glob pattern."""

    pattern: str = Field(..., description="Glob pattern")
    directory: str = Field(default=".", description="Base directory")


class GrepInput(ToolInput):
    """Search file contents for a regex."""

    pattern: str = Field(..., description="Regex pattern")
    directory: str = Field(default=".", description="Base directory")


class DeleteInput(ToolInput):
    """Delete a file or directory."""

    path: str = Field(..., description="Path to delete")
    recursive: bool = Field(default=False, description="Delete directories recursively")


# -- shell / system / web / database


class ExecInput(ToolInput):
    """Run a shell command."""

    command: str = Field(..., min_length=1, description="Shell command to run")


class EmptyInput(ToolInput):
    """No parameters."""


class DiskInput(ToolInput):
    """Show disk usage."""

    path: str = Field(default="/", description="Mount point or directory")


class ProcessInput(ToolInput):
    """List processes."""

    filter: str | None = Field(default=None, description="Substring to keep")


class HttpGetInput(ToolInput):
    """Fetch a URL."""

    url: str = Field(..., description="URL to fetch")


HttpMethod = Literal["get", "post", "put", "patch", "delete", "head", "options"]


class HttpRequestInput(ToolInput):
    """Send an HTTP request with any method."""

    url: str = Field(..., description="Request URL")
    method: HttpMethod = Field(default="get", description="HTTP method")
    body: str | None = Field(default=None, description="Request body; JSON bodies get a JSON content type")
    headers: list[str] = Field(default_factory=list, description="Header lines such as 'Accept: text/plain'")
    token: str | None = Field(
        default=None, json_schema_extra={"kind": "value"}, description="Bearer token for the Authorization header"
    )
    timeout: float = Field(default=30.0, gt=0, le=300, description="Seconds to wait for the response")


class RestInput(ToolInput):
    """Call a REST resource."""

    url: str = Field(..., description="Collection endpoint, e.g. https://api.example.com/users")
    operation: Literal["get", "create", "update", "delete"] = Field(default="get", description="CRUD operation")
    id: str | None = Field(
        default=None, json_schema_extra={"kind": "value"}, description="Resource id for get, update and delete"
    )
    data: str | None = Field(default=None, description="JSON document for create and update")
    token: str | None = Field(default=None, json_schema_extra={"kind": "value"}, description="Bearer token")


class GraphqlInput(ToolInput):
    """Run a GraphQL query or mutation."""

    url: str = Field(..., description="GraphQL endpoint")
    query: str = Field(..., min_length=1, description="GraphQL document")
    variables: str | None = Field(
        default=None, json_schema_extra={"kind": "value"}, description="JSON object of variables"
    )
    token: str | None = Field(default=None, json_schema_extra={"kind": "value"}, description="Bearer token")


class SqliteInput(ToolInput):
    """Run a SQL statement against a SQLite file."""

    database: str = Field(..., description="Path to the database file")
    query: str = Field(..., min_length=1, description="SQL statement")


def run_process(argv: Sequence[str], *, cwd: Path, timeout: float) -> str:
    """Run ``argv`` and return combined output; raise on a non-zero exit."""
    executable = shutil.which(argv[0])
    if executable is None:
        raise ToolExecutionError(f"{argv[0]}: command not found")
    try:
        result = subprocess.run(  # noqa: S603
            [executable, *argv[1:]],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise ToolExecutionError(f"{argv[0]}: timed out after {timeout:.0f}s") from exc
    except (OSError, subprocess.SubprocessError) as exc:
        raise ToolExecutionError(f"{argv[0]}: {exc!s}") from exc

    output = ((result.stdout or "") + (result.stderr or "")).strip()
    if result.returncode != 0:
        raise ToolExecutionError(f"exit={result.returncode}\n{output or '(empty)'}")
    return output or "(empty)"
