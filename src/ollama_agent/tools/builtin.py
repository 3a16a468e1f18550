"""Builtin tool catalog."""

from __future__ import annotations

from pathlib import Path

from ollama_agent.tools.factories import (
    register_container_tools,
    register_database_tools,
    register_fs_tools,
    register_package_tools,
    register_shell_tools,
    register_vcs_tools,
    register_web_tools,
)
from ollama_agent.tools.registry import ToolContext, ToolRegistry


def build_builtin_registry(workspace: Path, *, command_timeout: float = 120.0) -> ToolRegistry:
    """Assemble and seal the registry every session starts with."""
    registry = ToolRegistry(ToolContext(workspace=workspace, command_timeout=command_timeout))
    register_vcs_tools(registry)
    register_container_tools(registry)
    register_package_tools(registry)
    register_fs_tools(registry)
    register_shell_tools(registry)
    register_web_tools(registry)
    register_database_tools(registry)
    registry.seal()
    return registry
