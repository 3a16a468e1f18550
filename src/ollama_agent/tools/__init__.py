"""Tools package for ollama-agent."""

from .builtin import build_builtin_registry
from .registry import ParamSpec, ToolCapability, ToolContext, ToolRegistry

__all__ = [
    "ParamSpec",
    "ToolCapability",
    "ToolContext",
    "ToolRegistry",
    "build_builtin_registry",
]
