"""Application-level exception types for ollama-agent."""

from __future__ import annotations


class AgentError(Exception):
    """Base exception for ollama-agent."""


class ConfigurationError(AgentError):
    """Raised for configuration and startup validation errors."""


class BackendUnavailableError(AgentError):
    """Raised when the model backend cannot be reached or streams garbage."""


class BackendFatalError(AgentError):
    """Raised when the model backend can no longer serve this session."""


class UnknownToolError(AgentError, KeyError):
    """Raised when a tool id is not registered."""

    def __init__(self, tool_id: str) -> None:
        super().__init__(tool_id)
        self.tool_id = tool_id

    def __str__(self) -> str:
        return f"unknown tool: {self.tool_id}"


class PermissionDeniedError(AgentError):
    """Raised when a handler is dispatched without an allowing decision."""


class ToolExecutionError(AgentError):
    """Raised by tool handlers to report a failed run."""


class TurnInProgressError(AgentError):
    """Raised when a turn is submitted while another one is still running."""
