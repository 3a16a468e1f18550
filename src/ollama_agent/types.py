"""Value types shared by the registry, the permission gate and the pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class RiskTier(StrEnum):
    SAFE = "safe"
    MODERATE = "moderate"
    HIGH = "high"


class PermissionDecision(StrEnum):
    APPROVED = "approved"
    DENIED = "denied"
    ASKED_AND_APPROVED = "asked_and_approved"
    ASKED_AND_DENIED = "asked_and_denied"

    @property
    def granted(self) -> bool:
        return self in (PermissionDecision.APPROVED, PermissionDecision.ASKED_AND_APPROVED)

    def allows(self, risk: RiskTier) -> bool:
        """Whether this decision is sufficient to run a tool of ``risk``."""
        if risk is RiskTier.HIGH:
            return self is PermissionDecision.ASKED_AND_APPROVED
        return self.granted


@dataclass(frozen=True)
class ToolInvocation:
    """A validated call of one registered tool."""

    tool_id: str
    arguments: Mapping[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        if not self.arguments:
            return self.tool_id
        args = " ".join(f"{key}={value!r}" for key, value in self.arguments.items())
        return f"{self.tool_id} {args}"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one handler run."""

    success: bool
    output: str = ""
    error: str | None = None
    duration: float = 0.0

    @property
    def detail(self) -> str:
        if self.success:
            return self.output
        return self.error or "tool failed"
