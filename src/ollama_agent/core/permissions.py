"""Risk-tiered permission gate."""

from __future__ import annotations

from typing import TypeAlias

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from loguru import logger

from ollama_agent.tools.registry import ToolRegistry
from ollama_agent.types import PermissionDecision, RiskTier, ToolInvocation


@dataclass(frozen=True)
class ApprovalRequest:
    """What the user is shown before a tool runs."""

    invocation: ToolInvocation
    risk: RiskTier
    title: str
    summary: str
    details: tuple[tuple[str, str], ...] = ()

    @property
    def dangerous(self) -> bool:
        return self.risk is RiskTier.HIGH


ConfirmFn: TypeAlias = Callable[[ApprovalRequest], bool]


class PermissionGate:
    """Decide whether an invocation may run.

    Safe tools are approved outright. Moderate tools ask unless their id is in
    ``auto_approve``. High-risk tools always ask, whatever the configuration.
    """

    def __init__(self, registry: ToolRegistry, *, auto_approve: Iterable[str] = ()) -> None:
        self._registry = registry
        self._auto_approve = frozenset(auto_approve)

    def build_request(self, invocation: ToolInvocation, risk: RiskTier) -> ApprovalRequest:
        capability = self._registry.require(invocation.tool_id)
        summary = capability.describe(invocation.arguments)
        if risk is RiskTier.HIGH:
            title = "Execute this POTENTIALLY DANGEROUS action?"
        else:
            title = "Execute this action?"
        details = [("Tool", capability.id), ("Risk", str(risk))]
        details.extend((name, str(value)) for name, value in invocation.arguments.items())
        details.append(("Effect", capability.description))
        return ApprovalRequest(
            invocation=invocation,
            risk=risk,
            title=title,
            summary=summary,
            details=tuple(details),
        )

    def authorize(self, invocation: ToolInvocation, risk: RiskTier, confirm: ConfirmFn) -> PermissionDecision:
        if risk is RiskTier.SAFE:
            decision = PermissionDecision.APPROVED
        elif risk is RiskTier.MODERATE and invocation.tool_id in self._auto_approve:
            decision = PermissionDecision.APPROVED
        else:
            request = self.build_request(invocation, risk)
            try:
                approved = bool(confirm(request))
            except (KeyboardInterrupt, EOFError):
                approved = False
            decision = PermissionDecision.ASKED_AND_APPROVED if approved else PermissionDecision.ASKED_AND_DENIED

        logger.info("permission.decision tool={} risk={} decision={}", invocation.tool_id, risk, decision)
        return decision
