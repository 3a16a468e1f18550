from pathlib import Path

import pytest
from conftest import RecordingConfirm

from ollama_agent.core.permissions import ApprovalRequest, PermissionGate
from ollama_agent.errors import PermissionDeniedError
from ollama_agent.tools import ToolRegistry
from ollama_agent.types import PermissionDecision, RiskTier, ToolInvocation


def test_safe_tools_are_approved_without_asking(registry: ToolRegistry) -> None:
    confirm = RecordingConfirm(False)
    decision = PermissionGate(registry).authorize(ToolInvocation("fs.list", {"path": "."}), RiskTier.SAFE, confirm)
    assert decision is PermissionDecision.APPROVED
    assert confirm.requests == []


def test_moderate_tools_ask_unless_auto_approved(registry: ToolRegistry) -> None:
    invocation = ToolInvocation("git.add", {"files": ["."]})

    confirm = RecordingConfirm(True)
    assert PermissionGate(registry).authorize(invocation, RiskTier.MODERATE, confirm) is (
        PermissionDecision.ASKED_AND_APPROVED
    )
    assert len(confirm.requests) == 1

    silent = RecordingConfirm(False)
    gate = PermissionGate(registry, auto_approve=["git.add"])
    assert gate.authorize(invocation, RiskTier.MODERATE, silent) is PermissionDecision.APPROVED
    assert silent.requests == []


def test_high_risk_always_asks_even_when_listed(registry: ToolRegistry) -> None:
    confirm = RecordingConfirm(False)
    gate = PermissionGate(registry, auto_approve=["fs.delete"])
    invocation = ToolInvocation("fs.delete", {"path": "/", "recursive": True})

    decision = gate.authorize(invocation, RiskTier.HIGH, confirm)

    assert decision is PermissionDecision.ASKED_AND_DENIED
    [request] = confirm.requests
    assert isinstance(request, ApprovalRequest)
    assert request.dangerous is True
    assert "POTENTIALLY DANGEROUS" in request.title
    assert request.summary == "Permanently delete / (recursive=True); this cannot be undone"
    assert ("path", "/") in request.details


def test_interrupted_confirmation_counts_as_denial(registry: ToolRegistry) -> None:
    def _interrupt(_request: ApprovalRequest) -> bool:
        raise KeyboardInterrupt

    decision = PermissionGate(registry).authorize(ToolInvocation("shell.exec", {"command": "ls"}), RiskTier.HIGH, _interrupt)
    assert decision is PermissionDecision.ASKED_AND_DENIED


@pytest.mark.parametrize(
    "decision",
    [PermissionDecision.APPROVED, PermissionDecision.DENIED, PermissionDecision.ASKED_AND_DENIED],
)
def test_registry_refuses_high_risk_without_explicit_approval(
    registry: ToolRegistry,
    tmp_path: Path,
    decision: PermissionDecision,
) -> None:
    target = tmp_path / "keep.txt"
    target.write_text("precious")

    with pytest.raises(PermissionDeniedError):
        registry.execute(ToolInvocation("fs.delete", {"path": str(target)}), decision=decision)
    assert target.exists()


def test_registry_runs_high_risk_after_asked_approval(registry: ToolRegistry, tmp_path: Path) -> None:
    target = tmp_path / "scratch.txt"
    target.write_text("tmp")

    result = registry.execute(
        ToolInvocation("fs.delete", {"path": str(target)}),
        decision=PermissionDecision.ASKED_AND_APPROVED,
    )

    assert result.success is True
    assert not target.exists()
