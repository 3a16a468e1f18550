"""Prompt assembly for natural-language turns."""

from __future__ import annotations

from collections.abc import Sequence

from ollama_agent.core.session import Turn
from ollama_agent.tools.registry import ToolRegistry

TOOL_OUTPUT_PREVIEW = 500
REPLY_CONTRACT = (
    "If one of the tools above would answer the request, reply with a single JSON object "
    'such as {"tool": "<tool id>", "arguments": {"<name>": "<value>"}} and a one-line explanation. '
    "Otherwise answer in plain text."
)


def _render_turn(turn: Turn) -> list[str]:
    lines = [f"User: {turn.raw_input}"]
    if turn.generated_text:
        lines.append(f"Assistant: {turn.generated_text.strip()}")
    if turn.invocation is not None and turn.result is not None:
        detail = turn.result.detail
        if len(detail) > TOOL_OUTPUT_PREVIEW:
            detail = detail[:TOOL_OUTPUT_PREVIEW] + "..."
        status = "ok" if turn.result.success else "error"
        lines.append(f"Tool {turn.invocation.tool_id} ({status}): {detail}")
    return lines


def build_prompt(user_input: str, *, registry: ToolRegistry, history: Sequence[Turn] = ()) -> str:
    """Render the tool catalog, recent exchanges and the new input into one prompt."""
    sections = ["Available tools:", *(f"- {row}" for row in registry.compact_rows()), "", REPLY_CONTRACT]
    if history:
        sections.extend(["", "Recent conversation:"])
        for turn in history:
            sections.extend(_render_turn(turn))
    sections.extend(["", f"User: {user_input.strip()}", "Assistant:"])
    return "\n".join(sections)
