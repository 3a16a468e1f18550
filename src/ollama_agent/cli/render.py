"""CLI renderer for ollama-agent."""

import threading

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from ollama_agent.core.extractor import AmbiguousMatch
from ollama_agent.core.permissions import ApprovalRequest
from ollama_agent.core.session import Statistics, Turn, TurnOutcome
from ollama_agent.config import ModelConfig
from ollama_agent.integrations.ollama import ModelDetails, ModelInfo
from ollama_agent.tools.registry import ToolCapability
from ollama_agent.types import RiskTier, ToolInvocation, ToolResult

OUTPUT_PREVIEW_LIMIT = 4000
RISK_STYLES = {RiskTier.SAFE: "blue", RiskTier.MODERATE: "yellow", RiskTier.HIGH: "bold red"}
QUICK_COMMANDS = (
    ("quit/exit", "End the session"),
    ("stats", "Show session statistics"),
    ("tools", "List available tools"),
    ("model [name]", "Show or switch the active model"),
    ("models", "List installed models"),
    ("params", "Show generation parameters"),
    ("set <p> <v>", "Change a generation parameter, e.g. set temperature 0.2"),
    ("get <p>", "Show one generation parameter"),
    ("help", "Show this help"),
    (",<tool> args", "Call a tool directly, e.g. ,fs.read README.md"),
)


class Renderer:
    """CLI renderer using Rich for terminal output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._print_lock = threading.Lock()
        self._streaming = False

    def info(self, message: str) -> None:
        """Render an info message."""
        self._print(message)

    def error(self, message: str) -> None:
        """Render an error message."""
        self._print(f"[bold red]Error:[/bold red] {escape(message)}")

    def warning(self, message: str) -> None:
        self._print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def welcome(self, message: str = "[bold blue]ollama-agent[/bold blue] - local tools, local model.") -> None:
        """Render welcome message."""
        self._print(message)

    def usage_info(self, workspace_path: str, model: str, tool_count: int) -> None:
        """Render usage information."""
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Key", style="dim", width=12)
        table.add_column("Value", style="white")
        table.add_row("Workspace", workspace_path)
        table.add_row("Model", model)
        table.add_row("Tools", str(tool_count))
        self._print(table)
        self.help()

    def help(self) -> None:
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Command", style="bold green", width=14)
        table.add_column("Description", style="dim")
        for command, description in QUICK_COMMANDS:
            table.add_row(command, description)
        self._print(table)

    # -- streaming

    def assistant_fragment(self, text: str) -> None:
        with self._print_lock:
            if not self._streaming:
                self.console.print("[bold yellow]Assistant:[/bold yellow] ", end="")
                self._streaming = True
            self.console.print(text, end="", markup=False, highlight=False)

    def end_stream(self) -> None:
        with self._print_lock:
            if self._streaming:
                self.console.print()
                self._streaming = False

    # -- tools

    def tool_start(self, invocation: ToolInvocation) -> None:
        self.end_stream()
        self._print(Text(f"> {invocation.render()}", style="dim"))

    def tool_result(self, invocation: ToolInvocation, result: ToolResult) -> None:
        detail = result.detail
        if len(detail) > OUTPUT_PREVIEW_LIMIT:
            detail = detail[:OUTPUT_PREVIEW_LIMIT] + "\n... (truncated)"
        if result.success:
            self._print(Text(detail.rstrip() or "(no output)"))
            self._print(f"[dim]{invocation.tool_id} finished in {result.duration:.2f}s[/dim]")
            return
        self._print(Text(detail.rstrip(), style="red"))

    def turn_summary(self, turn: Turn) -> None:
        """Render how a turn ended when the streamed output does not already say so."""
        self.end_stream()
        if turn.outcome is TurnOutcome.CANCELLED:
            self.warning("generation cancelled")
            return
        if turn.error is None or turn.result is not None:
            return
        self.error(str(turn.error))

    # -- prompts

    def confirm(self, request: ApprovalRequest) -> bool:
        """Ask the user to approve one tool call."""
        self.end_stream()
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Key", style="blue", width=10)
        table.add_column("Value")
        for key, value in request.details:
            table.add_row(key, Text(value))
        style = RISK_STYLES.get(request.risk, "white")
        self._print(Panel(table, title=Text(request.summary), title_align="left", border_style=style))
        with self._print_lock:
            approved = Confirm.ask(f"[{style}]{request.title}[/{style}]", console=self.console, default=False)
        self._print("[green]Action approved[/green]" if approved else "[red]Action denied[/red]")
        return approved

    def choose_tool(self, match: AmbiguousMatch) -> str | None:
        """Let the user pick one candidate, or none, for an ambiguous reply."""
        self.end_stream()
        choices = [*match.candidates, "none"]
        with self._print_lock:
            choice = Prompt.ask(
                "[yellow]Several tools match this reply; which one?[/yellow]",
                console=self.console,
                choices=choices,
                default="none",
            )
        return None if choice == "none" else choice

    def ask(self, question: str) -> bool:
        with self._print_lock:
            return Confirm.ask(question, console=self.console, default=False)

    def get_user_input(self) -> str:
        """Prompt user for input."""
        return Prompt.ask("[bold green]You[/bold green]", console=self.console)

    # -- tables

    def statistics(self, stats: Statistics) -> None:
        table = Table(title="Session statistics", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Commands processed", str(stats.commands_processed))
        table.add_row("Tools executed", str(stats.tools_executed))
        table.add_row("Successes", str(stats.successes))
        table.add_row("Failures", str(stats.failures))
        table.add_row("Cancellations", str(stats.cancellations))
        table.add_row("Success rate", f"{stats.success_rate:.0%}")
        table.add_row("Average latency", f"{stats.average_latency:.2f}s")
        self._print(table)

    def tools(self, capabilities: list[ToolCapability]) -> None:
        table = Table(title="Tools")
        table.add_column("Id", style="bold")
        table.add_column("Risk")
        table.add_column("Aliases", style="dim")
        table.add_column("Description")
        for capability in capabilities:
            style = RISK_STYLES.get(capability.risk, "white")
            table.add_row(
                capability.id,
                Text(str(capability.risk), style=style),
                ", ".join(capability.aliases),
                capability.description,
            )
        self._print(table)

    def models(self, models: list[ModelInfo], active: str) -> None:
        table = Table(title="Installed models")
        table.add_column("Name", style="bold")
        table.add_column("Family")
        table.add_column("Parameters")
        table.add_column("Size", justify="right")
        for model in models:
            name = f"{model.name} (active)" if model.name == active else model.name
            table.add_row(name, model.family, model.parameter_size, f"{model.size_gb:.1f} GB")
        self._print(table)

    def model_details(self, details: ModelDetails) -> None:
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Key", style="cyan", width=14)
        table.add_column("Value")
        table.add_row("Family", details.family or "-")
        table.add_row("Parameters", details.parameter_size or "-")
        table.add_row("Quantization", details.quantization or "-")
        table.add_row("Format", details.format or "-")
        table.add_row("Context", str(details.context_length) if details.context_length else "-")
        if details.parameters:
            table.add_row("Defaults", Text(details.parameters))
        self._print(Panel(table, title=Text(details.name), title_align="left", border_style="blue"))

    def model_parameters(self, config: ModelConfig) -> None:
        table = Table(title="Generation parameters", show_header=False)
        table.add_column("Parameter", style="cyan")
        table.add_column("Value")
        for name, value in config.model_dump().items():
            table.add_row(name, Text(str(value)))
        self._print(table)

    def _print(self, message: object, *, markup: bool = True) -> None:
        with self._print_lock:
            self.console.print(message, markup=markup)


def create_cli_renderer() -> Renderer:
    """Create and return a Renderer instance."""
    return Renderer()
