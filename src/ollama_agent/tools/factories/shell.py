"""Shell and system tool factories."""

from __future__ import annotations

import os
import platform
import shutil
import socket
import subprocess

import psutil

from ollama_agent.errors import ToolExecutionError
from ollama_agent.tools.registry import ToolContext, ToolRegistry
from ollama_agent.types import RiskTier

from .shared import DiskInput, EmptyInput, ExecInput, ProcessInput, run_process

MAX_COMMAND_LENGTH = 1000


def register_shell_tools(registry: ToolRegistry) -> None:
    """Register the shell tool and read-only system reports."""

    @registry.tool(
        "shell.exec",
        params=ExecInput,
        risk=RiskTier.HIGH,
        name="run shell command",
        description="Run an arbitrary shell command with the user's privileges",
        keywords={"shell", "command", "execute", "exec", "bash", "terminal"},
        aliases=["exec"],
        effect="Run `{command}` in bash; it may modify files, install software or affect the system",
    )
    def shell_exec(params: ExecInput, context: ToolContext) -> str:
        if len(params.command) > MAX_COMMAND_LENGTH:
            raise ToolExecutionError("command is too long")
        if any(ch != "\n" and ch != "\t" and not ch.isprintable() for ch in params.command):
            raise ToolExecutionError("command contains non-printable characters")

        bash_executable = shutil.which("bash") or "bash"
        try:
            # User explicitly approved this command through the permission gate.
            result = subprocess.run(  # noqa: S603
                [bash_executable, "-lc", params.command],
                cwd=context.workspace,
                capture_output=True,
                text=True,
                timeout=context.command_timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolExecutionError(f"timed out after {context.command_timeout:.0f}s") from exc
        except (OSError, subprocess.SubprocessError) as exc:
            raise ToolExecutionError(str(exc)) from exc

        output = ((result.stdout or "") + (result.stderr or "")).strip()
        if result.returncode != 0:
            raise ToolExecutionError(f"exit={result.returncode}\n{output or '(empty)'}")
        return output or "(empty)"

    @registry.tool(
        "system.info",
        params=EmptyInput,
        risk=RiskTier.SAFE,
        name="system info",
        description="Show operating system, CPU and interpreter details",
        keywords={"system", "info", "os", "hardware", "cpu", "machine"},
        aliases=["sysinfo", "uname"],
    )
    def system_info(_params: EmptyInput, _context: ToolContext) -> str:
        uname = platform.uname()
        rows = [
            f"system: {uname.system} {uname.release}",
            f"machine: {uname.machine}",
            f"host: {uname.node}",
            f"cpus: {os.cpu_count() or 'unknown'}",
            f"python: {platform.python_version()}",
        ]
        return "\n".join(rows)

    @registry.tool(
        "system.disk",
        params=DiskInput,
        risk=RiskTier.SAFE,
        name="disk usage",
        description="Show total, used and free disk space",
        keywords={"disk", "space", "storage", "usage", "free"},
        aliases=["df"],
    )
    def system_disk(params: DiskInput, context: ToolContext) -> str:
        try:
            usage = shutil.disk_usage(context.resolve(params.path))
        except OSError as exc:
            raise ToolExecutionError(str(exc)) from exc
        return f"path: {params.path}\ntotal: {_gib(usage.total)}\nused: {_gib(usage.used)}\nfree: {_gib(usage.free)}"

    @registry.tool(
        "system.processes",
        params=ProcessInput,
        risk=RiskTier.SAFE,
        name="process list",
        description="List running processes",
        keywords={"processes", "process", "running", "ps", "tasks"},
        aliases=["ps"],
    )
    def system_processes(params: ProcessInput, context: ToolContext) -> str:
        output = run_process(["ps", "aux"], cwd=context.workspace, timeout=context.command_timeout)
        if not params.filter:
            return output
        lines = output.splitlines()
        kept = [line for line in lines[1:] if params.filter.casefold() in line.casefold()]
        return "\n".join([lines[0], *kept]) if kept else "none"

    @registry.tool(
        "system.memory",
        params=EmptyInput,
        risk=RiskTier.SAFE,
        name="memory stats",
        description="Show physical memory and swap usage",
        keywords={"memory", "ram", "swap"},
        aliases=["free"],
    )
    def system_memory(_params: EmptyInput, _context: ToolContext) -> str:
        memory = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return "\n".join(
            [
                f"total: {_gib(memory.total)}",
                f"available: {_gib(memory.available)}",
                f"used: {_gib(memory.used)} ({memory.percent:.0f}%)",
                f"swap: {_gib(swap.used)} of {_gib(swap.total)} ({swap.percent:.0f}%)",
            ]
        )

    @registry.tool(
        "system.network",
        params=EmptyInput,
        risk=RiskTier.SAFE,
        name="network interfaces",
        description="List network interfaces, their addresses and traffic counters",
        keywords={"network", "interfaces", "ip", "addresses", "nic"},
        aliases=["ifconfig", "ip addr"],
    )
    def system_network(_params: EmptyInput, _context: ToolContext) -> str:
        stats = psutil.net_if_stats()
        counters = psutil.net_io_counters(pernic=True)
        rows: list[str] = []
        for name, addresses in sorted(psutil.net_if_addrs().items()):
            state = "up" if name in stats and stats[name].isup else "down"
            rows.append(f"{name} ({state})")
            for address in addresses:
                if address.family in (socket.AF_INET, socket.AF_INET6):
                    rows.append(f"  {address.address}" + (f"/{address.netmask}" if address.netmask else ""))
            if name in counters:
                io = counters[name]
                rows.append(f"  sent {_mib(io.bytes_sent)}, received {_mib(io.bytes_recv)}")
        return "\n".join(rows) if rows else "no interfaces"


def _gib(size: int) -> str:
    return f"{size / 1024**3:.1f} GiB"


def _mib(size: int) -> str:
    return f"{size / 1024**2:.1f} MiB"
