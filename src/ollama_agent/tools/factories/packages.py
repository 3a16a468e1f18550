"""Package manager tool factories."""

from __future__ import annotations

import sys

from ollama_agent.errors import ToolExecutionError
from ollama_agent.tools.registry import ToolContext, ToolRegistry
from ollama_agent.types import RiskTier

from .shared import CargoInput, NpmInstallInput, NpmRunInput, PackageInput, PipListInput, run_process


def register_package_tools(registry: ToolRegistry) -> None:
    """Register pip, npm and cargo tools."""

    @registry.tool(
        "pip.list",
        params=PipListInput,
        risk=RiskTier.SAFE,
        name="pip list",
        description="List installed Python packages",
        keywords={"pip", "python", "packages", "installed", "list"},
        aliases=["pip list", "pip freeze"],
    )
    def pip_list(_params: PipListInput, context: ToolContext) -> str:
        return run_process(
            [sys.executable, "-m", "pip", "list"],
            cwd=context.workspace,
            timeout=context.command_timeout,
        )

    @registry.tool(
        "pip.install",
        params=PackageInput,
        risk=RiskTier.MODERATE,
        name="pip install",
        description="Install a Python package into the current interpreter",
        keywords={"pip", "python", "install", "package"},
        aliases=["pip install"],
        effect="Install Python package {package}",
    )
    def pip_install(params: PackageInput, context: ToolContext) -> str:
        return run_process(
            [sys.executable, "-m", "pip", "install", params.package],
            cwd=context.workspace,
            timeout=context.command_timeout,
        )

    @registry.tool(
        "npm.install",
        params=NpmInstallInput,
        risk=RiskTier.MODERATE,
        name="npm install",
        description="Install node dependencies or one package",
        keywords={"npm", "node", "javascript", "install", "dependencies"},
        aliases=["npm install", "npm i"],
        short_flags={"D": "dev"},
        effect="Install node package {package}",
    )
    def npm_install(params: NpmInstallInput, context: ToolContext) -> str:
        argv = ["npm", "install"]
        if params.package:
            argv.append(params.package)
        if params.dev:
            argv.append("--save-dev")
        return run_process(argv, cwd=context.workspace, timeout=context.command_timeout)

    @registry.tool(
        "npm.run",
        params=NpmRunInput,
        risk=RiskTier.MODERATE,
        name="npm run",
        description="Run a script from package.json",
        keywords={"npm", "script", "run", "node"},
        aliases=["npm run"],
        effect="Run npm script {script}",
    )
    def npm_run(params: NpmRunInput, context: ToolContext) -> str:
        return run_process(["npm", "run", params.script], cwd=context.workspace, timeout=context.command_timeout)

    @registry.tool(
        "cargo",
        params=CargoInput,
        risk=RiskTier.MODERATE,
        name="cargo",
        description="Build, test, check or run a Rust project; add or remove crates",
        keywords={"cargo", "rust", "crate", "build", "compile"},
        aliases=["cargo"],
        effect="Run cargo {operation} {package}",
    )
    def cargo(params: CargoInput, context: ToolContext) -> str:
        argv = ["cargo", params.operation]
        if params.operation in ("add", "remove"):
            if not params.package:
                raise ToolExecutionError(f"cargo {params.operation} needs a package")
            argv.append(params.package)
        return run_process(argv, cwd=context.workspace, timeout=context.command_timeout)
