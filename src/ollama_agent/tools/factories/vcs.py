"""Git tool factories."""

from __future__ import annotations

from ollama_agent.tools.registry import ToolContext, ToolRegistry
from ollama_agent.types import RiskTier

from .shared import GitAddInput, GitCommitInput, GitExecInput, GitInput, GitRemoteInput, run_process


def register_vcs_tools(registry: ToolRegistry) -> None:
    """Register git tools."""

    @registry.tool(
        "git",
        params=GitInput,
        risk=RiskTier.SAFE,
        name="git inspect",
        description="Inspect a git repository (status, log, diff, branch, show)",
        keywords={"git", "repo", "repository", "status", "log", "history", "diff", "changes", "branch", "commits"},
        aliases=["git"],
    )
    def git(params: GitInput, context: ToolContext) -> str:
        argv = ["git", params.subcommand, *params.args]
        if params.subcommand in {"diff", "show"}:
            argv.insert(2, "--no-ext-diff")
        if params.subcommand == "log" and not params.args:
            argv = ["git", "log", "--oneline", "-n", "10"]
        return run_process(argv, cwd=context.workspace, timeout=context.command_timeout)

    @registry.tool(
        "git.exec",
        params=GitExecInput,
        risk=RiskTier.HIGH,
        name="git passthrough",
        description="Run any git subcommand, including ones that rewrite branches or history",
        keywords={"checkout", "switch", "reset", "rebase", "stash", "merge", "tag"},
        effect="Run git {args}",
    )
    def git_exec(params: GitExecInput, context: ToolContext) -> str:
        return run_process(["git", *params.args], cwd=context.workspace, timeout=context.command_timeout)

    @registry.tool(
        "git.add",
        params=GitAddInput,
        risk=RiskTier.MODERATE,
        name="git add",
        description="Stage files for commit",
        keywords={"stage", "add", "staging"},
        aliases=["git add"],
        effect="Stage {files} in the git index",
    )
    def git_add(params: GitAddInput, context: ToolContext) -> str:
        return run_process(["git", "add", "--", *params.files], cwd=context.workspace, timeout=context.command_timeout)

    @registry.tool(
        "git.commit",
        params=GitCommitInput,
        risk=RiskTier.MODERATE,
        name="git commit",
        description="Record staged changes with a message",
        keywords={"commit", "message"},
        aliases=["git commit"],
        short_flags={"m": "message"},
        effect="Commit staged changes with message {message!r}",
    )
    def git_commit(params: GitCommitInput, context: ToolContext) -> str:
        return run_process(
            ["git", "commit", "-m", params.message],
            cwd=context.workspace,
            timeout=context.command_timeout,
        )

    @registry.tool(
        "git.pull",
        params=GitRemoteInput,
        risk=RiskTier.MODERATE,
        name="git pull",
        description="Fetch and merge from a remote",
        keywords={"pull", "fetch", "update", "remote"},
        aliases=["git pull"],
        effect="Merge remote changes into the working tree",
    )
    def git_pull(params: GitRemoteInput, context: ToolContext) -> str:
        return run_process(_remote_argv("pull", params), cwd=context.workspace, timeout=context.command_timeout)

    @registry.tool(
        "git.push",
        params=GitRemoteInput,
        risk=RiskTier.HIGH,
        name="git push",
        description="Publish local commits to a remote",
        keywords={"push", "publish", "upload", "remote"},
        aliases=["git push"],
        effect="Publish local commits (remote={remote}, branch={branch}); others will see them",
    )
    def git_push(params: GitRemoteInput, context: ToolContext) -> str:
        return run_process(_remote_argv("push", params), cwd=context.workspace, timeout=context.command_timeout)


def _remote_argv(verb: str, params: GitRemoteInput) -> list[str]:
    argv = ["git", verb]
    if params.remote:
        argv.append(params.remote)
        if params.branch:
            argv.append(params.branch)
    return argv
