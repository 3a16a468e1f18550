"""Docker tool factories."""

from __future__ import annotations

from ollama_agent.tools.registry import ToolContext, ToolRegistry
from ollama_agent.types import RiskTier

from .shared import DockerContainerInput, DockerListInput, DockerLogsInput, DockerRunInput, run_process

_LIST_ARGV = {
    "containers": ["docker", "ps", "--all"],
    "images": ["docker", "images"],
    "volumes": ["docker", "volume", "ls"],
    "networks": ["docker", "network", "ls"],
}


def register_container_tools(registry: ToolRegistry) -> None:
    """Register docker tools."""

    @registry.tool(
        "docker.list",
        params=DockerListInput,
        risk=RiskTier.SAFE,
        name="docker list",
        description="List docker containers, images, volumes or networks",
        keywords={"docker", "containers", "images", "volumes", "networks", "list"},
        aliases={
            "docker ps": {"resource": "containers"},
            "docker images": {"resource": "images"},
            "docker list": {},
        },
    )
    def docker_list(params: DockerListInput, context: ToolContext) -> str:
        return run_process(_LIST_ARGV[params.resource], cwd=context.workspace, timeout=context.command_timeout)

    @registry.tool(
        "docker.logs",
        params=DockerLogsInput,
        risk=RiskTier.SAFE,
        name="docker logs",
        description="Show recent logs of a container",
        keywords={"docker", "logs", "container", "output"},
        aliases=["docker logs"],
    )
    def docker_logs(params: DockerLogsInput, context: ToolContext) -> str:
        argv = ["docker", "logs"]
        if params.tail is not None:
            argv.extend(["--tail", str(params.tail)])
        argv.append(params.container)
        return run_process(argv, cwd=context.workspace, timeout=context.command_timeout)

    @registry.tool(
        "docker.stop",
        params=DockerContainerInput,
        risk=RiskTier.MODERATE,
        name="docker stop",
        description="Stop a running container",
        keywords={"docker", "stop", "container", "halt"},
        aliases=["docker stop"],
        effect="Stop container {container}",
    )
    def docker_stop(params: DockerContainerInput, context: ToolContext) -> str:
        return run_process(["docker", "stop", params.container], cwd=context.workspace, timeout=context.command_timeout)

    @registry.tool(
        "docker.run",
        params=DockerRunInput,
        risk=RiskTier.HIGH,
        name="docker run",
        description="Start a detached container from an image",
        keywords={"docker", "run", "start", "container", "image"},
        aliases=["docker run"],
        short_flags={"p": "ports"},
        effect="Pull if needed and start image {image} with ports {ports}",
    )
    def docker_run(params: DockerRunInput, context: ToolContext) -> str:
        argv = ["docker", "run", "--detach"]
        for mapping in params.ports:
            argv.extend(["--publish", mapping])
        argv.append(params.image)
        return run_process(argv, cwd=context.workspace, timeout=context.command_timeout)
