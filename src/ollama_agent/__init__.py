"""ollama-agent - a terminal assistant that runs local tools through a local model."""

from .core.pipeline import TurnPipeline
from .core.session import Session, Statistics, Turn
from .runtime import AgentRuntime
from .tools import ToolRegistry

__version__ = "0.2.0"

__all__ = ["AgentRuntime", "Session", "Statistics", "ToolRegistry", "Turn", "TurnPipeline"]
