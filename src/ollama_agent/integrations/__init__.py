"""Model backend integrations."""

from .ollama import ModelDetails, ModelInfo, OllamaBackend

__all__ = ["ModelDetails", "ModelInfo", "OllamaBackend"]
