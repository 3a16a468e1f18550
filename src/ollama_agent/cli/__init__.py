"""CLI package for ollama-agent."""

from .app import app

__all__ = ["app"]
