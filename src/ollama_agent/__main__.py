"""ollama-agent CLI entry point."""

from ollama_agent.cli import app

if __name__ == "__main__":
    app()
