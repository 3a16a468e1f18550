"""Configuration management for ollama-agent."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are a terminal assistant running on the user's machine. "
    "You can run local tools for version control, containers, packages, files, "
    "network requests and databases."
)


class ModelConfig(BaseModel):
    """Generation parameters sent with every model request."""

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, ge=1)
    top_p: float = Field(default=0.9, gt=0.0, le=1.0)
    top_k: int = Field(default=40, ge=1)
    repeat_penalty: float = Field(default=1.1, gt=0.0)
    context_length: int = Field(default=4096, ge=256)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    def to_options(self) -> dict[str, float | int]:
        """Render the Ollama ``options`` payload."""
        return {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "top_k": self.top_k,
            "repeat_penalty": self.repeat_penalty,
            "num_predict": self.max_tokens,
            "num_ctx": self.context_length,
        }


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="OLLAMA_AGENT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend
    ollama_host: str = Field(default="http://localhost:11434", description="Ollama server base URL")
    model: str = Field(default="llama3.2", description="Active model identifier")
    request_timeout: float = Field(default=120.0, gt=0, description="Seconds to wait for backend I/O")

    # Generation defaults
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, ge=1)
    top_p: float = Field(default=0.9, gt=0.0, le=1.0)
    top_k: int = Field(default=40, ge=1)
    repeat_penalty: float = Field(default=1.1, gt=0.0)
    context_length: int = Field(default=4096, ge=256)
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)

    # Pipeline
    match_threshold: float = Field(default=2.0, gt=0, description="Minimum intent score for a tool match")
    auto_approve_safe: list[str] = Field(
        default_factory=list,
        description="Moderate-risk tool ids that run without asking",
    )
    poll_interval: float = Field(default=0.05, gt=0, le=0.05, description="Stream poll interval in seconds")
    history_turns: int = Field(default=3, ge=0, description="Exchanges replayed into the prompt")
    command_timeout: float = Field(default=120.0, gt=0, description="Seconds before a tool subprocess is killed")

    # Logging
    log_level: str | None = Field(default=None, description="Overrides the per-profile default level")

    def model_parameters(self) -> ModelConfig:
        return ModelConfig(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            top_k=self.top_k,
            repeat_penalty=self.repeat_penalty,
            context_length=self.context_length,
            system_prompt=self.system_prompt,
        )


def load_settings(workspace: Path | None = None, **overrides: object) -> Settings:
    """Load settings from the environment and the workspace ``.env`` file.

    Args:
        workspace: Directory whose ``.env`` file is read, if present.
        overrides: Non-``None`` values replace the loaded ones (CLI flags).

    Returns:
        Settings instance
    """
    env_file = workspace / ".env" if workspace is not None else ".env"
    settings = Settings(_env_file=env_file)  # type: ignore[call-arg]
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = Settings.model_validate({**settings.model_dump(), **updates})
    return settings
