"""Ollama HTTP backend."""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from loguru import logger

from ollama_agent.config import ModelConfig
from ollama_agent.errors import BackendFatalError, BackendUnavailableError

HEALTH_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class ModelInfo:
    name: str
    size: int = 0
    family: str = ""
    parameter_size: str = ""
    quantization: str = ""

    @property
    def size_gb(self) -> float:
        return self.size / 1_073_741_824


@dataclass(frozen=True)
class ModelDetails:
    name: str
    family: str = ""
    parameter_size: str = ""
    quantization: str = ""
    format: str = ""
    context_length: int | None = None
    parameters: str = ""
    template: str = ""


class OllamaBackend:
    """Stream completions from a local Ollama server."""

    def __init__(self, host: str, model: str, *, timeout: float = 120.0) -> None:
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout

    def _request(
        self,
        path: str,
        payload: dict[str, Any] | None = None,
        *,
        method: str | None = None,
    ) -> urllib_request.Request:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        headers = {"Content-Type": "application/json"} if data is not None else {}
        return urllib_request.Request(  # noqa: S310
            f"{self.host}{path}",
            data=data,
            headers=headers,
            method=method or ("POST" if data is not None else "GET"),
        )

    def _call_json(self, request: urllib_request.Request) -> dict[str, Any]:
        path = urllib_parse.urlsplit(request.full_url).path
        try:
            with urllib_request.urlopen(request, timeout=self.timeout) as response:  # noqa: S310
                raw = response.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            self._raise_for_http(exc)
            raise
        except (urllib_error.URLError, OSError) as exc:
            raise BackendUnavailableError(f"cannot reach ollama at {self.host}: {exc!s}") from exc
        try:
            body = json.loads(raw or "{}")
        except ValueError as exc:
            raise BackendUnavailableError(f"ollama returned invalid JSON for {path}") from exc
        return body if isinstance(body, dict) else {}

    def _raise_for_http(self, exc: urllib_error.HTTPError) -> None:
        detail = ""
        try:
            body = json.loads(exc.read().decode("utf-8") or "{}")
            detail = str(body.get("error", "")) if isinstance(body, dict) else ""
        except (ValueError, OSError):
            detail = ""
        message = f"ollama returned HTTP {exc.code}" + (f": {detail}" if detail else "")
        if exc.code == 404:
            raise BackendFatalError(message) from exc
        raise BackendUnavailableError(message) from exc

    def stream(self, prompt: str, config: ModelConfig) -> Iterator[str]:
        """Yield response fragments for ``prompt`` as Ollama produces them."""
        payload = {
            "model": self.model,
            "prompt": prompt,
            "system": config.system_prompt,
            "stream": True,
            "options": config.to_options(),
        }
        logger.info("ollama.generate model={} prompt_chars={}", self.model, len(prompt))
        try:
            response = urllib_request.urlopen(self._request("/api/generate", payload), timeout=self.timeout)  # noqa: S310
        except urllib_error.HTTPError as exc:
            self._raise_for_http(exc)
            raise
        except (urllib_error.URLError, OSError) as exc:
            raise BackendUnavailableError(f"cannot reach ollama at {self.host}: {exc!s}") from exc

        with response:
            try:
                for raw_line in response:
                    line = raw_line.decode("utf-8").strip()
                    if not line:
                        continue
                    chunk = _parse_chunk(line)
                    if chunk.get("error"):
                        raise BackendUnavailableError(f"ollama error: {chunk['error']}")
                    text = chunk.get("response")
                    if isinstance(text, str) and text:
                        yield text
                    if chunk.get("done"):
                        logger.debug(
                            "ollama.generate.done eval_count={} total_duration={}",
                            chunk.get("eval_count"),
                            chunk.get("total_duration"),
                        )
                        return
            except OSError as exc:
                raise BackendUnavailableError(f"ollama stream interrupted: {exc!s}") from exc

        raise BackendUnavailableError("ollama stream ended without a done marker")

    def list_models(self) -> list[ModelInfo]:
        body = self._call_json(self._request("/api/tags"))
        models: list[ModelInfo] = []
        for item in body.get("models", []):
            details = item.get("details") or {}
            models.append(
                ModelInfo(
                    name=str(item.get("name", "")),
                    size=int(item.get("size") or 0),
                    family=str(details.get("family", "")),
                    parameter_size=str(details.get("parameter_size", "")),
                    quantization=str(details.get("quantization_level", "")),
                )
            )
        return models

    def show(self, name: str) -> ModelDetails:
        """Describe one installed model."""
        body = self._call_json(self._request("/api/show", {"model": name}))
        details = body.get("details") or {}
        model_info = body.get("model_info") or {}
        context_length = next(
            (int(value) for key, value in model_info.items() if key.endswith(".context_length")),
            None,
        )
        return ModelDetails(
            name=name,
            family=str(details.get("family", "")),
            parameter_size=str(details.get("parameter_size", "")),
            quantization=str(details.get("quantization_level", "")),
            format=str(details.get("format", "")),
            context_length=context_length,
            parameters=str(body.get("parameters", "")).strip(),
            template=str(body.get("template", "")).strip(),
        )

    def pull(self, name: str) -> Iterator[str]:
        """Download ``name`` and yield one status line per progress update."""
        request = self._request("/api/pull", {"model": name, "stream": True})
        try:
            response = urllib_request.urlopen(request, timeout=self.timeout)  # noqa: S310
        except urllib_error.HTTPError as exc:
            self._raise_for_http(exc)
            raise
        except (urllib_error.URLError, OSError) as exc:
            raise BackendUnavailableError(f"cannot reach ollama at {self.host}: {exc!s}") from exc

        logger.info("ollama.pull.start model={}", name)
        with response:
            try:
                for raw_line in response:
                    line = raw_line.decode("utf-8").strip()
                    if not line:
                        continue
                    chunk = _parse_chunk(line)
                    if chunk.get("error"):
                        raise BackendUnavailableError(f"ollama error: {chunk['error']}")
                    status = str(chunk.get("status", ""))
                    total = chunk.get("total")
                    completed = chunk.get("completed")
                    if total and completed is not None:
                        status = f"{status} {int(completed) * 100 // int(total)}%"
                    yield status
                    if chunk.get("status") == "success":
                        logger.info("ollama.pull.done model={}", name)
                        return
            except OSError as exc:
                raise BackendUnavailableError(f"ollama pull interrupted: {exc!s}") from exc

        raise BackendUnavailableError(f"pull of {name} ended without success")

    def delete(self, name: str) -> None:
        """Remove an installed model."""
        self._call_json(self._request("/api/delete", {"model": name}, method="DELETE"))
        logger.info("ollama.delete model={}", name)

    def is_healthy(self) -> bool:
        try:
            with urllib_request.urlopen(self._request("/api/tags"), timeout=HEALTH_TIMEOUT_SECONDS) as response:  # noqa: S310
                return response.status == 200
        except (urllib_error.URLError, OSError):
            return False


def _parse_chunk(line: str) -> dict[str, Any]:
    try:
        chunk = json.loads(line)
    except ValueError as exc:
        raise BackendUnavailableError(f"malformed stream line: {line[:80]}") from exc
    if not isinstance(chunk, dict):
        raise BackendUnavailableError(f"malformed stream line: {line[:80]}")
    return chunk
