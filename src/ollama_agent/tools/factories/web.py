"""Web tool factories."""

from __future__ import annotations

import json
from collections.abc import Mapping
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from ollama_agent.errors import ToolExecutionError
from ollama_agent.tools.registry import ToolContext, ToolRegistry
from ollama_agent.types import RiskTier

from .shared import GraphqlInput, HttpGetInput, HttpRequestInput, RestInput

REQUEST_TIMEOUT_SECONDS = 20
MAX_FETCH_BYTES = 1_000_000
USER_AGENT = "ollama-agent/0.2"
REST_METHODS = {"get": "GET", "create": "POST", "update": "PUT", "delete": "DELETE"}


def register_web_tools(registry: ToolRegistry) -> None:
    """Register HTTP tools."""

    @registry.tool(
        "http.get",
        params=HttpGetInput,
        risk=RiskTier.SAFE,
        name="fetch url",
        description="Fetch a URL and return the response body",
        keywords={"http", "https", "fetch", "url", "download", "request", "api", "website"},
        aliases=["http", "fetch"],
    )
    def http_get(params: HttpGetInput, _context: ToolContext) -> str:
        return send_request(_require_url(params.url), "GET")

    @registry.tool(
        "http.request",
        params=HttpRequestInput,
        risk=RiskTier.MODERATE,
        name="http request",
        description="Send an HTTP request with any method, headers and body",
        keywords={"post", "put", "patch", "method", "headers", "payload"},
        short_flags={"X": "method", "H": "headers", "d": "body"},
        effect="Send {method} {url}",
    )
    def http_request(params: HttpRequestInput, _context: ToolContext) -> str:
        headers = dict(_parse_header(line) for line in params.headers)
        if params.token:
            headers["Authorization"] = f"Bearer {params.token}"
        body = params.body.encode("utf-8") if params.body is not None else None
        if body is not None and not any(name.casefold() == "content-type" for name in headers):
            headers["Content-Type"] = "application/json" if _is_json(params.body) else "text/plain; charset=utf-8"
        return send_request(
            _require_url(params.url),
            params.method.upper(),
            headers=headers,
            body=body,
            timeout=params.timeout,
        )

    @registry.tool(
        "http.rest",
        params=RestInput,
        risk=RiskTier.MODERATE,
        name="rest api",
        description="Get, create, update or delete a resource of a JSON REST API",
        keywords={"rest", "resource", "crud", "record"},
        effect="{operation} on {url} (id={id})",
    )
    def http_rest(params: RestInput, _context: ToolContext) -> str:
        url = _require_url(params.url).rstrip("/")
        if params.operation in ("update", "delete") and not params.id:
            raise ToolExecutionError(f"{params.operation} needs an id")
        if params.operation in ("create", "update") and params.data is None:
            raise ToolExecutionError(f"{params.operation} needs data")
        if params.id:
            url = f"{url}/{urllib_parse.quote(params.id, safe='')}"

        headers = {"Accept": "application/json"}
        if params.token:
            headers["Authorization"] = f"Bearer {params.token}"
        body = None
        if params.data is not None and params.operation in ("create", "update"):
            body = json.dumps(_load_json(params.data, "data")).encode("utf-8")
            headers["Content-Type"] = "application/json"
        return send_request(url, REST_METHODS[params.operation], headers=headers, body=body)

    @registry.tool(
        "http.graphql",
        params=GraphqlInput,
        risk=RiskTier.MODERATE,
        name="graphql query",
        description="Send a GraphQL query or mutation to an endpoint",
        keywords={"graphql", "gql", "mutation"},
        effect="Send a GraphQL document to {url}",
    )
    def http_graphql(params: GraphqlInput, _context: ToolContext) -> str:
        payload: dict[str, object] = {"query": params.query}
        if params.variables:
            variables = _load_json(params.variables, "variables")
            if not isinstance(variables, dict):
                raise ToolExecutionError("variables must be a JSON object")
            payload["variables"] = variables
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if params.token:
            headers["Authorization"] = f"Bearer {params.token}"
        return send_request(
            _require_url(params.url),
            "POST",
            headers=headers,
            body=json.dumps(payload).encode("utf-8"),
        )


def send_request(
    url: str,
    method: str,
    *,
    headers: Mapping[str, str] | None = None,
    body: bytes | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> str:
    """Send one request and render ``HTTP <status>`` followed by the body."""
    request = urllib_request.Request(  # noqa: S310
        url,
        data=body,
        headers={"User-Agent": USER_AGENT, **(headers or {})},
        method=method,
    )
    try:
        with urllib_request.urlopen(request, timeout=timeout) as response:  # noqa: S310
            status = response.status
            body_bytes = response.read(MAX_FETCH_BYTES + 1)
            charset = response.headers.get_content_charset() or "utf-8"
    except urllib_error.HTTPError as exc:
        raise ToolExecutionError(f"HTTP {exc.code}: {exc.reason}") from exc
    except (urllib_error.URLError, OSError) as exc:
        raise ToolExecutionError(str(exc)) from exc

    truncated = len(body_bytes) > MAX_FETCH_BYTES
    text = body_bytes[:MAX_FETCH_BYTES].decode(charset, errors="replace")
    suffix = "\n\n[truncated: response exceeded byte limit]" if truncated else ""
    return f"HTTP {status}\n{text}{suffix}"


def normalize_url(raw_url: str) -> str | None:
    """Return an http(s) URL, adding a scheme when it is missing."""
    candidate = raw_url.strip()
    if not candidate:
        return None
    parsed = urllib_parse.urlparse(candidate)
    if not parsed.scheme:
        parsed = urllib_parse.urlparse(f"https://{candidate}")
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    return urllib_parse.urlunparse(parsed)


def _require_url(raw_url: str) -> str:
    url = normalize_url(raw_url)
    if not url:
        raise ToolExecutionError(f"invalid url: {raw_url}")
    return url


def _parse_header(line: str) -> tuple[str, str]:
    name, sep, value = line.partition(":")
    if not sep or not name.strip():
        raise ToolExecutionError(f"bad header (expected 'Name: value'): {line}")
    return name.strip(), value.strip()


def _is_json(text: str | None) -> bool:
    try:
        json.loads(text or "")
    except ValueError:
        return False
    return True


def _load_json(text: str, name: str) -> object:
    try:
        return json.loads(text)
    except ValueError as exc:
        raise ToolExecutionError(f"{name} is not valid JSON: {exc}") from exc
