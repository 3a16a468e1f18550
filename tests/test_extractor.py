import pytest

from ollama_agent.core.extractor import (
    AmbiguousMatch,
    MalformedArguments,
    NoToolFound,
    ToolCallExtractor,
    find_tool_hint,
)
from ollama_agent.core.router import UtteranceRouter
from ollama_agent.core.types import Direct, DirectCommand
from ollama_agent.tools import ToolRegistry
from ollama_agent.types import ToolInvocation


def _direct(registry: ToolRegistry, text: str) -> DirectCommand:
    route = UtteranceRouter(registry).classify(text)
    assert isinstance(route, Direct)
    return route.command


def test_direct_binds_choice_and_list(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "git log -n 5"))
    assert isinstance(result, ToolInvocation)
    assert result.tool_id == "git"
    assert dict(result.arguments) == {"subcommand": "log", "args": ["-n", "5"]}


def test_direct_short_flag_binds_message(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "git commit -m 'fix the parser'"))
    assert isinstance(result, ToolInvocation)
    assert dict(result.arguments) == {"message": "fix the parser"}


def test_direct_switch_flag_does_not_consume_value(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "rm -rf build"))
    assert isinstance(result, ToolInvocation)
    assert dict(result.arguments) == {"path": "build", "recursive": True}


def test_direct_applies_alias_preset_as_default(registry: ToolRegistry) -> None:
    extractor = ToolCallExtractor(registry)
    assert dict(extractor.extract(_direct(registry, "docker images")).arguments) == {"resource": "images"}
    overridden = extractor.extract(_direct(registry, "docker ps --resource volumes"))
    assert isinstance(overridden, ToolInvocation)
    assert overridden.arguments["resource"] == "volumes"


def test_direct_trailing_text_parameter_absorbs_words(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "exec ls -la"))
    assert isinstance(result, ToolInvocation)
    assert dict(result.arguments) == {"command": "ls -la"}


def test_direct_applies_declared_defaults(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "ls"))
    assert isinstance(result, ToolInvocation)
    assert dict(result.arguments) == {"path": "."}


def test_direct_missing_required_parameter_is_malformed(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "cat"))
    assert isinstance(result, MalformedArguments)
    assert result.tool_id == "fs.read"
    assert result.parameter == "path"


def test_direct_type_mismatch_names_parameter(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "cat README.md -n many"))
    assert isinstance(result, MalformedArguments)
    assert result.parameter == "limit"
    assert result.detail.startswith("limit:")


def test_direct_invalid_choice_is_malformed(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "git push-everything"))
    assert isinstance(result, MalformedArguments)
    assert result.parameter == "subcommand"


def test_direct_unknown_parameter_is_malformed(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "ls --colour always"))
    assert isinstance(result, MalformedArguments)
    assert result.parameter == "colour"


def test_direct_extra_positional_is_malformed(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract(_direct(registry, "ls src docs"))
    assert isinstance(result, MalformedArguments)
    assert "docs" in result.detail


def test_text_below_threshold_is_no_tool(registry: ToolRegistry) -> None:
    text = "Hello! I am a local assistant. Ask me anything."
    assert ToolCallExtractor(registry).extract(text) == NoToolFound(text)


def test_text_scoring_picks_best_capability(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract("Let me check the git status of your repository.")
    assert isinstance(result, ToolInvocation)
    assert result.tool_id == "git"
    assert result.arguments["subcommand"] == "status"


def test_text_binds_path_heuristically(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract("I will delete all files in /")
    assert isinstance(result, ToolInvocation)
    assert result.tool_id == "fs.delete"
    assert dict(result.arguments) == {"path": "/", "recursive": False}


def test_json_hint_adds_bonus_and_arguments(registry: ToolRegistry) -> None:
    text = 'Sure.\n```json\n{"tool": "fs.read", "arguments": {"path": "notes/todo.md", "limit": 3}}\n```'
    result = ToolCallExtractor(registry).extract(text)
    assert isinstance(result, ToolInvocation)
    assert result.tool_id == "fs.read"
    assert dict(result.arguments) == {"path": "notes/todo.md", "limit": 3}


def test_legacy_tools_hint_shape(registry: ToolRegistry) -> None:
    hint = find_tool_hint('{"tools": [{"tool_type": "http_get", "parameters": {"url": "example.com"}}]}')
    assert hint is not None
    assert hint.name == "http_get"
    assert hint.arguments == {"url": "example.com"}
    assert registry.resolve_name(hint.name) == "http.get"


def test_name_value_pairs_in_text(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract("Run the sqlite query with database=app.db query='select 1'")
    assert isinstance(result, ToolInvocation)
    assert result.tool_id == "db.sqlite"
    assert dict(result.arguments) == {"database": "app.db", "query": "select 1"}


def test_tie_at_top_is_ambiguous(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract("I can git push and pull with the remote")
    assert isinstance(result, AmbiguousMatch)
    assert result.candidates == ("git.pull", "git.push")
    assert result.score == pytest.approx(3.0)


def test_extract_for_binds_chosen_candidate(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract_for("git.push", "push to remote origin")
    assert isinstance(result, ToolInvocation)
    assert dict(result.arguments) == {"remote": None, "branch": None}


def test_text_match_with_missing_required_value_is_malformed(registry: ToolRegistry) -> None:
    result = ToolCallExtractor(registry).extract("I would read the file contents for you.")
    assert isinstance(result, MalformedArguments)
    assert result.tool_id == "fs.read"
    assert result.parameter == "path"


def test_threshold_is_configurable(registry: ToolRegistry) -> None:
    text = "git"
    assert isinstance(ToolCallExtractor(registry).extract(text), NoToolFound)
    strict = ToolCallExtractor(registry, threshold=10.0)
    assert isinstance(strict.extract("Let me check the git status."), NoToolFound)
