from ollama_agent.core.commands import parse_command_words, parse_internal_command, parse_kv_arguments


def test_parse_command_words_returns_none_on_unbalanced_quotes() -> None:
    assert parse_command_words("git commit -m 'oops") is None
    assert parse_command_words("ls 'my dir'") == ["ls", "my dir"]


def test_parse_internal_command_splits_name_and_args() -> None:
    assert parse_internal_command(",fs.read README.md --limit 5") == ("fs.read", ["README.md", "--limit", "5"])
    assert parse_internal_command(",") is None


def test_parse_kv_arguments_supports_long_and_pair_forms() -> None:
    parsed = parse_kv_arguments(["--path", "src", "--limit=3", "dry-run=yes", "extra"])
    assert parsed.kwargs == {"path": "src", "limit": "3", "dry_run": "yes"}
    assert parsed.positional == ["extra"]


def test_parse_kv_arguments_maps_short_flags_and_switches() -> None:
    parsed = parse_kv_arguments(
        ["-rf", "build", "-m", "fix bug"],
        short_flags={"rf": "recursive", "m": "message"},
        switches={"recursive"},
    )
    assert parsed.kwargs == {"recursive": True, "message": "fix bug"}
    assert parsed.positional == ["build"]


def test_parse_kv_arguments_keeps_unknown_short_flags_positional() -> None:
    parsed = parse_kv_arguments(["log", "-n", "5"])
    assert parsed.kwargs == {}
    assert parsed.positional == ["log", "-n", "5"]


def test_parse_kv_arguments_double_dash_ends_options() -> None:
    parsed = parse_kv_arguments(["--", "--not-a-flag", "a=b"])
    assert parsed.kwargs == {}
    assert parsed.positional == ["--not-a-flag", "a=b"]


def test_parse_kv_arguments_does_not_split_sql_on_equals() -> None:
    parsed = parse_kv_arguments(["app.db", "select * from users where id=1"])
    assert parsed.kwargs == {}
    assert parsed.positional == ["app.db", "select * from users where id=1"]
