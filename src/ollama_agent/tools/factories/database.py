"""SQLite tool factory."""

from __future__ import annotations

import sqlite3
from contextlib import closing

from ollama_agent.errors import ToolExecutionError
from ollama_agent.tools.registry import ToolContext, ToolRegistry
from ollama_agent.types import RiskTier

from .shared import SqliteInput

MAX_ROWS = 100


def register_database_tools(registry: ToolRegistry) -> None:
    """Register database tools."""

    @registry.tool(
        "db.sqlite",
        params=SqliteInput,
        risk=RiskTier.MODERATE,
        name="sqlite query",
        description="Run one SQL statement against a SQLite database file",
        keywords={"sqlite", "sql", "database", "query", "select", "table"},
        aliases=["sqlite3", "sqlite"],
        effect="Run SQL on {database}: {query}",
    )
    def sqlite_query(params: SqliteInput, context: ToolContext) -> str:
        database = context.resolve(params.database)
        if not database.is_file():
            raise ToolExecutionError(f"no such database file: {database}")

        try:
            with closing(sqlite3.connect(database, timeout=context.command_timeout)) as connection, connection:
                cursor = connection.execute(params.query)
                if cursor.description is None:
                    return f"ok: {cursor.rowcount} row(s) affected"
                columns = [column[0] for column in cursor.description]
                rows = cursor.fetchmany(MAX_ROWS + 1)
        except sqlite3.Error as exc:
            raise ToolExecutionError(f"sqlite: {exc!s}") from exc

        lines = [" | ".join(columns)]
        lines.extend(" | ".join("NULL" if value is None else str(value) for value in row) for row in rows[:MAX_ROWS])
        if len(rows) > MAX_ROWS:
            lines.append(f"... (more than {MAX_ROWS} rows)")
        return "\n".join(lines)
