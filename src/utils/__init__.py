"""Petition archiver - Shared utilities."""

import re
from collections.abc import Iterable

_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def safe_identifier(name: str) -> str:
    """Validate and quote a PostgreSQL identifier.

    Table names may be schema-qualified ("archive.validations"); each part is
    validated and double-quoted separately.

    Args:
        name: Table, column or schema name

    Returns:
        Quoted identifier (e.g., '"archive"."validations"')

    Raises:
        ValueError: If the identifier contains invalid characters
    """
    if "." in name:
        schema, table = name.split(".", 1)
        return f"{safe_identifier(schema)}.{safe_identifier(table)}"

    if not _IDENTIFIER.match(name):
        raise ValueError(
            f"Invalid SQL identifier: {name!r}. "
            "Only letters, digits, and underscores are allowed."
        )

    return f'"{name}"'


def column_list(columns: Iterable[str]) -> str:
    """Quote and join column names for a SELECT or INSERT column list."""
    return ", ".join(safe_identifier(column) for column in columns)


def placeholders(count: int, start: int = 1) -> str:
    """Build asyncpg positional placeholders ($1, $2, ...)."""
    return ", ".join(f"${index}" for index in range(start, start + count))
