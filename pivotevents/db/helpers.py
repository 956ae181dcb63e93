from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from sqlalchemy import ColumnElement, DateTime, and_, column, false, or_, table, true
from sqlalchemy.sql.expression import TableClause

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that an identifier (table/column name) is safe to place in SQL.

    Identifiers are restricted to letters, digits and underscores, starting
    with a letter or underscore.

    ⚠️ SECURITY CONTRACT ⚠️
    Table and column names come from relation descriptors, which are trusted
    application configuration. They MUST NOT come directly from user input.
    Pivot attribute *keys* passed to attach/update are validated here as well,
    since they become column names.

    Args:
        name: The identifier to validate
        identifier_type: Description of the identifier (for error messages)

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        TypeError: If identifier is not a string
        ValueError: If identifier contains unsafe characters or is invalid

    Example:
        >>> _validate_identifier("role_user", "table")
        'role_user'
        >>> _validate_identifier("'; DROP TABLE--", "table")
        ValueError: Invalid table '; DROP TABLE--': ...
    """
    if not isinstance(name, str):
        raise TypeError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ValueError(f"{identifier_type} cannot be empty")

    if not _IDENTIFIER_RE.match(name):
        raise ValueError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > 64:
        raise ValueError(f"{identifier_type} {name!r} exceeds the 64-character identifier limit")

    return name


def table_clause(
    name: str,
    columns: Iterable[str],
    timestamp_columns: Iterable[str] = (),
) -> TableClause:
    """
    Build a lightweight SQLAlchemy table construct for the given columns.

    No metadata reflection happens; the construct only knows the names it is
    given, which keeps statements portable across dialects. Columns listed in
    ``timestamp_columns`` are typed as DateTime so datetimes bind the way the
    dialect expects; every other column is untyped.
    """
    name = _validate_identifier(name, "table")
    timestamps = set(timestamp_columns)
    cols = []
    for col in dict.fromkeys(columns):
        col = _validate_identifier(col, "column name")
        cols.append(column(col, DateTime()) if col in timestamps else column(col))
    return table(name, *cols)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def any_value_differs(tbl: TableClause, values: Mapping[str, Any]) -> ColumnElement[bool]:
    """
    Predicate matching rows where at least one of ``values`` would change.

    Uses ``IS DISTINCT FROM`` semantics so NULL compares as a value. SQLAlchemy
    renders it per dialect (``IS NOT`` on SQLite, ``NOT <=>`` on MySQL).
    An empty mapping can never change a row.
    """
    clauses = [tbl.c[col].is_distinct_from(val) for col, val in sorted(values.items())]
    if not clauses:
        return false()
    return or_(*clauses)


def equals_all(tbl: TableClause, values: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    """Equality clauses for each column -> value pair, in sorted column order."""
    return [tbl.c[col] == val for col, val in sorted(values.items())]


def conjunction(clauses: list[ColumnElement[bool]]) -> ColumnElement[bool]:
    return and_(*clauses) if clauses else true()
