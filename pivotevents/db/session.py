from __future__ import annotations

from typing import Any, Mapping, Sequence, Union

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql import Executable

Statement = Union[str, Executable]
Params = Union[Mapping[str, Any], Sequence[Mapping[str, Any]], None]


class DbSession:
    """
    Transactional wrapper around a SQLAlchemy Engine connection.

    Pivot relations never open or commit transactions themselves; they run
    every statement on the session they were given, so the caller decides
    what is atomic.

    Use as:
        with DbSession(engine) as session:
            relation = PivotEventsRelation(BelongsToMany(session, user, roles), sink)
            relation.attach([1, 2])
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None
        self._tx = None

    def __enter__(self) -> "DbSession":
        if self._conn is not None:
            raise RuntimeError("DbSession is already active; nested sessions are not allowed")
        self._conn = self.engine.connect()
        self._tx = self._conn.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._tx is not None:
                if exc_type:
                    self._tx.rollback()
                else:
                    self._tx.commit()
        finally:
            if self._conn is not None:
                self._conn.close()

            self._conn = None
            self._tx = None

        # propagate exceptions (if any)
        return False

    def _connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("DbSession is not active; use within a context manager")
        return self._conn

    def _run(self, sql: Statement, params: Params):
        conn = self._connection()
        stmt = text(sql) if isinstance(sql, str) else sql
        if isinstance(params, Sequence) and not isinstance(params, (str, bytes)):
            return conn.execute(stmt, list(params))
        return conn.execute(stmt, params or {})

    def execute(self, sql: Statement, params: Params = None) -> int:
        """
        Execute a non-SELECT statement and return affected row count.

        A sequence of parameter mappings runs the statement as executemany;
        the returned count is then the driver's total for the batch.
        """
        result = self._run(sql, params)
        try:
            if result.rowcount is None:
                raise RuntimeError(
                    "execute() received None rowcount for statement. "
                    "This may indicate a DDL statement or unsupported operation type."
                )
            return int(result.rowcount)
        finally:
            result.close()

    def fetch_first(self, sql: Statement, params: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        """
        Execute a SELECT and return its first row, ignoring the rest.
        """
        result = self._run(sql, params)
        try:
            row = result.mappings().first()
            return dict(row) if row is not None else None
        finally:
            result.close()

    def fetch_all(self, sql: Statement, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """
        Execute a SELECT expected to return multiple rows.
        """
        result = self._run(sql, params)
        try:
            return [dict(row) for row in result.mappings()]
        finally:
            result.close()

    def fetch_scalars(self, sql: Statement, params: Mapping[str, Any] | None = None) -> list[Any]:
        """
        Execute a SELECT and return the first column of every row.
        """
        result = self._run(sql, params)
        try:
            return list(result.scalars())
        finally:
            result.close()
