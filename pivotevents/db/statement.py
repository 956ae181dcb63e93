from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping

from sqlalchemy import Select, delete, insert, literal_column, select, update
from sqlalchemy.sql.expression import TableClause

from .helpers import any_value_differs, conjunction, equals_all, table_clause
from .session import DbSession

if TYPE_CHECKING:
    from ..config import RelationDescriptor


class PivotStatement:
    """
    Query-builder-like statement over one relation's pivot table.

    A statement carries a fixed filter: the descriptor's extra pivot
    predicates, plus whatever equality / IN constraints it was built with.
    Every terminal method runs one SQL statement on the session.

    Usage:
        stmt = PivotStatement(session, descriptor).where(user_id=1).where_in("role_id", [2])
        row = stmt.first()
        changed = stmt.update_changed({"scope": "admin"})
    """

    def __init__(
        self,
        session: DbSession,
        descriptor: RelationDescriptor,
        wheres: Mapping[str, Any] | None = None,
        where_ins: Mapping[str, tuple[Any, ...]] | None = None,
    ) -> None:
        self.session = session
        self.descriptor = descriptor
        self.wheres: dict[str, Any] = dict(descriptor.pivot_wheres)
        self.wheres.update(wheres or {})
        self.where_ins: dict[str, tuple[Any, ...]] = dict(descriptor.pivot_where_ins)
        self.where_ins.update(where_ins or {})

    def where(self, **values: Any) -> "PivotStatement":
        return PivotStatement(
            self.session, self.descriptor, {**self.wheres, **values}, self.where_ins
        )

    def where_in(self, column: str, values: Iterable[Any]) -> "PivotStatement":
        return PivotStatement(
            self.session, self.descriptor, self.wheres, {**self.where_ins, column: tuple(values)}
        )

    def _table(self, *columns: str) -> TableClause:
        d = self.descriptor
        return table_clause(
            d.table,
            [d.foreign_pivot_key, d.related_pivot_key, *self.wheres, *self.where_ins, *columns],
            timestamp_columns=(d.created_at, d.updated_at),
        )

    def _filter(self, tbl: TableClause):
        clauses = equals_all(tbl, self.wheres)
        for col, values in sorted(self.where_ins.items()):
            clauses.append(tbl.c[col].in_(values))
        return conjunction(clauses)

    def get(self) -> list[dict[str, Any]]:
        """Fetch every matching pivot row with all of its columns."""
        return self.session.fetch_all(self._select_rows())

    def first(self) -> dict[str, Any] | None:
        """Fetch the first matching pivot row, or None."""
        return self.session.fetch_first(self._select_rows().limit(1))

    def _select_rows(self) -> Select:
        # the table construct only knows the columns it was built with, but a
        # pivot row is every column the table has
        tbl = self._table()
        return select(literal_column("*")).select_from(tbl).where(self._filter(tbl))

    def pluck(self, column: str) -> list[Any]:
        """Fetch one column of every matching row."""
        tbl = self._table(column)
        stmt = select(tbl.c[column]).where(self._filter(tbl))
        return self.session.fetch_scalars(stmt)

    def update(self, values: Mapping[str, Any]) -> int:
        """
        Write ``values`` to every matching row; returns the driver's rowcount.

        Depending on the dialect that count is either matched or changed rows;
        use ``update_changed`` when the distinction matters.
        """
        if not values:
            return 0
        tbl = self._table(*values)
        stmt = update(tbl).where(self._filter(tbl)).values(dict(values))
        return self.session.execute(stmt)

    def update_changed(self, values: Mapping[str, Any]) -> int:
        """
        Write ``values`` only to matching rows where at least one of them differs.

        The change test is part of the WHERE clause, so the returned count is
        the number of rows that really changed on every dialect, whether the
        driver reports matched or affected rows.
        """
        if not values:
            return 0
        tbl = self._table(*values)
        stmt = (
            update(tbl)
            .where(self._filter(tbl), any_value_differs(tbl, values))
            .values(dict(values))
        )
        return self.session.execute(stmt)

    def insert(self, records: list[Mapping[str, Any]]) -> int:
        """Insert ``records`` (executemany); returns how many were sent."""
        if not records:
            return 0
        columns: dict[str, None] = {}
        for record in records:
            columns.update(dict.fromkeys(record))
        tbl = self._table(*columns)
        rows = [{col: record.get(col) for col in columns} for record in records]
        self.session.execute(insert(tbl), rows)
        return len(rows)

    def delete(self) -> int:
        """Delete every matching row; returns the number deleted."""
        tbl = self._table()
        return self.session.execute(delete(tbl).where(self._filter(tbl)))
