from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Protocol

from sqlalchemy import update

from ..ids import Model, normalize_ids
from .helpers import table_clause, utcnow
from .pivot import Pivot
from .session import DbSession
from .statement import PivotStatement

if TYPE_CHECKING:
    from ..config import RelationDescriptor

logger = logging.getLogger(__name__)


@dataclass
class Record:
    """
    Minimal model: a table row identified by ``key_name``.

    Usage:
        user = Record("users", {"id": 1, "name": "ada"})
        user.get_key()  # 1
    """

    table: str
    attributes: dict[str, Any] = field(default_factory=dict)
    key_name: str = "id"
    updated_at: Optional[str] = "updated_at"

    def get_key(self) -> Any:
        return self.attributes.get(self.key_name)

    def get_attribute(self, name: str) -> Any:
        return self.attributes.get(name)


class PivotRelation(Protocol):
    """
    What the pivot event wrapper needs from a many-to-many relation.
    """

    descriptor: RelationDescriptor
    parent: Any

    def attach(self, ids: Any, attributes: Mapping[str, Any] | None = None, touch: bool = True) -> Any:
        ...

    def detach(self, ids: Any = None, touch: bool = True) -> int:
        ...

    def related_ids(self) -> list[Any]:
        ...

    def new_pivot_statement_for_id(self, ids: Any) -> PivotStatement:
        ...

    def currently_attached_pivots(self) -> list[Pivot]:
        ...

    def new_pivot(self, attributes: Mapping[str, Any], exists: bool = False) -> Pivot:
        ...

    def parent_key_value(self) -> Any:
        ...

    def touch_if_touching(self) -> None:
        ...

    def fresh_timestamp(self) -> datetime:
        ...

    def cast_attributes(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        ...


class BelongsToMany:
    """
    SQL-backed many-to-many relation between ``parent`` and a related table.

    All statements run on the given session; commit and rollback belong to
    the caller. Identifiers accepted by ``attach``/``detach`` are anything
    ``normalize_ids`` understands.
    """

    def __init__(
        self,
        session: DbSession,
        parent: Model,
        descriptor: RelationDescriptor,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.parent = parent
        self.descriptor = descriptor
        self.clock = clock

    def fresh_timestamp(self) -> datetime:
        return self.clock()

    def parent_key_value(self) -> Any:
        get_attribute = getattr(self.parent, "get_attribute", None)
        if get_attribute is not None:
            return get_attribute(self.descriptor.parent_key)
        return self.parent.get_key()

    def cast_attributes(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        if self.descriptor.using is not None:
            return self.descriptor.using.cast_attributes(attributes)
        return dict(attributes)

    def new_pivot_query(self) -> PivotStatement:
        """Statement over this parent's pivot rows, extra predicates included."""
        return PivotStatement(self.session, self.descriptor).where(
            **{self.descriptor.foreign_pivot_key: self.parent_key_value()}
        )

    def new_pivot_statement_for_id(self, ids: Any) -> PivotStatement:
        normalized = normalize_ids(ids)
        return self.new_pivot_query().where_in(self.descriptor.related_pivot_key, normalized.ids)

    def related_ids(self) -> list[Any]:
        return self.new_pivot_query().pluck(self.descriptor.related_pivot_key)

    def new_pivot(self, attributes: Mapping[str, Any], exists: bool = False) -> Pivot:
        pivot_class = self.descriptor.using or Pivot
        return pivot_class.new(
            self.session, self.descriptor, attributes, exists=exists, clock=self.clock
        )

    def currently_attached_pivots(self) -> list[Pivot]:
        return [self.new_pivot(row, exists=True) for row in self.new_pivot_query().get()]

    def _format_attach_records(self, ids: Any, attributes: Mapping[str, Any] | None) -> list[dict[str, Any]]:
        d = self.descriptor
        now = self.fresh_timestamp()
        records = []
        for related_id, attrs in normalize_ids(ids, attributes).attributes.items():
            record = {
                d.foreign_pivot_key: self.parent_key_value(),
                d.related_pivot_key: related_id,
            }
            for column in d.timestamp_columns:
                record[column] = now
            record.update(self.cast_attributes(attrs))
            records.append(record)
        return records

    def attach(self, ids: Any, attributes: Mapping[str, Any] | None = None, touch: bool = True) -> int:
        """
        Insert one pivot row per identifier; returns how many were inserted.
        """
        records = self._format_attach_records(ids, attributes)
        if self.descriptor.using is not None:
            for record in records:
                self.new_pivot(record, exists=False).save()
        else:
            PivotStatement(self.session, self.descriptor).insert(records)

        if touch:
            self.touch_if_touching()
        return len(records)

    def detach(self, ids: Any = None, touch: bool = True) -> int:
        """
        Delete pivot rows for ``ids`` (all of this parent's rows when None).

        Returns the number of rows deleted. An explicit but empty identifier
        set deletes nothing.
        """
        d = self.descriptor
        if d.using is not None and not d.has_pivot_filters:
            if ids is None:
                ids = self.related_ids()
            results = 0
            for related_id in normalize_ids(ids).ids:
                pivot = self.new_pivot(
                    {d.foreign_pivot_key: self.parent_key_value(), d.related_pivot_key: related_id},
                    exists=True,
                )
                results += pivot.delete()
        else:
            query = self.new_pivot_query()
            if ids is not None:
                normalized = normalize_ids(ids)
                if not normalized:
                    logger.info(
                        "Skipping detach on %s: no identifiers in %r",
                        d.relation_name,
                        ids,
                    )
                    return 0
                query = query.where_in(d.related_pivot_key, normalized.ids)
            results = query.delete()

        if touch:
            self.touch_if_touching()
        return results

    def touch_if_touching(self) -> None:
        """Bump the parent's updated_at when this relation touches its parent."""
        if not self.descriptor.touches_parent:
            return
        table = getattr(self.parent, "table", None)
        column = getattr(self.parent, "updated_at", None)
        if table is None or column is None:
            return

        key_name = getattr(self.parent, "key_name", "id")
        tbl = table_clause(table, [key_name, column], timestamp_columns=[column])
        now = self.fresh_timestamp()
        self.session.execute(
            update(tbl).where(tbl.c[key_name] == self.parent.get_key()).values({column: now})
        )
        if isinstance(getattr(self.parent, "attributes", None), dict):
            self.parent.attributes[column] = now
