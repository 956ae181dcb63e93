from __future__ import annotations

import copy
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from .helpers import utcnow
from .session import DbSession
from .statement import PivotStatement

if TYPE_CHECKING:
    from ..config import RelationDescriptor


class Pivot:
    """
    A pivot row with dirty tracking, keyed by (owning key, related key).

    Configure a subclass as ``RelationDescriptor.using`` to have pivot rows
    handled as objects instead of plain dicts. Subclasses typically override
    ``cast_attributes`` to normalize values before they are compared or
    written.

    ``original`` holds the last values known to be persisted; ``get_dirty``
    compares ``attributes`` against it. ``save`` writes an INSERT for a new
    row and an UPDATE of only the dirty columns for an existing one, keyed by
    the composite pivot key.
    """

    def __init__(
        self,
        session: DbSession,
        descriptor: RelationDescriptor,
        attributes: Optional[Mapping[str, Any]] = None,
        exists: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.descriptor = descriptor
        self.attributes: dict[str, Any] = dict(attributes or {})
        self.original: dict[str, Any] = dict(self.attributes) if exists else {}
        self.exists = exists
        self.timestamps = bool(descriptor.timestamp_columns)
        self.clock = clock

    @classmethod
    def new(
        cls,
        session: DbSession,
        descriptor: RelationDescriptor,
        attributes: Optional[Mapping[str, Any]] = None,
        exists: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> "Pivot":
        pivot = cls(session, descriptor, exists=exists, clock=clock)
        pivot.attributes = pivot.cast_attributes(attributes or {})
        if exists:
            pivot.original = dict(pivot.attributes)
        return pivot

    @classmethod
    def cast_attributes(cls, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """Hook for subclasses; the base class stores values unchanged."""
        return dict(attributes)

    def __getitem__(self, key: str) -> Any:
        return self.attributes[key]

    @property
    def foreign_key(self) -> Any:
        return self.attributes.get(self.descriptor.foreign_pivot_key)

    @property
    def related_key(self) -> Any:
        return self.attributes.get(self.descriptor.related_pivot_key)

    def fill(self, attributes: Mapping[str, Any]) -> "Pivot":
        self.attributes.update(self.cast_attributes(attributes))
        return self

    def get_dirty(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in self.attributes.items()
            if key not in self.original or self.original[key] != value
        }

    def is_dirty(self) -> bool:
        return bool(self.get_dirty())

    def copy(self) -> "Pivot":
        """A transient copy whose attribute changes do not touch this row."""
        clone = copy.copy(self)
        clone.attributes = dict(self.attributes)
        clone.original = dict(self.original)
        return clone

    def to_dict(self) -> dict[str, Any]:
        return dict(self.attributes)

    def _statement(self) -> PivotStatement:
        d = self.descriptor
        return PivotStatement(self.session, d).where(
            **{d.foreign_pivot_key: self.foreign_key, d.related_pivot_key: self.related_key}
        )

    def _touch_timestamps(self, creating: bool) -> None:
        d = self.descriptor
        now = self.clock()
        if d.has_pivot_column(d.updated_at) and d.updated_at not in self.get_dirty():
            self.attributes[d.updated_at] = now
        if creating and d.has_pivot_column(d.created_at) and d.created_at not in self.attributes:
            self.attributes[d.created_at] = now

    def save(self) -> bool:
        """
        Persist the row.

        An existing row with nothing dirty issues no statement. Timestamps are
        only written while ``timestamps`` is enabled.
        """
        if self.exists:
            if not self.is_dirty():
                return True
            if self.timestamps:
                self._touch_timestamps(creating=False)
            self._statement().update(self.get_dirty())
        else:
            if self.timestamps:
                self._touch_timestamps(creating=True)
            PivotStatement(self.session, self.descriptor).insert([self.attributes])
            self.exists = True

        self.original = dict(self.attributes)
        return True

    def delete(self) -> int:
        """Delete this row by its composite key; returns the number deleted."""
        deleted = self._statement().delete()
        self.exists = False
        return deleted

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pivot):
            return NotImplemented
        return type(self) is type(other) and self.attributes == other.attributes

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.attributes!r}, exists={self.exists})"
