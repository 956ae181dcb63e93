from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Iterable, Optional

from .db.helpers import _validate_identifier

if TYPE_CHECKING:
    from .db.pivot import Pivot


@dataclass(frozen=True)
class RelationDescriptor:
    """
    Read-only description of a many-to-many relation and its pivot table.

    Only the columns named here are ever interpolated into SQL, and every one
    of them is validated on construction. Values always travel as bound
    parameters.

    Example:
        roles = RelationDescriptor(
            relation_name="roles",
            table="role_user",
            foreign_pivot_key="user_id",
            related_pivot_key="role_id",
        ).with_pivot("scope").with_timestamps()
    """

    relation_name: str
    table: str
    foreign_pivot_key: str
    related_pivot_key: str
    parent_key: str = "id"
    pivot_columns: tuple[str, ...] = ()
    created_at: str = "created_at"
    updated_at: str = "updated_at"
    # custom pivot row type; None means rows are plain dicts
    using: Optional[type[Pivot]] = None
    pivot_wheres: tuple[tuple[str, Any], ...] = field(default=())
    pivot_where_ins: tuple[tuple[str, tuple[Any, ...]], ...] = field(default=())
    touches_parent: bool = False

    def __post_init__(self) -> None:
        """Validate identifiers and freeze sequence fields."""
        if not self.relation_name:
            raise ValueError("relation_name cannot be empty")

        _validate_identifier(self.table, "table")
        _validate_identifier(self.foreign_pivot_key, "foreign_pivot_key")
        _validate_identifier(self.related_pivot_key, "related_pivot_key")
        _validate_identifier(self.parent_key, "parent_key")
        _validate_identifier(self.created_at, "created_at column")
        _validate_identifier(self.updated_at, "updated_at column")

        columns = tuple(self.pivot_columns)
        for column in columns:
            _validate_identifier(column, "pivot column")

        wheres = tuple((col, val) for col, val in self.pivot_wheres)
        where_ins = tuple((col, tuple(vals)) for col, vals in self.pivot_where_ins)
        for col, _ in wheres + where_ins:
            _validate_identifier(col, "pivot filter column")

        object.__setattr__(self, "pivot_columns", columns)
        object.__setattr__(self, "pivot_wheres", wheres)
        object.__setattr__(self, "pivot_where_ins", where_ins)

    @property
    def has_pivot_filters(self) -> bool:
        return bool(self.pivot_wheres or self.pivot_where_ins)

    def has_pivot_column(self, column: str) -> bool:
        return column in self.pivot_columns

    @property
    def timestamp_columns(self) -> tuple[str, ...]:
        return tuple(
            c for c in (self.created_at, self.updated_at) if self.has_pivot_column(c)
        )

    def with_pivot(self, *columns: str) -> "RelationDescriptor":
        """Return a copy that also tracks the given pivot columns."""
        merged = self.pivot_columns + tuple(c for c in columns if c not in self.pivot_columns)
        return replace(self, pivot_columns=merged)

    def with_timestamps(
        self,
        created_at: Optional[str] = None,
        updated_at: Optional[str] = None,
    ) -> "RelationDescriptor":
        """Return a copy whose pivot rows carry created/updated timestamps."""
        created_at = created_at or self.created_at
        updated_at = updated_at or self.updated_at
        return replace(
            self.with_pivot(created_at, updated_at),
            created_at=created_at,
            updated_at=updated_at,
        )

    def with_pivot_class(self, pivot_class: type[Pivot]) -> "RelationDescriptor":
        return replace(self, using=pivot_class)

    def where_pivot(self, column: str, value: Any) -> "RelationDescriptor":
        return replace(self, pivot_wheres=self.pivot_wheres + ((column, value),))

    def where_pivot_in(self, column: str, values: Iterable[Any]) -> "RelationDescriptor":
        return replace(
            self, pivot_where_ins=self.pivot_where_ins + ((column, tuple(values)),)
        )


@dataclass
class StreamConfig:
    stream_key: str
    maxlen: Optional[int] = 10_000
    approximate: bool = True

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.stream_key:
            raise ValueError("stream_key cannot be empty")
        if self.maxlen is not None and self.maxlen <= 0:
            raise ValueError(
                "maxlen must be > 0 or None; use None to keep the stream untrimmed"
            )
