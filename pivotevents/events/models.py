from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class PivotEventName(str, Enum):
    ATTACHING = "pivotAttaching"
    ATTACHED = "pivotAttached"
    DETACHING = "pivotDetaching"
    DETACHED = "pivotDetached"
    UPDATING = "pivotUpdating"
    UPDATED = "pivotUpdated"

    @property
    def is_before(self) -> bool:
        return self in (PivotEventName.ATTACHING, PivotEventName.DETACHING, PivotEventName.UPDATING)


@dataclass
class PivotEvent:
    """
    One pivot lifecycle notification.

    ``halt`` is True for the "-ing" events fired before the operation runs.
    ``pivots`` is only set on ``pivotDetached`` (rows as they were before the
    delete) and ``original`` only on ``pivotUpdated`` (the row before the
    update).
    """
    name: PivotEventName
    halt: bool
    relation_name: str
    ids: list[Any]
    ids_attributes: dict[Any, dict[str, Any]] = field(default_factory=dict)
    pivots: Optional[list[Any]] = None
    original: Optional[Any] = None
    # the owning model; not serialized by external sinks
    parent: Any = None

    def to_payload(self) -> dict[str, Any]:
        """Plain representation for transports; pivot objects become dicts."""
        payload: dict[str, Any] = {
            "event": self.name.value,
            "halt": self.halt,
            "relation": self.relation_name,
            "ids": list(self.ids),
            "ids_attributes": [
                {"id": key, "attributes": attrs} for key, attrs in self.ids_attributes.items()
            ],
        }
        if self.pivots is not None:
            payload["pivots"] = [_row(p) for p in self.pivots]
        if self.original is not None:
            payload["original"] = _row(self.original)
        return payload


def _row(row: Any) -> Any:
    to_dict = getattr(row, "to_dict", None)
    return to_dict() if to_dict is not None else dict(row)
