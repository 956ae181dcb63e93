from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional, TypeVar

from .db.metrics import observe_event_emitted, observe_pivot_operation, observe_rows_changed
from .db.relation import PivotRelation
from .events.dispatcher import EventSink
from .events.models import PivotEvent, PivotEventName
from .ids import NormalizedIds, normalize_ids, parse_id

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PivotEventsRelation:
    """
    Many-to-many relation wrapper firing pivot lifecycle events.

    Wraps a base relation and emits, through ``sink``:

    - ``pivotAttaching`` / ``pivotAttached`` around ``attach``
    - ``pivotDetaching`` / ``pivotDetached`` around ``detach``
    - ``pivotUpdating`` before every ``update_existing_pivot`` and
      ``pivotUpdated`` only when a non-timestamp column actually changed

    ``update_existing_pivot`` writes the caller's columns first and bumps the
    pivot ``updated_at`` in a second statement only when the first one
    changed a row. The two statements are atomic only inside the caller's
    transaction; a failure between them leaves ``updated_at`` stale.

    Usage:
        with DbSession(engine) as session:
            roles = PivotEventsRelation(BelongsToMany(session, user, descriptor), dispatcher)
            roles.attach([1, 2], {"scope": "read"})
            roles.update_existing_pivot(1, {"scope": "write"})  # -> 1
            roles.update_existing_pivot(1, {"scope": "write"})  # -> 0
    """

    def __init__(self, relation: PivotRelation, sink: EventSink) -> None:
        self.relation = relation
        self.sink = sink

    @property
    def relation_name(self) -> str:
        return self.relation.descriptor.relation_name

    def _fire(
        self,
        name: PivotEventName,
        normalized: NormalizedIds,
        with_attributes: bool = True,
        pivots: Optional[list[Any]] = None,
        original: Any = None,
    ) -> None:
        event = PivotEvent(
            name=name,
            halt=name.is_before,
            relation_name=self.relation_name,
            ids=list(normalized.ids),
            ids_attributes=dict(normalized.attributes) if with_attributes else {},
            pivots=pivots,
            original=original,
            parent=self.relation.parent,
        )
        logger.debug("Emitting %s on %s for ids=%s", name.value, self.relation_name, event.ids)
        self.sink.emit(name.value, event)
        observe_event_emitted(name.value)

    def _observed(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        start_time = time.monotonic()
        status = "success"
        try:
            return func(*args)
        except Exception:
            status = "error"
            raise
        finally:
            observe_pivot_operation(
                self.relation_name, operation, status, time.monotonic() - start_time
            )

    def attach(self, ids: Any, attributes: Mapping[str, Any] | None = None, touch: bool = True) -> Any:
        """
        Attach ``ids`` to the parent; returns the base relation's result.

        Both events fire even when nothing is inserted.
        """
        return self._observed("attach", self._attach, ids, attributes, touch)

    def _attach(self, ids: Any, attributes: Mapping[str, Any] | None, touch: bool) -> Any:
        normalized = normalize_ids(ids, attributes)

        self._fire(PivotEventName.ATTACHING, normalized)
        result = self.relation.attach(ids, attributes, touch)
        self._fire(PivotEventName.ATTACHED, normalized)

        return result

    def detach(self, ids: Any = None, touch: bool = True) -> int:
        """
        Detach ``ids`` (every related row when None); returns rows deleted.

        ``pivotDetached`` carries the pivot rows as they were before deletion.
        """
        return self._observed("detach", self._detach, ids, touch)

    def _detach(self, ids: Any, touch: bool) -> int:
        if ids is None:
            ids = self.relation.related_ids()

        normalized = normalize_ids(ids)
        pivots = self.relation.new_pivot_statement_for_id(normalized.ids).get()

        self._fire(PivotEventName.DETACHING, normalized, with_attributes=False)
        result = self.relation.detach(ids, touch)
        self._fire(PivotEventName.DETACHED, normalized, with_attributes=False, pivots=pivots)

        return result

    def update_existing_pivot(self, id: Any, attributes: Mapping[str, Any], touch: bool = True) -> int:
        """
        Update the pivot row for ``id``; returns the number of rows changed.

        ``pivotUpdating`` always fires; ``pivotUpdated`` fires with the
        pre-update row only when the caller's columns changed, and only then is
        the pivot ``updated_at`` rewritten.
        """
        updated = self._observed("update", self._update_existing_pivot, id, attributes, touch)
        observe_rows_changed(self.relation_name, updated)
        return updated

    def _update_existing_pivot(self, id: Any, attributes: Mapping[str, Any], touch: bool) -> int:
        relation = self.relation
        descriptor = relation.descriptor
        normalized = normalize_ids(id, attributes)
        self._fire(PivotEventName.UPDATING, normalized)

        if descriptor.using is not None and not descriptor.has_pivot_filters:
            return self._update_existing_pivot_using_custom_class(id, attributes, touch)

        statement = relation.new_pivot_statement_for_id(id)
        original = statement.first()

        updated = statement.update_changed(relation.cast_attributes(attributes))

        if updated and descriptor.has_pivot_column(descriptor.updated_at):
            statement.update({descriptor.updated_at: relation.fresh_timestamp()})

        if touch:
            relation.touch_if_touching()

        if updated:
            self._fire(PivotEventName.UPDATED, normalized, original=original)
        else:
            logger.debug(
                "No pivot columns changed on %s for ids=%s", self.relation_name, normalized.ids
            )

        return updated

    def _update_existing_pivot_using_custom_class(
        self, id: Any, attributes: Mapping[str, Any], touch: bool
    ) -> int:
        relation = self.relation
        descriptor = relation.descriptor
        parent_key = relation.parent_key_value()
        related_id = parse_id(id)

        current = next(
            (
                pivot
                for pivot in relation.currently_attached_pivots()
                if _same_key(pivot.foreign_key, parent_key)
                and _same_key(pivot.related_key, related_id)
            ),
            None,
        )

        updated = current.copy().fill(attributes).is_dirty() if current is not None else False

        pivot = relation.new_pivot(
            {descriptor.foreign_pivot_key: parent_key, descriptor.related_pivot_key: related_id},
            exists=True,
        )
        pivot.timestamps = updated and descriptor.has_pivot_column(descriptor.updated_at)
        pivot.fill(attributes).save()

        if touch:
            relation.touch_if_touching()

        return int(updated)


def _same_key(left: Any, right: Any) -> bool:
    # keys read back from the database may come as str or int
    return left == right or (left is not None and right is not None and str(left) == str(right))
