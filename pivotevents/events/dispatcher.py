from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Protocol, Union

from .models import PivotEvent, PivotEventName

logger = logging.getLogger(__name__)

Listener = Callable[[PivotEvent], None]


class EventSink(Protocol):
    """Receives pivot events; return values are ignored."""

    def emit(self, name: str, event: PivotEvent) -> None:
        ...


class EventDispatcher:
    """
    In-process event sink dispatching to listeners registered by event name.

    Listeners run synchronously in registration order. A listener exception
    propagates to the caller of the pivot operation and stops dispatch.

    Usage:
        dispatcher = EventDispatcher()
        dispatcher.listen(PivotEventName.ATTACHED, lambda event: print(event.ids))
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    @staticmethod
    def _key(name: Union[str, PivotEventName]) -> str:
        return name.value if isinstance(name, PivotEventName) else name

    def listen(self, name: Union[str, PivotEventName], listener: Listener) -> None:
        self._listeners[self._key(name)].append(listener)

    def forget(self, name: Union[str, PivotEventName], listener: Listener | None = None) -> None:
        """Remove one listener, or every listener for ``name`` when omitted."""
        key = self._key(name)
        if listener is None:
            self._listeners.pop(key, None)
            return
        listeners = self._listeners.get(key, [])
        if listener in listeners:
            listeners.remove(listener)

    def has_listeners(self, name: Union[str, PivotEventName]) -> bool:
        return bool(self._listeners.get(self._key(name)))

    def emit(self, name: str, event: PivotEvent) -> None:
        listeners = list(self._listeners.get(self._key(name), ()))
        if not listeners:
            logger.debug("No listeners for %s on relation %s", name, event.relation_name)
            return
        for listener in listeners:
            listener(event)
