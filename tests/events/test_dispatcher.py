from __future__ import annotations

import pytest

from pivotevents.events.dispatcher import EventDispatcher
from pivotevents.events.models import PivotEvent, PivotEventName


def _event(name: PivotEventName = PivotEventName.ATTACHED) -> PivotEvent:
    return PivotEvent(name=name, halt=name.is_before, relation_name="roles", ids=[1])


class TestEventDispatcher:
    def test_listeners_run_in_registration_order(self) -> None:
        dispatcher = EventDispatcher()
        calls: list[str] = []
        dispatcher.listen(PivotEventName.ATTACHED, lambda e: calls.append("first"))
        dispatcher.listen("pivotAttached", lambda e: calls.append("second"))

        dispatcher.emit("pivotAttached", _event())

        assert calls == ["first", "second"]

    def test_only_matching_listeners_run(self) -> None:
        dispatcher = EventDispatcher()
        calls: list[PivotEvent] = []
        dispatcher.listen(PivotEventName.DETACHED, calls.append)

        dispatcher.emit("pivotAttached", _event())

        assert calls == []

    def test_emit_without_listeners_is_fine(self) -> None:
        EventDispatcher().emit("pivotUpdated", _event(PivotEventName.UPDATED))

    def test_forget_one_listener(self) -> None:
        dispatcher = EventDispatcher()
        calls: list[str] = []

        def keep(event):
            calls.append("keep")

        def drop(event):
            calls.append("drop")

        dispatcher.listen(PivotEventName.ATTACHED, keep)
        dispatcher.listen(PivotEventName.ATTACHED, drop)
        dispatcher.forget(PivotEventName.ATTACHED, drop)
        dispatcher.emit("pivotAttached", _event())

        assert calls == ["keep"]

    def test_forget_all_listeners(self) -> None:
        dispatcher = EventDispatcher()
        dispatcher.listen(PivotEventName.ATTACHED, lambda e: None)

        dispatcher.forget(PivotEventName.ATTACHED)

        assert not dispatcher.has_listeners(PivotEventName.ATTACHED)

    def test_listener_exception_stops_dispatch(self) -> None:
        dispatcher = EventDispatcher()
        calls: list[str] = []

        def boom(event):
            raise ValueError("boom")

        dispatcher.listen(PivotEventName.ATTACHED, boom)
        dispatcher.listen(PivotEventName.ATTACHED, lambda e: calls.append("late"))

        with pytest.raises(ValueError):
            dispatcher.emit("pivotAttached", _event())
        assert calls == []


class TestPivotEvent:
    def test_before_events_halt(self) -> None:
        assert [n.value for n in PivotEventName if n.is_before] == [
            "pivotAttaching",
            "pivotDetaching",
            "pivotUpdating",
        ]

    def test_payload_includes_optional_fields_only_when_set(self) -> None:
        event = PivotEvent(
            name=PivotEventName.UPDATED,
            halt=False,
            relation_name="roles",
            ids=[1],
            ids_attributes={1: {"scope": "x"}},
            original={"user_id": 1, "role_id": 1, "scope": "y"},
        )

        assert event.to_payload() == {
            "event": "pivotUpdated",
            "halt": False,
            "relation": "roles",
            "ids": [1],
            "ids_attributes": [{"id": 1, "attributes": {"scope": "x"}}],
            "original": {"user_id": 1, "role_id": 1, "scope": "y"},
        }
