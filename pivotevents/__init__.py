from .config import RelationDescriptor, StreamConfig
from .db import BelongsToMany, DbSession, Pivot, Record
from .events import EventDispatcher, PivotEvent, PivotEventName, RedisStreamSink
from .ids import IdsInput, IdsInputKind, normalize_ids
from .pivot_events import PivotEventsRelation

__all__ = [
    "PivotEventsRelation",
    "BelongsToMany",
    "DbSession",
    "Pivot",
    "Record",
    "RelationDescriptor",
    "StreamConfig",
    "EventDispatcher",
    "PivotEvent",
    "PivotEventName",
    "RedisStreamSink",
    "IdsInput",
    "IdsInputKind",
    "normalize_ids",
]
