from .dispatcher import EventDispatcher, EventSink
from .models import PivotEvent, PivotEventName
from .redis_stream import RedisStreamSink

__all__ = [
    "EventSink",
    "EventDispatcher",
    "PivotEvent",
    "PivotEventName",
    "RedisStreamSink",
]
