from __future__ import annotations

import json
import logging

from redis import Redis
from redis.exceptions import RedisError

from ..config import StreamConfig
from ..errors import EventDeliveryError
from .models import PivotEvent

logger = logging.getLogger(__name__)


class RedisStreamSink:
    """
    Event sink appending every pivot event to a Redis stream.

    Each entry has two fields: ``event`` (the event name) and ``data`` (the
    JSON payload from ``PivotEvent.to_payload``). Datetimes in pivot rows are
    written in ISO-8601 form.

    Delivery happens inside the pivot operation: a failed XADD raises
    ``EventDeliveryError`` and the caller's transaction decides what happens to
    the database writes.

    Usage:
        sink = RedisStreamSink(Redis.from_url(url), StreamConfig(stream_key="pivots"))
        relation = PivotEventsRelation(BelongsToMany(session, user, roles), sink)
    """

    def __init__(self, redis: Redis, config: StreamConfig) -> None:
        self.redis = redis
        self.config = config

    def _serialize(self, event: PivotEvent) -> str:
        try:
            return json.dumps(event.to_payload(), default=_json_default, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise EventDeliveryError(f"Payload is not JSON-serializable: {exc}") from exc

    def emit(self, name: str, event: PivotEvent) -> str:
        fields = {"event": name, "data": self._serialize(event)}
        try:
            entry_id = self.redis.xadd(
                self.config.stream_key,
                fields,
                maxlen=self.config.maxlen,
                approximate=self.config.approximate,
            )
        except RedisError as exc:
            raise EventDeliveryError(
                f"Failed to publish {name} to stream {self.config.stream_key!r}: {exc}"
            ) from exc

        entry_id = entry_id.decode() if isinstance(entry_id, bytes) else str(entry_id)
        logger.debug("Published %s to %s as %s", name, self.config.stream_key, entry_id)
        return entry_id


def _json_default(value):
    isoformat = getattr(value, "isoformat", None)
    if isoformat is not None:
        return isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
