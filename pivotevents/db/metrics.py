from ..metrics.registry import (
    PIVOT_EVENTS_EMITTED_TOTAL,
    PIVOT_OPERATION_LATENCY_SECONDS,
    PIVOT_OPERATION_TOTAL,
    PIVOT_ROWS_CHANGED_TOTAL,
)


def observe_pivot_operation(relation: str, operation: str, status: str, latency_s: float) -> None:
    PIVOT_OPERATION_TOTAL.labels(relation=relation, operation=operation, status=status).inc()
    PIVOT_OPERATION_LATENCY_SECONDS.labels(relation=relation, operation=operation).observe(latency_s)


def observe_rows_changed(relation: str, count: int) -> None:
    if count > 0:
        PIVOT_ROWS_CHANGED_TOTAL.labels(relation=relation).inc(count)


def observe_event_emitted(event: str) -> None:
    PIVOT_EVENTS_EMITTED_TOTAL.labels(event=event).inc()
