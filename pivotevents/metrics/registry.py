from prometheus_client import Counter, Histogram

PIVOT_OPERATION_TOTAL = Counter(
    "pivotevents_pivot_operation_total",
    "Pivot operations run through the event wrapper",
    ["relation", "operation", "status"],
)

PIVOT_OPERATION_LATENCY_SECONDS = Histogram(
    "pivotevents_pivot_operation_latency_seconds",
    "Latency of pivot operations, events included",
    ["relation", "operation"],
)

PIVOT_ROWS_CHANGED_TOTAL = Counter(
    "pivotevents_pivot_rows_changed_total",
    "Pivot rows reported changed by update_existing_pivot",
    ["relation"],
)

PIVOT_EVENTS_EMITTED_TOTAL = Counter(
    "pivotevents_events_emitted_total",
    "Pivot lifecycle events handed to an event sink",
    ["event"],
)
