class PivotEventsError(Exception):
    """Base exception for pivotevents errors."""


class EventDeliveryError(PivotEventsError):
    """An event could not be handed to its external transport."""
