"""Error taxonomy for the scheduling engine."""


class SchedulingError(Exception):
    """Base class for scheduling engine errors."""


class ValidationError(SchedulingError):
    """Caller input is malformed."""


class NotFoundError(SchedulingError):
    """Entity is absent or not owned by the caller."""


class StorageContentionError(SchedulingError):
    """The storage layer reported a transient busy/locked condition."""
