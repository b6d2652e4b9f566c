"""
Exception taxonomy for clip tracking.
"""


class TrackingError(Exception):
    """Base class for all tracking errors."""


class InvalidRange(TrackingError, ValueError):
    """Requested frame interval is malformed or exceeds the clip."""


class InitializationFailed(TrackingError):
    """The seed box could not be bound to the tracker on the seed frame."""


class TrackerNotInitialized(TrackingError, RuntimeError):
    """Update was requested before a successful initialization."""


class FrameLost(TrackingError):
    """The tracker lost the object on a single frame."""


class NotFound(TrackingError, LookupError):
    """No tracked data exists for the requested frame."""


class RecordNotFound(NotFound, FileNotFoundError):
    """The durable record file does not exist."""


class RecordIOError(TrackingError, OSError):
    """The durable record could not be written."""


class CorruptRecord(TrackingError, ValueError):
    """The durable record payload could not be decoded."""


class ConfigError(TrackingError, ValueError):
    """Configuration payload is missing required fields or malformed."""
