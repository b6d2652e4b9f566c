"""Records package for per-frame tracking results."""

from cliptrack.records.track_record import BoundingBox, TrackRecord, TrackedData

__all__ = ['BoundingBox', 'TrackRecord', 'TrackedData']
