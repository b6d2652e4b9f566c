"""Tracking package for the per-frame tracker state machine."""

from cliptrack.tracking.engine import TrackerEngine, UpdateResult

__all__ = ['TrackerEngine', 'UpdateResult']
