"""Trackers package for single-object and association primitives."""

from cliptrack.trackers.base import (
    BaseTracker,
    register_tracker,
    unregister_tracker,
    available_trackers,
    create_tracker,
)
from cliptrack.trackers.opencv_trackers import OpenCVTracker, OPENCV_TRACKERS
from cliptrack.trackers.sort import SortTracker, AssociatedTrack

__all__ = [
    'BaseTracker',
    'register_tracker',
    'unregister_tracker',
    'available_trackers',
    'create_tracker',
    'OpenCVTracker',
    'OPENCV_TRACKERS',
    'SortTracker',
    'AssociatedTrack',
]
