"""Workflows package for clip-level tracking runs."""

from cliptrack.workflows.clip_tracking import (
    ClipTrackingPipeline,
    TrackingSession,
    resolve_frame_range,
    run_tracking,
)
from cliptrack.workflows.jobs import TrackingJob

__all__ = [
    'ClipTrackingPipeline',
    'TrackingSession',
    'resolve_frame_range',
    'run_tracking',
    'TrackingJob',
]
