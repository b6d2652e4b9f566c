"""
cliptrack: Object Tracking Across Video Clips

Tracks a user-selected object through the frames of a clip, producing a
per-frame bounding box and rotation that editing tools can follow.
"""

__version__ = "0.1.0"

from cliptrack.records.track_record import BoundingBox, TrackRecord, TrackedData
from cliptrack.tracking.engine import TrackerEngine
from cliptrack.processing.controller import ProcessingController
from cliptrack.io.config import ConfigLoader, TrackingConfig
from cliptrack.io.persistence import PersistenceAdapter
from cliptrack.io.video_loader import ArrayClip, VideoClip
from cliptrack.workflows.clip_tracking import ClipTrackingPipeline, run_tracking
from cliptrack.workflows.jobs import TrackingJob

__all__ = [
    "BoundingBox",
    "TrackRecord",
    "TrackedData",
    "TrackerEngine",
    "ProcessingController",
    "ConfigLoader",
    "TrackingConfig",
    "PersistenceAdapter",
    "ArrayClip",
    "VideoClip",
    "ClipTrackingPipeline",
    "run_tracking",
    "TrackingJob",
]
