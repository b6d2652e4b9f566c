"""I/O package for frame sources, configuration and durable records."""

from cliptrack.io.video_loader import ArrayClip, VideoClip, get_video_info
from cliptrack.io.config import ConfigLoader, TrackingConfig
from cliptrack.io.persistence import PersistenceAdapter

__all__ = [
    'ArrayClip',
    'VideoClip',
    'get_video_info',
    'ConfigLoader',
    'TrackingConfig',
    'PersistenceAdapter',
]
