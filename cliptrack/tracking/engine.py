"""
Single-object tracking engine: the init/update state machine for one frame at a time.
"""

from typing import Callable, Optional
from dataclasses import dataclass
import logging
import numpy as np

from cliptrack.errors import FrameLost, InitializationFailed, TrackerNotInitialized
from cliptrack.records.track_record import BoundingBox
from cliptrack.trackers.base import BaseTracker, create_tracker

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Outcome of advancing the tracker by one frame."""
    success: bool
    box: BoundingBox
    rotation: float = 0.0


class TrackerEngine:
    """
    Owns one tracker primitive and drives it frame by frame.

    The engine never re-initializes on its own: after a failed update the
    caller decides whether to re-seed, skip or keep updating.
    """

    def __init__(self, algorithm: str,
                 tracker_factory: Callable[[str], BaseTracker] = create_tracker):
        """
        Args:
            algorithm: Name of the tracker primitive to instantiate
            tracker_factory: Callable mapping an algorithm name to a fresh tracker
        """
        self.algorithm = algorithm
        self.tracker_factory = tracker_factory
        self.tracker: Optional[BaseTracker] = None
        self.initialized = False
        self.current_box: Optional[BoundingBox] = None

    def initialize(self, frame: np.ndarray, seed_box: BoundingBox,
                   tracker: Optional[BaseTracker] = None) -> bool:
        """
        Bind a fresh tracker primitive to the seed box on the given frame.

        Args:
            frame: Image as (H, W, 3) array
            seed_box: Box around the object in pixel coordinates
            tracker: Unused primitive to bind instead of a new one from the factory

        Returns:
            True on success

        Raises:
            InitializationFailed: If the box is degenerate, outside the frame,
                or refused by the primitive
        """
        self.initialized = False

        if seed_box.is_sentinel or seed_box.is_degenerate:
            raise InitializationFailed(
                f"Seed box {seed_box.as_tuple()} has no area"
            )

        frame_height, frame_width = frame.shape[:2]
        if not seed_box.fits_within(frame_width, frame_height):
            raise InitializationFailed(
                f"Seed box {seed_box.as_tuple()} lies outside the "
                f"{frame_width}x{frame_height} frame"
            )

        self.tracker = tracker if tracker is not None else self.tracker_factory(self.algorithm)
        if not self.tracker.init(frame, seed_box):
            raise InitializationFailed(
                f"Tracker {self.algorithm} rejected seed box {seed_box.as_tuple()}"
            )

        self.initialized = True
        self.current_box = seed_box
        return True

    def update(self, frame: np.ndarray) -> UpdateResult:
        """
        Advance the tracker by one frame.

        Returns:
            UpdateResult; on failure success is False and box is the sentinel

        Raises:
            TrackerNotInitialized: If called before a successful initialize()
        """
        if not self.initialized or self.tracker is None:
            raise TrackerNotInitialized("initialize() must succeed before update()")

        try:
            ok, box = self.tracker.update(frame)
        except FrameLost as e:
            logger.debug(f"Tracker lost object: {e}")
            return UpdateResult(False, BoundingBox.sentinel())

        if not ok or box.is_sentinel or box.is_degenerate:
            return UpdateResult(False, BoundingBox.sentinel())

        rotation = float(self.tracker.rotation) if self.tracker.supports_rotation else 0.0
        self.current_box = box
        return UpdateResult(True, box, rotation)
