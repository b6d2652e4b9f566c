"""
OpenCV-backed single-object trackers, selectable by their classic names.
"""

import logging
from typing import Callable, Optional, Tuple
import numpy as np
import cv2

from cliptrack.errors import ConfigError, FrameLost
from cliptrack.records.track_record import BoundingBox
from cliptrack.trackers.base import BaseTracker, register_tracker

logger = logging.getLogger(__name__)


# Algorithm name -> OpenCV class name suffix (cv2.Tracker<suffix>)
OPENCV_TRACKERS = {
    'BOOSTING': 'Boosting',
    'MIL': 'MIL',
    'KCF': 'KCF',
    'TLD': 'TLD',
    'MEDIANFLOW': 'MedianFlow',
    'MOSSE': 'MOSSE',
    'CSRT': 'CSRT',
}


def _resolve_constructor(suffix: str) -> Tuple[Optional[Callable], bool]:
    """
    Find the factory for a tracker in the installed OpenCV build.

    Returns:
        (constructor, is_legacy): constructor is None if the build lacks the tracker
    """
    class_name = f"Tracker{suffix}"

    # Main-namespace trackers (OpenCV >= 4.5.1) take integer rects
    if hasattr(cv2, f"{class_name}_create"):
        return getattr(cv2, f"{class_name}_create"), False
    if hasattr(cv2, class_name) and hasattr(getattr(cv2, class_name), 'create'):
        return getattr(cv2, class_name).create, False

    # Trackers moved to the legacy namespace keep the float (x, y, w, h) API
    legacy = getattr(cv2, 'legacy', None)
    if legacy is not None and hasattr(legacy, f"{class_name}_create"):
        return getattr(legacy, f"{class_name}_create"), True

    return None, False


class OpenCVTracker(BaseTracker):
    """
    Wraps one of the OpenCV tracking algorithms.

    A new OpenCV object is created on every init() because most OpenCV trackers
    cannot be re-initialized once bound.
    """

    def __init__(self, algorithm: str):
        super().__init__()
        algorithm = algorithm.upper()
        if algorithm not in OPENCV_TRACKERS:
            raise ConfigError(f"'{algorithm}' is not an OpenCV tracker")

        constructor, is_legacy = _resolve_constructor(OPENCV_TRACKERS[algorithm])
        if constructor is None:
            raise ConfigError(
                f"Tracker '{algorithm}' is not available in OpenCV {cv2.__version__} "
                f"(install opencv-contrib-python)"
            )

        self.algorithm = algorithm
        self._constructor = constructor
        self._is_legacy = is_legacy
        self._tracker = None

    def _to_cv_rect(self, box: BoundingBox):
        x, y, w, h = box.to_xywh()
        if self._is_legacy:
            return (float(x), float(y), float(w), float(h))
        return (int(round(x)), int(round(y)), int(round(w)), int(round(h)))

    def init(self, frame: np.ndarray, box: BoundingBox) -> bool:
        self._tracker = self._constructor()
        try:
            result = self._tracker.init(frame, self._to_cv_rect(box))
        except cv2.error as e:
            logger.warning(f"{self.algorithm} rejected seed box {box.as_tuple()}: {e}")
            self._tracker = None
            return False

        # Non-legacy trackers return None from init
        return result is None or bool(result)

    def update(self, frame: np.ndarray) -> Tuple[bool, BoundingBox]:
        if self._tracker is None:
            return False, BoundingBox.sentinel()

        try:
            ok, rect = self._tracker.update(frame)
        except cv2.error as e:
            raise FrameLost(f"{self.algorithm} update failed: {e}") from e

        if not ok:
            return False, BoundingBox.sentinel()

        x, y, w, h = rect
        return True, BoundingBox.from_xywh(float(x), float(y), float(w), float(h))

    def __repr__(self) -> str:
        return f"OpenCVTracker(algorithm={self.algorithm!r}, legacy={self._is_legacy})"


def _make_factory(algorithm: str):
    return lambda: OpenCVTracker(algorithm)


for _name in OPENCV_TRACKERS:
    register_tracker(_name, _make_factory(_name))
