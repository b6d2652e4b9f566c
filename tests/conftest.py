"""Shared fixtures: in-memory clips and deterministic tracker primitives."""

from typing import Iterable, Tuple
import numpy as np
import pytest

from cliptrack.io.video_loader import ArrayClip
from cliptrack.processing.controller import ProcessingController
from cliptrack.records.track_record import BoundingBox
from cliptrack.trackers.base import BaseTracker


SEED_BOX = BoundingBox(10, 10, 50, 50)


def make_frames(n_frames: int, height: int = 100, width: int = 100) -> np.ndarray:
    """Frames whose pixel values equal their frame index, so trackers can tell them apart."""
    frames = np.zeros((n_frames, height, width, 3), dtype=np.uint8)
    for i in range(n_frames):
        frames[i] = i
    return frames


def frame_index(frame: np.ndarray) -> int:
    return int(frame[0, 0, 0])


class StaticTracker(BaseTracker):
    """Always succeeds and reports the seed box unchanged."""

    def __init__(self, fail_frames: Iterable[int] = (), refuse_init_frames: Iterable[int] = ()):
        super().__init__()
        self.fail_frames = set(fail_frames)
        self.refuse_init_frames = set(refuse_init_frames)
        self.box = None

    def init(self, frame, box):
        if frame_index(frame) in self.refuse_init_frames:
            return False
        self.box = box
        return True

    def update(self, frame) -> Tuple[bool, BoundingBox]:
        if frame_index(frame) in self.fail_frames:
            return False, BoundingBox.sentinel()
        return True, self.box


class DriftingTracker(BaseTracker):
    """Moves the box one pixel right per frame and reports a rotation."""

    supports_rotation = True

    def init(self, frame, box):
        self.box = box
        return True

    def update(self, frame):
        b = self.box
        self.box = BoundingBox(b.x1 + 1, b.y1, b.x2 + 1, b.y2)
        self.rotation = float(frame_index(frame))
        return True, self.box


def static_factory(fail_frames=(), refuse_init_frames=()):
    return lambda name: StaticTracker(fail_frames, refuse_init_frames)


class CancelAfter(ProcessingController):
    """Requests cancellation once a given number of frames has been reported."""

    def __init__(self, n_frames: int):
        super().__init__()
        self.n_frames = n_frames
        self.reports = []

    def report_progress(self, percent: float):
        super().report_progress(percent)
        self.reports.append(percent)
        if len(self.reports) >= self.n_frames:
            self.cancel()


@pytest.fixture
def clip10():
    return ArrayClip(make_frames(10))


@pytest.fixture
def seed_box():
    return SEED_BOX
