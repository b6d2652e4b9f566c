"""
SORT-style multi-object association tracker.

Each track is a constant-velocity Kalman filter over box center, area and
aspect ratio. Detections are assigned to predicted tracks by maximizing IoU
with the Hungarian algorithm.
"""

from typing import List, Sequence
from dataclasses import dataclass
import logging
import numpy as np
import cv2
from scipy.optimize import linear_sum_assignment

from cliptrack.records.track_record import BoundingBox

logger = logging.getLogger(__name__)


@dataclass
class AssociatedTrack:
    """A track matched to a detection in the current frame."""
    track_id: int
    box: BoundingBox
    hits: int
    age: int


def box_to_measurement(box: BoundingBox) -> np.ndarray:
    """Convert a box to the (u, v, s, r) measurement vector: center, area, aspect."""
    u, v = box.center
    s = box.width * box.height
    r = box.width / float(box.height)
    return np.array([[u], [v], [s], [r]], dtype=np.float32)


def state_to_box(state: np.ndarray) -> BoundingBox:
    """Convert a Kalman state vector back to a corner box."""
    u, v, s, r = (float(state[i, 0]) for i in range(4))
    if s <= 0 or r <= 0:
        return BoundingBox.sentinel()
    w = np.sqrt(s * r)
    h = s / w
    return BoundingBox(u - w / 2.0, v - h / 2.0, u + w / 2.0, v + h / 2.0)


class KalmanBoxTrack:
    """
    Kalman-filtered state of one tracked box.

    State: [u, v, s, r, du, dv, ds]^T, the aspect ratio r is assumed constant.
    """

    def __init__(self, track_id: int, box: BoundingBox):
        self.kf = cv2.KalmanFilter(7, 4)

        # F: constant velocity on center and area
        transition = np.eye(7, dtype=np.float32)
        transition[0, 4] = transition[1, 5] = transition[2, 6] = 1.0
        self.kf.transitionMatrix = transition

        # H: observe (u, v, s, r)
        self.kf.measurementMatrix = np.eye(4, 7, dtype=np.float32)

        measurement_noise = np.eye(4, dtype=np.float32)
        measurement_noise[2:, 2:] *= 10.0
        self.kf.measurementNoiseCov = measurement_noise

        # High uncertainty on the unobserved velocities
        error_cov = np.eye(7, dtype=np.float32)
        error_cov[4:, 4:] *= 1000.0
        error_cov *= 10.0
        self.kf.errorCovPost = error_cov

        process_noise = np.eye(7, dtype=np.float32)
        process_noise[-1, -1] *= 0.01
        process_noise[4:, 4:] *= 0.01
        self.kf.processNoiseCov = process_noise

        state = np.zeros((7, 1), dtype=np.float32)
        state[:4] = box_to_measurement(box)
        self.kf.statePost = state

        self.track_id = track_id
        self.time_since_update = 0
        self.hits = 0
        self.hit_streak = 0
        self.age = 0

    def predict(self) -> BoundingBox:
        """Advance the state one frame and return the predicted box."""
        state = self.kf.statePost
        # Keep the area from going negative
        if state[6, 0] + state[2, 0] <= 0:
            state[6, 0] = 0.0
            self.kf.statePost = state

        predicted = self.kf.predict()
        self.age += 1
        if self.time_since_update > 0:
            self.hit_streak = 0
        self.time_since_update += 1
        return state_to_box(predicted)

    def update(self, box: BoundingBox):
        """Correct the state with a matched detection."""
        self.time_since_update = 0
        self.hits += 1
        self.hit_streak += 1
        self.kf.correct(box_to_measurement(box))

    @property
    def box(self) -> BoundingBox:
        return state_to_box(self.kf.statePost)


def iou_matrix(detections: Sequence[BoundingBox], predictions: Sequence[BoundingBox]) -> np.ndarray:
    matrix = np.zeros((len(detections), len(predictions)), dtype=np.float64)
    for d, det in enumerate(detections):
        for t, pred in enumerate(predictions):
            matrix[d, t] = det.iou(pred)
    return matrix


class SortTracker:
    """
    Associates per-frame detections with persistent track ids.

    The tracker is stateful: call associate() once per frame, in frame order,
    with the detections for that frame (an empty list ages all tracks).
    """

    def __init__(self, max_age: int = 7, min_hits: int = 0, iou_threshold: float = 0.3):
        """
        Args:
            max_age: Frames a track survives without a matching detection
            min_hits: Consecutive matches before a track is reported
            iou_threshold: Minimum IoU for a detection to match a track
        """
        self.max_age = max_age
        self.min_hits = min_hits
        self.iou_threshold = iou_threshold
        self.tracks: List[KalmanBoxTrack] = []
        self.frame_count = 0
        self._next_id = 0

    def _match(self, detections: Sequence[BoundingBox], predictions: Sequence[BoundingBox]):
        if not detections or not predictions:
            return [], list(range(len(detections)))

        ious = iou_matrix(detections, predictions)
        rows, cols = linear_sum_assignment(-ious)

        matches = []
        matched_dets = set()
        for d, t in zip(rows, cols):
            if ious[d, t] >= self.iou_threshold:
                matches.append((d, t))
                matched_dets.add(d)

        unmatched = [d for d in range(len(detections)) if d not in matched_dets]
        return matches, unmatched

    def associate(self, detections: Sequence[BoundingBox]) -> List[AssociatedTrack]:
        """
        Match this frame's detections to tracks.

        Args:
            detections: Boxes detected in the current frame (sentinels are ignored)

        Returns:
            Tracks updated by a detection in this frame, ordered by track id
        """
        self.frame_count += 1
        detections = [det for det in detections if not det.is_sentinel and not det.is_degenerate]

        predictions = []
        alive = []
        for track in self.tracks:
            predicted = track.predict()
            if predicted.is_sentinel or not np.all(np.isfinite(predicted.as_tuple())):
                logger.debug(f"Dropping track {track.track_id} with invalid prediction")
                continue
            predictions.append(predicted)
            alive.append(track)
        self.tracks = alive

        matches, unmatched = self._match(detections, predictions)
        for d, t in matches:
            self.tracks[t].update(detections[d])

        for d in unmatched:
            self.tracks.append(KalmanBoxTrack(self._next_id, detections[d]))
            self._next_id += 1

        results = []
        for track in self.tracks:
            if track.time_since_update == 0 and (
                track.hit_streak >= self.min_hits or self.frame_count <= self.min_hits
            ):
                results.append(AssociatedTrack(track.track_id, track.box, track.hits, track.age))

        self.tracks = [t for t in self.tracks if t.time_since_update <= self.max_age]
        return sorted(results, key=lambda r: r.track_id)

    def reset(self):
        self.tracks = []
        self.frame_count = 0
        self._next_id = 0
