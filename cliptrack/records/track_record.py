"""
Per-frame tracking results and the keyed collection that holds them.
"""

from typing import Dict, Iterator, List, Optional, Tuple, Any
from dataclasses import dataclass, field
import json
from pathlib import Path

from cliptrack.errors import NotFound


SENTINEL_COORD = -1.0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in frame pixel space, stored as corner coordinates."""
    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def sentinel(cls) -> 'BoundingBox':
        """Box marking 'no detection this frame'."""
        return cls(SENTINEL_COORD, SENTINEL_COORD, SENTINEL_COORD, SENTINEL_COORD)

    @classmethod
    def from_xywh(cls, x: float, y: float, width: float, height: float) -> 'BoundingBox':
        """
        Build a box from top-left corner and size.

        A negative width or height is treated as a box drawn from the opposite
        corner, so the origin is shifted back by the absolute size.
        """
        if width < 0:
            x = x - abs(width)
            width = abs(width)
        if height < 0:
            y = y - abs(height)
            height = abs(height)
        return cls(float(x), float(y), float(x + width), float(y + height))

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x1 + self.x2) / 2.0, (self.y1 + self.y2) / 2.0

    @property
    def is_sentinel(self) -> bool:
        return (self.x1 == SENTINEL_COORD and self.y1 == SENTINEL_COORD
                and self.x2 == SENTINEL_COORD and self.y2 == SENTINEL_COORD)

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def to_xywh(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.width, self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    def fits_within(self, frame_width: int, frame_height: int) -> bool:
        """Check that the box lies entirely inside a frame of the given size."""
        return (0 <= self.x1 < self.x2 <= frame_width and
                0 <= self.y1 < self.y2 <= frame_height)

    def clipped(self, frame_width: int, frame_height: int) -> 'BoundingBox':
        """Clamp the box to the frame. The result may be degenerate if the box was outside."""
        return BoundingBox(min(max(self.x1, 0.0), frame_width),
                           min(max(self.y1, 0.0), frame_height),
                           min(max(self.x2, 0.0), frame_width),
                           min(max(self.y2, 0.0), frame_height))

    def iou(self, other: 'BoundingBox') -> float:
        """Intersection over union with another box (0 for sentinel or disjoint boxes)."""
        if self.is_sentinel or other.is_sentinel:
            return 0.0
        ix1 = max(self.x1, other.x1)
        iy1 = max(self.y1, other.y1)
        ix2 = min(self.x2, other.x2)
        iy2 = min(self.y2, other.y2)
        inter = max(0.0, ix2 - ix1) * max(0.0, iy2 - iy1)
        union = self.width * self.height + other.width * other.height - inter
        return inter / union if union > 0 else 0.0

    def normalized(self, frame_width: int, frame_height: int) -> 'BoundingBox':
        """
        Scale the box to [0, 1] relative coordinates.

        Editing tools that place effects independently of the clip resolution
        work in these units. Sentinel boxes are returned unchanged.
        """
        if self.is_sentinel:
            return self
        return BoundingBox(self.x1 / frame_width, self.y1 / frame_height,
                           self.x2 / frame_width, self.y2 / frame_height)


@dataclass(frozen=True)
class TrackRecord:
    """Tracking result for a single frame."""
    frame_id: int
    rotation: float = 0.0
    bounding_box: BoundingBox = field(default_factory=BoundingBox.sentinel)

    def __post_init__(self):
        if self.frame_id < 0:
            raise ValueError(f"frame_id must be non-negative, got {self.frame_id}")

    @classmethod
    def lost(cls, frame_id: int) -> 'TrackRecord':
        """Sentinel record for a frame without a usable detection."""
        return cls(frame_id=frame_id, rotation=0.0, bounding_box=BoundingBox.sentinel())

    @property
    def is_lost(self) -> bool:
        return self.bounding_box.is_sentinel

    def to_dict(self) -> Dict[str, Any]:
        box = self.bounding_box
        return {
            'frame_id': self.frame_id,
            'rotation': self.rotation,
            'x1': box.x1,
            'y1': box.y1,
            'x2': box.x2,
            'y2': box.y2,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrackRecord':
        return cls(
            frame_id=int(data['frame_id']),
            rotation=float(data.get('rotation', 0.0)),
            bounding_box=BoundingBox(float(data['x1']), float(data['y1']),
                                     float(data['x2']), float(data['y2'])),
        )


class TrackedData:
    """
    Tracking results for a clip, keyed by frame id.

    Holds at most one record per frame. Lookups are by key, so gaps between
    frame ids are allowed and insertion order does not matter; iteration is
    always in increasing frame id order.
    """

    def __init__(self, records: Optional[List[TrackRecord]] = None):
        self._records: Dict[int, TrackRecord] = {}
        for record in records or []:
            self.add(record)

    def add(self, record: TrackRecord):
        """Insert a record, replacing any existing record for the same frame."""
        self._records[record.frame_id] = record

    def get(self, frame_id: int) -> TrackRecord:
        """
        Get the record for a frame.

        Raises:
            NotFound: If no record exists for frame_id
        """
        try:
            return self._records[frame_id]
        except KeyError:
            raise NotFound(f"No tracked data for frame {frame_id}") from None

    def frame_ids(self) -> List[int]:
        return sorted(self._records)

    @property
    def first_frame(self) -> Optional[int]:
        return min(self._records) if self._records else None

    @property
    def last_frame(self) -> Optional[int]:
        return max(self._records) if self._records else None

    def lost_frames(self) -> List[int]:
        """Frame ids whose record is a sentinel."""
        return [frame_id for frame_id in self.frame_ids() if self._records[frame_id].is_lost]

    def clear(self):
        self._records.clear()

    def get_stats(self) -> Dict[str, int]:
        """
        Get summary statistics.

        Returns:
            Dictionary with total, tracked and lost frame counts
        """
        n_lost = len(self.lost_frames())
        return {
            'n_frames': len(self._records),
            'n_tracked': len(self._records) - n_lost,
            'n_lost': n_lost,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {'frames': [record.to_dict() for record in self]}

    def export_json(self, filepath: str):
        """
        Write a human-readable copy of the results for editing tools.

        Args:
            filepath: Path to output JSON file
        """
        Path(filepath).write_text(json.dumps(self.to_dict(), indent=2))

    def __contains__(self, frame_id: int) -> bool:
        return frame_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TrackRecord]:
        for frame_id in self.frame_ids():
            yield self._records[frame_id]

    def __eq__(self, other) -> bool:
        if not isinstance(other, TrackedData):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"TrackedData(n_frames={len(self)}, first={self.first_frame}, last={self.last_frame})"
