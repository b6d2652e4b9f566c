"""
Frame sources for tracking: video files read through OpenCV, or in-memory frame stacks.
"""

from typing import Sequence, Union
from pathlib import Path
import logging
import numpy as np
import cv2

logger = logging.getLogger(__name__)


class ArrayClip:
    """
    Clip backed by frames already in memory.

    Args:
        frames: Sequence of (H, W, 3) arrays, or a single (F, H, W, 3) array
    """

    def __init__(self, frames: Union[np.ndarray, Sequence[np.ndarray]]):
        self.frames = frames

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    def get_frame(self, index: int) -> np.ndarray:
        if not 0 <= index < self.frame_count:
            raise IndexError(f"Frame {index} out of range [0, {self.frame_count})")
        return self.frames[index]


class VideoClip:
    """
    Clip that decodes frames from a video file on demand.

    Frames are read sequentially when possible; a seek is issued only when the
    requested index is not the next one in the stream.
    """

    def __init__(self, video_path: str):
        self.video_path = Path(video_path)
        if not self.video_path.exists():
            raise FileNotFoundError(f"Video file not found: {self.video_path}")

        self.cap = cv2.VideoCapture(str(self.video_path))
        if not self.cap.isOpened():
            raise ValueError(f"Could not open video file: {self.video_path}")

        self._frame_count = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.fps = self.cap.get(cv2.CAP_PROP_FPS)
        self._next_index = 0

        logger.info(f"Opened {self.video_path.name}: {self.width}x{self.height}, "
                    f"{self._frame_count} frames @ {self.fps:.2f} fps")

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def get_frame(self, index: int) -> np.ndarray:
        """
        Decode one frame.

        Args:
            index: Frame number, 0-based

        Returns:
            (H, W, 3) BGR uint8 array
        """
        if not 0 <= index < self._frame_count:
            raise IndexError(f"Frame {index} out of range [0, {self._frame_count})")

        if index != self._next_index:
            self.cap.set(cv2.CAP_PROP_POS_FRAMES, index)

        ret, frame = self.cap.read()
        if not ret:
            raise IOError(f"Could not decode frame {index} of {self.video_path}")

        self._next_index = index + 1
        return frame

    def close(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def __enter__(self) -> 'VideoClip':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def get_video_info(video_path: str) -> dict:
    """
    Get video information without decoding any frames.
    """
    cap = cv2.VideoCapture(str(video_path))

    if not cap.isOpened():
        raise ValueError(f"Could not open video file: {video_path}")

    info = {
        'width': int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
        'height': int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        'frames': int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
        'fps': cap.get(cv2.CAP_PROP_FPS),
        'codec': int(cap.get(cv2.CAP_PROP_FOURCC))
    }

    cap.release()

    info['duration_seconds'] = info['frames'] / info['fps'] if info['fps'] > 0 else 0

    return info

