"""
Base class and name registry for single-object tracker primitives.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Tuple
import numpy as np

from cliptrack.errors import ConfigError
from cliptrack.records.track_record import BoundingBox


class BaseTracker(ABC):
    """Abstract base class for single-object trackers (OpenCV, custom, etc.)."""

    # Trackers that estimate orientation set this and update self.rotation
    supports_rotation = False

    def __init__(self):
        self.rotation = 0.0

    @abstractmethod
    def init(self, frame: np.ndarray, box: BoundingBox) -> bool:
        """
        Bind the tracker to an object on a frame.

        Args:
            frame: Image as (H, W, 3) array
            box: Seed bounding box in pixel coordinates

        Returns:
            True if the tracker accepted the box
        """
        pass

    @abstractmethod
    def update(self, frame: np.ndarray) -> Tuple[bool, BoundingBox]:
        """
        Advance the tracker by one frame.

        Args:
            frame: Next image in the sequence

        Returns:
            (success, box): Whether the object was found, and its new box

        Raises:
            FrameLost: Trackers may raise instead of returning success=False
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


TrackerFactory = Callable[[], BaseTracker]

_REGISTRY: Dict[str, TrackerFactory] = {}


def register_tracker(name: str, factory: TrackerFactory):
    """
    Make a tracker selectable by name.

    Args:
        name: Algorithm identifier (case-insensitive)
        factory: Zero-argument callable returning a fresh tracker
    """
    _REGISTRY[name.upper()] = factory


def unregister_tracker(name: str):
    _REGISTRY.pop(name.upper(), None)


def available_trackers() -> List[str]:
    return sorted(_REGISTRY)


def create_tracker(name: str) -> BaseTracker:
    """
    Instantiate the tracker registered under name.

    Raises:
        ConfigError: If no tracker is registered under that name
    """
    try:
        factory = _REGISTRY[name.upper()]
    except KeyError:
        raise ConfigError(
            f"Unknown tracker algorithm '{name}'. Available: {', '.join(available_trackers())}"
        ) from None
    return factory()
