"""
Clip tracking workflow: drive the tracker engine across a frame range.
"""

from typing import Callable, Optional, Tuple
from dataclasses import dataclass
import logging

from cliptrack.errors import ConfigError, InitializationFailed, InvalidRange
from cliptrack.io.config import TrackingConfig
from cliptrack.io.persistence import PersistenceAdapter
from cliptrack.processing.controller import ProcessingController
from cliptrack.records.track_record import BoundingBox, TrackRecord, TrackedData
from cliptrack.trackers.base import BaseTracker, create_tracker
from cliptrack.trackers.sort import SortTracker
from cliptrack.tracking.engine import TrackerEngine

logger = logging.getLogger(__name__)


@dataclass
class TrackingSession:
    """State of one track_clip() call. Discarded when the call returns."""
    algorithm_name: str
    current_box: BoundingBox
    initialized: bool = False
    secondary_tracker_state: Optional[SortTracker] = None
    frames_processed: int = 0
    frames_lost: int = 0
    reseeds: int = 0
    disagreements: int = 0
    cancelled: bool = False
    source_failed: bool = False


def resolve_frame_range(frame_count: int, start: int = 0, end: int = 0,
                        interval: bool = False) -> Tuple[int, int]:
    """
    Work out the half-open [first, last) range to track.

    Raises:
        InvalidRange: If the interval is empty, reversed or past the clip end
    """
    if not interval:
        if frame_count <= 0:
            raise InvalidRange("Clip has no frames")
        return 0, frame_count

    if start < 0:
        raise InvalidRange(f"Interval start {start} is negative")
    if start >= end:
        raise InvalidRange(f"Interval [{start}, {end}) is empty")
    if end > frame_count:
        raise InvalidRange(f"Interval end {end} exceeds clip length {frame_count}")
    return start, end


class ClipTrackingPipeline:
    """
    Tracks one object through a clip, frame by frame, on the calling thread.

    Frames are processed strictly in order because each estimate depends on the
    previous one. The controller is polled before every frame; a stop request
    ends the run early and keeps the frames tracked so far. A frame that cannot
    be read after the first one is reported as an error and ends the run the
    same way.

    Re-acquisition: when reseed_on_loss is set, a frame whose update fails is
    recorded as lost and the next frame re-initializes a fresh tracker from the
    last good box. Otherwise the engine keeps updating the lost tracker.
    """

    def __init__(self, algorithm: str, seed_box: BoundingBox,
                 controller: Optional[ProcessingController] = None,
                 persistence: Optional[PersistenceAdapter] = None,
                 reseed_on_loss: bool = True,
                 use_association: bool = True,
                 smooth_with_association: bool = False,
                 association_iou: float = 0.3,
                 tracker_factory: Callable[[str], BaseTracker] = create_tracker):
        """
        Args:
            algorithm: Tracker primitive name
            seed_box: Box around the object on the first frame of the range
            controller: Progress/cancellation channel (a private one if omitted)
            persistence: Where to save results after a completed or cancelled run
            reseed_on_loss: Re-initialize from the last good box after a lost frame
            use_association: Cross-check estimates with a SORT association tracker
            smooth_with_association: Record the association box instead of the raw estimate
            association_iou: IoU below which the two estimates count as disagreeing
            tracker_factory: Maps an algorithm name to a fresh tracker primitive
        """
        self.algorithm = algorithm
        self.seed_box = seed_box
        self.controller = controller if controller is not None else ProcessingController()
        self.persistence = persistence
        self.reseed_on_loss = reseed_on_loss
        self.use_association = use_association
        self.smooth_with_association = smooth_with_association
        self.association_iou = association_iou
        self.tracker_factory = tracker_factory

        self.tracked_data = TrackedData()
        self.session: Optional[TrackingSession] = None

    @classmethod
    def from_config(cls, config: TrackingConfig,
                    controller: Optional[ProcessingController] = None,
                    persistence: Optional[PersistenceAdapter] = None,
                    **kwargs) -> 'ClipTrackingPipeline':
        return cls(
            algorithm=config.algorithm,
            seed_box=config.bounding_box,
            controller=controller,
            persistence=persistence,
            reseed_on_loss=config.reseed_on_loss,
            use_association=config.use_association,
            smooth_with_association=config.smooth_with_association,
            **kwargs,
        )

    def track_clip(self, clip, start: int = 0, end: int = 0, interval: bool = False) -> TrackedData:
        """
        Track the object across the whole clip or across [start, end).

        Args:
            clip: Frame source with frame_count and get_frame(index)
            start: First frame of the interval (used when interval is True)
            end: Frame after the last one tracked (used when interval is True)
            interval: Track only [start, end) instead of the whole clip

        Returns:
            The tracked data, partial if the run was cancelled or the frame
            source failed after the first frame

        Raises:
            InvalidRange: If the interval is malformed; no frames are read
            ConfigError: If the algorithm name is unknown; no frames are read
            InitializationFailed: If the seed box is unusable on the first frame;
                the result stays empty and nothing is saved
            OSError, IndexError: If the first frame cannot be read
        """
        self.tracked_data = TrackedData()

        try:
            first, last = resolve_frame_range(clip.frame_count, start, end, interval)
            first_tracker = self.tracker_factory(self.algorithm)
        except (InvalidRange, ConfigError) as e:
            self.controller.report_error(str(e))
            raise

        total = last - first
        engine = TrackerEngine(self.algorithm, self.tracker_factory)
        session = TrackingSession(
            algorithm_name=self.algorithm,
            current_box=self.seed_box,
            secondary_tracker_state=SortTracker() if self.use_association else None,
        )
        self.session = session
        tracked = TrackedData()
        needs_reseed = False

        logger.info(f"Tracking frames [{first}, {last}) with {self.algorithm}, "
                    f"seed box {self.seed_box.as_tuple()}")

        for frame_id in range(first, last):
            if self.controller.should_stop():
                session.cancelled = True
                logger.info(f"Tracking cancelled before frame {frame_id}")
                break

            try:
                frame = clip.get_frame(frame_id)
            except (OSError, IndexError) as e:
                self.controller.report_error(f"Could not read frame {frame_id}: {e}")
                if frame_id == first:
                    raise
                session.source_failed = True
                break

            if frame_id == first:
                try:
                    engine.initialize(frame, self.seed_box, first_tracker)
                except InitializationFailed as e:
                    self.controller.report_error(str(e))
                    raise
                session.initialized = True
                record = TrackRecord(frame_id, 0.0, self.seed_box)
            elif needs_reseed:
                record = self._reseed(engine, session, frame, frame_id)
                needs_reseed = record.is_lost
            else:
                result = engine.update(frame)
                if result.success:
                    session.current_box = result.box
                    record = TrackRecord(frame_id, result.rotation, result.box)
                else:
                    logger.warning(f"Lost object at frame {frame_id}")
                    record = TrackRecord.lost(frame_id)
                    needs_reseed = self.reseed_on_loss

            record = self._cross_check(session, record)
            if record.is_lost:
                session.frames_lost += 1

            tracked.add(record)
            session.frames_processed += 1
            self.controller.report_progress(100.0 * session.frames_processed / total)

        logger.info(f"Tracked {session.frames_processed}/{total} frames "
                    f"({session.frames_lost} lost, {session.reseeds} re-seeds, "
                    f"{session.disagreements} association disagreements)")

        self.tracked_data = tracked
        if self.persistence is not None:
            self.persistence.save(tracked)
        return tracked

    def _reseed(self, engine: TrackerEngine, session: TrackingSession,
                frame, frame_id: int) -> TrackRecord:
        """
        Re-initialize from the last good box; a refusal yields another lost frame.

        The box is clamped to the frame first, since trackers may report boxes
        that hang over the frame edge.
        """
        frame_height, frame_width = frame.shape[:2]
        box = session.current_box.clipped(frame_width, frame_height)
        try:
            engine.initialize(frame, box)
        except InitializationFailed as e:
            logger.warning(f"Re-seed failed at frame {frame_id}: {e}")
            return TrackRecord.lost(frame_id)

        session.current_box = box
        session.reseeds += 1
        logger.debug(f"Re-seeded at frame {frame_id} from {box.as_tuple()}")
        return TrackRecord(frame_id, 0.0, box)

    def _cross_check(self, session: TrackingSession, record: TrackRecord) -> TrackRecord:
        """
        Feed the estimate to the association tracker and compare the two.

        Failures here only disable the association tracker for the rest of the run.
        """
        association = session.secondary_tracker_state
        if association is None:
            return record

        try:
            detections = [] if record.is_lost else [record.bounding_box]
            tracks = association.associate(detections)
        except Exception:
            logger.warning("Association tracker failed, continuing without it", exc_info=True)
            session.secondary_tracker_state = None
            return record

        if record.is_lost or not tracks:
            return record

        associated_box = max(tracks, key=lambda t: t.box.iou(record.bounding_box)).box
        if associated_box.iou(record.bounding_box) < self.association_iou:
            session.disagreements += 1
            logger.debug(f"Frame {record.frame_id}: association disagrees with tracker estimate")
            return record

        if self.smooth_with_association:
            return TrackRecord(record.frame_id, record.rotation, associated_box)
        return record


def run_tracking(config: TrackingConfig, clip,
                 controller: Optional[ProcessingController] = None,
                 persistence: Optional[PersistenceAdapter] = None) -> TrackedData:
    """
    Track a clip with the interval and options from a configuration.

    An interval with no end runs to the end of the clip.

    Args:
        config: Loaded tracking configuration
        clip: Frame source
        controller: Progress/cancellation channel
        persistence: Defaults to an adapter writing to config.record_path

    Returns:
        The tracked data
    """
    if persistence is None:
        persistence = PersistenceAdapter(config.record_path)

    pipeline = ClipTrackingPipeline.from_config(config, controller=controller,
                                                persistence=persistence)

    end = config.end
    if config.process_interval and end == 0:
        end = clip.frame_count

    return pipeline.track_clip(clip, config.start, end, config.process_interval)
