import pytest

from cliptrack.errors import ConfigError, InitializationFailed, InvalidRange
from cliptrack.io import ArrayClip, PersistenceAdapter, TrackingConfig
from cliptrack.processing import ProcessingController
from cliptrack.records import BoundingBox, TrackRecord
from cliptrack.trackers import register_tracker, unregister_tracker
from cliptrack.workflows import ClipTrackingPipeline, resolve_frame_range, run_tracking

from conftest import (CancelAfter, DriftingTracker, StaticTracker, frame_index, make_frames,
                      static_factory)


def make_pipeline(seed_box, factory=None, **kwargs):
    return ClipTrackingPipeline("A", seed_box, tracker_factory=factory or static_factory(), **kwargs)


def test_whole_clip_static_tracker(clip10, seed_box):
    tracked = make_pipeline(seed_box).track_clip(clip10)

    assert tracked.frame_ids() == list(range(10))
    for record in tracked:
        assert record.bounding_box == BoundingBox(10, 10, 50, 50)
        assert record.rotation == 0


def test_update_failure_records_sentinel_and_continues(clip10, seed_box):
    tracked = make_pipeline(seed_box, static_factory(fail_frames={5})).track_clip(clip10)

    assert len(tracked) == 10
    lost = tracked.get(5)
    assert (lost.bounding_box.x1, lost.bounding_box.y1,
            lost.bounding_box.x2, lost.bounding_box.y2) == (-1, -1, -1, -1)
    for frame_id in list(range(0, 5)) + list(range(6, 10)):
        assert tracked.get(frame_id).bounding_box == seed_box


def test_interval(clip10, seed_box):
    tracked = make_pipeline(seed_box).track_clip(clip10, start=3, end=6, interval=True)
    assert tracked.frame_ids() == [3, 4, 5]


def test_interval_ignored_without_flag(clip10, seed_box):
    tracked = make_pipeline(seed_box).track_clip(clip10, start=3, end=6)
    assert tracked.frame_ids() == list(range(10))


@pytest.mark.parametrize("start,end", [(5, 5), (6, 3), (0, 11), (-1, 4)])
def test_invalid_range_reported_before_reading_frames(seed_box, start, end):
    class NoReadClip(ArrayClip):
        def get_frame(self, index):
            raise AssertionError("no frame should be read")

    controller = ProcessingController()
    pipeline = make_pipeline(seed_box, controller=controller)
    with pytest.raises(InvalidRange):
        pipeline.track_clip(NoReadClip(make_frames(10)), start, end, interval=True)
    assert controller.error


def test_unknown_algorithm_reported_before_reading_frames(seed_box):
    class NoReadClip(ArrayClip):
        def get_frame(self, index):
            raise AssertionError("no frame should be read")

    controller = ProcessingController()
    pipeline = ClipTrackingPipeline("NOPE", seed_box, controller=controller)
    with pytest.raises(ConfigError):
        pipeline.track_clip(NoReadClip(make_frames(10)))
    assert controller.error
    assert "NOPE" in controller.error_message


class BrokenAfter(ArrayClip):
    """Frame source that fails to decode from a given frame on."""

    def __init__(self, frames, fail_from):
        super().__init__(frames)
        self.fail_from = fail_from

    def get_frame(self, index):
        if index >= self.fail_from:
            raise IOError(f"Could not decode frame {index}")
        return super().get_frame(index)


def test_frame_source_failure_keeps_partial_results(tmp_path, seed_box):
    record_path = tmp_path / "out.trk"
    controller = ProcessingController()
    pipeline = make_pipeline(seed_box, controller=controller,
                             persistence=PersistenceAdapter(record_path))

    tracked = pipeline.track_clip(BrokenAfter(make_frames(10), fail_from=7))

    assert tracked.frame_ids() == list(range(7))
    assert pipeline.tracked_data == tracked
    assert pipeline.session.source_failed
    assert controller.error
    assert "frame 7" in controller.error_message
    assert PersistenceAdapter(record_path).load() == tracked


def test_unreadable_first_frame_is_fatal(tmp_path, seed_box):
    record_path = tmp_path / "out.trk"
    controller = ProcessingController()
    pipeline = make_pipeline(seed_box, controller=controller,
                             persistence=PersistenceAdapter(record_path))

    with pytest.raises(OSError):
        pipeline.track_clip(BrokenAfter(make_frames(10), fail_from=0))
    assert controller.error
    assert not record_path.exists()


def test_resolve_frame_range():
    assert resolve_frame_range(10) == (0, 10)
    assert resolve_frame_range(10, 2, 4, True) == (2, 4)
    assert resolve_frame_range(10, 0, 10, True) == (0, 10)
    with pytest.raises(InvalidRange):
        resolve_frame_range(0)


def test_seed_failure_aborts_and_saves_nothing(tmp_path, clip10):
    record_path = tmp_path / "out.trk"
    controller = ProcessingController()
    pipeline = make_pipeline(BoundingBox(90, 90, 150, 150), controller=controller,
                             persistence=PersistenceAdapter(record_path))

    with pytest.raises(InitializationFailed):
        pipeline.track_clip(clip10)

    assert len(pipeline.tracked_data) == 0
    assert not record_path.exists()
    assert controller.error
    assert "outside" in controller.error_message


def test_cancellation_keeps_partial_results(tmp_path, clip10, seed_box):
    record_path = tmp_path / "out.trk"
    controller = CancelAfter(5)
    persistence = PersistenceAdapter(record_path)
    pipeline = make_pipeline(seed_box, controller=controller, persistence=persistence)

    tracked = pipeline.track_clip(clip10)

    assert tracked.frame_ids() == [0, 1, 2, 3, 4]
    assert pipeline.session.cancelled
    assert not controller.error
    # Partial results are still persisted
    assert PersistenceAdapter(record_path).load() == tracked


def test_cancelled_before_start_yields_empty(clip10, seed_box):
    controller = ProcessingController()
    controller.cancel()
    tracked = make_pipeline(seed_box, controller=controller).track_clip(clip10)
    assert len(tracked) == 0


def test_progress_reaches_100(clip10, seed_box):
    controller = CancelAfter(100)
    make_pipeline(seed_box, controller=controller).track_clip(clip10, 2, 6, True)
    assert controller.reports == [25.0, 50.0, 75.0, 100.0]
    assert controller.progress == 100.0


def test_reseed_after_loss_uses_last_good_box(seed_box):
    clip = ArrayClip(make_frames(6))
    created = []

    class LosingDrift(DriftingTracker):
        def update(self, frame):
            if int(frame[0, 0, 0]) == 3:
                return False, BoundingBox.sentinel()
            return super().update(frame)

    def factory(name):
        tracker = LosingDrift()
        created.append(tracker)
        return tracker

    pipeline = make_pipeline(seed_box, factory, use_association=False)
    tracked = pipeline.track_clip(clip)

    assert tracked.get(2).bounding_box == BoundingBox(12, 10, 52, 50)
    assert tracked.get(3).is_lost
    # Frame 4 re-seeds from frame 2's box, frame 5 resumes drifting from there
    assert tracked.get(4).bounding_box == BoundingBox(12, 10, 52, 50)
    assert tracked.get(5).bounding_box == BoundingBox(13, 10, 53, 50)
    assert pipeline.session.reseeds == 1
    assert len(created) == 2


def test_reseed_clamps_box_hanging_over_frame_edge(clip10, seed_box):
    class EdgeTracker(StaticTracker):
        def update(self, frame):
            index = frame_index(frame)
            if index == 1:
                return True, BoundingBox(80, 10, 120, 50)
            if index == 2:
                return False, BoundingBox.sentinel()
            return True, self.box

    pipeline = make_pipeline(seed_box, lambda name: EdgeTracker(), use_association=False)
    tracked = pipeline.track_clip(clip10)

    assert tracked.get(1).bounding_box == BoundingBox(80, 10, 120, 50)
    assert tracked.lost_frames() == [2]
    assert tracked.get(3).bounding_box == BoundingBox(80, 10, 100, 50)
    assert tracked.get(9).bounding_box == BoundingBox(80, 10, 100, 50)
    assert pipeline.session.reseeds == 1


def test_failed_reseed_keeps_recording_sentinels(clip10, seed_box):
    factory = static_factory(fail_frames={3}, refuse_init_frames={4, 5})
    pipeline = make_pipeline(seed_box, factory)
    tracked = pipeline.track_clip(clip10)

    assert tracked.lost_frames() == [3, 4, 5]
    assert tracked.get(6).bounding_box == seed_box
    assert len(tracked) == 10


def test_without_reseed_keeps_updating(clip10, seed_box):
    pipeline = make_pipeline(seed_box, static_factory(fail_frames={3, 4}), reseed_on_loss=False)
    tracked = pipeline.track_clip(clip10)

    assert tracked.lost_frames() == [3, 4]
    assert pipeline.session.reseeds == 0


def test_association_failure_does_not_change_outcome(clip10, seed_box, monkeypatch):
    from cliptrack.trackers import sort

    def broken(self, detections):
        raise RuntimeError("association exploded")

    monkeypatch.setattr(sort.SortTracker, "associate", broken)
    pipeline = make_pipeline(seed_box)
    tracked = pipeline.track_clip(clip10)

    assert len(tracked) == 10
    assert pipeline.session.secondary_tracker_state is None


def test_association_smoothing_tracks_moving_box(seed_box):
    clip = ArrayClip(make_frames(8))
    pipeline = make_pipeline(seed_box, lambda name: DriftingTracker(),
                             smooth_with_association=True)
    tracked = pipeline.track_clip(clip)

    assert len(tracked) == 8
    assert pipeline.session.disagreements == 0
    last = tracked.get(7).bounding_box
    assert last.iou(BoundingBox(17, 10, 57, 50)) > 0.8


def test_rotation_recorded(clip10, seed_box):
    tracked = make_pipeline(seed_box, lambda name: DriftingTracker()).track_clip(clip10)
    assert tracked.get(0).rotation == 0.0
    assert tracked.get(4).rotation == 4.0


def test_round_trip_through_persistence(tmp_path, clip10, seed_box):
    persistence = PersistenceAdapter(tmp_path / "clip.trk")
    pipeline = make_pipeline(seed_box, static_factory(fail_frames={5}), persistence=persistence)
    tracked = pipeline.track_clip(clip10)

    assert PersistenceAdapter(tmp_path / "clip.trk").load() == tracked


def test_run_tracking_from_config(tmp_path, clip10, seed_box):
    register_tracker("TEST_STATIC", lambda: StaticTracker())
    try:
        config = TrackingConfig(algorithm="test_static", bounding_box=seed_box,
                                start=4, end=0, process_interval=True,
                                record_path=str(tmp_path / "run.trk"))
        tracked = run_tracking(config, clip10)
    finally:
        unregister_tracker("TEST_STATIC")

    assert tracked.frame_ids() == [4, 5, 6, 7, 8, 9]
    adapter = PersistenceAdapter(config.record_path)
    adapter.load()
    assert adapter.get_tracked_data(9) == TrackRecord(9, 0.0, seed_box)
