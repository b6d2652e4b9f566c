"""
Run a clip tracking pipeline on a background thread.
"""

from typing import Optional
import logging
import threading

from cliptrack.records.track_record import TrackedData
from cliptrack.workflows.clip_tracking import ClipTrackingPipeline

logger = logging.getLogger(__name__)


class TrackingJob:
    """
    Background wrapper around ClipTrackingPipeline.track_clip().

    Progress and cancellation go through the pipeline's controller, so a UI
    thread can poll progress and call cancel() while the job runs.
    """

    def __init__(self, pipeline: ClipTrackingPipeline, clip,
                 start: int = 0, end: int = 0, interval: bool = False):
        self.pipeline = pipeline
        self.clip = clip
        self.start_frame = start
        self.end_frame = end
        self.interval = interval

        self.result: Optional[TrackedData] = None
        self.exception: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    def _run(self):
        try:
            self.result = self.pipeline.track_clip(
                self.clip, self.start_frame, self.end_frame, self.interval
            )
        except Exception as e:
            # Already reported on the controller by the pipeline for tracking errors
            logger.error(f"Tracking job failed: {e}")
            self.exception = e

    def start(self):
        """Start the run. A cancel() issued before start() still applies."""
        if self._thread is not None:
            raise RuntimeError("Tracking job already started")
        self.pipeline.controller.reset(clear_stop=False)
        self._thread = threading.Thread(target=self._run, name="cliptrack-job", daemon=True)
        self._thread.start()

    def cancel(self):
        self.pipeline.controller.cancel()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the job to finish.

        Returns:
            True if the job has finished
        """
        if self._thread is None:
            return False
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def progress(self) -> float:
        return self.pipeline.controller.progress

    @property
    def succeeded(self) -> bool:
        return self._thread is not None and not self.is_running and self.exception is None
