"""
Thread-safe progress, cancellation and error channel between a tracking run and its caller.
"""

from threading import Lock
import logging

logger = logging.getLogger(__name__)


class ProcessingController:
    """
    Shared state between a tracking run and whoever started it.

    The run reports progress and errors and polls should_stop() before each
    frame; the caller reads progress and may request cancellation from another
    thread.
    """

    def __init__(self):
        self.lock = Lock()
        self._progress = 0.0
        self._stop = False
        self._error = False
        self._error_message = ""

    def report_progress(self, percent: float):
        with self.lock:
            self._progress = float(percent)

    def report_error(self, message: str):
        logger.error(message)
        with self.lock:
            self._error = True
            self._error_message = message

    def should_stop(self) -> bool:
        with self.lock:
            return self._stop

    def cancel(self):
        """Request the run to stop before its next frame."""
        with self.lock:
            self._stop = True

    @property
    def progress(self) -> float:
        with self.lock:
            return self._progress

    @property
    def error(self) -> bool:
        with self.lock:
            return self._error

    @property
    def error_message(self) -> str:
        with self.lock:
            return self._error_message

    def reset(self, clear_stop: bool = True):
        """
        Clear progress and error state for a new run.

        Args:
            clear_stop: Also drop a pending cancellation request
        """
        with self.lock:
            self._progress = 0.0
            if clear_stop:
                self._stop = False
            self._error = False
            self._error_message = ""
