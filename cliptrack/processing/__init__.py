"""Processing package for run control."""

from cliptrack.processing.controller import ProcessingController

__all__ = ['ProcessingController']
