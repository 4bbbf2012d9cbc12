"""
Exception types raised by the detection and export pipeline.
"""

from typing import Optional


class AutoSliceError(Exception):
    """Base class for all AutoSlice errors."""


class InsufficientDataError(AutoSliceError):
    """Input is too short for the requested window or analysis."""


class DetectionInProgressError(AutoSliceError):
    """A detection for the same file is already running."""


class EmptySegmentError(AutoSliceError):
    """A planned segment has no audio left after exclusions."""

    def __init__(self, track_number: int):
        self.track_number = track_number
        super().__init__(
            f"Track {track_number} is completely excluded. Cannot export empty track."
        )


class OutputNotWritableError(AutoSliceError):
    """The destination directory failed the pre-flight writability check."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Output directory is not writable: {path}")


class TranscodeError(AutoSliceError):
    """The external transcoder failed for one attempt."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        self.returncode = returncode
        super().__init__(message)


class ExportFatalError(AutoSliceError):
    """A segment exhausted its attempts; the export run was aborted."""

    def __init__(self, track_number: int, message: str):
        self.track_number = track_number
        self.message = message
        super().__init__(f"Failed to encode track {track_number}: {message}")


class ExportCancelledError(AutoSliceError):
    """The caller cancelled the export between two segments."""

    def __init__(self, completed: int):
        self.completed = completed
        super().__init__(f"Export cancelled after {completed} track(s)")


class TagWriteError(AutoSliceError):
    """The secondary tag writer could not update a file."""


class TagWriteWarning(UserWarning):
    """Non-fatal failure of the secondary tagging pass."""


class LookupServiceError(AutoSliceError):
    """The metadata lookup service failed or returned garbage."""
