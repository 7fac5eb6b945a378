"""
errors.py - Exception hierarchy shared by every DICOM Workbench module.

All errors carry an optional *path* so that batch reports and log lines
can name the offending file.
"""

from typing import Optional


class DicomWorkbenchError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message if path is None else f"{message} ({path})")


class ParseFailure(DicomWorkbenchError):
    """The file could not be parsed as a DICOM object."""


class IoFailure(DicomWorkbenchError):
    """Reading from or writing to disk failed."""


class NoPixelData(DicomWorkbenchError):
    """The object has no PixelData element (e.g. RT Plan, SR report)."""


class NoFrames(DicomWorkbenchError):
    """The pixel payload declares zero frames."""


class UnsupportedDepth(DicomWorkbenchError):
    """BitsAllocated is neither 8 nor 16."""


class MissingDimensions(DicomWorkbenchError):
    """Rows or Columns is absent or not positive."""


class EmptyVolume(DicomWorkbenchError):
    """No image-bearing file remained after filtering."""


class DimensionMismatch(DicomWorkbenchError):
    """A slice's Rows/Columns differ from the first slice of the volume."""
