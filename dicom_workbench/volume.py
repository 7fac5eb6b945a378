"""
volume.py - Stack a folder of DICOM slices into a 3-D sample grid.

Slice order is the filenames' case-insensitive lexical order.  That order
is the de facto slice-ordering protocol of the series we read, so it is
kept even when ImagePositionPatient would say otherwise.

Assembly is all-or-nothing: a volume with a missing slice is spatially
meaningless, so the first decode error aborts the build.  Files without
Pixel Data (RT plans, reports, ...) are dropped before decoding.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import cached_property
from typing import Iterable, Optional

import numpy as np

from dicom_workbench.config import CONFIG
from dicom_workbench.errors import DimensionMismatch, EmptyVolume, IoFailure
from dicom_workbench.slice_decoder import Slice, decode_slice, has_pixel_data
from dicom_workbench.tag_store import read_dataset

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Volume:
    """Ordered slices sharing one size and rescale transform."""
    slices: tuple[Slice, ...]
    rows: int
    cols: int
    rescale_slope: float = 1.0
    rescale_intercept: float = 0.0
    file_paths: tuple[str, ...] = field(default_factory=tuple)

    @property
    def depth(self) -> int:
        return len(self.slices)

    @property
    def shape(self) -> tuple[int, int, int]:
        """(slices, rows, cols)"""
        return self.depth, self.rows, self.cols

    @cached_property
    def array(self) -> np.ndarray:
        """
        Read-only (slices, rows, cols) grid.  Built on first use.
        """
        grid = np.stack([s.samples.reshape(self.rows, self.cols) for s in self.slices])
        grid.setflags(write=False)
        return grid

    def clamp_index(self, index: int) -> int:
        """Clamp a slice index chosen against an older file list into range."""
        return max(0, min(int(index), self.depth - 1))


def _sort_key(path: str) -> str:
    # Compare upper-cased names so "_" (0x5F) sorts after the letters
    return os.path.basename(path).upper()


def sort_paths(file_paths: Iterable[str]) -> list[str]:
    """Order paths by filename, comparing upper-cased names."""
    return sorted(file_paths, key=_sort_key)


def list_dicom_files(folder: str, extension: Optional[str] = None) -> list[str]:
    """
    Return the files in *folder* with *extension*, in slice order.

    Raises
    ------
    IoFailure
        If *folder* is not a readable directory.
    """
    extension = (extension or CONFIG["volume"]["extension"]).lower()
    try:
        names = os.listdir(folder)
    except OSError as exc:
        raise IoFailure(f"Could not list folder: {exc}", folder) from exc

    paths = [
        os.path.join(folder, name) for name in names
        if name.lower().endswith(extension)
        and os.path.isfile(os.path.join(folder, name))
    ]
    return sort_paths(paths)


def build_volume(
    file_paths: Iterable[str],
    check_dimensions: Optional[bool] = None,
) -> Volume:
    """
    Read, filter and decode *file_paths* into a :class:`Volume`.

    Parameters
    ----------
    file_paths : iterable of str
        Candidate slice files, in any order.
    check_dimensions : bool, optional
        Reject slices whose Rows/Columns differ from the first slice.
        Defaults to ``volume.check_dimensions`` in config.

    Returns
    -------
    Volume
        ``file_paths`` on the result holds only the image-bearing files.

    Raises
    ------
    EmptyVolume
        If no file carries Pixel Data.
    DimensionMismatch
        If *check_dimensions* and a slice has a different size.
    ParseFailure, IoFailure, NoFrames, UnsupportedDepth, MissingDimensions
        Propagated from the first file that fails.
    """
    if check_dimensions is None:
        check_dimensions = CONFIG["volume"]["check_dimensions"]

    datasets = []
    for path in sort_paths(file_paths):
        ds = read_dataset(path)
        if not has_pixel_data(ds):
            logger.info("Skipping %s: no Pixel Data (non-image object)", os.path.basename(path))
            continue
        datasets.append((path, ds))

    if not datasets:
        raise EmptyVolume("None of the files contains Pixel Data")

    first_path, first_ds = datasets[0]
    first = decode_slice(first_ds, first_path)

    slices = [first]
    for path, ds in datasets[1:]:
        s = decode_slice(ds, path)
        if check_dimensions and (s.rows, s.cols) != (first.rows, first.cols):
            raise DimensionMismatch(
                f"Slice is {s.rows}x{s.cols}, expected {first.rows}x{first.cols}", path,
            )
        if (s.rows, s.cols) != (first.rows, first.cols):
            logger.warning("Fitting %s (%dx%d) into %dx%d grid",
                           os.path.basename(path), s.rows, s.cols, first.rows, first.cols)
            s = _fit_to(s, first.rows, first.cols)
        slices.append(s)

    volume = Volume(
        slices=tuple(slices),
        rows=first.rows,
        cols=first.cols,
        rescale_slope=first.rescale_slope,
        rescale_intercept=first.rescale_intercept,
        file_paths=tuple(path for path, _ in datasets),
    )
    logger.info("Built volume %s from %d file(s)", volume.shape, volume.depth)
    return volume


def _fit_to(s: Slice, rows: int, cols: int) -> Slice:
    # Same flat truncate / zero-fill that the raw decoder applies.
    length = rows * cols
    samples = np.zeros(length, dtype=s.samples.dtype)
    n = min(length, s.samples.size)
    samples[:n] = s.samples[:n]
    return Slice(rows, cols, s.bits_allocated, s.signed,
                 s.rescale_slope, s.rescale_intercept, samples)


def load_volume(folder: str, extension: Optional[str] = None) -> Volume:
    """List *folder* and build a volume from its DICOM files."""
    paths = list_dicom_files(folder, extension)
    logger.info("Loading %d file(s) from %s", len(paths), folder)
    return build_volume(paths)
