"""
reslicer.py - Orthogonal cross-sections of an assembled volume.

The volume grid is indexed (z, y, x) = (slice, row, column):

    axial(z)    -> (rows, cols)     the acquired slice itself
    sagittal(x) -> (slices, rows)   pixel (z, y) = slice[z][y * cols + x]
    coronal(y)  -> (slices, cols)   pixel (z, x) = slice[z][y * cols + x]

Out-of-range indices are clamped to the nearest edge rather than raising,
since they usually come straight from a slider or mouse wheel.
"""

import numpy as np

from dicom_workbench.volume import Volume


def _clamp(index: int, size: int) -> int:
    return max(0, min(int(index), size - 1))


def axial(volume: Volume, z: int) -> np.ndarray:
    """
    Return slice *z* as a (rows, cols) view.

    *z* is clamped to [0, depth - 1].
    """
    return volume.array[_clamp(z, volume.depth)]


def sagittal(volume: Volume, x: int) -> np.ndarray:
    """
    Return column *x* of every slice as a (depth, rows) image.

    *x* is clamped to [0, cols - 1].
    """
    return volume.array[:, :, _clamp(x, volume.cols)]


def coronal(volume: Volume, y: int) -> np.ndarray:
    """
    Return row *y* of every slice as a (depth, cols) image.

    *y* is clamped to [0, rows - 1].
    """
    return volume.array[:, _clamp(y, volume.rows), :]


def middle_indices(volume: Volume) -> tuple[int, int, int]:
    """Default (z, y, x) cursor: the centre of the volume."""
    return volume.depth // 2, volume.rows // 2, volume.cols // 2
