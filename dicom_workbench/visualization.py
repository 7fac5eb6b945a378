"""
visualization.py - matplotlib helpers for volume views.

All plot functions return the Figure so callers can save or display it
as needed.
"""

import logging
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from dicom_workbench.reslicer import axial, coronal, middle_indices, sagittal
from dicom_workbench.volume import Volume
from dicom_workbench.windowing import WindowSpec, to_grayscale

logger = logging.getLogger(__name__)

# Consistent figure style across all plots
plt.rcParams.update({"figure.dpi": 100, "axes.titlesize": 11})


def orthogonal_views(
    volume: Volume,
    window: WindowSpec,
    indices: Optional[tuple[int, int, int]] = None,
) -> dict[str, np.ndarray]:
    """
    Windowed axial, sagittal and coronal images at *indices* (z, y, x).

    Defaults to the centre of the volume.
    """
    z, y, x = indices if indices is not None else middle_indices(volume)
    slope, intercept = volume.rescale_slope, volume.rescale_intercept
    return {
        "axial": to_grayscale(axial(volume, z), slope, intercept, window),
        "sagittal": to_grayscale(sagittal(volume, x), slope, intercept, window),
        "coronal": to_grayscale(coronal(volume, y), slope, intercept, window),
    }


def plot_orthogonal_views(
    volume: Volume,
    window: WindowSpec,
    indices: Optional[tuple[int, int, int]] = None,
) -> plt.Figure:
    """
    Show the three orthogonal cross-sections side by side.

    Sagittal and coronal views have one row per slice, so slice 0 is at
    the top of those panels.

    Parameters
    ----------
    volume : Volume
        Assembled volume.
    window : WindowSpec
        Display window.
    indices : (z, y, x), optional
        Cursor position.  Defaults to the centre.

    Returns
    -------
    plt.Figure
    """
    views = orthogonal_views(volume, window, indices)
    fig, axes = plt.subplots(1, 3, figsize=(12, 4))

    for ax, (name, image) in zip(axes, views.items()):
        ax.imshow(image, cmap="gray", vmin=0, vmax=255, aspect="auto" if name != "axial" else "equal")
        ax.set_title(f"{name.title()} {image.shape[0]}x{image.shape[1]}")
        ax.axis("off")

    fig.suptitle(f"Volume {volume.shape}  (C={window.center:g}, W={window.width:g})", y=1.02)
    fig.tight_layout()
    return fig
