"""
windowing.py - Hounsfield Unit conversion and window/level display.

WHY THIS MATTERS
----------------
Raw CT pixel values are stored as integers that encode tissue density on the
Hounsfield Unit (HU) scale.  The conversion formula is:

    HU = pixel_value * RescaleSlope + RescaleIntercept

Radiologists view CT scans through *windows* — a centre and width that
maps a clinically relevant HU range to the full 0-255 display range.

The mapping used here is the DICOM "LINEAR" VOI LUT function
(PS3.3 C.11.2.1.2.1), including its half-unit offsets:

    c = center - 0.5
    w = width - 1
    y = ((x - c) / w + 0.5), clipped to [0, 1], times 255

Keep the offsets as they are: other viewers produce byte-identical output
only with them.

References
----------
- DICOM PS3.3, attribute (0028,1050)/(0028,1051): WindowCenter/WindowWidth
- Radiopaedia HU reference: https://radiopaedia.org/articles/hounsfield-unit
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from pydicom.dataset import Dataset

from dicom_workbench.config import CONFIG
from dicom_workbench.slice_decoder import Slice, decode_slice
from dicom_workbench.tag_store import get_value

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Window presets (centre, width) commonly used in radiology
# ---------------------------------------------------------------------------
WINDOW_PRESETS: dict[str, tuple[float, float]] = {
    "brain": (40.0, 80.0),
    "bone": (400.0, 1800.0),
    "lung": (-600.0, 1500.0),
    "soft_tissue": (50.0, 400.0),
}

# A width of 1 (or less) makes the linear ramp a step; dividing by this
# instead of zero gives the same step.
_MIN_WIDTH = 1e-6


@dataclass(frozen=True)
class WindowSpec:
    """Display window in rescaled units (HU for CT)."""
    center: float
    width: float

    @classmethod
    def from_preset(cls, name: str) -> "WindowSpec":
        """Look up *name* in WINDOW_PRESETS; ValueError if unknown."""
        if name not in WINDOW_PRESETS:
            raise ValueError(
                f"Unknown preset '{name}'. "
                f"Choose from: {list(WINDOW_PRESETS.keys())}"
            )
        center, width = WINDOW_PRESETS[name]
        return cls(center=center, width=width)


def to_hounsfield(
    pixel_array: np.ndarray,
    slope: float = 1.0,
    intercept: float = 0.0,
) -> np.ndarray:
    """
    Convert raw stored pixel values to Hounsfield Units.

    Parameters
    ----------
    pixel_array : np.ndarray
        Raw stored samples.
    slope : float
        RescaleSlope from the DICOM header (default 1.0).
    intercept : float
        RescaleIntercept from the DICOM header (default 0.0).

    Returns
    -------
    np.ndarray
        Float array of HU values, same shape as *pixel_array*.
    """
    return np.asarray(pixel_array).astype(np.float64) * slope + intercept


def to_grayscale(
    samples: np.ndarray,
    slope: float,
    intercept: float,
    window: WindowSpec,
) -> np.ndarray:
    """
    Map raw samples to 8-bit display values.

    Parameters
    ----------
    samples : np.ndarray
        Raw stored samples of any shape (a flat slice or a 2-D view).
    slope, intercept : float
        Rescale transform applied before windowing.
    window : WindowSpec
        Window centre and width in rescaled units.  A width below 1 is
        treated as 1 (a hard threshold at the centre).

    Returns
    -------
    np.ndarray
        uint8 array, same shape as *samples*.
    """
    hu = to_hounsfield(samples, slope=slope, intercept=intercept)
    center = window.center - 0.5
    width = max(window.width, 1.0) - 1.0
    if width <= 0:
        width = _MIN_WIDTH

    normalised = np.clip((hu - center) / width + 0.5, 0.0, 1.0)
    # np.rint rounds half to even
    return np.rint(normalised * 255.0).astype(np.uint8)


def render_slice(s: Slice, window: WindowSpec) -> np.ndarray:
    """Window a decoded slice into a (rows, cols) uint8 image."""
    return to_grayscale(s.image, s.rescale_slope, s.rescale_intercept, window)


def _first_float(value) -> float:
    # WindowCenter/Width can be a MultiValue list; take the first element
    if hasattr(value, "__iter__") and not isinstance(value, str):
        value = list(value)[0]
    return float(value)


def resolve_window(
    ds: Optional[Dataset] = None,
    preset: Optional[str] = None,
    center: Optional[float] = None,
    width: Optional[float] = None,
) -> WindowSpec:
    """
    Pick window parameters.

    Priority:
    1. Explicit *center* / *width* arguments.
    2. Named *preset* from WINDOW_PRESETS.
    3. Values embedded in the DICOM header (WindowCenter / WindowWidth).
    4. The configured default preset.
    """
    if center is not None and width is not None:
        return WindowSpec(center=center, width=width)
    if preset is not None:
        return WindowSpec.from_preset(preset)

    if ds is not None:
        dicom_wc = get_value(ds, "WindowCenter")
        dicom_ww = get_value(ds, "WindowWidth")
        if dicom_wc is not None and dicom_ww is not None:
            return WindowSpec(center=_first_float(dicom_wc), width=_first_float(dicom_ww))

    default = CONFIG["windowing"]["default_preset"]
    logger.warning("No window parameters found; defaulting to %s preset.", default)
    return WindowSpec.from_preset(default)


def window_from_dataset(
    ds: Dataset,
    preset: Optional[str] = None,
    center: Optional[float] = None,
    width: Optional[float] = None,
) -> np.ndarray:
    """
    Decode the first frame of *ds* and window it for display.

    Window parameters are chosen by :func:`resolve_window`.

    Returns
    -------
    np.ndarray
        (rows, cols) uint8 image.
    """
    window = resolve_window(ds, preset=preset, center=center, width=width)
    logger.debug("Applying window: centre=%.1f, width=%.1f", window.center, window.width)
    return render_slice(decode_slice(ds), window)
