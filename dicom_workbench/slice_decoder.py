"""
slice_decoder.py - Turn one DICOM object into a flat array of samples.

Only the first frame is decoded.  Uncompressed ("native") pixel data is
reinterpreted directly from the PixelData bytes by :func:`decode_samples`;
compressed transfer syntaxes are handed to pydicom's pixel handlers.

Short buffers are not an error: whatever samples the buffer holds are
used and the rest of the slice is zero-filled.  Nothing is ever read past
the end of the buffer.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from pydicom.dataset import Dataset
from pydicom.uid import ExplicitVRBigEndian

from dicom_workbench.errors import (
    MissingDimensions,
    NoFrames,
    NoPixelData,
    UnsupportedDepth,
)
from dicom_workbench.tag_store import PIXEL_DATA_TAG, get_number

logger = logging.getLogger(__name__)

SUPPORTED_DEPTHS = (8, 16)


@dataclass(frozen=True, eq=False)
class Slice:
    """Decoded first frame of one DICOM image."""
    rows: int
    cols: int
    bits_allocated: int
    signed: bool
    rescale_slope: float
    rescale_intercept: float
    samples: np.ndarray  # flat, length rows * cols

    @property
    def image(self) -> np.ndarray:
        """Samples as a (rows, cols) view."""
        return self.samples.reshape(self.rows, self.cols)


def sample_dtype(bits_allocated: int, signed: bool, big_endian: bool = False) -> np.dtype:
    """
    Return the on-disk dtype for one sample.

    8-bit data is always read as unsigned bytes; 16-bit data is two's
    complement when *signed*, otherwise unsigned.
    """
    if bits_allocated == 8:
        return np.dtype(np.uint8)
    if bits_allocated == 16:
        order = ">" if big_endian else "<"
        return np.dtype(f"{order}{'i' if signed else 'u'}2")
    raise UnsupportedDepth(f"BitsAllocated must be 8 or 16, got {bits_allocated}")


def decode_samples(
    buffer: bytes,
    bits_allocated: int,
    signed: bool,
    length: int,
    big_endian: bool = False,
) -> np.ndarray:
    """
    Reinterpret *buffer* as exactly *length* integer samples.

    Parameters
    ----------
    buffer : bytes
        Raw pixel bytes (bytes, bytearray or memoryview).
    bits_allocated : int
        8 or 16.
    signed : bool
        Two's complement for 16-bit data.
    length : int
        Number of samples wanted, normally rows * cols.
    big_endian : bool
        Byte order of 16-bit samples.

    Returns
    -------
    np.ndarray
        1-D array of *length* samples in native byte order: uint8, int16
        or uint16.  Samples the buffer does not cover are zero; a trailing
        partial sample is ignored.
    """
    if length < 0:
        raise ValueError(f"length must be >= 0, got {length}")
    dtype = sample_dtype(bits_allocated, signed, big_endian)

    available = min(len(buffer) // dtype.itemsize, length)
    out = np.zeros(length, dtype=dtype.newbyteorder("="))
    if available:
        out[:available] = np.frombuffer(buffer, dtype=dtype, count=available)
    if available < length:
        logger.debug("Pixel buffer holds %d of %d samples; zero-filling", available, length)
    return out


def has_pixel_data(ds: Dataset) -> bool:
    """True if *ds* carries a (7FE0,0010) Pixel Data element."""
    return PIXEL_DATA_TAG in ds


def _transfer_syntax(ds: Dataset):
    file_meta = getattr(ds, "file_meta", None)
    if file_meta is None:
        return None
    return getattr(file_meta, "TransferSyntaxUID", None)


def _first_frame_from_handler(ds: Dataset, dtype: np.dtype, length: int, n_frames: int) -> np.ndarray:
    pixels = ds.pixel_array
    if n_frames > 1 or pixels.ndim > 2:
        pixels = pixels[0]
    flat = pixels.astype(dtype, copy=False).ravel()[:length]
    if flat.size < length:
        flat = np.concatenate([flat, np.zeros(length - flat.size, dtype=dtype)])
    return flat


def decode_slice(ds: Dataset, path: Optional[str] = None) -> Slice:
    """
    Decode the first frame of *ds*.

    Parameters
    ----------
    ds : Dataset
        Dataset with a PixelData element.
    path : str, optional
        Source file, only used in error messages.

    Raises
    ------
    NoPixelData
        If there is no PixelData element.
    MissingDimensions
        If Rows or Columns is absent or not positive.
    NoFrames
        If the payload declares zero frames or is empty.
    UnsupportedDepth
        If BitsAllocated is neither 8 nor 16.
    """
    if not has_pixel_data(ds):
        raise NoPixelData("Dataset has no Pixel Data element", path)

    rows = get_number(ds, "Rows")
    cols = get_number(ds, "Columns")
    if rows is None or cols is None or rows <= 0 or cols <= 0:
        raise MissingDimensions(f"Invalid image size rows={rows}, columns={cols}", path)
    rows, cols = int(rows), int(cols)

    slope = get_number(ds, "RescaleSlope")
    intercept = get_number(ds, "RescaleIntercept")
    slope = 1.0 if slope is None else slope
    intercept = 0.0 if intercept is None else intercept

    bits = get_number(ds, "BitsAllocated")
    signed = get_number(ds, "PixelRepresentation") == 1

    n_frames = get_number(ds, "NumberOfFrames")
    if n_frames is not None and n_frames <= 0:
        raise NoFrames("NumberOfFrames is 0", path)
    n_frames = 1 if n_frames is None else int(n_frames)

    if bits not in SUPPORTED_DEPTHS:
        raise UnsupportedDepth(f"BitsAllocated must be 8 or 16, got {bits}", path)
    bits = int(bits)

    length = rows * cols
    transfer_syntax = _transfer_syntax(ds)
    if transfer_syntax is not None and transfer_syntax.is_compressed:
        dtype = sample_dtype(bits, signed).newbyteorder("=")
        samples = _first_frame_from_handler(ds, dtype, length, n_frames)
    else:
        raw = ds.PixelData or b""
        if len(raw) == 0:
            raise NoFrames("Pixel Data is empty", path)
        samples = decode_samples(
            raw, bits, signed, length,
            big_endian=transfer_syntax == ExplicitVRBigEndian,
        )

    return Slice(
        rows=rows,
        cols=cols,
        bits_allocated=bits,
        signed=signed,
        rescale_slope=slope,
        rescale_intercept=intercept,
        samples=samples,
    )
