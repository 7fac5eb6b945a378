"""
tag_store.py - Present/absent lookups over a pydicom Dataset.

A DICOM object is held in memory as a pydicom ``Dataset``: an ordered
collection of data elements keyed by (group, element) tag.  Every lookup
here returns ``None`` when a value is missing instead of raising, so that
callers never use exceptions as an existence test.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError
from pydicom.multival import MultiValue
from pydicom.tag import BaseTag, Tag

from dicom_workbench.errors import IoFailure, ParseFailure

logger = logging.getLogger(__name__)

TagKey = Union[str, int, tuple[int, int], BaseTag]

PIXEL_DATA_TAG = Tag(0x7FE0, 0x0010)

# Values longer than this are cut when listing tags for display
MAX_DISPLAY_LENGTH = 120


@dataclass(frozen=True)
class TagItem:
    """One key/value row of a metadata listing."""
    key: str
    value: str


def read_dataset(path: str, stop_before_pixels: bool = False) -> Dataset:
    """
    Parse the DICOM file at *path*.

    Raises
    ------
    IoFailure
        If the file cannot be opened or read.
    ParseFailure
        If the content is not a well-formed DICOM object.
    """
    try:
        return pydicom.dcmread(path, stop_before_pixels=stop_before_pixels)
    except InvalidDicomError as exc:
        raise ParseFailure(f"Not a valid DICOM file: {exc}", path) from exc
    except OSError as exc:
        raise IoFailure(f"Could not read file: {exc}", path) from exc
    except (EOFError, ValueError, KeyError, TypeError) as exc:
        raise ParseFailure(f"Malformed DICOM object: {exc}", path) from exc


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, MultiValue, list)):
        return len(value) == 0
    return False


def get_value(ds: Dataset, key: TagKey) -> Optional[Any]:
    """Return the raw value stored under *key*, or None if absent or empty."""
    tag = Tag(key)
    if tag not in ds:
        return None
    value = ds[tag].value
    return None if _is_empty(value) else value


def get_string(ds: Dataset, key: TagKey) -> Optional[str]:
    """Return the first value of *key* as text, or None if absent."""
    value = get_value(ds, key)
    if value is None:
        return None
    if isinstance(value, MultiValue):
        value = value[0]
    text = str(value)
    return text if text else None


def get_number(ds: Dataset, key: TagKey) -> Optional[float]:
    """
    Return the single numeric value of *key*.

    None is returned when the tag is absent, holds more than one value,
    or holds something that does not parse as a number.
    """
    value = get_value(ds, key)
    if value is None:
        return None
    if isinstance(value, MultiValue):
        if len(value) != 1:
            return None
        value = value[0]
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug("Tag %s value %r is not numeric", Tag(key), value)
        return None


def _display_value(elem) -> str:
    if elem.tag == PIXEL_DATA_TAG:
        return f"<pixel data, {len(elem.value or b'')} bytes>"
    if elem.VR == "SQ":
        return f"<sequence of {len(elem.value)} item(s)>"
    value = elem.value
    if isinstance(value, MultiValue):
        value = value[0] if len(value) else ""
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    return "" if value is None else str(value)


def list_tags(ds: Dataset, max_length: int = MAX_DISPLAY_LENGTH) -> list[TagItem]:
    """
    Flatten a dataset into display rows, one per element in dataset order.

    Keys are dictionary names ("Patient's Name"); unknown and private
    elements fall back to the "(gggg,eeee)" form.  Long values are cut to
    *max_length* characters and marked with a trailing " ...".
    """
    items: list[TagItem] = []
    for elem in ds:
        key = elem.name if elem.keyword else str(elem.tag)
        value = _display_value(elem)
        if len(value) > max_length:
            value = value[:max_length] + " ..."
        items.append(TagItem(key=key, value=value))
    return items
