"""
anonymizer.py - DICOM de-identification engine.

Applies one fixed, ordered policy to a pydicom Dataset **in place**:

1. Remove direct identifiers (names, dates, institution, staff).
2. Remove the "other patient identifiers" block, group 0x0010,
   elements 0x1000-0x109C.
3. Leave PatientSex, PatientAge, PatientSize and PatientWeight untouched.
4. Replace StudyInstanceUID, SeriesInstanceUID and SOPInstanceUID with
   freshly generated UUID-derived UIDs ("2.25.<decimal uuid>").

Whether PatientID is removed is the one policy switch.  Both variants are
in use; the default removes it and ``anonymization.remove_patient_id`` in
config.yaml selects the other.

IMPORTANT LIMITATIONS
---------------------
- Does NOT handle burned-in annotations (text overlaid on pixel data).
- Private (odd-group) tags are left as they are.
- UID regeneration is not idempotent: every call mints new UIDs, so the
  same study anonymized twice ends up with two unrelated identities.

References
----------
- DICOM PS3.15 Annex E: https://dicom.nema.org/medical/dicom/current/output/html/part15.html
- DICOM PS3.5 Annex B.2, UUID derived UIDs
"""

import logging
import os
from typing import Optional

from pydicom.dataset import Dataset
from pydicom.tag import Tag
from pydicom.uid import generate_uid

from dicom_workbench.config import CONFIG
from dicom_workbench.errors import IoFailure
from dicom_workbench.tag_store import read_dataset

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Policy tables
# ---------------------------------------------------------------------------

# Removed outright when present.  PatientID is handled separately because
# its removal depends on the policy variant.
TAGS_TO_REMOVE: list[str] = [
    "PatientName",
    "PatientBirthDate",
    "StudyDate",
    "StudyTime",
    "SeriesDate",
    "AcquisitionDate",
    "EthnicGroup",
    "Occupation",
    "InstitutionName",
    "InstitutionAddress",
    "ReferringPhysicianName",
    "PerformingPhysicianName",
    "OperatorsName",
]

PATIENT_ID_TAG = "PatientID"

# (0010,1000)-(0010,109C): other patient IDs, names, addresses, ...
OTHER_PATIENT_IDS_GROUP = 0x0010
OTHER_PATIENT_IDS_RANGE: tuple[int, int] = (0x1000, 0x109C)

# Kept even though some of them sit inside the range above.
TAGS_TO_PRESERVE: list[str] = [
    "PatientSex",
    "PatientAge",
    "PatientSize",
    "PatientWeight",
]

UID_TAGS: list[str] = [
    "StudyInstanceUID",
    "SeriesInstanceUID",
    "SOPInstanceUID",
]


def new_uid() -> str:
    """Return a fresh UUID-derived UID ("2.25." followed by digits)."""
    return str(generate_uid(prefix=None))


def _remove_if_exists(ds: Dataset, keyword: str) -> None:
    tag = Tag(keyword)
    if tag in ds:
        del ds[tag]
        logger.debug("Removed tag: %s", keyword)


def _remove_other_patient_ids(ds: Dataset) -> None:
    low, high = OTHER_PATIENT_IDS_RANGE
    preserved = {Tag(keyword) for keyword in TAGS_TO_PRESERVE}
    doomed = [
        elem.tag for elem in ds
        if elem.tag.group == OTHER_PATIENT_IDS_GROUP
        and low <= elem.tag.element <= high
        and elem.tag not in preserved
    ]
    for tag in doomed:
        del ds[tag]
        logger.debug("Removed other-patient-ID tag: %s", tag)


def _regenerate_uid(ds: Dataset, keyword: str) -> None:
    if Tag(keyword) not in ds:
        return
    uid = new_uid()
    setattr(ds, keyword, uid)
    logger.debug("Regenerated %s -> %s", keyword, uid)

    # Keep the file meta header pointing at the same instance.
    if keyword == "SOPInstanceUID":
        file_meta = getattr(ds, "file_meta", None)
        if file_meta is not None and "MediaStorageSOPInstanceUID" in file_meta:
            file_meta.MediaStorageSOPInstanceUID = uid


def anonymize_dataset(
    ds: Dataset,
    remove_patient_id: Optional[bool] = None,
) -> Dataset:
    """
    Apply the de-identification policy to *ds* **in place**.

    Missing tags are skipped silently, so running the removal steps a
    second time changes nothing.  UIDs, however, are regenerated on every
    call while they are present.

    Parameters
    ----------
    ds : Dataset
        The pydicom Dataset to de-identify.  Modified in place.
    remove_patient_id : bool, optional
        Remove PatientID as well.  Defaults to the configured policy.

    Returns
    -------
    Dataset
        The same Dataset object, now de-identified.
    """
    if remove_patient_id is None:
        remove_patient_id = CONFIG["anonymization"]["remove_patient_id"]

    # Step 1 — direct identifiers
    for keyword in TAGS_TO_REMOVE:
        _remove_if_exists(ds, keyword)
    if remove_patient_id:
        _remove_if_exists(ds, PATIENT_ID_TAG)

    # Step 2 — other patient identifiers block
    _remove_other_patient_ids(ds)

    # Step 3 — TAGS_TO_PRESERVE: nothing to do

    # Step 4 — fresh UIDs
    for keyword in UID_TAGS:
        _regenerate_uid(ds, keyword)

    return ds


def anonymized_output_path(input_path: str, output_folder: Optional[str] = None) -> str:
    """
    Return where the anonymized copy of *input_path* is written.

    ``scans/CT001.dcm`` maps to ``scans/Anonymized/CT001_anon.dcm`` unless
    *output_folder* names another directory.
    """
    cfg = CONFIG["anonymization"]
    folder, filename = os.path.split(input_path)
    stem, ext = os.path.splitext(filename)
    if output_folder is None:
        output_folder = os.path.join(folder, cfg["output_dirname"])
    return os.path.join(output_folder, f"{stem}{cfg['suffix']}{ext}")


def anonymize_file(
    input_path: str,
    output_path: Optional[str] = None,
    remove_patient_id: Optional[bool] = None,
) -> str:
    """
    Load a DICOM file, de-identify it, and save to a new path.

    Parameters
    ----------
    input_path : str
        Path to the source DICOM file.
    output_path : str, optional
        Destination path.  Defaults to ``anonymized_output_path(input_path)``.
    remove_patient_id : bool, optional
        Policy variant, see :func:`anonymize_dataset`.

    Returns
    -------
    str
        The path that was written.

    Raises
    ------
    ParseFailure
        If the file cannot be read as DICOM.  Nothing is written.
    IoFailure
        If the file cannot be read or the output cannot be written.  A
        failed write leaves no partial file and keeps any previous output.
    """
    ds = read_dataset(input_path)
    anonymize_dataset(ds, remove_patient_id=remove_patient_id)

    if output_path is None:
        output_path = anonymized_output_path(input_path)
    # Write beside the target and swap it in, so a failed write leaves no
    # truncated output behind.
    partial_path = output_path + ".part"
    try:
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        ds.save_as(partial_path)
        os.replace(partial_path, output_path)
    except OSError as exc:
        if os.path.exists(partial_path):
            os.remove(partial_path)
        raise IoFailure(f"Could not write anonymized file: {exc}", output_path) from exc

    logger.info("Anonymized %s → %s", input_path, output_path)
    return output_path
