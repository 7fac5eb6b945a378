"""
generate_sample_data.py - Create a synthetic CT series for end-to-end demo.

Writes a short stack of small DICOM slices (a bright sphere in a water
cylinder) to data/raw/, plus one report object without Pixel Data, so
the whole workflow can run without real patient data.

Usage
-----
    python scripts/generate_sample_data.py

After running, try:
    python scripts/run_full_pipeline.py
"""

import os
import sys

import numpy as np
import pydicom
from pydicom.dataset import FileDataset
from pydicom.uid import ExplicitVRLittleEndian

# Make sure repo root is on the path when run as a script
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

from dicom_workbench.config import CONFIG  # noqa: E402 — import after path fix

OUTPUT_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["input_folder"])

CT_IMAGE_STORAGE = "1.2.840.10008.5.1.4.1.1.2"
BASIC_TEXT_SR_STORAGE = "1.2.840.10008.5.1.4.1.1.88.11"


def _phantom_slice(z: int, n_slices: int, size: int, rng: np.random.Generator) -> np.ndarray:
    """Stored values for one slice: air, a water cylinder and a bone sphere."""
    yy, xx = np.mgrid[0:size, 0:size]
    centre = (size - 1) / 2.0
    r2 = (yy - centre) ** 2 + (xx - centre) ** 2

    # Intercept is -1024, so stored 0 = air, 1024 = water, ~1724 = bone
    pixels = np.zeros((size, size), dtype=np.float64)
    pixels[r2 <= (0.45 * size) ** 2] = 1024 + 40

    dz = z - (n_slices - 1) / 2.0
    sphere_r2 = (0.25 * size) ** 2 - (dz * size / n_slices) ** 2
    if sphere_r2 > 0:
        pixels[r2 <= sphere_r2] = 1024 + 700

    pixels += rng.normal(0, 10, size=pixels.shape)
    return pixels.clip(0, 4095).astype(np.uint16)


def _base_dataset(path: str, sop_class: str, study_uid: str, series_uid: str) -> FileDataset:
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID(sop_class)
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(path, {}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.SOPClassUID = file_meta.MediaStorageSOPClassUID
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    ds.StudyInstanceUID = study_uid
    ds.SeriesInstanceUID = series_uid

    # --- PHI tags (will be removed by the anonymizer) ---
    ds.PatientName = "Synthetic^Patient"
    ds.PatientID = "00042"
    ds.PatientBirthDate = "19800101"
    ds.OtherPatientIDs = "ALT-00042"
    ds.InstitutionName = "City General Hospital"
    ds.InstitutionAddress = "1 Hospital Road"
    ds.ReferringPhysicianName = "Smith^Jane"
    ds.OperatorsName = "Tech^Tom"
    ds.StudyDate = "20230601"
    ds.StudyTime = "120000"

    # --- kept by the anonymizer ---
    ds.PatientSex = "F"
    ds.PatientAge = "043Y"
    ds.PatientWeight = 61.5
    return ds


def _make_slice(
    path: str,
    z: int,
    n_slices: int,
    size: int,
    study_uid: str,
    series_uid: str,
    rng: np.random.Generator,
) -> None:
    ds = _base_dataset(path, CT_IMAGE_STORAGE, study_uid, series_uid)
    ds.Modality = "CT"
    ds.KVP = 120
    ds.ExposureTime = 500
    ds.InstanceNumber = z + 1

    # --- Rescale parameters for HU conversion ---
    ds.RescaleSlope = 1.0
    ds.RescaleIntercept = -1024.0
    ds.WindowCenter = 40.0
    ds.WindowWidth = 400.0

    # --- Pixel data ---
    ds.Rows = size
    ds.Columns = size
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.PixelRepresentation = 0
    ds.BitsAllocated = 16
    ds.BitsStored = 16
    ds.HighBit = 15
    ds.PixelData = _phantom_slice(z, n_slices, size, rng).tobytes()

    ds.save_as(path)


def generate(output_folder: str = OUTPUT_FOLDER, n_slices: int = 24, size: int = 64) -> None:
    """Generate the synthetic series into *output_folder*."""
    os.makedirs(output_folder, exist_ok=True)
    rng = np.random.default_rng(42)
    study_uid = pydicom.uid.generate_uid()
    series_uid = pydicom.uid.generate_uid()

    print(f"Writing {n_slices} synthetic CT slices to: {output_folder}")
    print("-" * 60)

    for z in range(n_slices):
        filename = f"CT{z + 1:03d}.dcm"
        _make_slice(os.path.join(output_folder, filename), z, n_slices, size,
                    study_uid, series_uid, rng)
    print(f"  CT001.dcm … CT{n_slices:03d}.dcm  ({size}x{size}, 16-bit)")

    # A non-image object in the same folder; the volume builder skips it.
    report_path = os.path.join(output_folder, "ZZ_report.dcm")
    ds = _base_dataset(report_path, BASIC_TEXT_SR_STORAGE, study_uid, pydicom.uid.generate_uid())
    ds.Modality = "SR"
    ds.save_as(report_path)
    print("  ZZ_report.dcm  (structured report, no Pixel Data)")

    print("-" * 60)
    print("Done.  Run the full workflow with:")
    print("  python scripts/run_full_pipeline.py")


if __name__ == "__main__":
    generate()
