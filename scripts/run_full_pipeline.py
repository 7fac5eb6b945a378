"""
run_full_pipeline.py - End-to-end workflow demonstration.

Generates a synthetic CT series (if data/raw is empty), anonymizes the
folder, audits the anonymized copies, rebuilds the volume, and saves the
three orthogonal views to reports/.

Usage
-----
    python scripts/run_full_pipeline.py

To use your own series instead of generated samples, copy the slices
into data/raw/ first:

    cp path/to/series/*.dcm data/raw/
    python scripts/run_full_pipeline.py
"""

import logging
import os
import sys

# Ensure repo root is on sys.path regardless of launch directory
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

import matplotlib
matplotlib.use("Agg")  # non-interactive backend — works without a display

from dicom_workbench.config import CONFIG
from dicom_workbench.pipeline import anonymize_folder, validate_folder
from dicom_workbench.reslicer import middle_indices
from dicom_workbench.tag_store import read_dataset
from dicom_workbench.visualization import plot_orthogonal_views
from dicom_workbench.volume import list_dicom_files, load_volume
from dicom_workbench.windowing import resolve_window

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)-8s %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
INPUT_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["input_folder"])
REPORTS_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["reports_folder"])


def _ensure_sample_data() -> None:
    """Generate synthetic data if data/raw/ has no .dcm files."""
    os.makedirs(INPUT_FOLDER, exist_ok=True)
    dcm_files = list_dicom_files(INPUT_FOLDER)
    if dcm_files:
        logger.info("Found %d DICOM file(s) in %s — skipping generation.", len(dcm_files), INPUT_FOLDER)
        return

    logger.info("No DICOM files in %s — generating samples…", INPUT_FOLDER)
    from scripts.generate_sample_data import generate  # noqa: E402 — lazy import
    generate(INPUT_FOLDER)


def main() -> None:
    os.makedirs(REPORTS_FOLDER, exist_ok=True)

    # ── Step 1: Ensure sample data exists ──────────────────────────────────
    print("=" * 60)
    print("STEP 1 — Prepare input data")
    print("=" * 60)
    _ensure_sample_data()
    print(f"  Input folder : {INPUT_FOLDER}")
    print(f"  Files found  : {len(list_dicom_files(INPUT_FOLDER))}")
    print()

    # ── Step 2: Batch anonymization ────────────────────────────────────────
    print("=" * 60)
    print("STEP 2 — Batch anonymization")
    print("=" * 60)
    report = anonymize_folder(input_folder=INPUT_FOLDER)
    print(report.summary())
    print()

    # ── Step 3: AQ on the anonymized copies ────────────────────────────────
    print("=" * 60)
    print("STEP 3 — AQ audit of anonymized output")
    print("=" * 60)
    reports = validate_folder(report.output_folder)
    passed = sum(1 for r in reports.values() if not isinstance(r, str) and r.passed)
    print(f"  Files audited : {len(reports)}")
    print(f"  Passed        : {passed}")
    for name, r in reports.items():
        if isinstance(r, str) or not r.passed:
            print(f"    ⚠ {name}")
    print()

    # ── Step 4: Volume reconstruction ──────────────────────────────────────
    print("=" * 60)
    print("STEP 4 — Volume reconstruction")
    print("=" * 60)
    volume = load_volume(report.output_folder)
    window = resolve_window(read_dataset(volume.file_paths[0], stop_before_pixels=True))
    z, y, x = middle_indices(volume)
    print(f"  Volume shape  : {volume.shape}  (slices, rows, cols)")
    print(f"  Rescale       : slope={volume.rescale_slope:g}, intercept={volume.rescale_intercept:g}")
    print(f"  Window        : C={window.center:g}, W={window.width:g}")
    print(f"  Cursor        : z={z}, y={y}, x={x}")
    print()

    # ── Step 5: Save orthogonal views ──────────────────────────────────────
    print("=" * 60)
    print("STEP 5 — Saving orthogonal views to reports/")
    print("=" * 60)
    fig = plot_orthogonal_views(volume, window, (z, y, x))
    path = os.path.join(REPORTS_FOLDER, "orthogonal_views.png")
    fig.savefig(path, dpi=100, bbox_inches="tight")
    print(f"  Saved: {path}")
    print()

    # ── Done ───────────────────────────────────────────────────────────────
    print("=" * 60)
    print("ALL PIPELINE STAGES COMPLETED SUCCESSFULLY")
    print("=" * 60)
    print(f"  Anonymized files → {report.output_folder}")
    print(f"  Visualisations   → {REPORTS_FOLDER}")
    print()


if __name__ == "__main__":
    main()
