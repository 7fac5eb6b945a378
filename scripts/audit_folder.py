"""
audit_folder.py - Run the AQ check on every DICOM file in a folder.

Prints one block per file: the verdict followed by every check result.
Use it on an ``Anonymized/`` output folder to confirm the de-identification
policy was applied, or on raw data to see what would be flagged.

Usage
-----
    python scripts/audit_folder.py                          # scans data/raw/
    python scripts/audit_folder.py path/to/dicom/folder     # custom folder
"""

import logging
import os
import sys

# Ensure repo root is on sys.path
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

from dicom_workbench.config import CONFIG  # noqa: E402
from dicom_workbench.pipeline import validate_folder  # noqa: E402
from dicom_workbench.validator import CheckStatus  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)-8s %(message)s")
logger = logging.getLogger(__name__)


def print_report(folder: str, reports: dict) -> int:
    """Print every report; return the number of files that did not pass."""
    print("=" * 60)
    print("AQ REPORT")
    print("=" * 60)
    print(f"  Folder        : {folder}")
    print(f"  Files scanned : {len(reports)}")
    print()

    not_passed = 0
    for name, report in reports.items():
        if isinstance(report, str):
            not_passed += 1
            print(f"[ERROR] {name}: {report}")
            print()
            continue
        if not report.passed:
            not_passed += 1
            failures = len(report.by_status(CheckStatus.FAIL))
            warnings = len(report.by_status(CheckStatus.WARN))
            print(f"  {name}: {failures} failure(s), {warnings} warning(s)")
        for line in report.lines():
            print(f"  {line}")
        print()

    print("=" * 60)
    print(f"VERDICT: {len(reports) - not_passed} passed, {not_passed} with warnings/failures")
    print("=" * 60)
    return not_passed


def main() -> None:
    if len(sys.argv) > 1:
        folder = sys.argv[1]
    else:
        folder = os.path.join(_REPO_ROOT, CONFIG["paths"]["input_folder"])

    if not os.path.isdir(folder):
        logger.error("Folder not found: %s", folder)
        sys.exit(2)

    reports = validate_folder(folder)
    sys.exit(1 if print_report(folder, reports) else 0)


if __name__ == "__main__":
    main()
