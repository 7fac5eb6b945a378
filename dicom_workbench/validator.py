"""
validator.py - Read-only quality audit ("AQ") of a DICOM dataset.

Checks a dataset against the de-identification policy plus a handful of
structural rules and returns an ordered, immutable report:

1. Removed-tag checks      : identifiers that must be gone       (OK / FAIL)
2. Required-string checks  : tags that must carry a value        (OK / FAIL)
3. Numeric-range checks    : acquisition values in plausible range (OK / WARN / SKIP)
4. UID-format checks       : digits and single dots only          (OK / WARN / FAIL)

A report passes only when every check is OK or SKIP.  A missing numeric
value is not a failure.  The dataset is never modified.
"""

import enum
import logging
import os
from dataclasses import dataclass
from typing import Optional

from pydicom.dataset import Dataset
from pydicom.tag import Tag

from dicom_workbench.anonymizer import PATIENT_ID_TAG, UID_TAGS
from dicom_workbench.config import CONFIG
from dicom_workbench.tag_store import get_number, get_string, read_dataset

logger = logging.getLogger(__name__)

# Subset of the removal policy that the audit looks at.
REMOVED_TAG_CHECKS: list[str] = [
    "PatientName",
    "PatientBirthDate",
    "ReferringPhysicianName",
    "InstitutionName",
]

REQUIRED_STRING_TAGS: list[str] = [
    "PatientSex",
    "Modality",
    *UID_TAGS,
]

_UID_CHARS = frozenset("0123456789.")


class CheckStatus(str, enum.Enum):
    """Outcome of a single check.  OK and SKIP count as passing."""
    OK = "OK"
    FAIL = "FAIL"
    WARN = "WARN"
    SKIP = "SKIP"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check."""
    check_name: str
    status: CheckStatus
    detail: str = ""

    @property
    def passed(self) -> bool:
        return self.status in (CheckStatus.OK, CheckStatus.SKIP)


@dataclass(frozen=True)
class ValidationReport:
    """Ordered check results for one dataset."""
    results: tuple[CheckResult, ...]
    filename: Optional[str] = None

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    def by_status(self, status: CheckStatus) -> list[CheckResult]:
        """Results with the given *status*, in check order."""
        return [r for r in self.results if r.status == status]

    def lines(self) -> list[str]:
        """Render the report as text lines for logs or a message box."""
        verdict = "PASS" if self.passed else "WARNINGS/FAILURES"
        header = f"[AQ] {verdict}"
        if self.filename:
            header += f" - {self.filename}"
        out = [header]
        for r in self.results:
            out.append(f"[{r.status.value}] {r.check_name}: {r.detail}")
        return out

    def summary(self) -> str:
        return "\n".join(self.lines())


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------

def check_removed(ds: Dataset, keyword: str) -> CheckResult:
    """FAIL if *keyword* is still present in *ds*."""
    name = f"removed:{keyword}"
    if Tag(keyword) in ds:
        return CheckResult(name, CheckStatus.FAIL, f"{keyword} is still present {Tag(keyword)}")
    return CheckResult(name, CheckStatus.OK, f"{keyword} has been removed")


def check_required_string(ds: Dataset, keyword: str) -> CheckResult:
    """FAIL if *keyword* is absent or only whitespace."""
    name = f"required:{keyword}"
    value = get_string(ds, keyword)
    if value is None or not value.strip():
        return CheckResult(name, CheckStatus.FAIL, f"{keyword} is missing or blank {Tag(keyword)}")
    return CheckResult(name, CheckStatus.OK, f'{keyword} = "{value}"')


def check_numeric_range(ds: Dataset, keyword: str, low: float, high: float) -> CheckResult:
    """
    WARN if *keyword* lies outside [low, high].

    SKIP when the tag is absent or not a single number.
    """
    name = f"range:{keyword}"
    value = get_number(ds, keyword)
    if value is None:
        return CheckResult(name, CheckStatus.SKIP, f"{keyword} has no numeric value, range check skipped")
    if value < low or value > high:
        return CheckResult(
            name, CheckStatus.WARN,
            f"{keyword} = {value:g} is outside the expected range {low:g}~{high:g}",
        )
    return CheckResult(name, CheckStatus.OK, f"{keyword} = {value:g} (expected {low:g}~{high:g})")


def is_well_formed_uid(uid: str) -> bool:
    """Digits and dots only, no leading/trailing dot, no empty component."""
    return (
        all(c in _UID_CHARS for c in uid)
        and not uid.startswith(".")
        and not uid.endswith(".")
        and ".." not in uid
    )


def check_uid_format(ds: Dataset, keyword: str) -> CheckResult:
    """FAIL for an empty UID, WARN for a malformed one."""
    name = f"uid:{keyword}"
    uid = get_string(ds, keyword)
    if uid is None or not uid.strip():
        return CheckResult(name, CheckStatus.FAIL, f"{keyword} is empty {Tag(keyword)}")
    if not is_well_formed_uid(uid):
        return CheckResult(name, CheckStatus.WARN, f"{keyword} looks malformed ({uid})")
    return CheckResult(name, CheckStatus.OK, f"{keyword} format is valid")


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def validate_dataset(
    ds: Dataset,
    remove_patient_id: Optional[bool] = None,
    filename: Optional[str] = None,
) -> ValidationReport:
    """
    Audit *ds* and return a :class:`ValidationReport`.

    Parameters
    ----------
    ds : Dataset
        Dataset to check.  Not modified.
    remove_patient_id : bool, optional
        Whether PatientID is expected to be gone.  Defaults to the
        configured anonymization policy.
    filename : str, optional
        Name shown in the report header.
    """
    if remove_patient_id is None:
        remove_patient_id = CONFIG["anonymization"]["remove_patient_id"]

    removed = list(REMOVED_TAG_CHECKS)
    if remove_patient_id:
        removed.insert(1, PATIENT_ID_TAG)

    results: list[CheckResult] = []
    results.extend(check_removed(ds, keyword) for keyword in removed)
    results.extend(check_required_string(ds, keyword) for keyword in REQUIRED_STRING_TAGS)
    for keyword, (low, high) in CONFIG["validation"]["numeric_ranges"].items():
        results.append(check_numeric_range(ds, keyword, float(low), float(high)))
    results.extend(check_uid_format(ds, keyword) for keyword in UID_TAGS)

    report = ValidationReport(results=tuple(results), filename=filename)
    logger.debug(
        "Validated %s: %s", filename or "<dataset>", "PASS" if report.passed else "FAIL",
    )
    return report


def validate_file(path: str, remove_patient_id: Optional[bool] = None) -> ValidationReport:
    """
    Read *path* and audit it.

    Raises
    ------
    ParseFailure
        If the file is not a DICOM object; no partial report is produced.
    IoFailure
        If the file cannot be read.
    """
    ds = read_dataset(path, stop_before_pixels=True)
    report = validate_dataset(ds, remove_patient_id=remove_patient_id, filename=os.path.basename(path))
    logger.info("AQ %s - %s", "PASS" if report.passed else "FAIL", os.path.basename(path))
    return report
