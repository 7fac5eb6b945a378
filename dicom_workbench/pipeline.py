"""
pipeline.py - Batch orchestration over a folder of DICOM files.

Every file of a batch is an independent unit of work: one corrupt file is
logged and counted, and the rest of the folder is still processed.  Files
are anonymized concurrently on a bounded thread pool; results are reported
in the folder's slice order regardless of completion order.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional, Union

from dicom_workbench.anonymizer import anonymize_file, anonymized_output_path
from dicom_workbench.config import CONFIG
from dicom_workbench.errors import DicomWorkbenchError
from dicom_workbench.validator import ValidationReport, validate_file
from dicom_workbench.volume import list_dicom_files

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class ProcessingResult:
    """Summary of a single file's processing outcome."""
    filename: str
    success: bool
    output_path: Optional[str] = None
    error: Optional[str] = None
    duration_s: float = 0.0


@dataclass
class BatchReport:
    """Aggregate report produced at the end of a batch run."""
    total_files: int = 0
    processed: int = 0
    failed: int = 0
    elapsed_s: float = 0.0
    output_folder: Optional[str] = None
    results: list[ProcessingResult] = field(default_factory=list)

    def summary(self) -> str:
        lines = [
            "=" * 50,
            "ANONYMIZATION SUMMARY",
            "=" * 50,
            f"Total files found     : {self.total_files}",
            f"Successfully processed: {self.processed}",
            f"Failed                : {self.failed}",
            f"Output folder         : {self.output_folder}",
            f"Total time            : {self.elapsed_s:.2f}s",
        ]
        if self.failed > 0:
            lines.append("\nFailed files:")
            for r in self.results:
                if not r.success:
                    lines.append(f"  - {r.filename}: {r.error}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Anonymization
# ---------------------------------------------------------------------------

def _anonymize_one(
    path: str,
    output_folder: str,
    remove_patient_id: Optional[bool],
) -> ProcessingResult:
    start = time.time()
    result = ProcessingResult(filename=os.path.basename(path), success=False)
    try:
        result.output_path = anonymize_file(
            path,
            anonymized_output_path(path, output_folder),
            remove_patient_id=remove_patient_id,
        )
        result.success = True
    except DicomWorkbenchError as exc:
        result.error = str(exc)
        logger.error("Error anonymizing %s: %s", result.filename, exc)
    except Exception as exc:
        result.error = str(exc)
        logger.exception("Unexpected error anonymizing %s: %s", result.filename, exc)
    result.duration_s = time.time() - start
    return result


def anonymize_folder(
    input_folder: Optional[str] = None,
    output_folder: Optional[str] = None,
    max_workers: Optional[int] = None,
    remove_patient_id: Optional[bool] = None,
) -> BatchReport:
    """
    Anonymize every DICOM file in *input_folder*.

    Parameters
    ----------
    input_folder : str, optional
        Source directory.  Defaults to config value.
    output_folder : str, optional
        Destination directory.  Defaults to ``<input_folder>/Anonymized``.
    max_workers : int, optional
        Size of the worker pool.  Defaults to config value.
    remove_patient_id : bool, optional
        Policy variant, see :func:`dicom_workbench.anonymizer.anonymize_dataset`.

    Returns
    -------
    BatchReport
        Per-file results plus success/failure counts.  The batch never
        aborts on a single bad file.
    """
    input_folder = input_folder or CONFIG["paths"]["input_folder"]
    output_folder = output_folder or os.path.join(
        input_folder, CONFIG["anonymization"]["output_dirname"]
    )
    max_workers = max_workers or CONFIG["pipeline"]["max_workers"]

    report = BatchReport(output_folder=output_folder)
    batch_start = time.time()

    if not os.path.isdir(input_folder):
        logger.error("Input folder not found: %s", input_folder)
        return report

    files = list_dicom_files(input_folder)
    report.total_files = len(files)
    logger.info("Anonymizing %d file(s) with %d worker(s).", report.total_files, max_workers)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        results = pool.map(
            lambda path: _anonymize_one(path, output_folder, remove_patient_id),
            files,
        )
        for result in results:
            report.results.append(result)
            if result.success:
                report.processed += 1
            else:
                report.failed += 1

    report.elapsed_s = time.time() - batch_start
    logger.info(report.summary())
    return report


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_folder(
    folder: str,
    remove_patient_id: Optional[bool] = None,
) -> dict[str, Union[ValidationReport, str]]:
    """
    Run the AQ audit on every DICOM file in *folder*.

    Returns
    -------
    dict
        Filename → report, or → error text for files that could not be
        parsed.  Keys follow slice order.
    """
    reports: dict[str, Union[ValidationReport, str]] = {}
    for path in list_dicom_files(folder):
        name = os.path.basename(path)
        try:
            reports[name] = validate_file(path, remove_patient_id=remove_patient_id)
        except DicomWorkbenchError as exc:
            reports[name] = str(exc)
            logger.error("AQ could not read %s: %s", name, exc)
    return reports
