"""Tests for dicom_workbench/anonymizer.py."""

import os

import pydicom
import pytest
from pydicom.dataset import Dataset, FileDataset
from pydicom.tag import Tag
from pydicom.uid import ExplicitVRLittleEndian

from dicom_workbench.anonymizer import (
    TAGS_TO_PRESERVE,
    TAGS_TO_REMOVE,
    UID_TAGS,
    anonymize_dataset,
    anonymize_file,
    anonymized_output_path,
)
from dicom_workbench.errors import IoFailure, ParseFailure
from dicom_workbench.validator import CheckStatus, is_well_formed_uid, validate_dataset


def _make_dataset(**kwargs) -> FileDataset:
    """Build a minimal in-memory DICOM dataset for testing."""
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID("1.2.840.10008.5.1.4.1.1.2")
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(filename_or_obj=None, dataset={}, file_meta=file_meta, preamble=b"\0" * 128)

    # PHI tags
    ds.PatientName = "Doe^John"
    ds.PatientID = "12345"
    ds.PatientBirthDate = "19800101"
    ds.StudyDate = "20230601"
    ds.StudyTime = "120000"
    ds.SeriesDate = "20230601"
    ds.AcquisitionDate = "20230601"
    ds.EthnicGroup = "Unknown"
    ds.Occupation = "Engineer"
    ds.InstitutionName = "General Hospital"
    ds.InstitutionAddress = "1 Main Street"
    ds.ReferringPhysicianName = "Smith^Jane"
    ds.PerformingPhysicianName = "Brown^Bob"
    ds.OperatorsName = "Tech^Tom"

    # Other patient identifiers block
    ds.add_new(0x00101000, "LO", "ALT-1")       # Other Patient IDs
    ds.add_new(0x00101001, "PN", "Roe^Richard")  # Other Patient Names
    ds.add_new(0x00101040, "LO", "2 Side Road")  # Patient's Address
    ds.add_new(0x0010109C, "LO", "upper bound")

    # Preserved
    ds.PatientSex = "M"
    ds.PatientAge = "043Y"
    ds.PatientSize = 1.80
    ds.PatientWeight = 80

    ds.Modality = "CT"
    ds.StudyInstanceUID = "1.2.3.4"
    ds.SeriesInstanceUID = "1.2.3.4.5"
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID

    for key, value in kwargs.items():
        setattr(ds, key, value)

    return ds


def _write_dicom(path: str) -> None:
    ds = _make_dataset()
    ds.save_as(path)


class TestTagRemoval:
    def test_policy_tags_removed(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        for tag in TAGS_TO_REMOVE:
            assert tag not in ds, f"{tag} should have been removed"

    def test_patient_id_removed_by_default_variant(self):
        ds = _make_dataset()
        anonymize_dataset(ds, remove_patient_id=True)
        assert "PatientID" not in ds

    def test_patient_id_kept_in_retain_variant(self):
        ds = _make_dataset()
        anonymize_dataset(ds, remove_patient_id=False)
        assert ds.PatientID == "12345"

    def test_other_patient_id_range_removed(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        for tag in (0x00101000, 0x00101001, 0x00101040, 0x0010109C):
            assert Tag(tag) not in ds, f"{Tag(tag)} should have been removed"

    def test_tags_outside_range_untouched(self):
        ds = _make_dataset()
        ds.add_new(0x0010109D, "LO", "just past the range")
        ds.add_new(0x00110010, "LO", "PRIVATE CREATOR")
        anonymize_dataset(ds)
        assert Tag(0x0010109D) in ds
        assert Tag(0x00110010) in ds

    def test_preserved_tags_survive(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        for tag in TAGS_TO_PRESERVE:
            assert tag in ds, f"{tag} should have been kept"
        assert ds.PatientAge == "043Y"
        assert float(ds.PatientWeight) == 80

    def test_non_phi_tags_preserved(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        assert ds.Modality == "CT"

    def test_missing_optional_tags_no_crash(self):
        """Anonymizer must not crash when policy tags are absent."""
        ds = Dataset()
        ds.Modality = "CT"
        anonymize_dataset(ds)
        for tag in UID_TAGS:
            assert tag not in ds, "absent UIDs must not be created"

    def test_removal_is_idempotent(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        first = {elem.tag for elem in ds}
        anonymize_dataset(ds)
        assert {elem.tag for elem in ds} == first

    def test_returns_same_object(self):
        ds = _make_dataset()
        assert anonymize_dataset(ds) is ds


class TestUidRegeneration:
    def test_uids_replaced(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        assert ds.StudyInstanceUID != "1.2.3.4"
        assert ds.SeriesInstanceUID != "1.2.3.4.5"

    def test_uids_are_well_formed(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        for tag in UID_TAGS:
            uid = str(getattr(ds, tag))
            assert is_well_formed_uid(uid), uid
            assert uid.startswith("2.25.")

    def test_uids_change_on_every_call(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        first = [str(getattr(ds, tag)) for tag in UID_TAGS]
        anonymize_dataset(ds)
        second = [str(getattr(ds, tag)) for tag in UID_TAGS]
        assert all(a != b for a, b in zip(first, second))

    def test_three_uids_distinct(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        assert len({str(getattr(ds, tag)) for tag in UID_TAGS}) == 3

    def test_file_meta_follows_sop_instance_uid(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        assert ds.file_meta.MediaStorageSOPInstanceUID == ds.SOPInstanceUID


class TestAnonymizeThenValidate:
    def test_removed_and_uid_checks_pass(self):
        ds = _make_dataset()
        anonymize_dataset(ds)
        report = validate_dataset(ds, remove_patient_id=True)
        for result in report.results:
            if result.check_name.startswith(("removed:", "uid:")):
                assert result.status == CheckStatus.OK, result


class TestAnonymizeFile:
    def test_default_output_path(self):
        path = os.path.join("scans", "CT001.dcm")
        expected = os.path.join("scans", "Anonymized", "CT001_anon.dcm")
        assert anonymized_output_path(path) == expected

    def test_output_path_in_custom_folder(self):
        assert anonymized_output_path(os.path.join("a", "x.DCM"), "out") == os.path.join("out", "x_anon.DCM")

    def test_writes_anonymized_copy(self, tmp_path):
        src = tmp_path / "scan.dcm"
        _write_dicom(str(src))

        out = anonymize_file(str(src))

        assert out == str(tmp_path / "Anonymized" / "scan_anon.dcm")
        cleaned = pydicom.dcmread(out)
        assert "PatientName" not in cleaned
        assert cleaned.PatientSex == "M"
        # Source file left untouched
        assert pydicom.dcmread(str(src)).PatientName == "Doe^John"

    def test_corrupt_input_raises_and_writes_nothing(self, tmp_path):
        src = tmp_path / "broken.dcm"
        src.write_bytes(b"this is not a dicom file")

        with pytest.raises(ParseFailure):
            anonymize_file(str(src))
        assert not (tmp_path / "Anonymized" / "broken_anon.dcm").exists()

    def test_failed_write_leaves_no_partial_file(self, tmp_path, monkeypatch):
        src = tmp_path / "scan.dcm"
        _write_dicom(str(src))

        def _disk_full(self, filename, *args, **kwargs):
            with open(filename, "wb") as f:
                f.write(b"DICM partial")
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(FileDataset, "save_as", _disk_full)
        with pytest.raises(IoFailure):
            anonymize_file(str(src))
        assert os.listdir(tmp_path / "Anonymized") == []

    def test_failed_write_keeps_previous_output(self, tmp_path, monkeypatch):
        src = tmp_path / "scan.dcm"
        _write_dicom(str(src))
        out = anonymize_file(str(src))
        with open(out, "rb") as f:
            previous = f.read()

        def _disk_full(self, filename, *args, **kwargs):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(FileDataset, "save_as", _disk_full)
        with pytest.raises(IoFailure):
            anonymize_file(str(src))
        with open(out, "rb") as f:
            assert f.read() == previous
        assert os.listdir(tmp_path / "Anonymized") == ["scan_anon.dcm"]
