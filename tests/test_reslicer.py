"""Tests for dicom_workbench/reslicer.py."""

import numpy as np
import pytest

from dicom_workbench.reslicer import axial, coronal, middle_indices, sagittal
from dicom_workbench.slice_decoder import Slice
from dicom_workbench.volume import Volume


def _volume(samples: list[list[int]], rows: int, cols: int) -> Volume:
    slices = tuple(
        Slice(rows, cols, 16, False, 1.0, 0.0, np.array(s, dtype=np.uint16))
        for s in samples
    )
    return Volume(slices=slices, rows=rows, cols=cols)


@pytest.fixture
def small_volume() -> Volume:
    return _volume([[1, 2, 3, 4], [5, 6, 7, 8], [9, 10, 11, 12]], rows=2, cols=2)


@pytest.fixture
def wide_volume() -> Volume:
    # 2 slices of 2 rows x 3 cols, to tell rows and columns apart
    return _volume([[0, 1, 2, 3, 4, 5], [10, 11, 12, 13, 14, 15]], rows=2, cols=3)


class TestThreeSliceScenario:
    def test_axial(self, small_volume):
        np.testing.assert_array_equal(axial(small_volume, 1).ravel(), [5, 6, 7, 8])

    def test_sagittal(self, small_volume):
        np.testing.assert_array_equal(sagittal(small_volume, 0), [[1, 3], [5, 7], [9, 11]])

    def test_coronal(self, small_volume):
        np.testing.assert_array_equal(coronal(small_volume, 0), [[1, 2], [5, 6], [9, 10]])


class TestShapes:
    def test_sagittal_is_slices_by_rows(self, wide_volume):
        image = sagittal(wide_volume, 2)
        assert image.shape == (2, 2)
        np.testing.assert_array_equal(image, [[2, 5], [12, 15]])

    def test_coronal_is_slices_by_cols(self, wide_volume):
        image = coronal(wide_volume, 1)
        assert image.shape == (2, 3)
        np.testing.assert_array_equal(image, [[3, 4, 5], [13, 14, 15]])

    def test_axial_is_rows_by_cols(self, wide_volume):
        assert axial(wide_volume, 0).shape == (2, 3)


class TestClamping:
    def test_sagittal_clamps(self, small_volume):
        np.testing.assert_array_equal(sagittal(small_volume, 99), sagittal(small_volume, 1))
        np.testing.assert_array_equal(sagittal(small_volume, -3), sagittal(small_volume, 0))

    def test_coronal_clamps(self, small_volume):
        np.testing.assert_array_equal(coronal(small_volume, 5), coronal(small_volume, 1))
        np.testing.assert_array_equal(coronal(small_volume, -1), coronal(small_volume, 0))

    def test_axial_clamps(self, small_volume):
        np.testing.assert_array_equal(axial(small_volume, 10).ravel(), [9, 10, 11, 12])
        np.testing.assert_array_equal(axial(small_volume, -10).ravel(), [1, 2, 3, 4])


def test_middle_indices(wide_volume):
    assert middle_indices(wide_volume) == (1, 1, 1)
