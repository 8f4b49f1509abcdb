"""Tests for raw dataset loading."""

import logging

import numpy as np
import pytest

from cascaded_bench.config import ElementType
from cascaded_bench.dataset import load_dataset
from cascaded_bench.exceptions import DatasetError


class TestLoadDataset:

    def test_whole_file(self, write_dataset):
        path = write_dataset([5, 5, 5, 5, 1, 2, 3, 3])
        dataset = load_dataset(path, ElementType.INT)
        assert len(dataset) == 8
        assert dataset.nbytes == 32
        assert dataset.values.dtype == np.int32
        np.testing.assert_array_equal(dataset.values, [5, 5, 5, 5, 1, 2, 3, 3])

    def test_reinterprets_bytes_without_conversion(self, write_dataset):
        path = write_dataset([1, 2], dtype=np.int64)
        dataset = load_dataset(path, ElementType.INT)
        assert len(dataset) == 4
        np.testing.assert_array_equal(dataset.values, np.array([1, 2], dtype=np.int64).view(np.int32))

    def test_values_are_read_only(self, write_dataset):
        dataset = load_dataset(write_dataset([1, 2, 3]), ElementType.INT)
        with pytest.raises(ValueError):
            dataset.values[0] = 7
        assert not dataset.sorted().values.flags.writeable

    def test_cap_truncates(self, write_dataset):
        path = write_dataset(np.arange(100), dtype=np.int16)
        dataset = load_dataset(path, ElementType.SHORT, max_elements=10)
        np.testing.assert_array_equal(dataset.values, np.arange(10))

    def test_cap_larger_than_file_is_clamped(self, write_dataset, caplog):
        path = write_dataset(np.arange(6))
        with caplog.at_level(logging.WARNING):
            dataset = load_dataset(path, ElementType.INT, max_elements=1000)
        assert len(dataset) == 6
        assert "clamping to 6" in caplog.text

    def test_trailing_partial_element_ignored(self, tmp_path, caplog):
        path = tmp_path / "odd.bin"
        path.write_bytes(np.arange(3, dtype=np.int32).tobytes() + b"\x01\x02")
        with caplog.at_level(logging.WARNING):
            dataset = load_dataset(path, ElementType.INT)
        assert len(dataset) == 3
        assert "trailing bytes" in caplog.text

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatasetError) as exc_info:
            load_dataset(tmp_path / "missing.bin", ElementType.INT)
        assert exc_info.value.stage == "dataset"
        assert "no such file" in exc_info.value.reason

    def test_directory_is_rejected(self, tmp_path):
        with pytest.raises(DatasetError):
            load_dataset(tmp_path, ElementType.INT)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.bin"
        path.write_bytes(b"")
        with pytest.raises(DatasetError, match="empty"):
            load_dataset(path, ElementType.INT)

    def test_no_whole_element(self, tmp_path):
        path = tmp_path / "short.bin"
        path.write_bytes(b"\x00\x01\x02")
        with pytest.raises(DatasetError, match="no whole"):
            load_dataset(path, ElementType.INT)

    def test_negative_cap(self, write_dataset):
        with pytest.raises(DatasetError):
            load_dataset(write_dataset([1]), ElementType.INT, max_elements=-1)


class TestSortedDataset:

    def test_sorted_preserves_multiset(self, write_dataset):
        values = np.array([9, -3, 7, 7, 0, -3, 12], dtype=np.int64)
        dataset = load_dataset(write_dataset(values, dtype=np.int64), ElementType.LONG)
        ordered = dataset.sorted()
        np.testing.assert_array_equal(ordered.values, np.sort(values))
        np.testing.assert_array_equal(np.sort(dataset.values), np.sort(ordered.values))
        # the loaded dataset is left untouched
        np.testing.assert_array_equal(dataset.values, values)
        assert ordered.element_type is ElementType.LONG
