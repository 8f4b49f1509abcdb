"""Shared fixtures: a host-side stand-in for the compression engine and GPU.

FakeCascadedEngine implements the engine call contract with a simple
run-length encoding, reading and writing through the same raw pointers the
real engine would receive. HostMemoryManager backs device buffers with CPU
tensors. Both append to a shared call log so tests can assert ordering.
"""

from __future__ import annotations

import ctypes
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pytest
import torch

from cascaded_bench.device import DeviceMemoryManager, ExecutionStream

_DTYPES = {0: np.int8, 2: np.int16, 4: np.int32, 6: np.int64}
_HEADER = np.dtype(np.uint32)
STATUS_INVALID_VALUE = 10


class RecordingStream(ExecutionStream):
    def __init__(self, log: List[str]):
        super().__init__(torch.device("cpu"))
        self.log = log

    def synchronize(self) -> None:
        self.log.append("synchronize")


class HostMemoryManager(DeviceMemoryManager):
    """DeviceMemoryManager over host tensors with a fixed free-memory figure."""

    def __init__(self, log: List[str], free: int = 1 << 40):
        super().__init__(torch.device("cpu"))
        self.log = log
        self.free = free
        self.allocated: List[str] = []

    def free_bytes(self) -> int:
        return self.free

    def create_stream(self) -> ExecutionStream:
        return RecordingStream(self.log)

    @contextmanager
    def allocate(self, nbytes, name):
        self.log.append(f"allocate:{name}")
        self.allocated.append(name)
        try:
            with super().allocate(nbytes, name) as buffer:
                yield buffer
        finally:
            self.log.append(f"release:{name}")


def _encode_runs(values: np.ndarray) -> tuple:
    """Runs of equal values, split so each count fits in a byte."""
    change = np.flatnonzero(values[1:] != values[:-1]) + 1
    starts = np.concatenate(([0], change))
    lengths = np.diff(np.append(starts, values.size))
    pieces = (lengths + 254) // 255
    run_values = np.repeat(values[starts], pieces)
    counts = np.full(run_values.size, 255, dtype=np.int64)
    counts[np.cumsum(pieces) - 1] = lengths - 255 * (pieces - 1)
    return run_values, counts.astype(np.uint8)


class FakeCascadedEngine:
    """Host RLE codec honoring the engine's status/out-parameter contract."""

    def __init__(self, log: List[str]):
        self.log = log
        self.compress_temp_bytes = 64
        self.decompress_temp_bytes = 48
        self.fail_on: Optional[str] = None
        self.corrupt_output = False
        self.output_size_skew = 0
        self.options = None
        self.metadata: Dict[int, dict] = {}
        self.destroyed: List[int] = []
        self._next_handle = 0x1000

    def _call(self, name: str) -> int:
        self.log.append(name)
        return STATUS_INVALID_VALUE if self.fail_on == name else 0

    def compress_get_temp_size(self, in_ptr, in_bytes, in_type, opts, temp_bytes):
        self.options = opts
        temp_bytes.value = self.compress_temp_bytes
        return self._call("compress_get_temp_size")

    def compress_get_output_size(self, in_ptr, in_bytes, in_type, opts, temp_ptr, temp_bytes, out_bytes, exact):
        assert temp_bytes == self.compress_temp_bytes
        itemsize = np.dtype(_DTYPES[in_type]).itemsize
        out_bytes.value = 2 * _HEADER.itemsize + in_bytes + in_bytes // itemsize
        return self._call("compress_get_output_size")

    def compress_async(self, in_ptr, in_bytes, in_type, opts, temp_ptr, temp_bytes, out_ptr, out_bytes, stream):
        status = self._call("compress_async")
        if status:
            return status
        values = np.frombuffer(ctypes.string_at(in_ptr, in_bytes), dtype=_DTYPES[in_type])
        run_values, counts = _encode_runs(values)
        payload = (
            np.array([run_values.size, in_type], dtype=_HEADER).tobytes()
            + run_values.tobytes()
            + counts.tobytes()
        )
        assert len(payload) <= out_bytes.value
        ctypes.memmove(out_ptr, payload, len(payload))
        out_bytes.value = len(payload)
        return 0

    def decompress_get_metadata(self, in_ptr, in_bytes, metadata, stream):
        status = self._call("decompress_get_metadata")
        if status:
            return status
        raw = ctypes.string_at(in_ptr, in_bytes)
        n_runs, in_type = (int(v) for v in np.frombuffer(raw[: 2 * _HEADER.itemsize], dtype=_HEADER))
        dtype = np.dtype(_DTYPES[in_type])
        body = 2 * _HEADER.itemsize
        run_values = np.frombuffer(raw[body: body + n_runs * dtype.itemsize], dtype=dtype)
        counts = np.frombuffer(raw[body + n_runs * dtype.itemsize:], dtype=np.uint8)
        handle = self._next_handle
        self._next_handle += 0x10
        self.metadata[handle] = {"values": run_values, "counts": counts, "dtype": dtype}
        metadata.value = handle
        return 0

    def decompress_get_temp_size(self, metadata, temp_bytes):
        assert metadata in self.metadata
        temp_bytes.value = self.decompress_temp_bytes
        return self._call("decompress_get_temp_size")

    def decompress_get_output_size(self, metadata, out_bytes):
        meta = self.metadata[metadata]
        elements = int(meta["counts"].astype(np.int64).sum())
        out_bytes.value = elements * meta["dtype"].itemsize + self.output_size_skew
        return self._call("decompress_get_output_size")

    def decompress_async(self, in_ptr, in_bytes, temp_ptr, temp_bytes, metadata, out_ptr, out_bytes, stream):
        status = self._call("decompress_async")
        if status:
            return status
        meta = self.metadata[metadata]
        restored = np.repeat(meta["values"], meta["counts"].astype(np.int64))
        if self.corrupt_output:
            restored = restored.copy()
            restored[0] ^= 1
        payload = restored.tobytes()
        ctypes.memmove(out_ptr, payload, min(len(payload), out_bytes))
        return 0

    def decompress_destroy_metadata(self, metadata):
        self.log.append("decompress_destroy_metadata")
        self.destroyed.append(metadata)
        del self.metadata[metadata]


@pytest.fixture
def call_log() -> List[str]:
    return []


@pytest.fixture
def fake_engine(call_log) -> FakeCascadedEngine:
    return FakeCascadedEngine(call_log)


@pytest.fixture
def host_memory(call_log) -> HostMemoryManager:
    return HostMemoryManager(call_log)


@pytest.fixture
def write_dataset(tmp_path):
    """Write a numpy array as a raw dataset file and return its path."""

    def _write(values, dtype=np.int32, name: str = "data.bin") -> Path:
        path = tmp_path / name
        np.asarray(values, dtype=dtype).tofile(path)
        return path

    return _write
