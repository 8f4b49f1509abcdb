"""Throughput and round-trip benchmark for the nvCOMP Cascaded codec."""

from cascaded_bench.config import BenchmarkConfig, CascadedOptions, ElementType
from cascaded_bench.exceptions import (
    BenchmarkError,
    CodecOperationError,
    DatasetError,
    DeviceSelectionError,
    InsufficientDeviceMemoryError,
    UsageError,
    VerificationError,
)

__all__ = [
    "BenchmarkConfig",
    "BenchmarkError",
    "CascadedOptions",
    "CodecOperationError",
    "DatasetError",
    "DeviceSelectionError",
    "ElementType",
    "InsufficientDeviceMemoryError",
    "UsageError",
    "VerificationError",
]

__version__ = "0.1.0"
