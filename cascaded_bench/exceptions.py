"""Exception hierarchy for the cascaded compression benchmark.

Every failure mode of a run maps to one exception type. All of them are
fatal: the driver reports the failing stage and exits with status 1.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class BenchmarkError(Exception):
    """Base exception for all benchmark-related errors.

    Attributes:
        stage: Pipeline stage that failed ('config', 'dataset', 'device',
            'compress', 'decompress', 'verify')
    """

    stage = "benchmark"


class UsageError(BenchmarkError):
    """Raised when command-line arguments are missing or malformed."""

    stage = "config"


class DatasetError(BenchmarkError):
    """Raised when the dataset file cannot be loaded.

    Attributes:
        path: Dataset path that failed to load
        reason: Reason for failure
    """

    stage = "dataset"

    def __init__(self, path: Union[str, Path], reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class DeviceSelectionError(BenchmarkError):
    """Raised when the requested GPU cannot be selected.

    Attributes:
        device_index: Requested device ordinal
    """

    stage = "device"

    def __init__(self, message: str, device_index: int):
        super().__init__(message)
        self.device_index = device_index


class InsufficientDeviceMemoryError(BenchmarkError):
    """Raised when a device allocation would not fit in free memory.

    Attributes:
        required_bytes: Bytes the caller needed
        free_bytes: Bytes the device reported free (None if the allocator
            failed without a prior query)
    """

    stage = "device"

    def __init__(
        self,
        message: str,
        required_bytes: int,
        free_bytes: Optional[int] = None,
    ):
        super().__init__(message)
        self.required_bytes = required_bytes
        self.free_bytes = free_bytes


class CodecOperationError(BenchmarkError):
    """Raised when a compression engine call reports a non-success status.

    Attributes:
        call: Name of the engine entry point that failed
        status: Raw status code returned by the engine (None when the
            failure happened before the call, e.g. library loading)
    """

    stage = "codec"

    def __init__(self, message: str, call: str, status: Optional[int] = None):
        super().__init__(message)
        self.call = call
        self.status = status


class VerificationError(BenchmarkError):
    """Raised when the round-tripped data differs from the input.

    Attributes:
        reason: 'size' or 'content'
        first_mismatch: Index of the first differing element, if any
    """

    stage = "verify"

    def __init__(self, message: str, reason: str, first_mismatch: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.first_mismatch = first_mismatch
