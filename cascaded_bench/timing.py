"""Wall-clock timing of stream-synchronized GPU phases."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Optional

from cascaded_bench.device import ExecutionStream

_CLOCK_RESOLUTION = time.get_clock_info("perf_counter").resolution


@dataclass(frozen=True)
class TimingSample:
    """perf_counter readings bracketing one phase."""

    start: float
    end: float

    @property
    def elapsed_seconds(self) -> float:
        # Never zero, so throughput stays finite on very fast phases.
        return max(self.end - self.start, _CLOCK_RESOLUTION)


class PhaseTimer:
    """Times the work issued inside the block, up to stream completion.

    Enter immediately before issuing the asynchronous call. On a normal exit
    the stream is synchronized before the stop reading is taken.
    """

    def __init__(self, stream: ExecutionStream):
        self.stream = stream
        self.sample: Optional[TimingSample] = None
        self._start = 0.0

    def __enter__(self) -> "PhaseTimer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.stream.synchronize()
            self.sample = TimingSample(self._start, time.perf_counter())


def throughput_gbs(nbytes: int, sample: TimingSample) -> float:
    """Throughput in GB/s (1 GB = 1e9 bytes)."""
    gbs = nbytes / sample.elapsed_seconds / 1e9
    if not math.isfinite(gbs):
        raise ValueError(f"non-finite throughput for {nbytes} B in {sample.elapsed_seconds} s")
    return gbs


def compression_ratio(uncompressed_bytes: int, compressed_bytes: int) -> float:
    if compressed_bytes <= 0:
        raise ValueError("compressed size must be positive")
    return uncompressed_bytes / compressed_bytes
