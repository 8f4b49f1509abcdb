"""Console report of sizes, compression ratio and throughput."""

from __future__ import annotations

from typing import Optional

import numpy as np
from pydantic import BaseModel, Field
from rich.console import Console


class BenchmarkReport(BaseModel):
    """Figures reported by a completed run."""

    element_type: str = Field(..., description="Element type CLI name")
    elements: int = Field(..., description="Element count after capping")
    uncompressed_bytes: int = Field(..., description="Original byte size")
    compressed_bytes: int = Field(..., description="Compressed byte size")
    compression_ratio: float = Field(..., ge=0, description="uncompressed / compressed")
    compress_temp_bytes: int = Field(..., description="Compression scratch size")
    compress_output_bytes: int = Field(..., description="Compressed output buffer size")
    decompress_temp_bytes: int = Field(..., description="Decompression scratch size")
    decompressed_bytes: int = Field(..., description="Decompressed byte size")
    compress_gbs: float = Field(..., gt=0, description="Compression throughput (GB/s)")
    decompress_gbs: float = Field(..., gt=0, description="Decompression throughput (GB/s)")


class BenchmarkReporter:
    """Writes the human-readable report lines to stdout as phases finish."""

    def __init__(self, console: Optional[Console] = None, verbose_memory: bool = False):
        self.console = console or Console(highlight=False, markup=False, soft_wrap=True)
        self.verbose_memory = verbose_memory

    def _line(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def header(self, uncompressed_bytes: int) -> None:
        self._line("----------")
        self._line(f"uncompressed (B): {uncompressed_bytes}")

    def compression_memory(self, input_bytes: int, temp_bytes: int, output_bytes: int) -> None:
        if not self.verbose_memory:
            return
        self._line(f"compression memory (input+output+temp) (B): {input_bytes + output_bytes + temp_bytes}")
        self._line(f"compression temp space (B): {temp_bytes}")
        self._line(f"compression output space (B): {output_bytes}")

    def compression_result(self, compressed_bytes: int, ratio: float, gbs: float) -> None:
        self._line(f"comp_size: {compressed_bytes}, compressed ratio: {ratio:.2f}")
        self._line(f"compression throughput (GB/s): {gbs:.6f}")

    def decompression_memory(self, compressed_bytes: int, temp_bytes: int, output_bytes: int) -> None:
        if not self.verbose_memory:
            return
        self._line(
            f"decompression memory (input+output+temp) (B): {compressed_bytes + output_bytes + temp_bytes}"
        )
        self._line(f"decompression temp space (B): {temp_bytes}")
        self._line(f"decompression output space (B): {output_bytes}")

    def decompression_result(self, gbs: float) -> None:
        self._line(f"decompression throughput (GB/s): {gbs:.6f}")

    def verification_passed(self, elements: int) -> None:
        self._line(f"verification: PASSED ({elements} elements)")

    def dump(self, values: np.ndarray, limit: int = 64) -> None:
        """Print the leading decompressed elements."""
        shown = " ".join(str(v) for v in values[:limit].tolist())
        suffix = " ..." if values.size > limit else ""
        self._line("Output")
        self._line(shown + suffix)
