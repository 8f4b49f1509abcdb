"""Compress / decompress / verify pipeline for one dataset.

Buffer lifetimes:
    compress phase:   input, compress scratch        (released at phase end)
    both phases:      compressed output              (released after decompress)
    decompress phase: decompress scratch, decompressed output
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass
from typing import Optional

import numpy as np

from cascaded_bench.codec import CascadedCodec
from cascaded_bench.dataset import Dataset
from cascaded_bench.device import DeviceBuffer, DeviceMemoryManager, ExecutionStream
from cascaded_bench.exceptions import CodecOperationError
from cascaded_bench.logger import get_logger, log_phase_complete, log_phase_start
from cascaded_bench.reporting import BenchmarkReport, BenchmarkReporter
from cascaded_bench.timing import PhaseTimer, compression_ratio, throughput_gbs
from cascaded_bench.verification import verify_roundtrip

logger = get_logger(__name__)


@dataclass
class CompressedData:
    """Compressed-output buffer handed from the compress to the decompress phase."""

    buffer: DeviceBuffer
    nbytes: int
    temp_bytes: int
    output_bytes: int
    ratio: float
    gbs: float


@dataclass
class DecompressedData:
    values: np.ndarray
    nbytes: int
    temp_bytes: int
    gbs: float


class CascadedBenchmark:
    """Runs the staged pipeline exactly once."""

    def __init__(
        self,
        dataset: Dataset,
        codec: CascadedCodec,
        memory: DeviceMemoryManager,
        reporter: Optional[BenchmarkReporter] = None,
        dump_output: bool = False,
    ):
        self.dataset = dataset
        self.codec = codec
        self.memory = memory
        self.reporter = reporter or BenchmarkReporter()
        self.dump_output = dump_output

    def run(self) -> BenchmarkReport:
        in_bytes = self.dataset.nbytes
        self.memory.require(in_bytes, "input dataset")
        self.reporter.header(in_bytes)

        stream = self.memory.create_stream()
        with ExitStack() as run_scope:
            compressed = self._compress(run_scope, stream)
            decompressed = self._decompress(compressed, stream)
        logger.debug(f"Live buffers after run: {self.memory.live_buffers}")

        if self.dump_output:
            self.reporter.dump(decompressed.values)
        verify_roundtrip(self.dataset.values, decompressed.nbytes, decompressed.values)
        self.reporter.verification_passed(len(self.dataset))

        return BenchmarkReport(
            element_type=self.dataset.element_type.value,
            elements=len(self.dataset),
            uncompressed_bytes=in_bytes,
            compressed_bytes=compressed.nbytes,
            compression_ratio=compressed.ratio,
            compress_temp_bytes=compressed.temp_bytes,
            compress_output_bytes=compressed.output_bytes,
            decompress_temp_bytes=decompressed.temp_bytes,
            decompressed_bytes=decompressed.nbytes,
            compress_gbs=compressed.gbs,
            decompress_gbs=decompressed.gbs,
        )

    def _compress(self, run_scope: ExitStack, stream: ExecutionStream) -> CompressedData:
        codec = self.codec
        with ExitStack() as phase:
            data = phase.enter_context(self.memory.stage(self.dataset.values, "input"))
            temp_bytes = codec.compress_temp_size(data)
            temp = phase.enter_context(self.memory.allocate(temp_bytes, "compress scratch"))
            out_bytes = codec.compress_output_size(data, temp)
            # Outlives this phase; released when the run scope closes.
            out = run_scope.enter_context(self.memory.allocate(out_bytes, "compressed output"))
            self.reporter.compression_memory(data.nbytes, temp_bytes, out_bytes)

            log_phase_start(logger, "compression", data.nbytes)
            with PhaseTimer(stream) as timer:
                comp_size = codec.compress_async(data, temp, out, stream)
            compressed_bytes = comp_size.value

        if not 0 < compressed_bytes <= out_bytes:
            raise CodecOperationError(
                f"compress_async reported {compressed_bytes} B for a {out_bytes} B output buffer",
                call="compress_async",
            )
        ratio = compression_ratio(self.dataset.nbytes, compressed_bytes)
        gbs = throughput_gbs(self.dataset.nbytes, timer.sample)
        log_phase_complete(logger, "compression", timer.sample.elapsed_seconds, gbs)
        self.reporter.compression_result(compressed_bytes, ratio, gbs)
        return CompressedData(out, compressed_bytes, temp_bytes, out_bytes, ratio, gbs)

    def _decompress(self, compressed: CompressedData, stream: ExecutionStream) -> DecompressedData:
        codec = self.codec
        with ExitStack() as phase:
            metadata = phase.enter_context(codec.metadata(compressed.buffer, compressed.nbytes, stream))
            temp_bytes = codec.decompress_temp_size(metadata)
            out_bytes = codec.decompress_output_size(metadata)
            self.reporter.decompression_memory(compressed.nbytes, temp_bytes, out_bytes)

            self.memory.require(temp_bytes + out_bytes, "decompression scratch and output")
            temp = phase.enter_context(self.memory.allocate(temp_bytes, "decompress scratch"))
            out = phase.enter_context(self.memory.allocate(out_bytes, "decompressed output"))

            log_phase_start(logger, "decompression", compressed.nbytes)
            with PhaseTimer(stream) as timer:
                codec.decompress_async(compressed.buffer, compressed.nbytes, temp, metadata, out, stream)

            gbs = throughput_gbs(out_bytes, timer.sample)
            log_phase_complete(logger, "decompression", timer.sample.elapsed_seconds, gbs)
            self.reporter.decompression_result(gbs)

            restored = self.memory.to_host(
                out, self.dataset.values.dtype, min(out_bytes, self.dataset.nbytes)
            )
        return DecompressedData(restored, out_bytes, temp_bytes, gbs)
