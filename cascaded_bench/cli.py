#!/usr/bin/env python3
"""Benchmark the nvCOMP Cascaded codec on a raw binary dataset.

Usage:
    benchmark-cascaded -f data.bin                      # int32, 1 RLE pass
    benchmark-cascaded -f data.bin -t long -d 1 -b 1    # int64, RLE + delta + bit-packing
    benchmark-cascaded -f data.bin -z 1000000 -s -m     # first 1M elements, sorted, memory sizes

Exit status is 0 when the round trip verifies and 1 on any failure.
"""

from __future__ import annotations

import argparse
import sys
from typing import Callable, List, Optional

from pydantic import ValidationError

from cascaded_bench.codec import CascadedCodec, CascadedEngine, NvcompCascadedEngine
from cascaded_bench.config import OPTION_TABLE, PROGRAM_NAME, BenchmarkConfig, format_usage
from cascaded_bench.dataset import load_dataset
from cascaded_bench.device import DeviceMemoryManager, select_device
from cascaded_bench.exceptions import BenchmarkError, UsageError
from cascaded_bench.logger import get_logger, log_benchmark_error, setup_logging
from cascaded_bench.pipeline import CascadedBenchmark
from cascaded_bench.reporting import BenchmarkReport, BenchmarkReporter

logger = get_logger(__name__)

EngineFactory = Callable[[], CascadedEngine]
MemoryFactory = Callable[[int], DeviceMemoryManager]


class _OptionParser(argparse.ArgumentParser):
    def error(self, message: str):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser from OPTION_TABLE."""
    parser = _OptionParser(prog=PROGRAM_NAME, add_help=False, allow_abbrev=False)
    for option in OPTION_TABLE:
        if option.takes_argument:
            parser.add_argument(
                *option.flags, dest=option.dest, type=option.value_type,
                default=option.default, choices=option.choices,
            )
        else:
            parser.add_argument(*option.flags, dest=option.dest, action="store_true", default=option.default)
    return parser


def parse_config(argv: Optional[List[str]] = None) -> BenchmarkConfig:
    """Parse ``argv`` into an immutable BenchmarkConfig.

    Raises:
        UsageError: help requested, unknown/malformed option, missing filename
            or an out-of-range value
    """
    args = vars(build_parser().parse_args(argv))
    if args.pop("help"):
        raise UsageError("help requested")
    if args["filename"] is None:
        raise UsageError("missing required option -f/--filename")
    try:
        return BenchmarkConfig(**args)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise UsageError(problems) from exc


def default_memory_factory(gpu: int) -> DeviceMemoryManager:
    return DeviceMemoryManager(select_device(gpu))


def run_benchmark(
    config: BenchmarkConfig,
    engine_factory: Optional[EngineFactory] = None,
    memory_factory: Optional[MemoryFactory] = None,
    reporter: Optional[BenchmarkReporter] = None,
) -> BenchmarkReport:
    """Select the device, then load, stage, compress, decompress and verify once."""
    logger.info(
        f"Benchmarking {config.filename} as {config.element_type.value}: "
        f"rles={config.rles} deltas={config.deltas} bitpack={int(config.bitpack)} "
        f"sort={config.sort} gpu={config.gpu}"
    )
    memory = (memory_factory or default_memory_factory)(config.gpu)
    dataset = load_dataset(config.filename, config.element_type, config.size)
    if config.sort:
        dataset = dataset.sorted()

    engine = (engine_factory or NvcompCascadedEngine.load)()
    codec = CascadedCodec(engine, config.element_type, config.cascaded_options)
    reporter = reporter or BenchmarkReporter(verbose_memory=config.memory)
    return CascadedBenchmark(dataset, codec, memory, reporter, dump_output=config.verbose).run()


def main(
    argv: Optional[List[str]] = None,
    *,
    engine_factory: Optional[EngineFactory] = None,
    memory_factory: Optional[MemoryFactory] = None,
) -> int:
    setup_logging("INFO")
    try:
        config = parse_config(argv)
    except UsageError as exc:
        if str(exc) != "help requested":
            log_benchmark_error(logger, exc.stage, str(exc))
        print(format_usage())
        return 1

    if config.verbose:
        setup_logging("DEBUG")
    try:
        run_benchmark(config, engine_factory, memory_factory)
    except BenchmarkError as exc:
        log_benchmark_error(logger, exc.stage, str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
