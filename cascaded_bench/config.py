"""Benchmark configuration and the declarative command-line option table.

The option table is the single source of truth for flags, defaults and the
usage text. It is consumed once at startup into an immutable BenchmarkConfig.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


PROGRAM_NAME = "benchmark_cascaded"
# Pass counts travel to the engine as C ints.
C_INT_MAX = 2**31 - 1


class ElementType(str, Enum):
    """Supported dataset element types, keyed by their CLI spelling."""

    INT8 = "int8"
    SHORT = "short"
    INT = "int"
    LONG = "long"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(_NUMPY_DTYPES[self])

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    @property
    def nvcomp_type(self) -> int:
        """nvcompType_t value understood by the compression engine."""
        return _NVCOMP_TYPES[self]


_NUMPY_DTYPES = {
    ElementType.INT8: np.int8,
    ElementType.SHORT: np.int16,
    ElementType.INT: np.int32,
    ElementType.LONG: np.int64,
}

# NVCOMP_TYPE_CHAR, NVCOMP_TYPE_SHORT, NVCOMP_TYPE_INT, NVCOMP_TYPE_LONGLONG
_NVCOMP_TYPES = {
    ElementType.INT8: 0,
    ElementType.SHORT: 2,
    ElementType.INT: 4,
    ElementType.LONG: 6,
}


@dataclass(frozen=True)
class CascadedOptions:
    """Cascaded format options: RLE passes, delta passes, bit-packing."""

    num_rles: int = 1
    num_deltas: int = 0
    use_bp: bool = False


class BenchmarkConfig(BaseModel):
    """Configuration for one benchmark run. Immutable after parsing."""

    filename: Path = Field(..., description="Binary dataset path")
    element_type: ElementType = Field(ElementType.INT, description="Dataset element type")
    rles: int = Field(1, ge=0, le=C_INT_MAX, description="Number of RLE passes")
    deltas: int = Field(0, ge=0, le=C_INT_MAX, description="Number of delta passes")
    bitpack: bool = Field(False, description="Enable bit-packing")
    size: int = Field(0, ge=0, description="Elements to compress (0 = whole file)")
    gpu: int = Field(0, ge=0, description="CUDA device ordinal")
    sort: bool = Field(False, description="Sort ascending before compressing")
    memory: bool = Field(False, description="Print memory-size diagnostics")
    verbose: bool = Field(False, description="Debug logging and output dump")

    model_config = ConfigDict(frozen=True)

    @field_validator("bitpack", mode="before")
    @classmethod
    def validate_bitpack(cls, v):
        """Accept only 0/1 (or booleans) for the bit-packing switch."""
        if isinstance(v, bool):
            return v
        if v in (0, 1):
            return bool(v)
        raise ValueError("bitpack must be 0 or 1")

    @property
    def cascaded_options(self) -> CascadedOptions:
        return CascadedOptions(num_rles=self.rles, num_deltas=self.deltas, use_bp=self.bitpack)


@dataclass(frozen=True)
class OptionSpec:
    """One command-line option.

    ``dest`` names the BenchmarkConfig field it fills. Options without an
    argument are boolean switches.
    """

    dest: str
    short: str
    long: str
    help: str
    takes_argument: bool = True
    default: Any = None
    value_type: Callable[[str], Any] = str
    choices: Optional[Tuple[str, ...]] = None
    aliases: Tuple[str, ...] = ()

    @property
    def flags(self) -> Tuple[str, ...]:
        return (self.short, self.long) + self.aliases


OPTION_TABLE: Tuple[OptionSpec, ...] = (
    OptionSpec("filename", "-f", "--filename", "Binary dataset filename (required).", aliases=("--file",)),
    OptionSpec("rles", "-r", "--rles", "Number of RLEs (default 1)", default=1, value_type=int),
    OptionSpec("deltas", "-d", "--deltas", "Number of Deltas (default 0)", default=0, value_type=int),
    OptionSpec("bitpack", "-b", "--bitpack", "Bitpacking enabled (default 0)", default=0, value_type=int),
    OptionSpec(
        "element_type", "-t", "--type", "Datatype (int8, short, int or long, default int)",
        default=ElementType.INT.value, choices=tuple(t.value for t in ElementType),
    ),
    OptionSpec("size", "-z", "--size", "Elements to compress (default entire file)", default=0, value_type=int),
    OptionSpec("gpu", "-g", "--gpu", "GPU device number (default 0)", default=0, value_type=int),
    OptionSpec("sort", "-s", "--sort", "Enable sort before compression (default off)", takes_argument=False, default=False),
    OptionSpec("memory", "-m", "--memory", "Output GPU memory allocation sizes (default off)", takes_argument=False, default=False),
    OptionSpec("verbose", "-v", "--verbose", "Debug logging and dump of decompressed data (default off)", takes_argument=False, default=False),
    OptionSpec("help", "-?", "--help", "Print this message", takes_argument=False, default=False),
)


def format_usage() -> str:
    """Render the usage text from OPTION_TABLE."""
    lines = [f"Usage: {PROGRAM_NAME} [OPTIONS]"]
    for option in OPTION_TABLE:
        lines.append(f"  {option.short + ', ' + option.long:<35} {option.help}")
    return "\n".join(lines)
