"""Raw binary dataset loading."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from cascaded_bench.config import ElementType
from cascaded_bench.exceptions import DatasetError
from cascaded_bench.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Dataset:
    """Host-resident flat array of fixed-width integers."""

    path: Path
    element_type: ElementType
    values: np.ndarray

    def __post_init__(self):
        self.values.setflags(write=False)

    def __len__(self) -> int:
        return int(self.values.size)

    @property
    def nbytes(self) -> int:
        return int(self.values.nbytes)

    def sorted(self) -> "Dataset":
        """Return an ascending copy; the multiset of values is unchanged."""
        return Dataset(self.path, self.element_type, np.sort(self.values, kind="stable"))


def load_dataset(
    path: Union[str, Path],
    element_type: ElementType,
    max_elements: int = 0,
) -> Dataset:
    """Load a headerless native-endian array from ``path``.

    Args:
        path: Binary file to read
        element_type: Element width/signedness to reinterpret the bytes as
        max_elements: Cap on the element count; 0 reads the whole file.
            A cap larger than the file is clamped to the available elements.

    Raises:
        DatasetError: path missing or unreadable, or no whole element to load
    """
    path = Path(path)
    if max_elements < 0:
        raise DatasetError(path, f"element cap must be >= 0, got {max_elements}")
    if not path.is_file():
        raise DatasetError(path, "no such file")
    try:
        file_bytes = path.stat().st_size
    except OSError as exc:
        raise DatasetError(path, f"cannot stat file ({exc.strerror})") from exc
    if file_bytes == 0:
        raise DatasetError(path, "file is empty")

    itemsize = element_type.itemsize
    available = file_bytes // itemsize
    if file_bytes % itemsize:
        logger.warning(
            f"{path}: ignoring {file_bytes % itemsize} trailing bytes "
            f"that do not form a whole {element_type.value} element"
        )

    count = available
    if max_elements:
        if max_elements > available:
            logger.warning(
                f"{path}: requested {max_elements} elements but file holds {available}; "
                f"clamping to {available}"
            )
        count = min(max_elements, available)
    if count == 0:
        raise DatasetError(path, f"file holds no whole {element_type.value} element ({file_bytes} bytes)")

    try:
        values = np.fromfile(path, dtype=element_type.dtype, count=count)
    except OSError as exc:
        raise DatasetError(path, f"cannot read file ({exc})") from exc
    if values.size != count:
        raise DatasetError(path, f"short read: expected {count} elements, got {values.size}")

    logger.debug(f"Loaded {count} {element_type.value} elements ({values.nbytes} bytes) from {path}")
    return Dataset(path, element_type, values)
