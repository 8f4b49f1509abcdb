"""Device selection, scoped device buffers and the execution stream.

Buffers are uint8 torch tensors owned by the scope that allocated them. The
raw device address (``DeviceBuffer.ptr``) is what the compression engine
sees.
"""

from __future__ import annotations

import warnings
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

import numpy as np
import torch

from cascaded_bench.exceptions import (
    CodecOperationError,
    DeviceSelectionError,
    InsufficientDeviceMemoryError,
)
from cascaded_bench.logger import get_logger

logger = get_logger(__name__)


def select_device(index: int) -> torch.device:
    """Make CUDA device ``index`` current and return it."""
    if not torch.cuda.is_available():
        raise DeviceSelectionError(f"cannot select GPU {index}: CUDA is not available", index)
    count = torch.cuda.device_count()
    if not 0 <= index < count:
        raise DeviceSelectionError(
            f"cannot select GPU {index}: {count} CUDA device(s) visible", index
        )
    try:
        torch.cuda.set_device(index)
    except RuntimeError as exc:
        raise DeviceSelectionError(f"cannot select GPU {index}: {exc}", index) from exc
    logger.debug(f"Selected GPU {index}: {torch.cuda.get_device_name(index)}")
    return torch.device("cuda", index)


class DeviceBuffer:
    """A device allocation: byte tensor plus its name for diagnostics."""

    def __init__(self, name: str, tensor: torch.Tensor):
        self.name = name
        self._tensor: Optional[torch.Tensor] = tensor

    @property
    def tensor(self) -> torch.Tensor:
        if self._tensor is None:
            raise RuntimeError(f"device buffer '{self.name}' used after release")
        return self._tensor

    @property
    def ptr(self) -> int:
        return self.tensor.data_ptr()

    @property
    def nbytes(self) -> int:
        return self.tensor.numel()

    @property
    def released(self) -> bool:
        return self._tensor is None

    def release(self) -> None:
        if self._tensor is None:
            raise RuntimeError(f"device buffer '{self.name}' released twice")
        self._tensor = None

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.nbytes} B"
        return f"DeviceBuffer({self.name!r}, {state})"


class ExecutionStream:
    """The single stream all asynchronous codec work is issued on."""

    def __init__(self, device: torch.device):
        self.device = device
        self._stream = torch.cuda.Stream(device=device) if device.type == "cuda" else None

    @property
    def handle(self) -> int:
        """Raw cudaStream_t value (0 for the host stand-in)."""
        return self._stream.cuda_stream if self._stream is not None else 0

    def synchronize(self) -> None:
        """Block until all work issued on this stream has completed."""
        if self._stream is None:
            return
        try:
            self._stream.synchronize()
        except RuntimeError as exc:
            raise CodecOperationError(f"stream_synchronize not successful ({exc})", "stream_synchronize") from exc


class DeviceMemoryManager:
    """Scoped device allocations with a pre-flight free-memory check."""

    def __init__(self, device: torch.device):
        self.device = device
        self._live: List[DeviceBuffer] = []

    @property
    def live_buffers(self) -> Tuple[str, ...]:
        return tuple(buf.name for buf in self._live)

    def free_bytes(self) -> int:
        """Bytes the next allocation can use: free on the device plus torch's idle cache."""
        free, _total = torch.cuda.mem_get_info(self.device)
        cached = torch.cuda.memory_reserved(self.device) - torch.cuda.memory_allocated(self.device)
        return int(free + cached)

    def require(self, nbytes: int, what: str) -> None:
        """Fail fast if ``nbytes`` does not fit in free device memory."""
        free = self.free_bytes()
        logger.debug(f"{what}: need {nbytes} B, {free} B free")
        if nbytes > free:
            raise InsufficientDeviceMemoryError(
                f"Insufficient GPU memory for {what}: need {nbytes} B, {free} B free",
                required_bytes=nbytes,
                free_bytes=free,
            )

    def create_stream(self) -> ExecutionStream:
        return ExecutionStream(self.device)

    def synchronize(self) -> None:
        if self.device.type != "cuda":
            return
        try:
            torch.cuda.synchronize(self.device)
        except RuntimeError as exc:
            raise CodecOperationError(f"device_synchronize not successful ({exc})", "device_synchronize") from exc

    def _allocate_tensor(self, nbytes: int) -> torch.Tensor:
        return torch.empty(nbytes, dtype=torch.uint8, device=self.device)

    @contextmanager
    def allocate(self, nbytes: int, name: str) -> Iterator[DeviceBuffer]:
        """Allocate ``nbytes`` for the duration of the ``with`` block."""
        try:
            tensor = self._allocate_tensor(nbytes)
        except torch.cuda.OutOfMemoryError as exc:
            raise InsufficientDeviceMemoryError(
                f"GPU allocation of {nbytes} B for {name} failed: {exc}",
                required_bytes=nbytes,
            ) from exc
        buffer = DeviceBuffer(name, tensor)
        self._live.append(buffer)
        logger.debug(f"Allocated {name}: {nbytes} B")
        try:
            yield buffer
        finally:
            self._live.remove(buffer)
            buffer.release()
            logger.debug(f"Released {name}")

    @contextmanager
    def stage(self, host: np.ndarray, name: str) -> Iterator[DeviceBuffer]:
        """Allocate a buffer and copy ``host`` into it before yielding."""
        raw = np.ascontiguousarray(host).view(np.uint8)
        with self.allocate(raw.nbytes, name) as buffer:
            self.copy_to_device(raw, buffer)
            yield buffer

    def copy_to_device(self, raw: np.ndarray, buffer: DeviceBuffer) -> None:
        """Synchronous host-to-device copy of a uint8 array."""
        target = buffer.tensor[: raw.nbytes]
        try:
            with warnings.catch_warnings():
                # datasets are read-only; the copy only reads from them
                warnings.filterwarnings("ignore", message="The given NumPy array is not writable")
                source = torch.from_numpy(raw)
            target.copy_(source)
        except RuntimeError as exc:
            raise CodecOperationError(f"copy_to_device not successful ({exc})", "copy_to_device") from exc
        self.synchronize()

    def to_host(self, buffer: DeviceBuffer, dtype: np.dtype, nbytes: int) -> np.ndarray:
        """Synchronous device-to-host copy of the first ``nbytes`` as ``dtype``."""
        if nbytes > buffer.nbytes:
            raise ValueError(f"cannot copy {nbytes} B out of {buffer.name} ({buffer.nbytes} B)")
        nbytes -= nbytes % np.dtype(dtype).itemsize
        source = buffer.tensor[:nbytes]
        try:
            host = source.to("cpu", copy=True).numpy()
        except RuntimeError as exc:
            raise CodecOperationError(f"copy_to_host not successful ({exc})", "copy_to_host") from exc
        return host.view(dtype)
