"""Call surface into the nvCOMP Cascaded compression engine.

``CascadedEngine`` mirrors the engine's C entry points: every call returns an
integer status and writes its results through ``ctypes`` out-parameters.
``NvcompCascadedEngine`` binds those entry points from ``libnvcomp`` and
``CascadedCodec`` sequences them for the benchmark, turning any non-success
status into a ``CodecOperationError``.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import os
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from cascaded_bench.config import C_INT_MAX, CascadedOptions, ElementType
from cascaded_bench.device import DeviceBuffer, ExecutionStream
from cascaded_bench.exceptions import CodecOperationError
from cascaded_bench.logger import get_logger

logger = get_logger(__name__)

NVCOMP_SUCCESS = 0

STATUS_NAMES = {
    0: "nvcompSuccess",
    10: "nvcompErrorInvalidValue",
    11: "nvcompErrorNotSupported",
    1000: "nvcompErrorCudaError",
    10000: "nvcompErrorInternal",
}


def status_name(status: int) -> str:
    return STATUS_NAMES.get(status, f"status {status}")


class CascadedEngine(Protocol):
    """The eight engine entry points the benchmark drives."""

    def compress_get_temp_size(
        self, in_ptr: int, in_bytes: int, in_type: int, opts: CascadedOptions,
        temp_bytes: ctypes.c_size_t,
    ) -> int: ...

    def compress_get_output_size(
        self, in_ptr: int, in_bytes: int, in_type: int, opts: CascadedOptions,
        temp_ptr: int, temp_bytes: int, out_bytes: ctypes.c_size_t, exact: bool,
    ) -> int: ...

    def compress_async(
        self, in_ptr: int, in_bytes: int, in_type: int, opts: CascadedOptions,
        temp_ptr: int, temp_bytes: int, out_ptr: int, out_bytes: ctypes.c_size_t,
        stream: int,
    ) -> int: ...

    def decompress_get_metadata(
        self, in_ptr: int, in_bytes: int, metadata: ctypes.c_void_p, stream: int,
    ) -> int: ...

    def decompress_get_temp_size(self, metadata: int, temp_bytes: ctypes.c_size_t) -> int: ...

    def decompress_get_output_size(self, metadata: int, out_bytes: ctypes.c_size_t) -> int: ...

    def decompress_async(
        self, in_ptr: int, in_bytes: int, temp_ptr: int, temp_bytes: int,
        metadata: int, out_ptr: int, out_bytes: int, stream: int,
    ) -> int: ...

    def decompress_destroy_metadata(self, metadata: int) -> None: ...


class _CascadedFormatOpts(ctypes.Structure):
    _fields_ = [
        ("num_RLEs", ctypes.c_int),
        ("num_deltas", ctypes.c_int),
        ("use_bp", ctypes.c_int),
    ]

    @classmethod
    def from_options(cls, opts: CascadedOptions) -> "_CascadedFormatOpts":
        for field in ("num_rles", "num_deltas"):
            if not 0 <= getattr(opts, field) <= C_INT_MAX:
                raise ValueError(f"{field}={getattr(opts, field)} does not fit a C int")
        return cls(opts.num_rles, opts.num_deltas, int(opts.use_bp))


def find_nvcomp_library() -> str:
    """Resolve the nvCOMP shared library, honoring NVCOMP_LIBRARY."""
    override = os.environ.get("NVCOMP_LIBRARY")
    if override:
        return override
    return ctypes.util.find_library("nvcomp") or "libnvcomp.so"


class NvcompCascadedEngine:
    """ctypes binding of the nvCOMP Cascaded C API."""

    def __init__(self, lib: ctypes.CDLL):
        self._lib = lib
        size_p = ctypes.POINTER(ctypes.c_size_t)
        opts_p = ctypes.POINTER(_CascadedFormatOpts)
        vp = ctypes.c_void_p
        sz = ctypes.c_size_t
        self._bind("nvcompCascadedCompressGetTempSize", [vp, sz, ctypes.c_int, opts_p, size_p])
        self._bind(
            "nvcompCascadedCompressGetOutputSize",
            [vp, sz, ctypes.c_int, opts_p, vp, sz, size_p, ctypes.c_int],
        )
        self._bind(
            "nvcompCascadedCompressAsync",
            [vp, sz, ctypes.c_int, opts_p, vp, sz, vp, size_p, vp],
        )
        self._bind("nvcompDecompressGetMetadata", [vp, sz, ctypes.POINTER(vp), vp])
        self._bind("nvcompDecompressGetTempSize", [vp, size_p])
        self._bind("nvcompDecompressGetOutputSize", [vp, size_p])
        self._bind("nvcompDecompressAsync", [vp, sz, vp, sz, vp, vp, sz, vp])
        self._bind("nvcompDecompressDestroyMetadata", [vp], restype=None)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "NvcompCascadedEngine":
        path = path or find_nvcomp_library()
        try:
            lib = ctypes.CDLL(path)
        except OSError as exc:
            raise CodecOperationError(f"cannot load nvCOMP library '{path}': {exc}", call="load_library") from exc
        try:
            engine = cls(lib)
        except AttributeError as exc:
            raise CodecOperationError(
                f"'{path}' does not export the nvCOMP Cascaded API: {exc}", call="load_library"
            ) from exc
        logger.debug(f"Loaded nvCOMP from {path}")
        return engine

    def _bind(self, symbol: str, argtypes, restype=ctypes.c_int) -> None:
        func = getattr(self._lib, symbol)
        func.argtypes = argtypes
        func.restype = restype

    def compress_get_temp_size(self, in_ptr, in_bytes, in_type, opts, temp_bytes):
        fmt = _CascadedFormatOpts.from_options(opts)
        return self._lib.nvcompCascadedCompressGetTempSize(
            in_ptr, in_bytes, in_type, ctypes.byref(fmt), ctypes.byref(temp_bytes)
        )

    def compress_get_output_size(self, in_ptr, in_bytes, in_type, opts, temp_ptr, temp_bytes, out_bytes, exact):
        fmt = _CascadedFormatOpts.from_options(opts)
        return self._lib.nvcompCascadedCompressGetOutputSize(
            in_ptr, in_bytes, in_type, ctypes.byref(fmt), temp_ptr, temp_bytes,
            ctypes.byref(out_bytes), int(exact),
        )

    def compress_async(self, in_ptr, in_bytes, in_type, opts, temp_ptr, temp_bytes, out_ptr, out_bytes, stream):
        fmt = _CascadedFormatOpts.from_options(opts)
        return self._lib.nvcompCascadedCompressAsync(
            in_ptr, in_bytes, in_type, ctypes.byref(fmt), temp_ptr, temp_bytes,
            out_ptr, ctypes.byref(out_bytes), stream,
        )

    def decompress_get_metadata(self, in_ptr, in_bytes, metadata, stream):
        return self._lib.nvcompDecompressGetMetadata(in_ptr, in_bytes, ctypes.byref(metadata), stream)

    def decompress_get_temp_size(self, metadata, temp_bytes):
        return self._lib.nvcompDecompressGetTempSize(metadata, ctypes.byref(temp_bytes))

    def decompress_get_output_size(self, metadata, out_bytes):
        return self._lib.nvcompDecompressGetOutputSize(metadata, ctypes.byref(out_bytes))

    def decompress_async(self, in_ptr, in_bytes, temp_ptr, temp_bytes, metadata, out_ptr, out_bytes, stream):
        return self._lib.nvcompDecompressAsync(
            in_ptr, in_bytes, temp_ptr, temp_bytes, metadata, out_ptr, out_bytes, stream
        )

    def decompress_destroy_metadata(self, metadata):
        self._lib.nvcompDecompressDestroyMetadata(metadata)


class CascadedCodec:
    """Sequences engine calls for one element type and option set."""

    def __init__(self, engine: CascadedEngine, element_type: ElementType, options: CascadedOptions):
        self.engine = engine
        self.element_type = element_type
        self.options = options

    def _check(self, call: str, status: int) -> None:
        if status != NVCOMP_SUCCESS:
            raise CodecOperationError(f"{call} not successful ({status_name(status)})", call=call, status=status)

    # ------------------------------------------------------------------ compress
    def compress_temp_size(self, data: DeviceBuffer) -> int:
        temp_bytes = ctypes.c_size_t(0)
        status = self.engine.compress_get_temp_size(
            data.ptr, data.nbytes, self.element_type.nvcomp_type, self.options, temp_bytes
        )
        self._check("compress_get_temp_size", status)
        return temp_bytes.value

    def compress_output_size(self, data: DeviceBuffer, temp: DeviceBuffer) -> int:
        out_bytes = ctypes.c_size_t(0)
        status = self.engine.compress_get_output_size(
            data.ptr, data.nbytes, self.element_type.nvcomp_type, self.options,
            temp.ptr, temp.nbytes, out_bytes, False,
        )
        self._check("compress_get_output_size", status)
        return out_bytes.value

    def compress_async(
        self, data: DeviceBuffer, temp: DeviceBuffer, out: DeviceBuffer, stream: ExecutionStream
    ) -> ctypes.c_size_t:
        """Issue compression. The returned size is valid only after the stream syncs."""
        out_bytes = ctypes.c_size_t(out.nbytes)
        status = self.engine.compress_async(
            data.ptr, data.nbytes, self.element_type.nvcomp_type, self.options,
            temp.ptr, temp.nbytes, out.ptr, out_bytes, stream.handle,
        )
        self._check("compress_async", status)
        return out_bytes

    # ---------------------------------------------------------------- decompress
    @contextmanager
    def metadata(self, compressed: DeviceBuffer, nbytes: int, stream: ExecutionStream) -> Iterator[int]:
        """Extract the metadata descriptor; destroyed exactly once on exit."""
        handle = ctypes.c_void_p()
        status = self.engine.decompress_get_metadata(compressed.ptr, nbytes, handle, stream.handle)
        self._check("decompress_get_metadata", status)
        try:
            yield handle.value
        finally:
            self.engine.decompress_destroy_metadata(handle.value)
            logger.debug("Destroyed decompression metadata")

    def decompress_temp_size(self, metadata: int) -> int:
        temp_bytes = ctypes.c_size_t(0)
        self._check("decompress_get_temp_size", self.engine.decompress_get_temp_size(metadata, temp_bytes))
        return temp_bytes.value

    def decompress_output_size(self, metadata: int) -> int:
        out_bytes = ctypes.c_size_t(0)
        self._check("decompress_get_output_size", self.engine.decompress_get_output_size(metadata, out_bytes))
        return out_bytes.value

    def decompress_async(
        self, compressed: DeviceBuffer, nbytes: int, temp: DeviceBuffer, metadata: int,
        out: DeviceBuffer, stream: ExecutionStream,
    ) -> None:
        status = self.engine.decompress_async(
            compressed.ptr, nbytes, temp.ptr, temp.nbytes, metadata, out.ptr, out.nbytes, stream.handle
        )
        self._check("decompress_async", status)
