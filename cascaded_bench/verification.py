"""Bit-exact round-trip verification."""

from __future__ import annotations

import numpy as np

from cascaded_bench.exceptions import VerificationError


def verify_roundtrip(original: np.ndarray, decompressed_bytes: int, restored: np.ndarray) -> None:
    """Require the restored data to match ``original`` exactly.

    Args:
        original: Host dataset that was compressed
        decompressed_bytes: Output size reported by the engine
        restored: Decompressed data copied back to the host

    Raises:
        VerificationError: size mismatch, or any differing element
    """
    if decompressed_bytes != original.nbytes:
        raise VerificationError(
            f"Decompressed result incorrect size: expected {original.nbytes} B, got {decompressed_bytes} B",
            reason="size",
        )
    if restored.dtype != original.dtype or restored.size != original.size:
        raise VerificationError(
            f"Decompressed result has {restored.size} {restored.dtype} elements, "
            f"expected {original.size} {original.dtype}",
            reason="size",
        )

    mismatches = np.flatnonzero(restored != original)
    if mismatches.size:
        first = int(mismatches[0])
        raise VerificationError(
            f"Decompressed data does not match input: {mismatches.size} of {original.size} elements differ, "
            f"first at index {first} (expected {original[first]}, got {restored[first]})",
            reason="content",
            first_mismatch=first,
        )
