"""Copy helpers between the flat ODE vector and the registered blocks.

All three functions walk every tag, skip the inactive ones, and re-check
that the block (or accumulator buffer) still has the size recorded in the
layout.  A mismatch means something was resized after the layout was
configured and is reported instead of being truncated.
"""
from __future__ import annotations

import numpy as np

from .accumulator import RHSAccumulator
from .errors import ConfigurationError
from .layout import StateLayout
from .state_vector import StateVector
from .tags import StateTag, tag_name

__all__ = [
    "pack_state_vector",
    "unpack_state_vector",
    "scatter_rhs_from_accumulator",
]


def _check_flat(buffer: np.ndarray | None, layout: StateLayout, label: str) -> np.ndarray:
    if buffer is None:
        raise ConfigurationError(f"{label}: flat buffer is None.")
    if len(buffer) < layout.total_size():
        raise ConfigurationError(
            f"{label}: flat buffer has {len(buffer)} entries, layout needs {layout.total_size()}."
        )
    return buffer


def pack_state_vector(state: StateVector, layout: StateLayout, y: np.ndarray) -> None:
    """Write every active block into ``y`` at its layout offset."""

    _check_flat(y, layout, "pack_state_vector")
    for tag in StateTag:
        if not layout.is_active(tag):
            continue
        block = state.get(tag)
        n = layout.block_size(tag)
        if block.size() != n:
            raise ConfigurationError(
                f"pack_state_vector: size mismatch for tag '{tag_name(tag)}' "
                f"(block {block.size()}, layout {n})."
            )
        off = layout.offset(tag)
        block.pack_to(y[off : off + n])


def unpack_state_vector(state: StateVector, layout: StateLayout, y: np.ndarray) -> None:
    """Overwrite every active block from ``y``."""

    _check_flat(y, layout, "unpack_state_vector")
    for tag in StateTag:
        if not layout.is_active(tag):
            continue
        block = state.get(tag)
        n = layout.block_size(tag)
        if block.size() != n:
            raise ConfigurationError(
                f"unpack_state_vector: size mismatch for tag '{tag_name(tag)}' "
                f"(block {block.size()}, layout {n})."
            )
        off = layout.offset(tag)
        block.unpack_from(y[off : off + n])


def scatter_rhs_from_accumulator(
    rhs: RHSAccumulator, layout: StateLayout, dydt: np.ndarray
) -> None:
    """Copy the per-tag derivative buffers into the flat ``dydt`` vector."""

    _check_flat(dydt, layout, "scatter_rhs_from_accumulator")
    for tag in StateTag:
        if not layout.is_active(tag):
            continue
        if not rhs.is_configured(tag):
            raise ConfigurationError(
                f"scatter_rhs_from_accumulator: tag '{tag_name(tag)}' is active in the layout "
                "but not configured in the accumulator."
            )
        n = layout.block_size(tag)
        buf = rhs.block(tag)
        if buf.size != n:
            raise ConfigurationError(
                f"scatter_rhs_from_accumulator: size mismatch for tag '{tag_name(tag)}' "
                f"(accumulator {buf.size}, layout {n})."
            )
        off = layout.offset(tag)
        dydt[off : off + n] = buf
