"""Per-tag additive write buffers for derivative contributions."""
from __future__ import annotations

from typing import List, Optional

import numpy as np

from .errors import ConfigurationError
from .tags import NUM_STATE_TAGS, StateTag, tag_name

__all__ = ["RHSAccumulator"]


class RHSAccumulator:
    """Collects driver contributions to ``dY/dt`` one tag at a time.

    Buffers must be sized with :meth:`configure` before use.  Drivers only
    ever add to them; :meth:`clear` zeroes every configured buffer at the
    start of each evaluation.
    """

    def __init__(self) -> None:
        self._buffers: List[Optional[np.ndarray]] = [None] * NUM_STATE_TAGS

    def configure(self, tag: StateTag, size: int) -> None:
        """(Re)allocate a zero-filled buffer of ``size`` values for ``tag``."""

        size = int(size)
        if size < 0:
            raise ConfigurationError(
                f"accumulator size for tag '{tag_name(tag)}' must be non-negative (got {size})."
            )
        self._buffers[int(tag)] = np.zeros(size, dtype=float)

    def is_configured(self, tag: StateTag) -> bool:
        return self._buffers[int(tag)] is not None

    def _buffer(self, tag: StateTag) -> np.ndarray:
        buf = self._buffers[int(tag)]
        if buf is None:
            raise ConfigurationError(f"accumulator tag '{tag_name(tag)}' is not configured.")
        return buf

    def size(self, tag: StateTag) -> int:
        return int(self._buffer(tag).size)

    def add_to(self, tag: StateTag, component: int, value: float) -> None:
        """Add ``value`` to ``component`` of the buffer for ``tag``."""

        buf = self._buffer(tag)
        if not 0 <= component < buf.size:
            raise ConfigurationError(
                f"accumulator index {component} out of range for tag '{tag_name(tag)}' "
                f"(size {buf.size})."
            )
        buf[component] += value

    def clear(self) -> None:
        for buf in self._buffers:
            if buf is not None:
                buf.fill(0.0)

    def block(self, tag: StateTag) -> np.ndarray:
        """Return the raw buffer for ``tag`` (mutable)."""

        return self._buffer(tag)

    def view(self, tag: StateTag) -> np.ndarray:
        """Return a read-only view of the buffer for ``tag``."""

        out = self._buffer(tag).view()
        out.flags.writeable = False
        return out

    def configured_tags(self) -> List[StateTag]:
        return [StateTag(i) for i, buf in enumerate(self._buffers) if buf is not None]
