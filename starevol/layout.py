"""Offset/size partition of the flat ODE vector into per-tag ranges."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .errors import ConfigurationError
from .state import StateBlock
from .state_vector import StateVector
from .tags import NUM_STATE_TAGS, StateTag, tag_name

__all__ = ["LayoutBlock", "StateLayout"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutBlock:
    """Range occupied by one tag in the flat vector."""

    offset: int = 0
    size: int = 0
    active: bool = False

    @property
    def stop(self) -> int:
        return self.offset + self.size


class StateLayout:
    """Contiguous layout of the active state blocks.

    :meth:`configure` walks the requested tags in order and assigns each
    registered block the next free range, so the active ranges partition
    ``[0, total_size())`` in that order.
    """

    def __init__(self) -> None:
        self._blocks: List[LayoutBlock] = [LayoutBlock()] * NUM_STATE_TAGS
        self._order: Tuple[StateTag, ...] = ()
        self._total = 0
        self._state: StateVector | None = None

    def configure(self, state: StateVector, tags: Iterable[StateTag]) -> None:
        """Compute offsets for ``tags`` in the given order.

        Parameters
        ----------
        state:
            Registry holding the blocks; every listed tag must be registered
            and already resized.
        tags:
            Ordered tags to activate.  Duplicates are rejected.
        """

        ordered = [StateTag(tag) for tag in tags]
        seen = set()
        for tag in ordered:
            if tag in seen:
                raise ConfigurationError(f"tag '{tag_name(tag)}' listed twice in layout order.")
            seen.add(tag)

        blocks = [LayoutBlock()] * NUM_STATE_TAGS
        offset = 0
        for tag in ordered:
            size = state.get(tag).size()
            if size == 0:
                raise ConfigurationError(
                    f"tag '{tag_name(tag)}' has zero components; resize the block before configuring the layout."
                )
            blocks[int(tag)] = LayoutBlock(offset=offset, size=size, active=True)
            offset += size

        self._blocks = blocks
        self._order = tuple(ordered)
        self._total = offset
        self._state = state
        logger.debug(
            "layout configured: %s (total %d)",
            ", ".join(f"{tag_name(t)}[{blocks[int(t)].offset}:{blocks[int(t)].stop}]" for t in ordered),
            offset,
        )

    def _active_entry(self, tag: StateTag) -> LayoutBlock:
        entry = self._blocks[int(tag)]
        if not entry.active:
            raise ConfigurationError(f"tag '{tag_name(tag)}' is not active in the layout.")
        return entry

    def is_active(self, tag: StateTag) -> bool:
        return self._blocks[int(tag)].active

    def offset(self, tag: StateTag) -> int:
        return self._active_entry(tag).offset

    def block_size(self, tag: StateTag) -> int:
        return self._active_entry(tag).size

    def entry(self, tag: StateTag) -> LayoutBlock:
        return self._blocks[int(tag)]

    def get_block(self, tag: StateTag) -> StateBlock:
        """Return the registered block behind an active tag."""

        self._active_entry(tag)
        if self._state is None:
            raise ConfigurationError("layout has not been configured.")
        return self._state.get(tag)

    def total_size(self) -> int:
        return self._total

    @property
    def order(self) -> Tuple[StateTag, ...]:
        return self._order

    def active_tags(self) -> List[StateTag]:
        """Active tags sorted by offset."""

        return list(self._order)
