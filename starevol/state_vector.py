"""Registry mapping state tags to caller-owned state blocks."""
from __future__ import annotations

from typing import List, Optional, Type, TypeVar

from .errors import ConfigurationError
from .state import BNVState, ChemState, SpinState, StateBlock, ThermalState
from .tags import NUM_STATE_TAGS, StateTag, tag_name

__all__ = ["StateVector"]

_BlockT = TypeVar("_BlockT", bound=StateBlock)


class StateVector:
    """Non-owning lookup table from :class:`StateTag` to :class:`StateBlock`.

    The blocks belong to the application; the registry only keeps
    references, and registering a tag twice replaces the earlier block.
    """

    def __init__(self) -> None:
        self._blocks: List[Optional[StateBlock]] = [None] * NUM_STATE_TAGS

    def register(self, tag: StateTag, block: StateBlock) -> None:
        if not isinstance(block, StateBlock):
            raise ConfigurationError(
                f"cannot register {type(block).__name__} under tag '{tag_name(tag)}'; "
                "expected a StateBlock."
            )
        self._blocks[int(tag)] = block

    def is_registered(self, tag: StateTag) -> bool:
        return self._blocks[int(tag)] is not None

    def get(self, tag: StateTag) -> StateBlock:
        block = self._blocks[int(tag)]
        if block is None:
            raise ConfigurationError(f"requested tag '{tag_name(tag)}' is not registered.")
        return block

    def registered_tags(self) -> List[StateTag]:
        return [StateTag(i) for i, block in enumerate(self._blocks) if block is not None]

    def _typed(self, tag: StateTag, cls: Type[_BlockT]) -> _BlockT:
        block = self.get(tag)
        if not isinstance(block, cls):
            raise ConfigurationError(
                f"tag '{tag_name(tag)}' holds {type(block).__name__}, expected {cls.__name__}."
            )
        return block

    def spin(self) -> SpinState:
        return self._typed(StateTag.SPIN, SpinState)

    def thermal(self) -> ThermalState:
        return self._typed(StateTag.THERMAL, ThermalState)

    def chem(self) -> ChemState:
        return self._typed(StateTag.CHEM, ChemState)

    def bnv(self) -> BNVState:
        return self._typed(StateTag.BNV, BNVState)

    def __contains__(self, tag: StateTag) -> bool:
        return self.is_registered(tag)

    def __repr__(self) -> str:
        names = ", ".join(tag_name(tag) for tag in self.registered_tags())
        return f"StateVector([{names}])"
