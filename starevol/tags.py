"""Identifiers for the physical sub-states of the evolved system."""
from __future__ import annotations

from enum import IntEnum
from typing import Union

from .errors import ConfigurationError

__all__ = ["StateTag", "NUM_STATE_TAGS", "tag_name", "parse_tag"]


class StateTag(IntEnum):
    """Closed set of state-block identifiers.

    The integer values double as indices into fixed-length per-tag tables
    (layout entries, accumulator buffers), so they must stay dense and start
    at zero.
    """

    SPIN = 0
    THERMAL = 1
    CHEM = 2
    BNV = 3
    STRUCTURE = 4
    MAGNETIC = 5
    CUSTOM = 6

    @property
    def label(self) -> str:
        return _LABELS[self]

    def __str__(self) -> str:
        return self.label


_LABELS = {
    StateTag.SPIN: "Spin",
    StateTag.THERMAL: "Thermal",
    StateTag.CHEM: "Chem",
    StateTag.BNV: "BNV",
    StateTag.STRUCTURE: "Structure",
    StateTag.MAGNETIC: "Magnetic",
    StateTag.CUSTOM: "Custom",
}

NUM_STATE_TAGS: int = len(StateTag)


def tag_name(tag: Union[StateTag, int]) -> str:
    """Return the human readable label for ``tag`` (``"Unknown"`` if invalid)."""

    try:
        return StateTag(tag).label
    except ValueError:
        return "Unknown"


def parse_tag(text: str) -> StateTag:
    """Resolve a tag from its label or enum name, case-insensitively."""

    key = text.strip().lower()
    for tag in StateTag:
        if key in (tag.label.lower(), tag.name.lower()):
            return tag
    raise ConfigurationError(f"unknown state tag '{text}'")

