"""Unit contracts and the vocabulary of accepted unit strings."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Set

__all__ = ["UnitContract", "UnitVocabulary", "DEFAULT_UNITS"]

DEFAULT_UNITS = (
    "",
    "1/s",
    "K",
    "K/s",
    "cm",
    "cm^2",
    "erg/s",
    "erg/K",
    "km",
    "rad/s",
    "rad/s^2",
    "s",
)


@dataclass
class UnitContract:
    """Free-text statement of the units a driver reads and writes."""

    lines: List[str] = field(default_factory=list)

    def add(self, line: str) -> "UnitContract":
        self.lines.append(line)
        return self

    def __iter__(self):
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)


class UnitVocabulary:
    """Set of allowed unit strings.

    An empty vocabulary accepts every unit, and the empty unit (dimensionless)
    is always accepted.
    """

    def __init__(self, units: Iterable[str] = ()) -> None:
        self._units: Set[str] = set(units)

    @classmethod
    def default(cls) -> "UnitVocabulary":
        return cls(DEFAULT_UNITS)

    def add(self, unit: str) -> None:
        self._units.add(unit)

    def is_allowed(self, unit: str) -> bool:
        if not self._units or unit == "":
            return True
        return unit in self._units

    def __len__(self) -> int:
        return len(self._units)

    def units(self) -> List[str]:
        return sorted(self._units)
