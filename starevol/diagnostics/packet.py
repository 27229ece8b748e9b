"""Timestamped scalar snapshots emitted by one producer."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

__all__ = [
    "PACKET_SCHEMA_ID",
    "PACKET_SCHEMA_VERSION",
    "Cadence",
    "ScalarEntry",
    "DiagnosticPacket",
]

PACKET_SCHEMA_ID = "starevol.diagnostics.packet"
PACKET_SCHEMA_VERSION = 1


class Cadence(str, Enum):
    """How often a scalar is written once it has been computed."""

    ALWAYS = "Always"
    ON_CHANGE = "OnChange"
    ONCE_PER_RUN = "OncePerRun"

    @classmethod
    def parse(cls, text: str) -> "Cadence":
        key = str(text).replace("_", "").replace(" ", "").lower()
        for item in cls:
            if item.value.lower() == key:
                return item
        raise ValueError(f"unknown cadence '{text}'")


@dataclass
class ScalarEntry:
    """One named scalar with its unit, description and provenance."""

    value: float
    unit: str = ""
    description: str = ""
    source_hint: str = ""
    cadence: Cadence = Cadence.ALWAYS
    unit_ok: Optional[bool] = None

    @property
    def finite(self) -> bool:
        return math.isfinite(self.value)


@dataclass
class DiagnosticPacket:
    """Scalars plus free-text annotations for a single producer at one instant.

    Scalars are keyed by name and iterate in key order; adding a key twice
    replaces the earlier entry.  Contract, warning, error and note lines keep
    their insertion order.
    """

    producer: str = ""
    time: float = 0.0
    step: int = 0
    run_id: str = ""
    _scalars: Dict[str, ScalarEntry] = field(default_factory=dict, init=False, repr=False)
    contract: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def add_scalar(
        self,
        key: str,
        value: float,
        unit: str = "",
        description: str = "",
        source: str = "",
        cadence: Cadence = Cadence.ALWAYS,
    ) -> None:
        self._scalars[key] = ScalarEntry(
            value=float(value),
            unit=unit,
            description=description,
            source_hint=source,
            cadence=Cadence(cadence),
        )

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_note(self, message: str) -> None:
        self.notes.append(message)

    def add_contract_line(self, line: str) -> None:
        self.contract.append(line)

    # ------------------------------------------------------------------
    # Scalar access
    # ------------------------------------------------------------------
    @property
    def scalars(self) -> Dict[str, ScalarEntry]:
        """Scalars as a new dict in key order."""

        return {key: self._scalars[key] for key in sorted(self._scalars)}

    def items(self) -> Iterator[Tuple[str, ScalarEntry]]:
        for key in sorted(self._scalars):
            yield key, self._scalars[key]

    def keys(self) -> List[str]:
        return sorted(self._scalars)

    def has_scalar(self, key: str) -> bool:
        return key in self._scalars

    def get(self, key: str) -> ScalarEntry:
        return self._scalars[key]

    def value(self, key: str, default: float = math.nan) -> float:
        entry = self._scalars.get(key)
        return default if entry is None else entry.value

    def remove_scalar(self, key: str) -> None:
        self._scalars.pop(key, None)

    def __len__(self) -> int:
        return len(self._scalars)

    def clear(self) -> None:
        self._scalars.clear()
        self.contract.clear()
        self.warnings.clear()
        self.errors.clear()
        self.notes.clear()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate_basic(self) -> None:
        """Record an error per non-finite scalar and warn on an empty producer."""

        for key, entry in self.items():
            if not entry.finite:
                self.add_error(f"Non-finite scalar: '{key}'")
        if not self.producer:
            self.add_warning("DiagnosticPacket producer is empty.")

    def validate_against(self, catalog) -> None:
        """Compare the scalar keys with a :class:`ProducerCatalog`.

        Missing required keys become errors; keys the catalog does not
        declare become warnings.
        """

        declared = {desc.key: desc for desc in catalog.scalars}
        for key, desc in declared.items():
            if desc.required and key not in self._scalars:
                self.add_error(f"Missing required scalar: '{key}'")
        for key in self.keys():
            if key not in declared:
                self.add_warning(f"Scalar '{key}' is not declared in the catalog.")
