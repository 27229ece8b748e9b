"""Static schema of the scalars each producer may emit."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from .packet import Cadence

__all__ = [
    "CATALOG_SCHEMA_ID",
    "CATALOG_SCHEMA_VERSION",
    "ScalarDescriptor",
    "Profile",
    "ProducerCatalog",
    "DiagnosticCatalog",
]

CATALOG_SCHEMA_ID = "starevol.diagnostics.catalog"
CATALOG_SCHEMA_VERSION = 1


@dataclass
class ScalarDescriptor:
    """Schema entry for one scalar (no value)."""

    key: str
    unit: str = ""
    description: str = ""
    source_hint: str = ""
    default_cadence: Cadence = Cadence.ALWAYS
    required: bool = False
    is_dimensionless: bool = False


@dataclass
class Profile:
    """Named, ordered selection of scalar keys used to pick output columns."""

    name: str
    keys: List[str] = field(default_factory=list)


@dataclass
class ProducerCatalog:
    """Everything one producer may emit."""

    producer: str
    scalars: List[ScalarDescriptor] = field(default_factory=list)
    profiles: List[Profile] = field(default_factory=list)
    contract_lines: List[str] = field(default_factory=list)

    def add_scalar(
        self,
        key: str,
        unit: str = "",
        description: str = "",
        source_hint: str = "",
        default_cadence: Cadence = Cadence.ALWAYS,
        required: bool = False,
    ) -> ScalarDescriptor:
        desc = ScalarDescriptor(
            key=key,
            unit=unit,
            description=description,
            source_hint=source_hint,
            default_cadence=Cadence(default_cadence),
            required=required,
            is_dimensionless=(unit == ""),
        )
        self.scalars.append(desc)
        return desc

    def add_profile(self, name: str, keys: List[str]) -> Profile:
        profile = Profile(name=name, keys=list(keys))
        self.profiles.append(profile)
        return profile

    def find_scalar(self, key: str) -> Optional[ScalarDescriptor]:
        for desc in self.scalars:
            if desc.key == key:
                return desc
        return None

    def find_profile(self, name: str) -> Optional[Profile]:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None


class DiagnosticCatalog:
    """Map from producer name to :class:`ProducerCatalog`, ordered by name."""

    def __init__(self) -> None:
        self._producers: Dict[str, ProducerCatalog] = {}

    def producer(self, name: str) -> ProducerCatalog:
        """Return the entry for ``name``, creating it if absent."""

        entry = self._producers.get(name)
        if entry is None:
            entry = ProducerCatalog(producer=name)
            self._producers[name] = entry
        return entry

    def add_producer(self, catalog: ProducerCatalog) -> None:
        self._producers[catalog.producer] = catalog

    def add_scalar(self, producer: str, descriptor: ScalarDescriptor) -> None:
        self.producer(producer).scalars.append(descriptor)

    def add_profile(self, producer: str, name: str, keys: List[str]) -> None:
        self.producer(producer).add_profile(name, keys)

    def find(self, producer: str) -> Optional[ProducerCatalog]:
        return self._producers.get(producer)

    def producers(self) -> List[str]:
        return sorted(self._producers)

    def __iter__(self) -> Iterator[ProducerCatalog]:
        for name in sorted(self._producers):
            yield self._producers[name]

    def __len__(self) -> int:
        return len(self._producers)

    def __contains__(self, producer: str) -> bool:
        return producer in self._producers
