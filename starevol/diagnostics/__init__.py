"""Diagnostics data model: packets, catalogs and unit contracts."""
from .catalog import (
    CATALOG_SCHEMA_ID,
    CATALOG_SCHEMA_VERSION,
    DiagnosticCatalog,
    ProducerCatalog,
    Profile,
    ScalarDescriptor,
)
from .packet import (
    PACKET_SCHEMA_ID,
    PACKET_SCHEMA_VERSION,
    Cadence,
    DiagnosticPacket,
    ScalarEntry,
)
from .units import UnitContract, UnitVocabulary

__all__ = [
    "CATALOG_SCHEMA_ID",
    "CATALOG_SCHEMA_VERSION",
    "PACKET_SCHEMA_ID",
    "PACKET_SCHEMA_VERSION",
    "Cadence",
    "DiagnosticCatalog",
    "DiagnosticPacket",
    "ProducerCatalog",
    "Profile",
    "ScalarDescriptor",
    "ScalarEntry",
    "UnitContract",
    "UnitVocabulary",
]
