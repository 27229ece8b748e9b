"""JSON encoding of diagnostic packets and catalogs.

Packets are written one per line (JSON Lines); catalogs as one indented
document.  Keys are sorted so that identical inputs give byte-identical
output.  Non-finite values are encoded as ``null`` with ``"finite": false``
to keep every line strict JSON.
"""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, Optional

from ..diagnostics import (
    CATALOG_SCHEMA_ID,
    CATALOG_SCHEMA_VERSION,
    PACKET_SCHEMA_ID,
    PACKET_SCHEMA_VERSION,
    Cadence,
    DiagnosticCatalog,
    DiagnosticPacket,
    ProducerCatalog,
    ScalarDescriptor,
)
from ..errors import CatalogFormatError

__all__ = [
    "packet_to_dict",
    "packet_to_json_line",
    "catalog_to_dict",
    "catalog_from_dict",
    "write_catalog_json",
    "read_catalog_json",
    "catalog_from_drivers",
]

logger = logging.getLogger(__name__)


def _json_number(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def packet_to_dict(packet: DiagnosticPacket) -> Dict[str, Any]:
    scalars: Dict[str, Any] = {}
    for key, entry in packet.items():
        payload: Dict[str, Any] = {
            "value": _json_number(entry.value),
            "unit": entry.unit,
            "description": entry.description,
            "source_hint": entry.source_hint,
            "finite": entry.finite,
            "cadence": entry.cadence.value,
        }
        if entry.unit_ok is not None:
            payload["unit_ok"] = entry.unit_ok
        scalars[key] = payload
    doc: Dict[str, Any] = {
        "schema": PACKET_SCHEMA_ID,
        "schema_version": PACKET_SCHEMA_VERSION,
        "producer": packet.producer,
        "run_id": packet.run_id,
        "time": _json_number(packet.time),
        "step": int(packet.step),
        "scalars": scalars,
    }
    if packet.contract:
        doc["contract"] = list(packet.contract)
    if packet.warnings or packet.errors or packet.notes:
        doc["messages"] = {
            "warnings": list(packet.warnings),
            "errors": list(packet.errors),
            "notes": list(packet.notes),
        }
    return doc


def packet_to_json_line(packet: DiagnosticPacket) -> str:
    """Serialise ``packet`` as one JSON line (without the newline)."""

    return json.dumps(packet_to_dict(packet), sort_keys=True, allow_nan=False)


def _descriptor_to_dict(desc: ScalarDescriptor) -> Dict[str, Any]:
    return {
        "key": desc.key,
        "unit": desc.unit,
        "description": desc.description,
        "source_hint": desc.source_hint,
        "default_cadence": desc.default_cadence.value,
        "required": desc.required,
        "is_dimensionless": desc.is_dimensionless,
    }


def catalog_to_dict(catalog: DiagnosticCatalog) -> Dict[str, Any]:
    producers: Dict[str, Any] = {}
    for entry in catalog:
        payload: Dict[str, Any] = {"scalars": [_descriptor_to_dict(d) for d in entry.scalars]}
        if entry.contract_lines:
            payload["contract_lines"] = list(entry.contract_lines)
        if entry.profiles:
            payload["profiles"] = [{"name": p.name, "keys": list(p.keys)} for p in entry.profiles]
        producers[entry.producer] = payload
    return {
        "schema": CATALOG_SCHEMA_ID,
        "schema_version": CATALOG_SCHEMA_VERSION,
        "producers": producers,
    }


def write_catalog_json(catalog: DiagnosticCatalog, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(catalog_to_dict(catalog), fh, indent=2, sort_keys=True)
        fh.write("\n")
    logger.info("Wrote diagnostics catalog to %s", path)
    return path


def _producer_from_dict(name: str, payload: Any) -> ProducerCatalog:
    if not isinstance(payload, dict):
        raise CatalogFormatError(f"producer '{name}' must be an object")
    entry = ProducerCatalog(producer=name)
    scalars = payload.get("scalars", [])
    if not isinstance(scalars, list):
        raise CatalogFormatError(f"producer '{name}': 'scalars' must be an array")
    for item in scalars:
        if not isinstance(item, dict) or not item.get("key"):
            raise CatalogFormatError(f"producer '{name}': scalar descriptor without 'key'")
        try:
            cadence = Cadence.parse(item.get("default_cadence", Cadence.ALWAYS.value))
        except ValueError as exc:
            raise CatalogFormatError(f"producer '{name}': {exc}") from exc
        unit = str(item.get("unit", ""))
        entry.scalars.append(
            ScalarDescriptor(
                key=str(item["key"]),
                unit=unit,
                description=str(item.get("description", "")),
                source_hint=str(item.get("source_hint", "")),
                default_cadence=cadence,
                required=bool(item.get("required", False)),
                is_dimensionless=bool(item.get("is_dimensionless", unit == "")),
            )
        )
    for profile in payload.get("profiles", []) or []:
        if not isinstance(profile, dict) or "name" not in profile:
            raise CatalogFormatError(f"producer '{name}': profile without 'name'")
        entry.add_profile(str(profile["name"]), [str(k) for k in profile.get("keys", [])])
    entry.contract_lines = [str(line) for line in payload.get("contract_lines", []) or []]
    return entry


def catalog_from_dict(doc: Any) -> DiagnosticCatalog:
    """Build a :class:`DiagnosticCatalog` from a parsed JSON document.

    ``producers`` may be an object keyed by producer name or an array of
    objects each carrying a ``producer`` field.
    """

    if not isinstance(doc, dict):
        raise CatalogFormatError("catalog document must be a JSON object")
    schema = doc.get("schema")
    if schema is not None and schema != CATALOG_SCHEMA_ID:
        raise CatalogFormatError(f"unexpected catalog schema '{schema}'")
    version = doc.get("schema_version", CATALOG_SCHEMA_VERSION)
    if version != CATALOG_SCHEMA_VERSION:
        raise CatalogFormatError(f"unsupported catalog schema_version {version!r}")
    producers = doc.get("producers")
    catalog = DiagnosticCatalog()
    if isinstance(producers, dict):
        for name, payload in producers.items():
            catalog.add_producer(_producer_from_dict(str(name), payload))
    elif isinstance(producers, list):
        for payload in producers:
            if not isinstance(payload, dict) or not payload.get("producer"):
                raise CatalogFormatError("producer entries in an array need a 'producer' field")
            catalog.add_producer(_producer_from_dict(str(payload["producer"]), payload))
    else:
        raise CatalogFormatError("catalog 'producers' must be an object or an array")
    return catalog


def read_catalog_json(path: Path) -> DiagnosticCatalog:
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        try:
            doc = json.load(fh)
        except json.JSONDecodeError as exc:
            raise CatalogFormatError(f"{path}: invalid JSON ({exc})") from exc
    return catalog_from_dict(doc)


def catalog_from_drivers(drivers) -> DiagnosticCatalog:
    """Collect the catalogs of every diagnostics-capable driver."""

    catalog = DiagnosticCatalog()
    for drv in drivers:
        catalog.add_producer(drv.diagnostics_catalog())
    return catalog

