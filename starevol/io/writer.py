"""Output helper utilities.

Thin wrappers around :mod:`pandas`, :mod:`pyarrow` and :mod:`json` used to
persist run products: Parquet copies of sampled tables, JSON summaries and
metadata sidecars.  Every function creates the destination directory when
necessary.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Optional

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

__all__ = [
    "write_parquet",
    "write_table_parquet",
    "write_summary",
    "write_run_config",
    "write_sidecar",
]


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _with_metadata(
    table: pa.Table,
    units: Optional[Mapping[str, str]],
    definitions: Optional[Mapping[str, str]],
) -> pa.Table:
    metadata = dict(table.schema.metadata or {})
    if units:
        metadata[b"units"] = json.dumps(dict(units), sort_keys=True).encode("utf-8")
    if definitions:
        metadata[b"definitions"] = json.dumps(dict(definitions), sort_keys=True).encode("utf-8")
    return table.replace_schema_metadata(metadata)


def write_table_parquet(
    table: pa.Table,
    path: Path,
    *,
    units: Optional[Mapping[str, str]] = None,
    definitions: Optional[Mapping[str, str]] = None,
    compression: str = "snappy",
) -> Path:
    """Write a pyarrow table, attaching ``units``/``definitions`` as schema metadata."""

    path = Path(path)
    _ensure_parent(path)
    table = _with_metadata(table, units, definitions)
    pq.write_table(table, path, compression=None if compression == "none" else compression)
    return path


def write_parquet(
    df: pd.DataFrame,
    path: Path,
    *,
    units: Optional[Mapping[str, str]] = None,
    definitions: Optional[Mapping[str, str]] = None,
    compression: str = "snappy",
) -> Path:
    """Write a DataFrame to a Parquet file using ``pyarrow``.

    Parameters
    ----------
    df:
        Table to serialise.
    path:
        Destination file path.
    units, definitions:
        Optional per-column annotations stored as JSON in the schema metadata.
    """

    table = pa.Table.from_pandas(df, preserve_index=False)
    return write_table_parquet(
        table, path, units=units, definitions=definitions, compression=compression
    )


def write_summary(summary: Mapping[str, Any], path: Path) -> None:
    """Write a summary dictionary to ``summary.json``.

    The JSON file is formatted with a small indentation for human
    readability.
    """
    path = Path(path)
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(summary, fh, indent=2, sort_keys=True)


def write_run_config(config: Mapping[str, Any], path: Path) -> None:
    """Persist the resolved run configuration."""

    path = Path(path)
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, sort_keys=True)


def write_sidecar(payload: Mapping[str, Any], path: Path) -> Path:
    """Write a metadata sidecar next to a table file."""

    path = Path(path)
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, sort_keys=True)
        fh.write("\n")
    return path
