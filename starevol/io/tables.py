"""Column-oriented loading and summarisation of run products."""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
import pandas as pd

__all__ = [
    "DIAGNOSTICS_COLUMNS",
    "load_timeseries",
    "load_diagnostics",
    "summarize_diagnostics",
]

logger = logging.getLogger(__name__)

DIAGNOSTICS_COLUMNS = [
    "producer",
    "run_id",
    "time",
    "step",
    "key",
    "value",
    "unit",
    "cadence",
    "finite",
]


def load_timeseries(path: Path) -> pd.DataFrame:
    """Read a time-series table written by the time-series observer.

    The delimiter is inferred from the suffix (``.tsv`` means tab); ``nan``
    tokens become NaN.
    """

    path = Path(path)
    sep = "\t" if path.suffix.lower() in {".tsv", ".tab"} else ","
    return pd.read_csv(path, sep=sep, na_values=["nan"])


def load_diagnostics(path: Path) -> pd.DataFrame:
    """Flatten a diagnostics JSON-lines file into one row per scalar."""

    rows: List[Dict[str, Any]] = []
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            doc = json.loads(line)
            time = doc.get("time")
            for key, entry in sorted(doc.get("scalars", {}).items()):
                value = entry.get("value")
                rows.append(
                    {
                        "producer": doc.get("producer", ""),
                        "run_id": doc.get("run_id", ""),
                        "time": math.nan if time is None else float(time),
                        "step": int(doc.get("step", 0)),
                        "key": key,
                        "value": math.nan if value is None else float(value),
                        "unit": entry.get("unit", ""),
                        "cadence": entry.get("cadence", ""),
                        "finite": bool(entry.get("finite", value is not None)),
                    }
                )
    logger.debug("Loaded %d diagnostic scalar rows from %s", len(rows), path)
    return pd.DataFrame(rows, columns=DIAGNOSTICS_COLUMNS)


def summarize_diagnostics(frame: pd.DataFrame) -> pd.DataFrame:
    """Per producer/key statistics of a long diagnostics frame.

    Returns
    -------
    pandas.DataFrame
        Columns ``producer, key, unit, count, n_nonfinite, first, last, min,
        max, t_first, t_last`` sorted by producer and key.
    """

    columns = [
        "producer",
        "key",
        "unit",
        "count",
        "n_nonfinite",
        "first",
        "last",
        "min",
        "max",
        "t_first",
        "t_last",
    ]
    if frame.empty:
        return pd.DataFrame(columns=columns)
    records = []
    ordered = frame.sort_values(["producer", "key", "time", "step"], kind="mergesort")
    for (producer, key), group in ordered.groupby(["producer", "key"], sort=True):
        values = group["value"].to_numpy(dtype=float)
        finite = np.isfinite(values)
        finite_values = values[finite]
        records.append(
            {
                "producer": producer,
                "key": key,
                "unit": group["unit"].iloc[-1],
                "count": int(values.size),
                "n_nonfinite": int((~finite).sum()),
                "first": float(values[0]),
                "last": float(values[-1]),
                "min": float(finite_values.min()) if finite_values.size else math.nan,
                "max": float(finite_values.max()) if finite_values.size else math.nan,
                "t_first": float(group["time"].iloc[0]),
                "t_last": float(group["time"].iloc[-1]),
            }
        )
    return pd.DataFrame(records, columns=columns)
