"""Column-oriented record buffers for sampled output."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd
import pyarrow as pa

__all__ = ["ColumnarBuffer"]


class ColumnarBuffer:
    """Rows appended as mappings, stored column by column.

    Columns declared up front keep their order; keys first seen in a later
    row are appended to the right and back-filled with ``None``.
    """

    def __init__(self, columns: Iterable[str] | None = None) -> None:
        self._columns: Dict[str, List[Any]] = {}
        self._column_order: List[str] = []
        self._row_count = 0
        for name in columns or ():
            self._add_column(name)

    def _add_column(self, name: str) -> None:
        if name in self._columns:
            return
        self._columns[name] = [None] * self._row_count
        self._column_order.append(name)

    @property
    def row_count(self) -> int:
        return self._row_count

    def __len__(self) -> int:
        return self._row_count

    def __bool__(self) -> bool:
        return self._row_count > 0

    def columns(self) -> List[str]:
        return list(self._column_order)

    def append_row(self, record: Mapping[str, Any]) -> None:
        for key in record:
            self._add_column(key)
        for name in self._column_order:
            self._columns[name].append(record.get(name))
        self._row_count += 1

    def clear(self) -> None:
        for values in self._columns.values():
            values.clear()
        self._row_count = 0

    def to_records(self) -> List[Dict[str, Any]]:
        return [
            {name: self._columns[name][idx] for name in self._column_order}
            for idx in range(self._row_count)
        ]

    def to_table(self, metadata: Optional[Mapping[str, str]] = None) -> pa.Table:
        """Return the buffer as a pyarrow table, optionally with schema metadata."""

        table = pa.Table.from_pydict({name: self._columns[name] for name in self._column_order})
        if metadata:
            table = table.replace_schema_metadata({str(k): str(v) for k, v in metadata.items()})
        return table

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({name: self._columns[name] for name in self._column_order})
