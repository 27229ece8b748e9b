"""Flat CSV/TSV time-series writer driven by the diagnostics catalog."""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TextIO

from ..context import DriverContext
from ..diagnostics import DiagnosticCatalog, DiagnosticPacket
from ..errors import ConfigurationError
from ..io.diagnostics_json import catalog_from_drivers, read_catalog_json
from ..io.writer import write_sidecar, write_table_parquet
from ..physics.base import DriverDiagnostics
from ..runtime.history import ColumnarBuffer
from ..schema import TimeSeriesColumn, TimeSeriesOutput
from ..state_vector import StateVector
from ..tags import StateTag
from .base import FinishInfo, Observer, RunInfo, SampleInfo

__all__ = ["TimeSeriesObserver", "NAN_TOKEN", "TIME_COLUMN", "SAMPLE_INDEX_COLUMN"]

logger = logging.getLogger(__name__)

NAN_TOKEN = "nan"

TIME_COLUMN = TimeSeriesColumn(
    key="t", source="builtin", builtin="time", unit="s", description="Simulation time"
)
SAMPLE_INDEX_COLUMN = TimeSeriesColumn(
    key="sample_index",
    source="builtin",
    builtin="sample_index",
    description="Monotonic sample counter (0 at start)",
)


class TimeSeriesObserver(Observer):
    """Writes one delimited row per eligible sample.

    Columns are fixed when the run starts: the explicit ``columns`` of the
    options if given, otherwise the keys selected by ``catalog_profiles`` from
    the diagnostics catalog (prefixed ``<producer>.``), optionally preceded
    by the built-in time and sample-index columns.  Any value that cannot be
    resolved is written as ``nan``.
    """

    def __init__(
        self,
        options: Optional[TimeSeriesOutput] = None,
        drivers: Iterable = (),
        catalog: Optional[DiagnosticCatalog] = None,
    ) -> None:
        self.options = options or TimeSeriesOutput()
        self.producers: Dict[str, DriverDiagnostics] = {
            drv.diagnostics_name(): drv for drv in drivers if isinstance(drv, DriverDiagnostics)
        }
        self.catalog = catalog
        self.columns: List[TimeSeriesColumn] = []
        self.output_path = Path(self.options.output_path)
        self.buffer = ColumnarBuffer()
        self.rows_written = 0
        self.started = False
        self.next_time_trigger = math.inf
        self.run: Optional[RunInfo] = None
        self._fh: Optional[TextIO] = None

    def name(self) -> str:
        return "TimeSeriesObserver"

    # ------------------------------------------------------------------
    # Column resolution
    # ------------------------------------------------------------------
    def _load_catalog(self) -> Optional[DiagnosticCatalog]:
        if self.catalog is not None:
            return self.catalog
        path = self.options.catalog_path
        if path is not None and Path(path).exists():
            return read_catalog_json(Path(path))
        if self.producers:
            return catalog_from_drivers(self.producers.values())
        return None

    def resolve_columns(self) -> List[TimeSeriesColumn]:
        opts = self.options
        if opts.columns:
            return list(opts.columns)
        columns: List[TimeSeriesColumn] = []
        if opts.use_catalog:
            catalog = self._load_catalog()
            seen = set()
            if catalog is not None:
                for profile_name in opts.catalog_profiles:
                    for producer in catalog:
                        profile = producer.find_profile(profile_name)
                        if profile is None:
                            continue
                        for key in profile.keys:
                            header = f"{producer.producer}.{key}"
                            if header in seen:
                                continue
                            seen.add(header)
                            desc = producer.find_scalar(key)
                            columns.append(
                                TimeSeriesColumn(
                                    key=header,
                                    source="driver",
                                    producer=producer.producer,
                                    driver_key=key,
                                    unit=desc.unit if desc else "",
                                    description=desc.description if desc else "",
                                )
                            )
        prefix: List[TimeSeriesColumn] = []
        if opts.include_builtin_time:
            prefix.append(TIME_COLUMN)
        if opts.include_builtin_sample_index:
            prefix.append(SAMPLE_INDEX_COLUMN)
        columns = prefix + columns
        if not columns:
            columns = [TIME_COLUMN, SAMPLE_INDEX_COLUMN]
        return columns

    # ------------------------------------------------------------------
    # Value resolution
    # ------------------------------------------------------------------
    @staticmethod
    def _builtin(
        column: TimeSeriesColumn, t: float, sample: SampleInfo, state: StateVector
    ) -> float:
        name = column.builtin
        if name == "time":
            return float(t)
        if name == "sample_index":
            return float(sample.sample_index)
        if name == "step_index":
            return math.nan if sample.step_index is None else float(sample.step_index)
        if name == "Tinf_K":
            if state.is_registered(StateTag.THERMAL) and state.get(StateTag.THERMAL).size():
                return state.thermal().tinf()
            return math.nan
        if name == "Omega_rad_s":
            if state.is_registered(StateTag.SPIN) and state.get(StateTag.SPIN).size():
                return state.spin().omega()
            return math.nan
        return math.nan

    def build_row(
        self, sample: SampleInfo, state: StateVector, ctx: DriverContext
    ) -> Dict[str, float]:
        packets: Dict[str, DiagnosticPacket] = {}
        row: Dict[str, float] = {}
        for column in self.columns:
            if column.source == "builtin":
                row[column.key] = self._builtin(column, sample.t, sample, state)
                continue
            drv = self.producers.get(column.producer or "")
            if drv is None:
                row[column.key] = math.nan
                continue
            packet = packets.get(column.producer)
            if packet is None:
                packet = DiagnosticPacket(producer=column.producer, time=sample.t)
                drv.diagnose_snapshot(sample.t, state, ctx, packet)
                packets[column.producer] = packet
            row[column.key] = packet.value(column.driver_key or "")
        return row

    def format_value(self, column: TimeSeriesColumn, value: float) -> str:
        if value is None or not math.isfinite(value):
            return NAN_TOKEN
        if column.builtin in ("sample_index", "step_index"):
            return str(int(value))
        return f"{value:.{self.options.float_precision}g}"

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------
    def sidecar_path(self) -> Path:
        return self.output_path.with_name(self.output_path.name + ".meta.json")

    def _sidecar_payload(self) -> dict:
        run = self.run
        return {
            "observer": self.name(),
            "run": {
                "tag": run.tag if run else "",
                "t0": run.t0 if run else None,
                "tf": run.tf if run is not None and math.isfinite(run.tf) else None,
                "output_dir": str(run.output_dir) if run and run.output_dir else None,
            },
            "table": {
                "path": str(self.output_path),
                "format": self.options.format,
                "delimiter": self.options.delimiter,
                "float_precision": self.options.float_precision,
                "nan_token": NAN_TOKEN,
                "header": self.options.write_header,
            },
            "columns": [
                {
                    "key": col.key,
                    "source": col.source,
                    "builtin": col.builtin,
                    "producer": col.producer,
                    "driver_key": col.driver_key,
                    "unit": col.unit,
                    "description": col.description,
                }
                for col in self.columns
            ],
        }

    def _start(self, run: RunInfo) -> None:
        self.run = run
        self.columns = self.resolve_columns()
        missing = sorted(
            {col.producer for col in self.columns if col.source == "driver"} - set(self.producers)
        )
        if missing:
            logger.warning("TimeSeriesObserver: no driver for producer(s) %s; columns will be nan", missing)
        opts = self.options
        non_empty = self.output_path.exists() and self.output_path.stat().st_size > 0
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.output_path.open("a" if opts.append else "w", encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                f"TimeSeriesObserver: cannot open output '{self.output_path}': {exc}"
            ) from exc
        if opts.write_header and not (opts.append and non_empty):
            self._fh.write(opts.delimiter.join(col.key for col in self.columns) + "\n")
            self._fh.flush()
        if opts.write_sidecar_metadata:
            write_sidecar(self._sidecar_payload(), self.sidecar_path())
        self.buffer = ColumnarBuffer(col.key for col in self.columns)
        self.rows_written = 0
        self.next_time_trigger = run.t0 if opts.record_every_dt > 0.0 else math.inf
        self.started = True
        logger.info(
            "TimeSeriesObserver: %d column(s) -> %s", len(self.columns), self.output_path
        )

    def should_record(self, sample: SampleInfo) -> bool:
        n = self.options.record_every_n_samples
        dt = self.options.record_every_dt
        if n <= 0 and dt <= 0.0:
            return True
        if n > 0 and sample.sample_index % n == 0:
            return True
        if dt > 0.0 and sample.t >= self.next_time_trigger:
            return True
        return False

    def write_row(self, sample: SampleInfo, state: StateVector, ctx: DriverContext) -> None:
        if self._fh is None or self._fh.closed:
            raise ConfigurationError("TimeSeriesObserver: output stream is not open.")
        row = self.build_row(sample, state, ctx)
        text = self.options.delimiter.join(
            self.format_value(col, row[col.key]) for col in self.columns
        )
        self._fh.write(text + "\n")
        self._fh.flush()
        self.buffer.append_row(row)
        self.rows_written += 1
        dt = self.options.record_every_dt
        if dt > 0.0:
            while sample.t >= self.next_time_trigger:
                self.next_time_trigger += dt

    # ------------------------------------------------------------------
    # Observer hooks
    # ------------------------------------------------------------------
    def on_start(self, run: RunInfo, state: StateVector, ctx: DriverContext) -> None:
        self._start(run)
        if self.options.record_at_start:
            self.write_row(SampleInfo(t=run.t0, sample_index=0, step_index=0), state, ctx)

    def on_sample(self, sample: SampleInfo, state: StateVector, ctx: DriverContext) -> None:
        if not self.started:
            self._start(RunInfo(t0=sample.t, tf=math.nan))
        if self.options.record_at_start and sample.sample_index == 0:
            return
        if self.should_record(sample):
            self.write_row(sample, state, ctx)

    def on_finish(self, finish: FinishInfo, state: StateVector, ctx: DriverContext) -> None:
        self.close()
        if self.options.parquet_path is not None and self.buffer.row_count:
            units = {col.key: col.unit for col in self.columns if col.unit}
            definitions = {col.key: col.description for col in self.columns if col.description}
            write_table_parquet(
                self.buffer.to_table(), self.options.parquet_path, units=units, definitions=definitions
            )
        logger.info(
            "TimeSeriesObserver: finished at t=%g (ok=%s), %d row(s) in %s",
            finish.t_final,
            finish.ok,
            self.rows_written,
            self.output_path,
        )

    def close(self) -> None:
        if self._fh is not None and not self._fh.closed:
            self._fh.flush()
            self._fh.close()

    def to_frame(self):
        """Rows written so far as a :class:`pandas.DataFrame`."""

        return self.buffer.to_frame()
