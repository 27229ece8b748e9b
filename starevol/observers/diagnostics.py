"""Periodic JSON-lines recorder of driver diagnostics."""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..context import DriverContext
from ..diagnostics import Cadence, DiagnosticPacket, UnitVocabulary
from ..errors import ConfigurationError
from ..io.diagnostics_json import catalog_from_drivers, packet_to_json_line, write_catalog_json
from ..physics.base import DriverDiagnostics
from ..schema import DiagnosticsOutput
from ..state_vector import StateVector
from .base import FinishInfo, Observer, RunInfo, SampleInfo

__all__ = ["DiagnosticsObserver", "approx_equal", "CadenceFilter"]

logger = logging.getLogger(__name__)


def approx_equal(a: float, b: float, atol: float, rtol: float) -> bool:
    """``|a - b| <= atol + rtol * max(|a|, |b|)``; two NaNs compare equal."""

    if math.isnan(a) and math.isnan(b):
        return True
    if a == b:
        return True
    return abs(a - b) <= atol + rtol * max(abs(a), abs(b))


class CadenceFilter:
    """Per-run memory deciding which scalars of a packet are written.

    ``Always`` scalars are kept unconditionally.  ``OncePerRun`` scalars are
    kept the first time a producer emits them.  ``OnChange`` scalars are kept
    the first time they are seen and afterwards only when the value moved
    beyond tolerance from the last emitted value.
    """

    def __init__(self, atol: float = 0.0, rtol: float = 1.0e-12) -> None:
        self.atol = atol
        self.rtol = rtol
        self._last_value: Dict[Tuple[str, str], float] = {}
        self._once_emitted: Set[Tuple[str, str]] = set()

    def reset(self) -> None:
        self._last_value.clear()
        self._once_emitted.clear()

    def apply(self, packet: DiagnosticPacket) -> List[str]:
        """Drop suppressed scalars from ``packet`` and return their keys."""

        dropped: List[str] = []
        for key, entry in list(packet.items()):
            ident = (packet.producer, key)
            if entry.cadence is Cadence.ALWAYS:
                continue
            if entry.cadence is Cadence.ONCE_PER_RUN:
                if ident in self._once_emitted:
                    dropped.append(key)
                else:
                    self._once_emitted.add(ident)
                continue
            previous = self._last_value.get(ident)
            if previous is not None and approx_equal(previous, entry.value, self.atol, self.rtol):
                dropped.append(key)
            else:
                self._last_value[ident] = entry.value
        for key in dropped:
            packet.remove_scalar(key)
        return dropped


class DiagnosticsObserver(Observer):
    """Writes one JSON line per diagnostics-capable driver at eligible samples.

    Parameters
    ----------
    drivers:
        Drivers to snapshot; objects that do not implement
        :class:`~starevol.physics.base.DriverDiagnostics` are ignored.
    options:
        Output path, cadence and filtering options.

    The output stream is opened (truncated unless ``append``) in the
    constructor so that an unwritable path fails before the run starts.
    """

    def __init__(self, drivers: Iterable, options: Optional[DiagnosticsOutput] = None) -> None:
        self.options = options or DiagnosticsOutput()
        self.drivers: List[DriverDiagnostics] = [
            drv for drv in drivers if isinstance(drv, DriverDiagnostics)
        ]
        self.vocabulary: Optional[UnitVocabulary] = None
        if self.options.unit_vocabulary is not None:
            self.vocabulary = UnitVocabulary(self.options.unit_vocabulary)
        elif self.options.check_units:
            self.vocabulary = UnitVocabulary.default()
        self.filter = CadenceFilter(self.options.on_change_atol, self.options.on_change_rtol)
        self._catalogs = {drv.diagnostics_name(): drv.diagnostics_catalog() for drv in self.drivers}
        self.step_counter = 0
        self.next_time_trigger = math.inf
        self.records_written = 0
        self.started = False
        self.output_path = Path(self.options.output_path)
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.output_path.open("a" if self.options.append else "w", encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                f"DiagnosticsObserver: cannot open output '{self.output_path}': {exc}"
            ) from exc

    def name(self) -> str:
        return "DiagnosticsObserver"

    @property
    def closed(self) -> bool:
        return self._fh is None or self._fh.closed

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def should_record(self, t: float) -> bool:
        n = self.options.record_every_n_steps
        if n > 0 and self.step_counter % n == 0:
            return True
        if self.options.record_every_dt > 0.0 and t >= self.next_time_trigger:
            return True
        return False

    def _advance_time_trigger(self, t: float) -> None:
        dt = self.options.record_every_dt
        if dt <= 0.0:
            return
        while t >= self.next_time_trigger:
            self.next_time_trigger += dt

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def build_packet(
        self, drv: DriverDiagnostics, t: float, state: StateVector, ctx: DriverContext
    ) -> DiagnosticPacket:
        """Snapshot, filter and validate one driver's packet."""

        packet = DiagnosticPacket(
            producer=drv.diagnostics_name(),
            time=t,
            step=self.step_counter,
            run_id=self.options.run_id,
        )
        for line in drv.unit_contract().lines:
            packet.add_contract_line(line)
        drv.diagnose_snapshot(t, state, ctx, packet)
        packet.step = self.step_counter
        packet.run_id = self.options.run_id
        if self.options.validate_catalog:
            catalog = self._catalogs.get(packet.producer)
            if catalog is not None:
                packet.validate_against(catalog)
        self.filter.apply(packet)
        if self.vocabulary is not None:
            for _, entry in packet.items():
                entry.unit_ok = self.vocabulary.is_allowed(entry.unit)
        packet.validate_basic()
        return packet

    def record(self, t: float, state: StateVector, ctx: DriverContext) -> None:
        if self.closed:
            raise ConfigurationError("DiagnosticsObserver: output stream is closed.")
        for drv in self.drivers:
            packet = self.build_packet(drv, t, state, ctx)
            self._fh.write(packet_to_json_line(packet))
            self._fh.write("\n")
            self.records_written += 1
        self._fh.flush()
        self._advance_time_trigger(t)

    # ------------------------------------------------------------------
    # Observer hooks
    # ------------------------------------------------------------------
    def _start(self, run: RunInfo) -> None:
        self.filter.reset()
        self.step_counter = 0
        self.next_time_trigger = run.t0 if self.options.record_every_dt > 0.0 else math.inf
        if not self.options.run_id and run.tag:
            self.options = self.options.model_copy(update={"run_id": run.tag})
        if self.options.write_catalog:
            write_catalog_json(catalog_from_drivers(self.drivers), self.options.catalog_output_path)
        logger.info(
            "DiagnosticsObserver: recording %d producer(s) to %s",
            len(self.drivers),
            self.output_path,
        )
        self.started = True

    def on_start(self, run: RunInfo, state: StateVector, ctx: DriverContext) -> None:
        self._start(run)
        if self.options.record_at_start:
            self.record(run.t0, state, ctx)

    def on_sample(self, sample: SampleInfo, state: StateVector, ctx: DriverContext) -> None:
        if not self.started:
            self._start(RunInfo(t0=sample.t, tf=math.nan))
        self.step_counter += 1
        if self.should_record(sample.t):
            self.record(sample.t, state, ctx)

    def on_finish(self, finish: FinishInfo, state: StateVector, ctx: DriverContext) -> None:
        self.close()
        logger.info(
            "DiagnosticsObserver: finished at t=%g (ok=%s), %d record(s) in %s",
            finish.t_final,
            finish.ok,
            self.records_written,
            self.output_path,
        )

    def close(self) -> None:
        if self._fh is not None and not self._fh.closed:
            self._fh.flush()
            self._fh.close()
