"""Adaptive-step integration of an :class:`~starevol.system.EvolutionSystem`.

The integrator advances the flat state vector with one of the
:mod:`scipy.integrate` stepper classes, one ``dt_save`` chunk at a time, and
notifies the system's observers at the start, after every chunk and at the
end.  Every accepted step counts against ``max_steps``, so the limit also
binds inside a single chunk.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np
from scipy.integrate import BDF, DOP853, LSODA, RK23, RK45, OdeSolver, Radau

from .errors import ConfigurationError, NumericalError
from .observers.base import FinishInfo, RunInfo, SampleInfo
from .runtime.progress import ProgressReporter
from .schema import EvolutionConfig
from .system import EvolutionSystem

__all__ = ["Integrator", "IntegrationResult", "sample_times"]

logger = logging.getLogger(__name__)

STEPPERS = {
    "RK45": RK45,
    "RK23": RK23,
    "DOP853": DOP853,
    "Radau": Radau,
    "BDF": BDF,
    "LSODA": LSODA,
}


@dataclass
class IntegrationResult:
    """Outcome of :meth:`Integrator.run`."""

    ok: bool
    message: str
    t_final: float
    y_final: np.ndarray
    n_samples: int
    n_steps: int
    nfev: int

    def raise_for_status(self) -> "IntegrationResult":
        if not self.ok:
            raise NumericalError(f"integration stopped at t={self.t_final!r}: {self.message}")
        return self

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "message": self.message,
            "t_final": self.t_final,
            "n_samples": self.n_samples,
            "n_steps": self.n_steps,
            "nfev": self.nfev,
        }


def sample_times(t0: float, tf: float, dt_save: Optional[float]) -> List[float]:
    """Return the sampling points after ``t0``; the last one is always ``tf``."""

    if dt_save is None or dt_save <= 0.0:
        return [float(tf)]
    n_chunks = int(math.ceil((tf - t0) / dt_save - 1.0e-12))
    times = [t0 + k * dt_save for k in range(1, n_chunks)]
    times.append(float(tf))
    return times


class Integrator:
    """Drive ``system`` from ``t0`` to ``tf`` with the configured stepper."""

    def __init__(
        self,
        system: EvolutionSystem,
        config: Optional[EvolutionConfig] = None,
        *,
        progress: Optional[ProgressReporter] = None,
    ) -> None:
        self.system = system
        self.config = config or EvolutionConfig()
        self.progress = progress
        try:
            self._stepper = STEPPERS[self.config.stepper]
        except KeyError:
            raise ConfigurationError(f"unknown stepper '{self.config.stepper}'") from None

    def _make_solver(self, t_start: float, t_stop: float, y: np.ndarray, first: bool) -> OdeSolver:
        cfg = self.config
        kwargs = {}
        if first and cfg.first_step is not None:
            kwargs["first_step"] = min(cfg.first_step, t_stop - t_start)
        return self._stepper(
            self.system.derivative,
            t_start,
            y,
            t_stop,
            rtol=cfg.rtol,
            atol=cfg.atol,
            **kwargs,
        )

    def run(
        self,
        y0: np.ndarray,
        t0: float,
        tf: float,
        *,
        tag: str = "",
        output_dir: Optional[Path] = None,
    ) -> IntegrationResult:
        y = np.array(y0, dtype=float, copy=True)
        if y.shape != (self.system.dimension,):
            raise ConfigurationError(
                f"initial vector has shape {y.shape}; expected ({self.system.dimension},)"
            )
        if not tf > t0:
            raise ConfigurationError("tf must be greater than t0")
        self.system.notify_start(RunInfo(t0=t0, tf=tf, tag=tag, output_dir=output_dir), y)

        max_steps = self.config.max_steps
        t = float(t0)
        n_samples = 0
        n_steps = 0
        nfev = 0
        ok = True
        limit_hit = False
        message = "completed"
        try:
            for t_next in sample_times(t0, tf, self.config.dt_save):
                solver = self._make_solver(t, t_next, y, first=n_samples == 0)
                while solver.status == "running":
                    if n_steps >= max_steps:
                        ok = False
                        limit_hit = True
                        message = f"max_steps={max_steps} reached"
                        break
                    step_message = solver.step()
                    if solver.status == "failed":
                        ok = False
                        message = str(step_message)
                        break
                    n_steps += 1
                nfev += int(solver.nfev)
                t = float(solver.t)
                y = np.array(solver.y, dtype=float)
                if not ok:
                    if limit_hit:
                        logger.warning("Stopping at t=%g: %s", t, message)
                    else:
                        logger.error("Solver failed at t=%g: %s", t, message)
                    break
                if not np.all(np.isfinite(y)):
                    ok = False
                    message = "non-finite state"
                    logger.error("Non-finite state vector at t=%g", t)
                    break
                n_samples += 1
                self.system.notify_sample(
                    SampleInfo(t=t, sample_index=n_samples, step_index=n_steps), y
                )
                if self.progress is not None:
                    self.progress.update(t, n_samples)
        except BaseException as exc:
            self.system.notify_finish(
                FinishInfo(t_final=t, ok=False, message=str(exc) or type(exc).__name__), y
            )
            raise

        if self.progress is not None:
            self.progress.finish(t, n_samples)
        self.system.notify_finish(FinishInfo(t_final=t, ok=ok, message=message), y)
        logger.info(
            "Integration %s at t=%g: %d sample(s), %d step(s), %d RHS evaluation(s)",
            "finished" if ok else "stopped",
            t,
            n_samples,
            n_steps,
            nfev,
        )
        return IntegrationResult(
            ok=ok,
            message=message,
            t_final=t,
            y_final=y,
            n_samples=n_samples,
            n_steps=n_steps,
            nfev=nfev,
        )
