"""Lifecycle records and the observer interface."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..context import DriverContext
from ..state_vector import StateVector

__all__ = ["RunInfo", "SampleInfo", "FinishInfo", "Observer"]


@dataclass(frozen=True)
class RunInfo:
    """Metadata passed to :meth:`Observer.on_start`."""

    t0: float
    tf: float
    tag: str = ""
    output_dir: Optional[Path] = None


@dataclass(frozen=True)
class SampleInfo:
    """One sampling point; ``sample_index`` increases by one per sample."""

    t: float
    sample_index: int
    step_index: Optional[int] = None


@dataclass(frozen=True)
class FinishInfo:
    t_final: float
    ok: bool = True
    message: str = ""


class Observer:
    """Receives start/sample/finish notifications; every hook defaults to a no-op."""

    def name(self) -> str:
        return type(self).__name__

    def on_start(self, run: RunInfo, state: StateVector, ctx: DriverContext) -> None:
        pass

    def on_sample(self, sample: SampleInfo, state: StateVector, ctx: DriverContext) -> None:
        pass

    def on_finish(self, finish: FinishInfo, state: StateVector, ctx: DriverContext) -> None:
        pass
