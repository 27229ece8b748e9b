"""Observers notified at the start, at every sample and at the end of a run."""
from .base import FinishInfo, Observer, RunInfo, SampleInfo
from .diagnostics import CadenceFilter, DiagnosticsObserver, approx_equal
from .timeseries import TimeSeriesObserver

__all__ = [
    "CadenceFilter",
    "DiagnosticsObserver",
    "FinishInfo",
    "Observer",
    "RunInfo",
    "SampleInfo",
    "TimeSeriesObserver",
    "approx_equal",
]
