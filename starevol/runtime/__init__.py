"""Runtime helpers shared by the integrator and the observers."""
from .history import ColumnarBuffer
from .progress import ProgressReporter

__all__ = ["ColumnarBuffer", "ProgressReporter"]
