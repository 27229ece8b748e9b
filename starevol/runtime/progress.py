"""Lightweight terminal progress reporting keyed on simulated time."""

from __future__ import annotations

import math
import sys
import time

SECONDS_PER_YEAR = 365.25 * 24 * 3600.0


class ProgressReporter:
    """Single-line progress bar for an integration from ``t0`` to ``tf``."""

    def __init__(
        self,
        t0: float,
        tf: float,
        *,
        refresh_seconds: float = 1.0,
        enabled: bool = False,
        stream=None,
    ) -> None:
        self.t0 = float(t0)
        self.tf = float(tf)
        self.enabled = bool(enabled and self.tf > self.t0)
        self.refresh_seconds = max(float(refresh_seconds), 0.0)
        self.stream = stream if stream is not None else sys.stdout
        self.start = time.monotonic()
        self.last = -math.inf
        self._finished = False
        self._isatty = bool(getattr(self.stream, "isatty", lambda: False)())

    def fraction(self, t: float) -> float:
        if not math.isfinite(t):
            return 0.0
        return min(max((t - self.t0) / (self.tf - self.t0), 0.0), 1.0)

    def update(self, t: float, samples: int, *, force: bool = False) -> None:
        """Render the bar when ``refresh_seconds`` have passed or when forced."""

        if not self.enabled or self._finished:
            return
        now = time.monotonic()
        frac = self.fraction(t)
        is_last = frac >= 1.0
        if not force and not is_last and now - self.last < self.refresh_seconds:
            return
        self.last = now
        bar_width = 28
        filled = int(bar_width * frac)
        bar = "#" * filled + "-" * (bar_width - filled)
        elapsed = now - self.start
        if 0.0 < frac < 1.0:
            eta = elapsed * (1.0 - frac) / frac
            eta_text = f"ETA {eta/60.0:.1f}m" if eta >= 60.0 else f"ETA {eta:.0f}s"
        else:
            eta_text = "ETA ?" if frac <= 0.0 else "done"
        line = (
            f"[{bar}] {frac * 100:5.1f}% t={t / SECONDS_PER_YEAR:.3g} yr "
            f"samples={samples} {eta_text}"
        )
        if self._isatty:
            self.stream.write(f"\r\033[2K{line}")
            if is_last or force:
                self.stream.write("\n")
        else:
            self.stream.write(f"{line}\n")
        if is_last:
            self._finished = True
        self.stream.flush()

    def finish(self, t: float, samples: int) -> None:
        """Force a final render to end the line cleanly."""

        if not self.enabled or self._finished:
            return
        self.update(t, samples, force=True)
        self._finished = True
