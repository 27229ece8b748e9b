"""Right-hand-side functor glueing state, layout, accumulator and drivers."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .accumulator import RHSAccumulator
from .context import DriverContext
from .errors import ConfigurationError, EvaluationError
from .layout import StateLayout
from .packing import scatter_rhs_from_accumulator, unpack_state_vector
from .physics.base import Driver
from .state_vector import StateVector
from .tags import tag_name

__all__ = ["EvolutionSystem", "GSL_SUCCESS"]

logger = logging.getLogger(__name__)

#: Status code returned to the integrator after a successful evaluation.
GSL_SUCCESS = 0


class EvolutionSystem:
    """Callable evaluating ``dY/dt`` for the flat state vector.

    Parameters
    ----------
    ctx:
        Background context shared by the drivers.
    state:
        Registry of the evolved blocks.
    rhs:
        Accumulator configured for every active tag.
    layout:
        Layout of the flat vector.
    drivers:
        Drivers evaluated in the given order; at least one is required.
    required_context:
        Context fields that must not be ``None``.  Defaults to
        :attr:`REQUIRED_CONTEXT_FIELDS`.
    """

    REQUIRED_CONTEXT_FIELDS: Sequence[str] = ("cfg",)

    def __init__(
        self,
        ctx: DriverContext,
        state: StateVector,
        rhs: RHSAccumulator,
        layout: StateLayout,
        drivers: Iterable[Driver],
        *,
        required_context: Optional[Sequence[str]] = None,
    ) -> None:
        self.ctx = ctx
        self.state = state
        self.rhs = rhs
        self.layout = layout
        self.drivers: List[Driver] = list(drivers)
        self.observers: List = []
        self._required = tuple(
            self.REQUIRED_CONTEXT_FIELDS if required_context is None else required_context
        )
        self._validate()

    def _validate(self) -> None:
        if self.ctx is None:
            raise ConfigurationError("EvolutionSystem: driver context is None.")
        missing = self.ctx.missing(self._required)
        if missing:
            raise ConfigurationError(
                f"EvolutionSystem: required context field(s) {missing} are None."
            )
        if not self.drivers:
            raise ConfigurationError("EvolutionSystem: no drivers supplied.")
        for drv in self.drivers:
            for tag in drv.updates:
                if not self.rhs.is_configured(tag):
                    raise ConfigurationError(
                        f"driver '{drv.name}' updates tag '{tag_name(tag)}' "
                        "which is not configured in the accumulator."
                    )
        logger.debug(
            "EvolutionSystem ready: dim=%d drivers=%s",
            self.dimension,
            [drv.name for drv in self.drivers],
        )

    @property
    def dimension(self) -> int:
        return self.layout.total_size()

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def __call__(self, t: float, y: np.ndarray, dydt: np.ndarray) -> int:
        """Evaluate the derivative at ``(t, y)`` into ``dydt``."""

        unpack_state_vector(self.state, self.layout, y)
        self.rhs.clear()
        for drv in self.drivers:
            try:
                drv.accumulate_rhs(t, self.state, self.rhs, self.ctx)
            except ConfigurationError:
                raise
            except Exception as exc:
                raise EvaluationError(f"driver '{drv.name}' failed at t={t!r}: {exc}") from exc
        scatter_rhs_from_accumulator(self.rhs, self.layout, dydt)
        return GSL_SUCCESS

    def derivative(self, t: float, y: np.ndarray) -> np.ndarray:
        """Return ``dy/dt`` as a new array (``fun(t, y)`` convention)."""

        dydt = np.zeros(self.dimension, dtype=float)
        status = self(t, np.asarray(y, dtype=float), dydt)
        if status != GSL_SUCCESS:
            raise EvaluationError(f"RHS evaluation returned status {status} at t={t!r}")
        return dydt

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def add_observer(self, observer) -> None:
        self.observers.append(observer)

    def notify_start(self, run, y: np.ndarray) -> None:
        unpack_state_vector(self.state, self.layout, y)
        for obs in self.observers:
            obs.on_start(run, self.state, self.ctx)

    def notify_sample(self, sample, y: np.ndarray) -> None:
        unpack_state_vector(self.state, self.layout, y)
        for obs in self.observers:
            obs.on_sample(sample, self.state, self.ctx)

    def notify_finish(self, finish, y: np.ndarray) -> None:
        unpack_state_vector(self.state, self.layout, y)
        for obs in self.observers:
            obs.on_finish(finish, self.state, self.ctx)
