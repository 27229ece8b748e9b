"""Driver contract shared by every physics module.

A driver reads some state tags, adds its contribution to the derivative of
others, and never mutates the state or the context.  Drivers that can
explain themselves also implement :class:`DriverDiagnostics`; they compute
their derived quantities through one shared helper so that the RHS path and
the diagnostics snapshot can never disagree.
"""
from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple

from ..accumulator import RHSAccumulator
from ..context import DriverContext
from ..diagnostics import DiagnosticPacket, ProducerCatalog, UnitContract
from ..state_vector import StateVector
from ..tags import StateTag

__all__ = [
    "Driver",
    "DriverDiagnostics",
    "Outcome",
    "Derived",
    "diagnostics_drivers",
]

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    """Status of a driver's derived-quantity computation.

    ``DEGENERATE`` marks a recoverable numerical condition (non-finite input,
    missing optional context) for which the driver omits its contribution.
    Configuration mistakes are raised as
    :class:`~starevol.errors.ConfigurationError` instead.
    """

    OK = "ok"
    DISABLED = "disabled"
    DEGENERATE = "degenerate"


@dataclass
class Derived:
    """Base record for driver-derived quantities."""

    outcome: Outcome = Outcome.OK
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is not Outcome.DEGENERATE

    def degenerate(self, message: str) -> "Derived":
        self.outcome = Outcome.DEGENERATE
        self.message = message
        return self

    def disabled(self, message: str) -> "Derived":
        self.outcome = Outcome.DISABLED
        self.message = message
        return self


class Driver(abc.ABC):
    """Unit of physics contributing to ``dY/dt``."""

    #: Tags read by :meth:`accumulate_rhs`.
    depends_on: Tuple[StateTag, ...] = ()
    #: Tags written by :meth:`accumulate_rhs`.
    updates: Tuple[StateTag, ...] = ()

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Stable key used in logs and diagnostics."""

    @abc.abstractmethod
    def accumulate_rhs(
        self,
        t: float,
        state: StateVector,
        rhs: RHSAccumulator,
        ctx: DriverContext,
    ) -> None:
        """Add this driver's contribution into ``rhs``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class DriverDiagnostics(abc.ABC):
    """Optional diagnostics extension of a :class:`Driver`."""

    def diagnostics_name(self) -> str:
        return getattr(self, "name", type(self).__name__)

    def unit_contract(self) -> UnitContract:
        return UnitContract()

    @abc.abstractmethod
    def diagnostics_catalog(self) -> ProducerCatalog:
        """Return the schema of every scalar :meth:`diagnose_snapshot` may emit."""

    @abc.abstractmethod
    def diagnose_snapshot(
        self,
        t: float,
        state: StateVector,
        ctx: DriverContext,
        packet: DiagnosticPacket,
    ) -> None:
        """Fill ``packet`` from the current state without side effects."""


def diagnostics_drivers(drivers: Iterable[Driver]) -> List[DriverDiagnostics]:
    """Return the drivers that implement :class:`DriverDiagnostics`, in order."""

    return [drv for drv in drivers if isinstance(drv, DriverDiagnostics)]
