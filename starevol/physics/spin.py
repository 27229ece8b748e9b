"""Magnetic-dipole spin-down."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..accumulator import RHSAccumulator
from ..context import DriverContext
from ..diagnostics import Cadence, DiagnosticPacket, ProducerCatalog, UnitContract
from ..schema import MagneticDipoleOptions
from ..state_vector import StateVector
from ..tags import StateTag
from .base import Derived, Driver, DriverDiagnostics

__all__ = ["MagneticDipole", "SpinDownDerived"]

logger = logging.getLogger(__name__)


@dataclass
class SpinDownDerived(Derived):
    omega_rad_s: float = math.nan
    period_s: float = math.nan
    domega_dt: float = 0.0
    pdot: float = 0.0


class MagneticDipole(Driver, DriverDiagnostics):
    """Power-law braking ``dOmega/dt = -K sign(Omega) |Omega|^n``."""

    name = "MagneticDipole"
    depends_on = (StateTag.SPIN,)
    updates = (StateTag.SPIN,)

    def __init__(self, options: Optional[MagneticDipoleOptions] = None) -> None:
        self.options = options or MagneticDipoleOptions()
        if self.options.use_moment_of_inertia:
            logger.info(
                "MagneticDipole: use_moment_of_inertia=True has no context-based scaling yet; K is used as given."
            )

    def compute_derived(self, state: StateVector) -> SpinDownDerived:
        d = SpinDownDerived()
        spin = state.spin()
        if spin.size() == 0:
            d.degenerate("SpinState has zero components.")
            return d
        omega = spin.omega()
        d.omega_rad_s = omega
        if not math.isfinite(omega):
            d.degenerate("Omega is not finite.")
            return d
        if omega != 0.0:
            d.period_s = 2.0 * math.pi / abs(omega)
        k = self.options.K_prefactor
        if k == 0.0:
            d.disabled("K_prefactor == 0 (spin-down disabled).")
            return d
        if omega == 0.0:
            d.disabled("Omega == 0; no torque.")
            return d
        sign = 1.0 if omega > 0.0 else -1.0
        try:
            magnitude = abs(omega) ** self.options.braking_index
        except OverflowError:
            magnitude = math.inf
        domega_dt = -k * sign * magnitude
        if not math.isfinite(domega_dt):
            d.degenerate("dOmega/dt is not finite.")
            return d
        d.domega_dt = domega_dt
        d.pdot = -2.0 * math.pi * domega_dt / (omega * omega)
        return d

    def accumulate_rhs(
        self, t: float, state: StateVector, rhs: RHSAccumulator, ctx: DriverContext
    ) -> None:
        d = self.compute_derived(state)
        if d.ok and d.domega_dt != 0.0:
            rhs.add_to(StateTag.SPIN, 0, d.domega_dt)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def unit_contract(self) -> UnitContract:
        return (
            UnitContract()
            .add("Omega in rad/s (Spin component 0)")
            .add("dOmega/dt in rad/s^2; K in rad^(1-n) s^(n-2)")
        )

    def diagnostics_catalog(self) -> ProducerCatalog:
        cat = ProducerCatalog(producer=self.diagnostics_name())
        cat.add_scalar("Omega_rad_s", "rad/s", "Angular frequency (evolved DOF)", "state", required=True)
        cat.add_scalar("P_s", "s", "Spin period 2 pi / |Omega|", "computed")
        cat.add_scalar("dOmega_dt_rad_s2", "rad/s^2", "Magnetic-dipole contribution to dOmega/dt", "computed")
        cat.add_scalar("Pdot", "", "Period derivative implied by dOmega/dt", "computed")
        cat.add_scalar("K_prefactor", "", "Braking prefactor K", "option", Cadence.ONCE_PER_RUN)
        cat.add_scalar("braking_index", "", "Braking index n", "option", Cadence.ONCE_PER_RUN)
        cat.add_profile("timeseries_default", ["Omega_rad_s", "P_s", "dOmega_dt_rad_s2"])
        cat.contract_lines = list(self.unit_contract().lines)
        return cat

    def diagnose_snapshot(
        self, t: float, state: StateVector, ctx: DriverContext, packet: DiagnosticPacket
    ) -> None:
        packet.producer = self.diagnostics_name()
        packet.time = t
        d = self.compute_derived(state)
        if not d.ok:
            packet.add_warning(f"MagneticDipole details not OK: {d.message}")
        elif d.message:
            packet.add_note(d.message)
        packet.add_scalar("Omega_rad_s", d.omega_rad_s, "rad/s", "Angular frequency (evolved DOF)", "state")
        packet.add_scalar("P_s", d.period_s, "s", "Spin period 2 pi / |Omega|", "computed")
        packet.add_scalar(
            "dOmega_dt_rad_s2", d.domega_dt, "rad/s^2", "Magnetic-dipole contribution to dOmega/dt", "computed"
        )
        packet.add_scalar("Pdot", d.pdot, "", "Period derivative implied by dOmega/dt", "computed")
        packet.add_scalar(
            "K_prefactor", self.options.K_prefactor, "", "Braking prefactor K", "option", Cadence.ONCE_PER_RUN
        )
        packet.add_scalar(
            "braking_index", self.options.braking_index, "", "Braking index n", "option", Cadence.ONCE_PER_RUN
        )
