"""Heating of the core by chemical-imbalance relaxation."""
from __future__ import annotations

import logging
import math
from typing import Optional

from ..accumulator import RHSAccumulator
from ..context import DriverContext
from ..schema import HeatingFromChemOptions
from ..state_vector import StateVector
from ..tags import StateTag
from .base import Driver

__all__ = ["HeatingFromChem", "heating_luminosity"]

logger = logging.getLogger(__name__)


def heating_luminosity(
    tinf_k: float, etas: list[float], coefficient: float, scale: float = 1.0
) -> float:
    """``H = scale * coefficient * (T_inf/1e8)^6 * sum(eta_i^2)`` [erg/s]."""

    return scale * coefficient * (tinf_k / 1.0e8) ** 6 * sum(eta * eta for eta in etas)


class HeatingFromChem(Driver):
    """Positive ``dT_inf/dt`` from the electron (eta_0) and muon (eta_1) channels."""

    name = "HeatingFromChem"
    depends_on = (StateTag.CHEM, StateTag.THERMAL)
    updates = (StateTag.THERMAL,)

    def __init__(self, options: Optional[HeatingFromChemOptions] = None) -> None:
        self.options = options or HeatingFromChemOptions()

    def _channels(self, state: StateVector) -> list[float]:
        chem = state.chem()
        etas = []
        if self.options.use_electron_channel and chem.size() > 0:
            etas.append(chem.eta(0))
        if self.options.use_muon_channel and chem.size() > 1:
            etas.append(chem.eta(1))
        return etas

    def accumulate_rhs(
        self, t: float, state: StateVector, rhs: RHSAccumulator, ctx: DriverContext
    ) -> None:
        opts = self.options
        if not (opts.global_scale > 0.0 and opts.heating_coefficient > 0.0 and opts.C_eff > 0.0):
            return
        thermal = state.thermal()
        if thermal.size() == 0:
            return
        tinf = thermal.tinf()
        etas = self._channels(state)
        if not (math.isfinite(tinf) and tinf > 0.0) or not all(math.isfinite(eta) for eta in etas):
            logger.debug("HeatingFromChem skipped at t=%g: non-finite input", t)
            return
        try:
            power = heating_luminosity(tinf, etas, opts.heating_coefficient, opts.global_scale)
        except OverflowError:
            return
        rate = power / (opts.C_eff * tinf)
        if rate != 0.0 and math.isfinite(rate):
            rhs.add_to(StateTag.THERMAL, 0, rate)
