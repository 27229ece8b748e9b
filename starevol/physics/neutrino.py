"""Placeholder neutrino cooling.

Until the emissivities are wired to the microphysics, the total luminosity
is ``L0 = 1e30 (T_inf / 1e8 K)^6`` erg/s, split 60/40 between direct and
modified Urca; pair breaking contributes nothing yet.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..accumulator import RHSAccumulator
from ..context import DriverContext
from ..diagnostics import Cadence, DiagnosticPacket, ProducerCatalog, UnitContract
from ..schema import NeutrinoCoolingOptions
from ..state_vector import StateVector
from ..tags import StateTag
from .base import Derived, Driver, DriverDiagnostics

__all__ = ["NeutrinoCooling", "NeutrinoCoolingDerived", "placeholder_luminosity"]

logger = logging.getLogger(__name__)

DIRECT_URCA_SHARE = 0.6
MODIFIED_URCA_SHARE = 0.4


def placeholder_luminosity(tinf_k: float) -> float:
    return 1.0e30 * (tinf_k / 1.0e8) ** 6


@dataclass
class NeutrinoCoolingDerived(Derived):
    tinf_k: float = math.nan
    c_eff_erg_k: float = math.nan
    l_du_erg_s: float = 0.0
    l_mu_erg_s: float = 0.0
    l_pbf_erg_s: float = 0.0
    l_nu_erg_s: float = 0.0
    dtinf_dt_k_s: float = 0.0
    dlntinf_dt_1_s: float = 0.0


class NeutrinoCooling(Driver, DriverDiagnostics):
    name = "NeutrinoCooling"
    depends_on = (StateTag.THERMAL,)
    updates = (StateTag.THERMAL,)

    def __init__(self, options: Optional[NeutrinoCoolingOptions] = None) -> None:
        self.options = options or NeutrinoCoolingOptions()

    def compute_derived(self, state: StateVector, ctx: DriverContext) -> NeutrinoCoolingDerived:
        opts = self.options
        d = NeutrinoCoolingDerived()
        thermal = state.thermal()
        if thermal.size() == 0:
            d.degenerate("ThermalState has zero components.")
            return d
        d.tinf_k = thermal.tinf()
        if not (math.isfinite(d.tinf_k) and d.tinf_k > 0.0):
            d.degenerate("Tinf <= 0 or non-finite; neutrino cooling ill-defined.")
            return d
        d.c_eff_erg_k = opts.C_eff
        if not d.c_eff_erg_k > 0.0:
            d.degenerate("C_eff <= 0.")
            return d
        if not opts.global_scale > 0.0:
            d.disabled("cooling disabled: global_scale <= 0.")
            return d
        if not (opts.include_direct_urca or opts.include_modified_urca or opts.include_pair_breaking):
            d.disabled("cooling disabled: all neutrino channels disabled by options.")
            return d

        try:
            l0 = placeholder_luminosity(d.tinf_k)
        except OverflowError:
            d.degenerate("neutrino luminosity overflow.")
            return d
        if opts.include_direct_urca:
            d.l_du_erg_s = opts.global_scale * DIRECT_URCA_SHARE * l0
        if opts.include_modified_urca:
            d.l_mu_erg_s = opts.global_scale * MODIFIED_URCA_SHARE * l0
        d.l_nu_erg_s = d.l_du_erg_s + d.l_mu_erg_s + d.l_pbf_erg_s
        d.dtinf_dt_k_s = -d.l_nu_erg_s / d.c_eff_erg_k
        d.dlntinf_dt_1_s = d.dtinf_dt_k_s / d.tinf_k
        if not math.isfinite(d.dlntinf_dt_1_s):
            d.degenerate("neutrino cooling rate is not finite.")
        return d

    def accumulate_rhs(
        self, t: float, state: StateVector, rhs: RHSAccumulator, ctx: DriverContext
    ) -> None:
        d = self.compute_derived(state, ctx)
        if not d.ok:
            logger.debug("NeutrinoCooling skipped at t=%g: %s", t, d.message)
            return
        if d.dlntinf_dt_1_s != 0.0:
            rhs.add_to(StateTag.THERMAL, 0, d.dlntinf_dt_1_s)

    def unit_contract(self) -> UnitContract:
        return UnitContract().add("Tinf in K; L_nu in erg/s; C_eff in erg/K; dLnTinf/dt in 1/s")

    def diagnostics_catalog(self) -> ProducerCatalog:
        cat = ProducerCatalog(producer=self.diagnostics_name())
        cat.add_scalar("Tinf_K", "K", "Redshifted internal temperature (evolved DOF)", "state", required=True)
        cat.add_scalar("L_nu_inf_erg_s", "erg/s", "Total neutrino luminosity at infinity", "computed")
        cat.add_scalar("L_nu_DU_inf_erg_s", "erg/s", "Direct Urca luminosity at infinity", "computed", Cadence.ON_CHANGE)
        cat.add_scalar("L_nu_MU_inf_erg_s", "erg/s", "Modified Urca luminosity at infinity", "computed", Cadence.ON_CHANGE)
        cat.add_scalar("L_nu_PBF_inf_erg_s", "erg/s", "Pair breaking/formation luminosity at infinity", "computed", Cadence.ON_CHANGE)
        cat.add_scalar("dTinf_dt_K_s", "K/s", "NeutrinoCooling contribution to dTinf/dt", "computed")
        cat.add_scalar("dLnTinf_dt_1_s", "1/s", "NeutrinoCooling contribution to d/dt ln(Tinf/Tref)", "computed")
        cat.add_profile("timeseries_default", ["L_nu_inf_erg_s"])
        cat.contract_lines = list(self.unit_contract().lines)
        return cat

    def diagnose_snapshot(
        self, t: float, state: StateVector, ctx: DriverContext, packet: DiagnosticPacket
    ) -> None:
        packet.producer = self.diagnostics_name()
        packet.time = t
        d = self.compute_derived(state, ctx)
        if not d.ok:
            packet.add_warning(f"NeutrinoCooling details not OK: {d.message}")
        elif d.message:
            packet.add_note(d.message)
        packet.add_scalar("Tinf_K", d.tinf_k, "K", "Redshifted internal temperature (evolved DOF)", "state")
        packet.add_scalar("L_nu_inf_erg_s", d.l_nu_erg_s, "erg/s", "Total neutrino luminosity at infinity", "computed")
        packet.add_scalar(
            "L_nu_DU_inf_erg_s", d.l_du_erg_s, "erg/s", "Direct Urca luminosity at infinity", "computed", Cadence.ON_CHANGE
        )
        packet.add_scalar(
            "L_nu_MU_inf_erg_s", d.l_mu_erg_s, "erg/s", "Modified Urca luminosity at infinity", "computed", Cadence.ON_CHANGE
        )
        packet.add_scalar(
            "L_nu_PBF_inf_erg_s",
            d.l_pbf_erg_s,
            "erg/s",
            "Pair breaking/formation luminosity at infinity",
            "computed",
            Cadence.ON_CHANGE,
        )
        packet.add_scalar("dTinf_dt_K_s", d.dtinf_dt_k_s, "K/s", "NeutrinoCooling contribution to dTinf/dt", "computed")
        packet.add_scalar(
            "dLnTinf_dt_1_s", d.dlntinf_dt_1_s, "1/s", "NeutrinoCooling contribution to d/dt ln(Tinf/Tref)", "computed"
        )
