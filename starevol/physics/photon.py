"""Surface photon cooling of the redshifted internal temperature.

The luminosity at infinity is

    L_inf = global_scale * f_rad * 4 pi R^2 exp(2 nu_s) * sigma_SB * T_s^4

and the thermal variable ``x = ln(T_inf / T_ref)`` receives
``dx/dt = -L_inf / (C_eff * T_inf)``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..accumulator import RHSAccumulator
from ..constants import KM_TO_CM, SIGMA_SB_CGS
from ..context import DriverContext
from ..diagnostics import Cadence, DiagnosticPacket, ProducerCatalog, UnitContract
from ..errors import PhysicsError
from ..schema import PhotonCoolingOptions
from ..state_vector import StateVector
from ..tags import StateTag
from .base import Derived, Driver, DriverDiagnostics
from .envelope import Envelope, IronEnvelope, base_temperature, make_envelope, surface_gravity_g14

__all__ = ["PhotonCooling", "PhotonCoolingDerived"]

logger = logging.getLogger(__name__)


@dataclass
class PhotonCoolingDerived(Derived):
    tinf_k: float = math.nan
    tsurf_k: float = math.nan
    tb_k: float = math.nan
    g14: float = math.nan
    r_surf_km: float = math.nan
    r_surf_cm: float = math.nan
    exp2nu_surf: float = math.nan
    a_inf_cm2: float = 0.0
    a_eff_inf_cm2: float = 0.0
    l_gamma_inf_erg_s: float = 0.0
    dtinf_dt_k_s: float = 0.0
    dlntinf_dt_1_s: float = 0.0


# (key, unit, description, source, cadence)
_SCALARS = (
    ("Tinf_K", "K", "Redshifted internal temperature (evolved DOF)", "state", Cadence.ALWAYS),
    ("Tsurf_K", "K", "Surface temperature used in photon luminosity", "computed", Cadence.ALWAYS),
    ("Tb_K", "K", "Temperature at the base of the envelope used for the Tb -> Ts mapping", "computed", Cadence.ALWAYS),
    ("g14", "", "Surface gravity in units of 1e14 cm s^-2", "computed", Cadence.ONCE_PER_RUN),
    ("R_surf_km", "km", "Surface radius from the geometry cache", "cache", Cadence.ONCE_PER_RUN),
    ("R_surf_cm", "cm", "Surface radius in cgs", "computed", Cadence.ONCE_PER_RUN),
    ("exp2nu_surf", "", "exp(2 nu) at the surface", "cache", Cadence.ONCE_PER_RUN),
    ("A_inf_cm2", "cm^2", "Redshifted emitting area at infinity", "computed", Cadence.ONCE_PER_RUN),
    ("A_eff_inf_cm2", "cm^2", "Effective emitting area (radiating_fraction * A_inf)", "computed", Cadence.ONCE_PER_RUN),
    ("L_gamma_inf_erg_s", "erg/s", "Photon luminosity at infinity", "computed", Cadence.ALWAYS),
    ("dTinf_dt_K_s", "K/s", "PhotonCooling contribution to dTinf/dt", "computed", Cadence.ALWAYS),
    ("dLnTinf_dt_1_s", "1/s", "PhotonCooling contribution to d/dt ln(Tinf/Tref)", "computed", Cadence.ALWAYS),
)

# only meaningful for surface_model="envelope"
_ENVELOPE_ONLY = ("Tb_K", "g14")


class PhotonCooling(Driver, DriverDiagnostics):
    """Blackbody photon emission from the stellar surface."""

    name = "PhotonCooling"
    depends_on = (StateTag.THERMAL,)
    updates = (StateTag.THERMAL,)

    def __init__(self, options: Optional[PhotonCoolingOptions] = None) -> None:
        self.options = options or PhotonCoolingOptions()
        self._own_envelope: Optional[Envelope] = (
            make_envelope(self.options.envelope) if self.options.envelope is not None else None
        )
        self._fallback_envelope = IronEnvelope()

    def envelope_for(self, ctx: DriverContext) -> Envelope:
        """Envelope used for the Tb -> Ts mapping.

        ``options.envelope`` wins when set; otherwise ``ctx.envelope`` is used
        if it is an :class:`Envelope`, and the iron fit last.
        """

        if self._own_envelope is not None:
            return self._own_envelope
        if isinstance(ctx.envelope, Envelope):
            return ctx.envelope
        return self._fallback_envelope

    def compute_derived(self, state: StateVector, ctx: DriverContext) -> PhotonCoolingDerived:
        """Derived quantities shared by the RHS and diagnostics paths."""

        opts = self.options
        d = PhotonCoolingDerived()
        thermal = state.thermal()
        if thermal.size() == 0:
            d.degenerate("ThermalState has zero components.")
            return d
        d.tinf_k = thermal.tinf()
        if not (math.isfinite(d.tinf_k) and d.tinf_k > 0.0):
            d.degenerate("Tinf <= 0 or non-finite; photon cooling ill-defined.")
            return d

        if opts.surface_model == "direct":
            d.tsurf_k = thermal.t_surf if thermal.t_surf > 0.0 else d.tinf_k
            if thermal.t_surf <= 0.0:
                d.message = "direct surface model: t_surf unset, using Tinf."
        elif opts.surface_model == "envelope":
            if ctx.star is None:
                d.degenerate("envelope surface model selected but ctx.star is None.")
                return d
            try:
                d.tb_k = base_temperature(ctx.star, ctx.geo, d.tinf_k, opts.rho_b)
                d.g14 = surface_gravity_g14(ctx.star, ctx.geo)
            except PhysicsError as exc:
                d.degenerate(f"envelope surface model: {exc}")
                return d
            try:
                d.tsurf_k = self.envelope_for(ctx).ts_from_tb(d.tb_k, d.g14, opts.envelope_xi)
            except OverflowError:
                d.degenerate("envelope surface model: Tb -> Ts mapping overflowed.")
                return d
        else:
            d.tsurf_k = d.tinf_k

        if not (math.isfinite(d.tsurf_k) and d.tsurf_k > 0.0):
            d.degenerate("Tsurf <= 0 after mapping.")
            return d
        if not opts.C_eff > 0.0:
            d.degenerate("C_eff <= 0.")
            return d
        if not opts.radiating_fraction > 0.0:
            d.disabled("radiating_fraction <= 0 (photon cooling disabled).")
            return d
        if not opts.global_scale > 0.0:
            d.disabled("cooling disabled: global_scale <= 0.")
            return d

        geo = ctx.geo
        if geo is None:
            d.degenerate("ctx.geo is None (geometry cache required for A_inf).")
            return d
        if geo.size == 0:
            d.degenerate("geometry cache arrays are empty.")
            return d
        d.r_surf_km = float(geo.r[-1])
        d.exp2nu_surf = float(geo.exp_2nu[-1])
        if not d.r_surf_km > 0.0:
            d.degenerate("invalid surface radius: R_surf_km <= 0.")
            return d
        if not d.exp2nu_surf > 0.0:
            d.degenerate("invalid surface redshift factor: exp2nu_surf <= 0.")
            return d

        d.r_surf_cm = d.r_surf_km * KM_TO_CM
        d.a_inf_cm2 = 4.0 * math.pi * d.r_surf_cm**2 * d.exp2nu_surf
        d.a_eff_inf_cm2 = opts.radiating_fraction * d.a_inf_cm2
        try:
            d.l_gamma_inf_erg_s = opts.global_scale * d.a_eff_inf_cm2 * SIGMA_SB_CGS * d.tsurf_k**4
        except OverflowError:
            d.degenerate("photon luminosity overflowed.")
            return d
        d.dtinf_dt_k_s = -d.l_gamma_inf_erg_s / opts.C_eff
        d.dlntinf_dt_1_s = d.dtinf_dt_k_s / d.tinf_k
        if not math.isfinite(d.dlntinf_dt_1_s):
            d.degenerate("photon cooling rate is not finite.")
        return d

    def accumulate_rhs(
        self, t: float, state: StateVector, rhs: RHSAccumulator, ctx: DriverContext
    ) -> None:
        d = self.compute_derived(state, ctx)
        if not d.ok:
            logger.debug("PhotonCooling skipped at t=%g: %s", t, d.message)
            return
        if d.dlntinf_dt_1_s != 0.0:
            rhs.add_to(StateTag.THERMAL, 0, d.dlntinf_dt_1_s)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def unit_contract(self) -> UnitContract:
        return (
            UnitContract()
            .add("Tinf, Tsurf, Tb in K; Thermal component 0 is ln(Tinf/1e8 K)")
            .add("R from the geometry cache in km, converted to cm; sigma_SB in erg cm^-2 s^-1 K^-4")
            .add("L_gamma_inf in erg/s; C_eff in erg/K; dLnTinf/dt in 1/s")
        )

    def diagnostics_catalog(self) -> ProducerCatalog:
        cat = ProducerCatalog(producer=self.diagnostics_name())
        for key, unit, description, source, cadence in _SCALARS:
            cat.add_scalar(key, unit, description, source, cadence, required=(key == "Tinf_K"))
        cat.add_profile("timeseries_default", ["Tinf_K", "Tsurf_K", "L_gamma_inf_erg_s"])
        cat.add_profile("cooling_rates", ["dTinf_dt_K_s", "dLnTinf_dt_1_s"])
        cat.contract_lines = list(self.unit_contract().lines)
        return cat

    def diagnose_snapshot(
        self, t: float, state: StateVector, ctx: DriverContext, packet: DiagnosticPacket
    ) -> None:
        packet.producer = self.diagnostics_name()
        packet.time = t
        d = self.compute_derived(state, ctx)
        if not d.ok:
            packet.add_warning(f"PhotonCooling details not OK: {d.message}")
        elif d.message:
            packet.add_note(d.message)
        if ctx.geo is None:
            packet.add_warning("ctx.geo is None (geometry cache required; photon cooling not computed).")
        values = {
            "Tinf_K": d.tinf_k,
            "Tsurf_K": d.tsurf_k,
            "Tb_K": d.tb_k,
            "g14": d.g14,
            "R_surf_km": d.r_surf_km,
            "R_surf_cm": d.r_surf_cm,
            "exp2nu_surf": d.exp2nu_surf,
            "A_inf_cm2": d.a_inf_cm2,
            "A_eff_inf_cm2": d.a_eff_inf_cm2,
            "L_gamma_inf_erg_s": d.l_gamma_inf_erg_s,
            "dTinf_dt_K_s": d.dtinf_dt_k_s,
            "dLnTinf_dt_1_s": d.dlntinf_dt_1_s,
        }
        envelope_model = self.options.surface_model == "envelope"
        for key, unit, description, source, cadence in _SCALARS:
            if key in _ENVELOPE_ONLY and not envelope_model:
                continue
            packet.add_scalar(key, values[key], unit, description, source, cadence)
