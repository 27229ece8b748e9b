"""Envelope boundary relations mapping T_b to the surface temperature.

The fits follow Potekhin, Chabrier & Yakovlev (1997): for an iron envelope
``T_s^4 = 1e24 g14 (1.81 T_b8)^2.42`` with ``T_b8 = T_b / 1e8 K``; an accreted
light-element envelope is approximated by boosting the iron result by
``1 + 0.6 xi`` with ``xi`` clamped to ``[0, 1]``.
"""
from __future__ import annotations

import abc
import math
from typing import Optional

from ..constants import C_CGS, G14_UNIT, KM_TO_CM
from ..context import GeometryCache, StarContext
from ..errors import PhysicsError

__all__ = [
    "Envelope",
    "IronEnvelope",
    "AccretedEnvelope",
    "make_envelope",
    "surface_gravity_g14",
    "find_base_index",
    "base_temperature",
]


def _finite_positive(x: float) -> bool:
    return math.isfinite(x) and x > 0.0


class Envelope(abc.ABC):
    """Interface of a ``T_b -> T_s`` envelope mapping."""

    name: str = "envelope"

    @abc.abstractmethod
    def ts_from_tb(self, tb_k: float, g14: float, xi: float = 0.0) -> float:
        """Return the local surface temperature [K]; 0 for invalid input."""


class IronEnvelope(Envelope):
    name = "iron"

    def ts_from_tb(self, tb_k: float, g14: float, xi: float = 0.0) -> float:
        if not (_finite_positive(tb_k) and _finite_positive(g14)):
            return 0.0
        tb8 = tb_k / 1.0e8
        ts4 = 1.0e24 * g14 * (1.81 * tb8) ** 2.42
        return max(ts4, 0.0) ** 0.25


class AccretedEnvelope(Envelope):
    name = "accreted"

    def ts_from_tb(self, tb_k: float, g14: float, xi: float = 0.0) -> float:
        if not (_finite_positive(tb_k) and _finite_positive(g14)):
            return 0.0
        xi = min(max(xi, 0.0), 1.0) if math.isfinite(xi) else 0.0
        return IronEnvelope().ts_from_tb(tb_k, g14) * (1.0 + 0.6 * xi)


def make_envelope(name: str) -> Envelope:
    if name == "iron":
        return IronEnvelope()
    if name == "accreted":
        return AccretedEnvelope()
    raise PhysicsError(f"unknown envelope model '{name}'")


def surface_gravity_g14(star: Optional[StarContext], geo: Optional[GeometryCache]) -> float:
    """Surface gravity ``g = c^2 M / (R^2 e^nu)`` in units of 1e14 cm s^-2.

    Values are taken from ``geo`` when available and fall back to ``star``.
    """

    r_km = m_km = expnu = 0.0
    if geo is not None and geo.size:
        r_km = float(geo.r[-1])
        m_km = float(geo.mass[-1])
        expnu = float(geo.exp_nu[-1])
    if star is not None:
        if not _finite_positive(r_km):
            r_km = star.radius_surface
        if not _finite_positive(m_km):
            m_km = star.mass_surface
        if not _finite_positive(expnu):
            expnu = star.expnu_surface
    if not (_finite_positive(r_km) and _finite_positive(m_km) and _finite_positive(expnu)):
        raise PhysicsError("surface gravity: could not obtain R, M and exp(nu) at the surface.")
    if r_km <= 2.0 * m_km:
        raise PhysicsError("surface gravity: invalid compactness (R <= 2M).")
    r_cm = r_km * KM_TO_CM
    m_cm = m_km * KM_TO_CM
    return C_CGS**2 * m_cm / (r_cm * r_cm * expnu) / G14_UNIT


def find_base_index(star: StarContext, rho_b: float) -> int:
    """Outermost grid index whose energy density is at least ``rho_b``."""

    rho = star.energy_density
    for i in range(rho.size - 1, -1, -1):
        if rho[i] >= rho_b:
            return i
    raise PhysicsError(f"envelope base density {rho_b:g} g/cm^3 is not reached in the profile.")


def base_temperature(
    star: StarContext, geo: Optional[GeometryCache], tinf_k: float, rho_b: float
) -> float:
    """Local temperature ``T_b = T_inf / e^{nu(rho_b)}`` at the envelope base."""

    if not _finite_positive(tinf_k):
        raise PhysicsError("base temperature: T_inf must be > 0.")
    idx = find_base_index(star, rho_b)
    if geo is not None and geo.exp_nu.size > idx:
        expnu_b = float(geo.exp_nu[idx])
    else:
        expnu_b = math.exp(float(star.nu[idx]))
    if not _finite_positive(expnu_b):
        raise PhysicsError("base temperature: exp(nu) at the envelope base is invalid.")
    return tinf_k / expnu_b
