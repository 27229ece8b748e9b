"""Physical constants used by the compact-star drivers.

All values are in cgs units, which is the convention of the cooling and
envelope relations.  Radii and masses of the background structure are kept
in kilometres (``GM/c^2`` for masses) and converted at the point of use.
"""
from __future__ import annotations

from dataclasses import dataclass

# Speed of light in vacuum (cm s^-1)
C_CGS: float = 2.99792458e10

# Stefan-Boltzmann constant (erg cm^-2 s^-1 K^-4)
SIGMA_SB_CGS: float = 5.670374419e-5

# Gravitational constant (cm^3 g^-1 s^-2)
G_CGS: float = 6.67430e-8

# Length conversion
KM_TO_CM: float = 1.0e5

# Solar mass in geometric units GM_sun/c^2 (km)
MSUN_KM: float = 1.4766250

# Mass in grams of one kilometre of geometric mass (c^2 / G * 1 km)
KM_MASS_TO_G: float = C_CGS**2 / G_CGS * KM_TO_CM

# Unit of surface gravity used by envelope fits (cm s^-2)
G14_UNIT: float = 1.0e14

# Reference temperature of the logarithmic thermal variable (K)
T_REF_K: float = 1.0e8

# Fiducial heat capacity used by the simple cooling drivers (erg K^-1)
C_EFF_DEFAULT: float = 1.0e40


@dataclass(frozen=True)
class StarConstants:
    """Immutable bundle of the constants above for passing around as a group."""

    C_CGS: float = C_CGS
    SIGMA_SB_CGS: float = SIGMA_SB_CGS
    G_CGS: float = G_CGS
    KM_TO_CM: float = KM_TO_CM
    MSUN_KM: float = MSUN_KM
    G14_UNIT: float = G14_UNIT
    T_REF_K: float = T_REF_K
    C_EFF_DEFAULT: float = C_EFF_DEFAULT
