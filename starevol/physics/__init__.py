"""Physics drivers contributing to the evolution right-hand side."""
from . import base, envelope, heating, neutrino, photon, spin
from .base import Derived, Driver, DriverDiagnostics, Outcome, diagnostics_drivers
from .heating import HeatingFromChem
from .neutrino import NeutrinoCooling
from .photon import PhotonCooling
from .spin import MagneticDipole

__all__ = [
    "base",
    "envelope",
    "heating",
    "neutrino",
    "photon",
    "spin",
    "Derived",
    "Driver",
    "DriverDiagnostics",
    "Outcome",
    "diagnostics_drivers",
    "HeatingFromChem",
    "MagneticDipole",
    "NeutrinoCooling",
    "PhotonCooling",
]
