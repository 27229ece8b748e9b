"""Read-only background data handed to every driver.

The static stellar structure (radius, metric potentials, enclosed mass and
energy density on a radial grid) is produced elsewhere; this module only
wraps it.  :class:`GeometryCache` precomputes the metric factors drivers
need so that nothing is recomputed inside the RHS loop.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from .constants import KM_MASS_TO_G, KM_TO_CM
from .errors import ConfigurationError

__all__ = ["StarContext", "GeometryCache", "DriverContext", "DEFAULT_PROFILE_COLUMNS"]

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_COLUMNS: Dict[str, str] = {
    "radius_km": "r_km",
    "nu": "nu",
    "lambda_": "lambda",
    "mass_km": "m_km",
    "energy_density": "rho_g_cm3",
}


def _readonly(values: Any) -> np.ndarray:
    arr = np.array(values, dtype=float, copy=True)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class StarContext:
    """Radial structure profile of a static star.

    Attributes
    ----------
    radius_km:
        Radial coordinate, increasing outward [km].
    nu:
        Metric potential with ``g_tt = -exp(2 nu)``.
    lambda_:
        Metric potential with ``g_rr = exp(2 lambda)``.
    mass_km:
        Enclosed gravitational mass in geometric units ``GM/c^2`` [km].
    energy_density:
        Energy density [g cm^-3].
    """

    radius_km: np.ndarray
    nu: np.ndarray
    lambda_: np.ndarray
    mass_km: np.ndarray
    energy_density: np.ndarray
    label: str = ""

    def __post_init__(self) -> None:
        arrays = {}
        for name in ("radius_km", "nu", "lambda_", "mass_km", "energy_density"):
            arrays[name] = _readonly(getattr(self, name))
            object.__setattr__(self, name, arrays[name])
        sizes = {name: arr.size for name, arr in arrays.items()}
        if len(set(sizes.values())) != 1:
            raise ConfigurationError(f"StarContext: inconsistent profile lengths {sizes}.")
        if arrays["radius_km"].size == 0:
            raise ConfigurationError("StarContext: empty structure profile.")
        if np.any(np.diff(arrays["radius_km"]) <= 0.0):
            raise ConfigurationError("StarContext: radius_km must be strictly increasing.")

    @classmethod
    def from_table(
        cls, path: Path, columns: Optional[Mapping[str, str]] = None, label: str = ""
    ) -> "StarContext":
        """Load a profile from a CSV or Parquet table.

        ``columns`` maps the field names of this class to the table's column
        names; unspecified fields fall back to :data:`DEFAULT_PROFILE_COLUMNS`.
        """

        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"structure table not found: {path}")
        suffix = path.suffix.lower()
        if suffix in {".parquet", ".pq"}:
            df = pd.read_parquet(path)
        elif suffix in {".tsv", ".tab"}:
            df = pd.read_csv(path, sep="\t")
        else:
            df = pd.read_csv(path)
        mapping = dict(DEFAULT_PROFILE_COLUMNS)
        if columns:
            mapping.update(columns)
        missing = [col for col in mapping.values() if col not in df.columns]
        if missing:
            raise ConfigurationError(f"structure table {path} is missing columns {missing}")
        df = df.sort_values(mapping["radius_km"])
        logger.info("Loaded structure profile %s (%d rows)", path, len(df))
        return cls(
            radius_km=df[mapping["radius_km"]].to_numpy(dtype=float),
            nu=df[mapping["nu"]].to_numpy(dtype=float),
            lambda_=df[mapping["lambda_"]].to_numpy(dtype=float),
            mass_km=df[mapping["mass_km"]].to_numpy(dtype=float),
            energy_density=df[mapping["energy_density"]].to_numpy(dtype=float),
            label=label or path.stem,
        )

    @classmethod
    def uniform_density(
        cls, radius_km: float, mass_km: float, n_points: int = 64, label: str = "uniform"
    ) -> "StarContext":
        """Schwarzschild interior solution of a constant-density star.

        Used when no tabulated profile is configured.  Requires
        ``M/R < 4/9`` so that ``exp(nu)`` stays positive at the centre.
        """

        if not (radius_km > 0.0 and mass_km > 0.0):
            raise ConfigurationError("uniform_density: radius and mass must be positive.")
        compactness = mass_km / radius_km
        if compactness >= 4.0 / 9.0:
            raise ConfigurationError(
                f"uniform_density: M/R={compactness:.3f} exceeds the Buchdahl bound 4/9."
            )
        if n_points < 2:
            raise ConfigurationError("uniform_density: need at least two grid points.")
        r = np.linspace(radius_km / n_points, radius_km, n_points)
        m = mass_km * (r / radius_km) ** 3
        exp_nu = 1.5 * math.sqrt(1.0 - 2.0 * compactness) - 0.5 * np.sqrt(
            1.0 - 2.0 * mass_km * r**2 / radius_km**3
        )
        lambda_ = -0.5 * np.log(1.0 - 2.0 * m / r)
        volume_cm3 = 4.0 / 3.0 * math.pi * (radius_km * KM_TO_CM) ** 3
        rho = mass_km * KM_MASS_TO_G / volume_cm3
        return cls(
            radius_km=r,
            nu=np.log(exp_nu),
            lambda_=lambda_,
            mass_km=m,
            energy_density=np.full_like(r, rho),
            label=label,
        )

    @property
    def size(self) -> int:
        return int(self.radius_km.size)

    @property
    def radius_surface(self) -> float:
        return float(self.radius_km[-1])

    @property
    def mass_surface(self) -> float:
        return float(self.mass_km[-1])

    @property
    def expnu_surface(self) -> float:
        return math.exp(float(self.nu[-1]))

    @property
    def compactness(self) -> float:
        """``M/R`` at the surface in geometric units."""

        return self.mass_surface / self.radius_surface


@dataclass(frozen=True)
class GeometryCache:
    """Metric factors precomputed from a :class:`StarContext`."""

    r: np.ndarray
    mass: np.ndarray
    exp_nu: np.ndarray
    exp_2nu: np.ndarray
    exp_lambda: np.ndarray
    area: np.ndarray
    volume_weight: np.ndarray

    @classmethod
    def from_star(cls, star: StarContext) -> "GeometryCache":
        r = star.radius_km
        area = 4.0 * math.pi * r**2
        exp_lambda = np.exp(star.lambda_)
        # trapezoid cell widths; endpoints get half a cell
        widths = np.zeros_like(r)
        if r.size > 1:
            dr = np.diff(r)
            widths[:-1] += 0.5 * dr
            widths[1:] += 0.5 * dr
        return cls(
            r=_readonly(r),
            mass=_readonly(star.mass_km),
            exp_nu=_readonly(np.exp(star.nu)),
            exp_2nu=_readonly(np.exp(2.0 * star.nu)),
            exp_lambda=_readonly(exp_lambda),
            area=_readonly(area),
            volume_weight=_readonly(area * exp_lambda * widths),
        )

    @property
    def size(self) -> int:
        return int(self.r.size)

    def proper_volume_km3(self) -> float:
        return float(np.sum(self.volume_weight))


@dataclass(frozen=True)
class DriverContext:
    """Background data shared by all drivers during one evaluation.

    Every field is optional; drivers must check for ``None`` and skip their
    contribution when something they need is absent.  The referenced objects
    are owned by the caller and must outlive the context.
    """

    star: Optional[StarContext] = None
    geo: Optional[GeometryCache] = None
    envelope: Optional[Any] = None
    cfg: Optional[Any] = None

    def missing(self, names: Iterable[str]) -> List[str]:
        return [name for name in names if getattr(self, name, None) is None]
