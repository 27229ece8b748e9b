from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from starevol.context import DriverContext, GeometryCache, StarContext  # noqa: E402
from starevol.schema import RunConfig  # noqa: E402


@pytest.fixture
def uniform_star() -> StarContext:
    return StarContext.uniform_density(12.0, 1.4 * 1.476625, n_points=32)


@pytest.fixture
def star_ctx(uniform_star: StarContext) -> DriverContext:
    return DriverContext(
        star=uniform_star, geo=GeometryCache.from_star(uniform_star), cfg=RunConfig()
    )


@pytest.fixture
def profile_csv(tmp_path: Path, uniform_star: StarContext) -> Path:
    """Structure profile written with the default column names."""

    path = tmp_path / "profile.csv"
    pd.DataFrame(
        {
            "r_km": uniform_star.radius_km,
            "nu": uniform_star.nu,
            "lambda": uniform_star.lambda_,
            "m_km": uniform_star.mass_km,
            "rho_g_cm3": np.asarray(uniform_star.energy_density),
        }
    ).to_csv(path, index=False)
    return path
