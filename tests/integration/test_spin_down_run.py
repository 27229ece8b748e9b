"""End-to-end runs assembled from a :class:`RunConfig`."""

import json
import math

import numpy as np
import pytest

from starevol.io.tables import load_diagnostics, load_timeseries
from starevol.orchestrator import build_drivers, build_run, run
from starevol.schema import RunConfig
from starevol.tags import StateTag

OMEGA0 = 100.0
K = 1.0e-15


def _spin_only_config() -> RunConfig:
    return RunConfig(
        evolution={"enable_thermal": False, "dt_save": 1.0e9, "rtol": 1e-10, "atol": 1e-10},
        time={"t0": 0.0, "tf": 1.0e10},
        initial={"Omega_rad_s": OMEGA0},
        drivers={"magnetic_dipole": {"K_prefactor": K, "braking_index": 3.0}},
        output={"diagnostics": {"record_every_n_steps": 5}},
    )


def _closed_form(t):
    return OMEGA0 / np.sqrt(1.0 + 2.0 * K * OMEGA0**2 * np.asarray(t))


def test_spin_down_follows_closed_form(tmp_path):
    summary = run(_spin_only_config(), outdir=tmp_path)

    assert summary["integration"]["ok"]
    assert summary["drivers"] == ["MagneticDipole"]
    assert summary["layout"] == {"Spin": {"offset": 0, "size": 1}}
    assert summary["final_state"]["Spin.Omega_rad_s"] == pytest.approx(_closed_form(1.0e10), rel=1e-6)

    frame = load_timeseries(tmp_path / "timeseries.csv")
    assert len(frame) == 11
    omega = frame["MagneticDipole.Omega_rad_s"].to_numpy()
    assert np.all(np.isfinite(omega))
    assert np.all(omega >= 0.0)
    assert np.all(np.diff(omega) < 0.0)
    np.testing.assert_allclose(omega, _closed_form(frame["t"].to_numpy()), rtol=1e-6)


def test_run_products_are_written(tmp_path):
    summary = run(_spin_only_config(), outdir=tmp_path)

    for name in ("summary.json", "run_config.json", "diagnostics_catalog.json", "timeseries.csv.meta.json"):
        assert (tmp_path / name).exists(), name
    on_disk = json.loads((tmp_path / "summary.json").read_text(encoding="utf-8"))
    assert on_disk["final_state"] == summary["final_state"]

    diag = load_diagnostics(tmp_path / "diagnostics.jsonl")
    assert sorted(diag["step"].unique()) == [0, 5, 10]
    assert set(diag["producer"]) == {"MagneticDipole"}
    keys = {row["key"]: row for row in summary["diagnostics"]}
    assert keys["K_prefactor"]["count"] == 1
    assert keys["Omega_rad_s"]["count"] == 3


def test_thermal_evolution_cools(tmp_path):
    cfg = RunConfig(
        evolution={"dt_save": 1.0e5},
        time={"t0": 0.0, "tf": 1.0e6},
        output={"diagnostics": {"enabled": False}},
    )
    summary = run(cfg, outdir=tmp_path)
    assert summary["integration"]["ok"]
    assert summary["drivers"] == ["MagneticDipole", "PhotonCooling", "NeutrinoCooling"]
    assert summary["structure"] == "uniform"
    assert 0.0 < summary["final_state"]["Thermal.Tinf_K"] < 1.0e9

    frame = load_timeseries(tmp_path / "timeseries.csv")
    tinf = frame["PhotonCooling.Tinf_K"].to_numpy()
    assert np.all(np.diff(tinf) < 0.0)
    assert np.all(frame["PhotonCooling.L_gamma_inf_erg_s"] > 0.0)


def test_drivers_for_inactive_blocks_are_skipped(caplog):
    cfg = RunConfig(evolution={"enable_thermal": False})
    with caplog.at_level("WARNING", logger="starevol.orchestrator"):
        drivers = build_drivers(cfg)
    assert [drv.name for drv in drivers] == ["MagneticDipole"]
    assert "PhotonCooling skipped" in caplog.text


def test_structure_table_is_used(tmp_path, profile_csv):
    cfg = RunConfig(
        evolution={"enable_spin": False, "dt_save": 1.0e4},
        time={"t0": 0.0, "tf": 1.0e5},
        structure={"table": profile_csv},
        output={"diagnostics": {"enabled": False}, "timeseries": {"enabled": False}},
    )
    assembly = build_run(cfg, outdir=tmp_path)
    assert assembly.ctx.star.label == profile_csv.stem
    assert assembly.layout.order == (StateTag.THERMAL,)
    assert [drv.name for drv in assembly.drivers] == ["PhotonCooling", "NeutrinoCooling"]
    assert assembly.y0[0] == pytest.approx(math.log(10.0))
