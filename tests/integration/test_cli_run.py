import json

import pytest

from starevol import run as cli
from starevol.io.tables import load_timeseries

FAST = [
    "time.tf=1e6",
    "evolution.dt_save=2e5",
    "output.diagnostics.record_every_n_steps=1",
]


def test_main_writes_products(tmp_path):
    code = cli.main(["--outdir", str(tmp_path), "--quiet", "--override", *FAST])
    assert code == 0
    summary = json.loads((tmp_path / "summary.json").read_text(encoding="utf-8"))
    assert summary["integration"]["ok"] is True
    assert summary["integration"]["n_samples"] == 5
    assert (tmp_path / "diagnostics.jsonl").exists()
    assert (tmp_path / "diagnostics_catalog.json").exists()
    frame = load_timeseries(tmp_path / "timeseries.csv")
    assert len(frame) == 6
    assert "PhotonCooling.Tinf_K" in frame.columns


def test_main_reads_yaml_and_overrides_file(tmp_path, profile_csv):
    config = tmp_path / "run.yml"
    config.write_text(
        f"""
evolution:
  enable_spin: false
  run_label: yaml-run
structure:
  table: {profile_csv}
output:
  timeseries:
    format: tsv
    output_path: series.tsv
""",
        encoding="utf-8",
    )
    overrides = tmp_path / "overrides.txt"
    overrides.write_text("\n".join(FAST) + "\n", encoding="utf-8")
    outdir = tmp_path / "out"
    code = cli.main(["--config", str(config), "--overrides-file", str(overrides), "--outdir", str(outdir), "--quiet"])
    assert code == 0
    summary = json.loads((outdir / "summary.json").read_text(encoding="utf-8"))
    assert summary["run_label"] == "yaml-run"
    assert summary["structure"] == "profile"
    assert "Spin.Omega_rad_s" not in summary["final_state"]
    assert (outdir / "series.tsv").exists()


@pytest.mark.parametrize(
    "override",
    ["time.tf=-1", "evolution.stepper=Euler", "nonsense.key=1"],
)
def test_main_reports_configuration_errors(tmp_path, override):
    assert cli.main(["--outdir", str(tmp_path), "--quiet", "--override", override]) == 2


def test_main_reports_incomplete_integration(tmp_path):
    code = cli.main(
        ["--outdir", str(tmp_path), "--quiet", "--override", *FAST, "evolution.max_steps=1"]
    )
    assert code == 1
    summary = json.loads((tmp_path / "summary.json").read_text(encoding="utf-8"))
    assert summary["integration"]["ok"] is False
