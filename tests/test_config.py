import logging
import math

import pytest
from pydantic import ValidationError

from starevol.config_utils import (
    apply_overrides_dict,
    configure_logging,
    load_config,
    parse_override_value,
    read_overrides_file,
)
from starevol.errors import ConfigurationError
from starevol.schema import (
    EvolutionConfig,
    PhotonCoolingOptions,
    RunConfig,
    TimeSeriesColumn,
    TimeWindow,
)
from starevol.tags import StateTag


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("true", True),
        ("False", False),
        ("none", None),
        ("42", 42),
        ("1e-9", 1e-9),
        ("RK23", "RK23"),
        ("'quoted'", "quoted"),
        ("[0.1, 2]", [0.1, 2]),
        ("[]", []),
        ("-inf", -math.inf),
    ],
)
def test_parse_override_value(raw, expected):
    assert parse_override_value(raw) == expected


def test_parse_override_value_nan():
    assert math.isnan(parse_override_value("nan"))


def test_apply_overrides_creates_nested_mappings():
    payload = {"evolution": {"rtol": 1e-6}}
    apply_overrides_dict(payload, ["evolution.rtol=1e-8", "drivers.magnetic_dipole.K_prefactor=2e-15"])
    assert payload == {
        "evolution": {"rtol": 1e-8},
        "drivers": {"magnetic_dipole": {"K_prefactor": 2e-15}},
    }


@pytest.mark.parametrize("override", ["evolution.rtol", "=3", "evolution.rtol.x=1"])
def test_apply_overrides_rejects_malformed(override):
    with pytest.raises(ConfigurationError):
        apply_overrides_dict({"evolution": {"rtol": 1e-6}}, [override])


def test_read_overrides_file_skips_comments(tmp_path):
    path = tmp_path / "overrides.txt"
    path.write_text("# header\n\ntime.tf=10  # seconds\ninitial.Omega_rad_s=50\n", encoding="utf-8")
    assert read_overrides_file(path) == ["time.tf=10", "initial.Omega_rad_s=50"]


def test_defaults():
    cfg = RunConfig()
    assert cfg.evolution.stepper == "RK45"
    assert cfg.evolution.ordered_tags() == [StateTag.SPIN, StateTag.THERMAL]
    assert cfg.drivers.heating_from_chem.enabled is False
    assert cfg.output.diagnostics.record_every_n_steps == 1000
    assert cfg.output.timeseries.delimiter == ","


def test_load_config_from_yaml_with_overrides(tmp_path):
    path = tmp_path / "run.yml"
    path.write_text(
        """
evolution:
  stepper: DOP853
  enable_thermal: false
  dt_save: 5.0
time:
  t0: 0.0
  tf: 100.0
drivers:
  magnetic_dipole:
    K_prefactor: 1.0e-15
output:
  timeseries:
    format: tsv
""",
        encoding="utf-8",
    )
    cfg = load_config(path, ["time.tf=50", "initial.Omega_rad_s=75.5"])
    assert cfg.evolution.stepper == "DOP853"
    assert cfg.evolution.ordered_tags() == [StateTag.SPIN]
    assert cfg.time.tf == 50.0
    assert cfg.initial.Omega_rad_s == 75.5
    assert cfg.output.timeseries.delimiter == "\t"


def test_load_config_without_path_uses_defaults():
    cfg = load_config(None, ["evolution.run_label=demo"])
    assert cfg.evolution.run_label == "demo"
    assert cfg.time.tf == RunConfig().time.tf


def test_empty_yaml_is_default(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == RunConfig()


@pytest.mark.parametrize(
    "overrides",
    [
        ["bogus.key=1"],
        ["time.t0=10", "time.tf=5"],
        ["evolution.stepper=Euler"],
        ["evolution.rtol=-1"],
        ["evolution.order=[Spin, Spin]"],
        ["evolution.order=[Spin, Entropy]"],
    ],
)
def test_load_config_rejects_invalid(overrides):
    with pytest.raises(ConfigurationError):
        load_config(None, overrides)


def test_load_config_rejects_non_mapping_root(tmp_path):
    path = tmp_path / "list.yml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "absent.yml")


def test_models_raise_validation_errors_directly():
    with pytest.raises(ValidationError):
        TimeWindow(t0=1.0, tf=1.0)
    with pytest.raises(ValidationError):
        PhotonCoolingOptions(radiating_fraction=1.5)
    with pytest.raises(ValidationError):
        TimeSeriesColumn(key="x", source="driver", producer="MagneticDipole")


def test_explicit_order():
    cfg = EvolutionConfig(order=["thermal", "Spin"])
    assert cfg.ordered_tags() == [StateTag.THERMAL, StateTag.SPIN]


def test_configure_logging_sets_root_level():
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging(logging.DEBUG)
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous)
        logging.captureWarnings(False)
