import json
import math

import pytest

from starevol.context import DriverContext
from starevol.diagnostics import Cadence, DiagnosticPacket
from starevol.errors import ConfigurationError
from starevol.observers import (
    CadenceFilter,
    DiagnosticsObserver,
    FinishInfo,
    RunInfo,
    SampleInfo,
    approx_equal,
)
from starevol.physics import MagneticDipole
from starevol.schema import DiagnosticsOutput
from starevol.state import SpinState
from starevol.state_vector import StateVector
from starevol.tags import StateTag


def _spin_state(omega: float = 100.0) -> StateVector:
    state = StateVector()
    spin = SpinState(1)
    spin.set_omega(omega)
    state.register(StateTag.SPIN, spin)
    return state


def _read(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


def _packet(**values) -> DiagnosticPacket:
    packet = DiagnosticPacket(producer="P")
    for key, (value, cadence) in values.items():
        packet.add_scalar(key, value, cadence=cadence)
    return packet


@pytest.mark.parametrize(
    "a, b, atol, rtol, expected",
    [
        (1.0, 1.0, 0.0, 0.0, True),
        (1.0, 1.0 + 1e-13, 0.0, 1e-12, True),
        (1.0, 1.0 + 1e-9, 0.0, 1e-12, False),
        (0.0, 1e-3, 1e-2, 0.0, True),
        (math.nan, math.nan, 0.0, 0.0, True),
        (math.nan, 1.0, 1.0, 1.0, False),
    ],
)
def test_approx_equal(a, b, atol, rtol, expected):
    assert approx_equal(a, b, atol, rtol) is expected


def test_on_change_suppresses_repeats_and_re_emits_on_change():
    filt = CadenceFilter()
    first = _packet(x=(1.0, Cadence.ON_CHANGE))
    assert filt.apply(first) == []
    repeat = _packet(x=(1.0, Cadence.ON_CHANGE))
    assert filt.apply(repeat) == ["x"]
    assert not repeat.has_scalar("x")
    moved = _packet(x=(2.0, Cadence.ON_CHANGE))
    assert filt.apply(moved) == []
    assert moved.value("x") == 2.0


def test_once_per_run_and_always():
    filt = CadenceFilter()
    assert filt.apply(_packet(k=(1.0, Cadence.ONCE_PER_RUN), a=(5.0, Cadence.ALWAYS))) == []
    second = _packet(k=(1.0, Cadence.ONCE_PER_RUN), a=(5.0, Cadence.ALWAYS))
    assert filt.apply(second) == ["k"]
    assert second.keys() == ["a"]
    filt.reset()
    assert filt.apply(_packet(k=(1.0, Cadence.ONCE_PER_RUN))) == []


def test_on_change_memory_is_per_producer():
    filt = CadenceFilter()
    filt.apply(_packet(x=(1.0, Cadence.ON_CHANGE)))
    other = DiagnosticPacket(producer="Q")
    other.add_scalar("x", 1.0, cadence=Cadence.ON_CHANGE)
    assert filt.apply(other) == []


def test_records_start_and_every_n_samples(tmp_path):
    out = tmp_path / "diag.jsonl"
    options = DiagnosticsOutput(
        output_path=out, catalog_output_path=tmp_path / "cat.json", record_every_n_steps=2
    )
    obs = DiagnosticsObserver([MagneticDipole()], options)
    state, ctx = _spin_state(), DriverContext()
    obs.on_start(RunInfo(t0=0.0, tf=10.0, tag="demo"), state, ctx)
    for i in range(1, 6):
        state.spin().set_omega(100.0 - i)
        obs.on_sample(SampleInfo(t=float(i), sample_index=i), state, ctx)
    obs.on_finish(FinishInfo(t_final=5.0), state, ctx)

    records = _read(out)
    assert [r["step"] for r in records] == [0, 2, 4]
    assert all(r["producer"] == "MagneticDipole" for r in records)
    assert all(r["run_id"] == "demo" for r in records)
    assert records[1]["scalars"]["Omega_rad_s"]["value"] == 98.0
    # OncePerRun scalars only in the first record
    assert "K_prefactor" in records[0]["scalars"]
    assert "K_prefactor" not in records[1]["scalars"]
    assert records[0]["contract"]
    assert (tmp_path / "cat.json").exists()
    assert obs.closed


def test_time_trigger_advances_past_current_time(tmp_path):
    out = tmp_path / "diag.jsonl"
    options = DiagnosticsOutput(
        output_path=out,
        record_every_dt=10.0,
        record_at_start=False,
        write_catalog=False,
    )
    obs = DiagnosticsObserver([MagneticDipole()], options)
    state, ctx = _spin_state(), DriverContext()
    obs.on_start(RunInfo(t0=0.0, tf=100.0), state, ctx)
    for i, t in enumerate([4.0, 12.0, 15.0, 35.0, 39.0, 41.0], start=1):
        obs.on_sample(SampleInfo(t=t, sample_index=i), state, ctx)
    obs.close()
    assert [r["time"] for r in _read(out)] == [4.0, 12.0, 35.0, 41.0]


def test_append_keeps_existing_lines(tmp_path):
    out = tmp_path / "diag.jsonl"
    out.write_text('{"existing": true}\n', encoding="utf-8")
    options = DiagnosticsOutput(output_path=out, append=True, write_catalog=False)
    obs = DiagnosticsObserver([MagneticDipole()], options)
    obs.on_start(RunInfo(t0=0.0, tf=1.0), _spin_state(), DriverContext())
    obs.close()
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == '{"existing": true}'
    assert len(lines) == 2


def test_unit_vocabulary_marks_scalars(tmp_path):
    out = tmp_path / "diag.jsonl"
    options = DiagnosticsOutput(output_path=out, unit_vocabulary=["rad/s"], write_catalog=False)
    obs = DiagnosticsObserver([MagneticDipole()], options)
    obs.on_start(RunInfo(t0=0.0, tf=1.0), _spin_state(), DriverContext())
    obs.close()
    scalars = _read(out)[0]["scalars"]
    assert scalars["Omega_rad_s"]["unit_ok"] is True
    assert scalars["P_s"]["unit_ok"] is False
    assert scalars["Pdot"]["unit_ok"] is True


def test_non_finite_values_are_flagged(tmp_path):
    out = tmp_path / "diag.jsonl"
    obs = DiagnosticsObserver([MagneticDipole()], DiagnosticsOutput(output_path=out, write_catalog=False))
    state = _spin_state()
    state.spin().set_omega(math.nan)
    obs.on_start(RunInfo(t0=0.0, tf=1.0), state, DriverContext())
    obs.close()
    record = _read(out)[0]
    assert record["scalars"]["Omega_rad_s"]["finite"] is False
    assert "Non-finite scalar: 'Omega_rad_s'" in record["messages"]["errors"]


def test_unwritable_output_fails_at_construction(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        DiagnosticsObserver([MagneticDipole()], DiagnosticsOutput(output_path=blocker / "diag.jsonl"))


def test_record_after_close_is_an_error(tmp_path):
    obs = DiagnosticsObserver(
        [MagneticDipole()], DiagnosticsOutput(output_path=tmp_path / "d.jsonl", write_catalog=False)
    )
    obs.close()
    with pytest.raises(ConfigurationError):
        obs.record(0.0, _spin_state(), DriverContext())


def test_time_schedule_without_on_start_seeds_trigger_at_first_sample(tmp_path):
    out = tmp_path / "diag.jsonl"
    options = DiagnosticsOutput(output_path=out, record_every_dt=10.0, write_catalog=False)
    obs = DiagnosticsObserver([MagneticDipole()], options)
    state, ctx = _spin_state(), DriverContext()
    for i, t in enumerate([3.0, 8.0, 13.0, 14.0], start=1):
        obs.on_sample(SampleInfo(t=t, sample_index=i), state, ctx)
    obs.close()
    assert obs.started
    assert [r["time"] for r in _read(out)] == [3.0, 13.0]


def test_check_units_uses_builtin_vocabulary(tmp_path):
    out = tmp_path / "diag.jsonl"
    options = DiagnosticsOutput(output_path=out, check_units=True, write_catalog=False)
    obs = DiagnosticsObserver([MagneticDipole()], options)
    obs.on_start(RunInfo(t0=0.0, tf=1.0), _spin_state(), DriverContext())
    obs.close()
    scalars = _read(out)[0]["scalars"]
    assert all(entry["unit_ok"] is True for entry in scalars.values())


def test_unit_ok_absent_without_vocabulary(tmp_path):
    out = tmp_path / "diag.jsonl"
    obs = DiagnosticsObserver([MagneticDipole()], DiagnosticsOutput(output_path=out, write_catalog=False))
    obs.on_start(RunInfo(t0=0.0, tf=1.0), _spin_state(), DriverContext())
    obs.close()
    assert all("unit_ok" not in entry for entry in _read(out)[0]["scalars"].values())
