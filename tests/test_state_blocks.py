import logging
import math

import numpy as np
import pytest

from starevol.errors import ConfigurationError, PhysicsError
from starevol.state import BNVState, ChemState, SpinState, StateBlock, ThermalState
from starevol.state_vector import StateVector
from starevol.tags import NUM_STATE_TAGS, StateTag, parse_tag, tag_name


@pytest.mark.parametrize(
    "tag, label",
    [
        (StateTag.SPIN, "Spin"),
        (StateTag.THERMAL, "Thermal"),
        (StateTag.CHEM, "Chem"),
        (StateTag.BNV, "BNV"),
        (StateTag.CUSTOM, "Custom"),
    ],
)
def test_tag_names(tag, label):
    assert tag_name(tag) == label
    assert str(tag) == label
    assert parse_tag(label.upper()) is tag


def test_tag_indices_are_dense():
    assert [int(tag) for tag in StateTag] == list(range(NUM_STATE_TAGS))
    assert tag_name(99) == "Unknown"


def test_parse_tag_rejects_unknown():
    with pytest.raises(ConfigurationError):
        parse_tag("Entropy")


def test_resize_zero_fills_and_values_is_a_copy():
    block = StateBlock(3)
    block.data[:] = [1.0, 2.0, 3.0]
    block.resize(2)
    assert block.size() == 2
    assert np.all(block.values() == 0.0)
    copy = block.values()
    copy[0] = 5.0
    assert block.data[0] == 0.0
    with pytest.raises(ConfigurationError):
        block.resize(-1)


def test_clear_keeps_size():
    block = StateBlock(2)
    block.data[:] = 4.0
    block.clear()
    assert block.size() == 2
    assert np.all(block.data == 0.0)


def test_pack_and_unpack_are_exact():
    block = StateBlock(3)
    block.data[:] = [0.1, -2.5e300, 7.0]
    dest = np.zeros(5)
    block.pack_to(dest)
    assert list(dest[:3]) == [0.1, -2.5e300, 7.0]
    other = StateBlock(3)
    other.unpack_from(dest)
    assert np.array_equal(other.data, block.data)


def test_pack_requires_sized_block_and_room():
    with pytest.raises(ConfigurationError):
        StateBlock().pack_to(np.zeros(2))
    with pytest.raises(ConfigurationError):
        StateBlock(3).unpack_from(np.zeros(2))


def test_sanity_check_reports(caplog):
    caplog.set_level(logging.DEBUG, logger="starevol.state")
    assert StateBlock().sanity_check() is False
    block = StateBlock(2)
    assert block.sanity_check() is True
    block.data[1] = math.nan
    assert block.sanity_check() is False
    assert any(rec.levelno == logging.ERROR for rec in caplog.records)


def test_spin_state_accessors():
    spin = SpinState()
    spin.set_omega(120.0)
    assert spin.size() == 1
    assert spin.omega() == 120.0
    assert spin.export_columns("Spin.") == {"Spin.Omega_rad_s": 120.0}
    with pytest.raises(ConfigurationError):
        SpinState().omega()


def test_thermal_state_is_logarithmic():
    thermal = ThermalState()
    thermal.set_tinf(1.0e9)
    assert thermal.ln_tinf() == pytest.approx(math.log(10.0))
    assert thermal.tinf() == pytest.approx(1.0e9)
    columns = thermal.export_columns()
    assert columns["Tinf_K"] == pytest.approx(1.0e9)
    assert "lnTinf" in columns


@pytest.mark.parametrize("bad", [0.0, -5.0, math.nan, math.inf])
def test_thermal_rejects_invalid_temperature(bad):
    with pytest.raises(PhysicsError):
        ThermalState().set_tinf(bad)


def test_chem_and_bnv_components():
    chem = ChemState(2)
    chem.data[:] = [0.1, 0.2]
    assert chem.eta(1) == 0.2
    assert chem.component_labels() == ["eta_0", "eta_1"]
    with pytest.raises(IndexError):
        chem.eta(2)
    bnv = BNVState(2)
    bnv.data[:] = [1e-3, 5.0]
    assert bnv.eta_i() == 1e-3
    assert bnv.spin_down_limit() == 5.0
    with pytest.raises(ConfigurationError):
        BNVState(1).spin_down_limit()


def test_state_vector_registry():
    state = StateVector()
    spin = SpinState(1)
    state.register(StateTag.SPIN, spin)
    assert state.is_registered(StateTag.SPIN)
    assert StateTag.SPIN in state
    assert state.get(StateTag.SPIN) is spin
    assert state.spin() is spin
    assert state.registered_tags() == [StateTag.SPIN]
    replacement = SpinState(1)
    state.register(StateTag.SPIN, replacement)
    assert state.spin() is replacement


def test_state_vector_errors_name_the_tag():
    state = StateVector()
    with pytest.raises(ConfigurationError, match="requested tag 'Spin' is not registered."):
        state.get(StateTag.SPIN)
    state.register(StateTag.THERMAL, SpinState(1))
    with pytest.raises(ConfigurationError, match="expected ThermalState"):
        state.thermal()
    with pytest.raises(ConfigurationError):
        state.register(StateTag.CHEM, [1.0])
