from typing import List

import numpy as np
import pytest

from starevol.accumulator import RHSAccumulator
from starevol.context import DriverContext
from starevol.errors import ConfigurationError, EvaluationError
from starevol.layout import StateLayout
from starevol.observers import FinishInfo, Observer, RunInfo, SampleInfo
from starevol.physics.base import Driver
from starevol.schema import RunConfig
from starevol.state import SpinState, ThermalState
from starevol.state_vector import StateVector
from starevol.system import GSL_SUCCESS, EvolutionSystem
from starevol.tags import StateTag


class ConstantSpinDown(Driver):
    name = "ConstantSpinDown"
    depends_on = (StateTag.SPIN,)
    updates = (StateTag.SPIN,)

    def __init__(self, rate: float, log: List[str] = None) -> None:
        self.rate = rate
        self.log = log if log is not None else []

    def accumulate_rhs(self, t, state, rhs, ctx):
        self.log.append(f"{self.name}:{self.rate}")
        rhs.add_to(StateTag.SPIN, 0, self.rate)


class ProportionalCooling(Driver):
    name = "ProportionalCooling"
    depends_on = (StateTag.SPIN, StateTag.THERMAL)
    updates = (StateTag.THERMAL,)

    def accumulate_rhs(self, t, state, rhs, ctx):
        rhs.add_to(StateTag.THERMAL, 0, -1.0e-3 * state.spin().omega())


class Broken(Driver):
    name = "Broken"

    def accumulate_rhs(self, t, state, rhs, ctx):
        raise ZeroDivisionError("boom")


class Recorder(Observer):
    def __init__(self) -> None:
        self.events = []

    def on_start(self, run, state, ctx):
        self.events.append(("start", run.t0, state.spin().omega()))

    def on_sample(self, sample, state, ctx):
        self.events.append(("sample", sample.sample_index, state.spin().omega()))

    def on_finish(self, finish, state, ctx):
        self.events.append(("finish", finish.ok, state.spin().omega()))


def _wiring(order=(StateTag.THERMAL, StateTag.SPIN)):
    state = StateVector()
    spin = SpinState(1)
    spin.set_omega(100.0)
    thermal = ThermalState(1)
    thermal.set_tinf(1.0e8)
    state.register(StateTag.SPIN, spin)
    state.register(StateTag.THERMAL, thermal)
    layout = StateLayout()
    layout.configure(state, order)
    rhs = RHSAccumulator()
    for tag in layout.order:
        rhs.configure(tag, layout.block_size(tag))
    ctx = DriverContext(cfg=RunConfig())
    return ctx, state, rhs, layout


def test_contributions_from_two_drivers_add_up():
    ctx, state, rhs, layout = _wiring()
    system = EvolutionSystem(
        ctx, state, rhs, layout, [ConstantSpinDown(-0.5), ConstantSpinDown(-0.5)]
    )
    y = np.zeros(system.dimension)
    y[layout.offset(StateTag.SPIN)] = 100.0
    dydt = np.full(system.dimension, np.nan)
    assert system(0.0, y, dydt) == GSL_SUCCESS
    assert dydt[layout.offset(StateTag.SPIN)] == -1.0
    assert dydt[layout.offset(StateTag.THERMAL)] == 0.0


def test_repeated_evaluation_does_not_accumulate():
    ctx, state, rhs, layout = _wiring()
    system = EvolutionSystem(ctx, state, rhs, layout, [ConstantSpinDown(-2.0)])
    y = np.array([0.0, 50.0])
    first = system.derivative(0.0, y)
    second = system.derivative(1.0, y)
    assert np.array_equal(first, second)


def test_drivers_see_the_unpacked_state():
    ctx, state, rhs, layout = _wiring(order=(StateTag.SPIN, StateTag.THERMAL))
    system = EvolutionSystem(ctx, state, rhs, layout, [ProportionalCooling()])
    dydt = system.derivative(0.0, np.array([200.0, 0.0]))
    assert dydt[1] == pytest.approx(-0.2)
    assert state.spin().omega() == 200.0


def test_drivers_run_in_registration_order():
    ctx, state, rhs, layout = _wiring()
    log: List[str] = []
    drivers = [ConstantSpinDown(-1.0, log), ConstantSpinDown(-2.0, log)]
    system = EvolutionSystem(ctx, state, rhs, layout, drivers)
    system.derivative(0.0, np.zeros(2))
    assert log == ["ConstantSpinDown:-1.0", "ConstantSpinDown:-2.0"]


def test_construction_validates_wiring():
    ctx, state, rhs, layout = _wiring()
    with pytest.raises(ConfigurationError, match="no drivers"):
        EvolutionSystem(ctx, state, rhs, layout, [])
    with pytest.raises(ConfigurationError, match="cfg"):
        EvolutionSystem(DriverContext(), state, rhs, layout, [ConstantSpinDown(-1.0)])
    with pytest.raises(ConfigurationError, match="geo"):
        EvolutionSystem(
            ctx, state, rhs, layout, [ConstantSpinDown(-1.0)], required_context=("cfg", "geo")
        )
    bare = RHSAccumulator()
    bare.configure(StateTag.THERMAL, 1)
    with pytest.raises(ConfigurationError, match="'Spin'"):
        EvolutionSystem(ctx, state, bare, layout, [ConstantSpinDown(-1.0)])


def test_driver_failures_are_wrapped():
    ctx, state, rhs, layout = _wiring()
    system = EvolutionSystem(ctx, state, rhs, layout, [Broken()])
    with pytest.raises(EvaluationError, match="driver 'Broken' failed") as excinfo:
        system.derivative(3.0, np.zeros(2))
    assert isinstance(excinfo.value.__cause__, ZeroDivisionError)


def test_notifications_unpack_then_fan_out():
    ctx, state, rhs, layout = _wiring()
    system = EvolutionSystem(ctx, state, rhs, layout, [ConstantSpinDown(-1.0)])
    first, second = Recorder(), Recorder()
    system.add_observer(first)
    system.add_observer(second)
    spin_at = layout.offset(StateTag.SPIN)

    y = np.zeros(2)
    y[spin_at] = 10.0
    system.notify_start(RunInfo(t0=0.0, tf=1.0), y)
    y[spin_at] = 9.0
    system.notify_sample(SampleInfo(t=0.5, sample_index=1), y)
    y[spin_at] = 8.0
    system.notify_finish(FinishInfo(t_final=1.0, ok=True), y)

    expected = [("start", 0.0, 10.0), ("sample", 1, 9.0), ("finish", True, 8.0)]
    assert first.events == expected
    assert second.events == expected
