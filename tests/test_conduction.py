import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from envelope.conduction import ConductionSolver, Convective, FixedFlux, FixedTemperature
from envelope.config import SimulationConfig
from envelope.construction import discretize
from envelope.dataclasses import Construction, Layer
from envelope.errors import NonFiniteResult, NotInitialized


def concrete_wall():
    layer = Layer("concrete", d=0.2, lambda_=0.816, rho=1700, cp=800)
    return Construction("concrete wall", (layer,))


def mixed_wall():
    pu = Layer("polyurethane", d=0.02, lambda_=0.0252, rho=17.5, cp=2400)
    concrete = Layer("concrete", d=0.2, lambda_=0.816, rho=1700, cp=800)
    return Construction("mixed wall", (pu, concrete, pu))


def test_advance_before_initialize_raises():
    solver = ConductionSolver(concrete_wall())
    assert not solver.is_ready
    with pytest.raises(NotInitialized):
        solver.advance(FixedTemperature(30.0), FixedTemperature(20.0), 1200.0)
    with pytest.raises(NotInitialized):
        solver.state


def test_concrete_wall_reaches_steady_flux():
    config = SimulationConfig(timestep=1200.0)
    solver = ConductionSolver(concrete_wall(), config=config)
    solver.initialize(25.0)
    for _ in range(300):
        t_out, t_in, stored = solver.advance(FixedTemperature(30.0), FixedTemperature(20.0), config.timestep)
    state = solver.state
    assert t_out == pytest.approx(30.0)
    assert t_in == pytest.approx(20.0)
    assert state.outside_flux == pytest.approx(40.8, rel=1e-6)
    assert state.inside_flux == pytest.approx(-40.8, rel=1e-6)
    assert stored == pytest.approx(0.0, abs=1e-6)


@pytest.mark.parametrize("max_dx", [0.2, 0.1, 0.04, 0.01])
def test_steady_flux_independent_of_node_density(max_dx):
    construction = concrete_wall()
    disc = discretize(construction, dt=1200.0, max_dx=max_dx, max_elements=100)
    solver = ConductionSolver(construction, discretization=disc)
    solver.initialize(25.0)
    for _ in range(400):
        solver.advance(FixedTemperature(30.0), FixedTemperature(20.0), 1200.0)
    assert solver.state.outside_flux == pytest.approx(40.8, rel=1e-6)


def test_multilayer_steady_flux_uses_total_resistance():
    construction = mixed_wall()
    solver = ConductionSolver(construction)
    solver.initialize_steady(0.0, 20.0)
    result = solver.trial(FixedTemperature(0.0), FixedTemperature(20.0), 600.0)
    expected = -20.0 / construction.total_resistance
    assert result.outside_flux == pytest.approx(expected, rel=1e-9)
    assert result.stored_flux == pytest.approx(0.0, abs=1e-9)


def test_trial_does_not_mutate_and_is_repeatable():
    solver = ConductionSolver(mixed_wall())
    solver.initialize(18.0)
    before = solver.state
    outside = Convective(coefficient=15.0, temperature=-5.0, flux=120.0)
    inside = Convective(coefficient=2.5, temperature=21.0)
    first = solver.trial(outside, inside, 600.0)
    second = solver.trial(outside, inside, 600.0)
    assert solver.state is before
    assert first == second


def test_identical_solvers_give_identical_results():
    results = []
    for _ in range(2):
        solver = ConductionSolver(mixed_wall())
        solver.initialize(18.0)
        out = []
        for k in range(20):
            out.append(solver.advance(
                Convective(coefficient=10.0 + k, temperature=-5.0 + k),
                FixedFlux(3.0),
                900.0,
            ))
        results.append((out, solver.state))
    assert results[0] == results[1]


def test_face_fluxes_balance_stored_heat():
    solver = ConductionSolver(mixed_wall())
    solver.initialize(10.0)
    result = solver.trial(Convective(25.0, 35.0, 300.0), FixedFlux(-12.0), 1800.0)
    assert result.outside_flux + result.inside_flux == pytest.approx(result.stored_flux, rel=1e-9)
    assert result.inside_flux == pytest.approx(-12.0)


def test_fixed_flux_heats_the_wall():
    solver = ConductionSolver(concrete_wall())
    solver.initialize(20.0)
    t_out, t_in, stored = solver.advance(FixedFlux(100.0), FixedFlux(0.0), 3600.0)
    assert t_out > 20.0
    assert stored == pytest.approx(100.0)


def test_non_finite_boundary_raises():
    solver = ConductionSolver(concrete_wall())
    solver.initialize(20.0)
    with pytest.raises(NonFiniteResult):
        solver.advance(FixedTemperature(float("nan")), FixedTemperature(20.0), 600.0)
    with pytest.raises(NonFiniteResult):
        solver.trial(Convective(5.0, float("inf")), FixedFlux(0.0), 600.0)
    assert solver.state.nodes == tuple([20.0] * solver.n_nodes)


def test_initialize_with_profile():
    solver = ConductionSolver(concrete_wall())
    profile = [float(i) for i in range(solver.n_nodes)]
    state = solver.initialize(profile)
    assert state.outside_temperature == 0.0
    assert state.inside_temperature == float(solver.n_nodes - 1)
    with pytest.raises(ValueError):
        solver.initialize([1.0, 2.0])


def test_snapshot_and_restore():
    solver = ConductionSolver(concrete_wall())
    solver.initialize(20.0)
    saved = solver.snapshot()
    solver.advance(FixedTemperature(40.0), FixedTemperature(20.0), 3600.0)
    assert solver.state != saved
    solver.restore(saved)
    assert solver.state == saved


def test_large_timestep_stays_bounded():
    solver = ConductionSolver(mixed_wall(), config=SimulationConfig(timestep=60.0))
    solver.initialize(20.0)
    t_out, t_in, _ = solver.advance(FixedTemperature(-10.0), FixedTemperature(20.0), 86400.0 * 30)
    for t in solver.state.nodes:
        assert -10.0 - 1e-9 <= t <= 20.0 + 1e-9
