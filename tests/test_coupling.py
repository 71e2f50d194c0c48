import logging
import math
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from envelope import coupling as coupling_module
from envelope.config import ConvergenceTolerances, SimulationConfig
from envelope.coupling import SIGMA, SurfaceCoupling
from envelope.dataclasses import (
    Construction,
    Layer,
    OutdoorBoundary,
    Status,
    SurfaceGeometry,
    ZoneBoundary,
)
from envelope.errors import NonFiniteResult, NotInitialized


def concrete_wall():
    return Construction("concrete wall", (Layer("concrete", d=0.2, lambda_=0.816, rho=1700, cp=800),))


def light_wall():
    return Construction("light wall", (
        Layer("mineral wool", d=0.1, lambda_=0.04, rho=30, cp=840),
        Layer("gypsum", d=0.0125, lambda_=0.16, rho=800, cp=1090),
    ))


def build(construction=None, config=None, seed=20.0, **geometry):
    geometry.setdefault("area", 10.0)
    coupling = SurfaceCoupling("wall", construction or concrete_wall(), SurfaceGeometry(**geometry),
                               config or SimulationConfig(timestep=600.0))
    coupling.initialize(seed)
    return coupling


def test_step_converges_within_cap():
    config = SimulationConfig(timestep=600.0)
    coupling = build(config=config)
    res = coupling.step(OutdoorBoundary(5.0, wind_speed=3.0, wind_direction=180.0), ZoneBoundary(21.0))
    assert res.status is Status.CONVERGED
    assert res.converged
    assert 2 <= res.iterations <= config.max_iterations
    assert res.unmet == ()
    assert res.outside_coefficient > 0 and res.inside_coefficient > 0


def test_forced_stop_after_exactly_the_cap(caplog):
    config = SimulationConfig(
        timestep=600.0,
        tolerances=ConvergenceTolerances(loads=1e-12, temperature=1e-12),
        max_iterations=3,
    )
    coupling = build(light_wall(), config=config)
    with caplog.at_level(logging.WARNING, logger="envelope.coupling"):
        res = coupling.step(OutdoorBoundary(-10.0), ZoneBoundary(20.0))
    assert res.status is Status.DID_NOT_CONVERGE
    assert res.iterations == 3
    assert res.unmet
    assert "did not converge" in caplog.text
    assert math.isfinite(res.outside_temperature) and math.isfinite(res.inside_temperature)
    # the best estimate is still committed
    assert coupling.state.outside_temperature == res.outside_temperature


def test_step_commits_state():
    coupling = build()
    before = coupling.state
    res = coupling.step(OutdoorBoundary(35.0), ZoneBoundary(22.0))
    after = coupling.state
    assert after != before
    assert after.outside_temperature == res.outside_temperature
    assert after.inside_temperature == res.inside_temperature
    assert coupling.last_result is res


def test_steady_state_balances_convection_and_conduction():
    config = SimulationConfig(
        timestep=3600.0,
        tolerances=ConvergenceTolerances(loads=1e-6, temperature=1e-6),
    )
    coupling = build(light_wall(), config=config)
    for _ in range(200):
        res = coupling.step(OutdoorBoundary(0.0, wind_speed=2.0, wind_direction=180.0), ZoneBoundary(20.0))
    assert res.converged
    assert res.outside_convection == pytest.approx(res.outside_conduction, abs=1e-3)
    assert res.inside_conduction == pytest.approx(-res.inside_convection, abs=1e-3)
    assert res.outside_conduction == pytest.approx(res.inside_conduction, abs=1e-3)
    assert res.stored_heat == pytest.approx(0.0, abs=1e-3)
    # heat flows outwards: negative into the outside face, negative toward the zone
    assert res.conduction < 0
    assert 0.0 < res.outside_temperature < res.inside_temperature < 20.0


def test_solar_gain_warms_outside_face():
    sunny = build()
    shaded = build()
    hot = sunny.step(OutdoorBoundary(10.0, incident_solar=600.0), ZoneBoundary(20.0))
    cold = shaded.step(OutdoorBoundary(10.0), ZoneBoundary(20.0))
    assert hot.outside_temperature > cold.outside_temperature


def test_cold_sky_cools_outside_face():
    t = 10.0
    sky = SIGMA * (t - 20.0 + 273.15) ** 4
    with_sky = build(light_wall(), seed=t)
    without = build(light_wall(), seed=t)
    a = with_sky.step(OutdoorBoundary(t, ir_irradiance=sky), ZoneBoundary(t))
    b = without.step(OutdoorBoundary(t), ZoneBoundary(t))
    assert a.outside_temperature < b.outside_temperature


def test_interior_partition_has_zone_air_on_both_faces():
    coupling = build(tilt=0.0)
    res = coupling.step(ZoneBoundary(25.0), ZoneBoundary(18.0, shortwave_gain=50.0))
    assert res.converged
    assert res.outside_convection > 0


def test_step_requires_initialized_surface():
    coupling = SurfaceCoupling("wall", concrete_wall(), SurfaceGeometry(area=1.0))
    with pytest.raises(NotInitialized):
        coupling.step(OutdoorBoundary(0.0), ZoneBoundary(20.0))


def test_non_finite_boundary_raises():
    coupling = build()
    with pytest.raises(NonFiniteResult):
        coupling.step(OutdoorBoundary(float("nan")), ZoneBoundary(20.0))


@pytest.mark.parametrize("outdoor", [-30.0, 0.0, 45.0])
@pytest.mark.parametrize("wind", [0.0, 15.0])
def test_results_finite_and_status_honest(outdoor, wind):
    config = SimulationConfig(timestep=900.0, max_iterations=10)
    coupling = build(light_wall(), config=config)
    for _ in range(5):
        res = coupling.step(
            OutdoorBoundary(outdoor, wind_speed=wind, wind_direction=0.0, incident_solar=300.0,
                            ir_irradiance=300.0),
            ZoneBoundary(21.0, longwave_gain=5.0),
        )
        assert math.isfinite(res.outside_temperature)
        assert math.isfinite(res.inside_temperature)
        assert 1 <= res.iterations <= config.max_iterations
        if res.status is Status.DID_NOT_CONVERGE:
            assert res.iterations == config.max_iterations


def test_convection_is_reevaluated_every_pass(monkeypatch):
    calls = []
    real = coupling_module.convect

    def recording(*args, **kwargs):
        result = real(*args, **kwargs)
        calls.append(result)
        return result

    monkeypatch.setattr(coupling_module, "convect", recording)
    coupling = build(light_wall())
    res = coupling.step(OutdoorBoundary(0.0, wind_speed=2.0), ZoneBoundary(20.0))
    assert len(calls) == 2 * res.iterations
    last_outside = calls[-2]
    assert last_outside.coefficient == res.outside_coefficient
    assert last_outside.heat_flow == pytest.approx(last_outside.heat_flux * 10.0)
