"""Per-surface, per-timestep coupling of conduction and face heat exchange.

Each pass takes the current guess of the two face temperatures, evaluates the
convection coefficients and the absorbed radiation at each face, and hands
them to the conduction solver as :class:`Convective` face conditions. The
pass result becomes the next guess. The loop stops when the face
temperatures and face loads both change less than the tolerances between two
consecutive passes, or after ``config.max_iterations`` passes.

Longwave exchange, when an incident irradiance is supplied, is linearized
around the guess: ``q = ε(E − σT_g⁴) − h_r(T − T_g)`` with
``h_r = 4εσT_g³`` (kelvin).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union
import logging
import math

from .conduction import ConductionResult, ConductionSolver, Convective
from .config import SimulationConfig
from .convection import convect
from .dataclasses import (
    Construction,
    ConvectionResult,
    FaceKind,
    Layer,
    OutdoorBoundary,
    Status,
    SurfaceGeometry,
    SurfaceThermalState,
    ZoneBoundary,
)
from .errors import NonFiniteResult

logger = logging.getLogger(__name__)

SIGMA = 5.670374419e-8  # Stefan-Boltzmann constant [W/m²K⁴]
KELVIN = 273.15

BoundaryCondition = Union[OutdoorBoundary, ZoneBoundary]


@dataclass(frozen=True)
class TimestepResult:
    """Converged (or best-estimate) state of one surface after one timestep.

    Flows are in W over the whole surface. Convection flows are positive from
    the air into the face; ``outside_conduction`` is heat entering the solid
    at the outside face and ``inside_conduction`` heat leaving it at the
    inside face toward the zone.
    """

    outside_temperature: float  # [°C]
    inside_temperature: float  # [°C]
    outside_coefficient: float  # [W/m²K]
    inside_coefficient: float  # [W/m²K]
    outside_convection: float  # [W]
    inside_convection: float  # [W]
    outside_conduction: float  # [W]
    inside_conduction: float  # [W]
    stored_heat: float  # [W]
    iterations: int
    status: Status
    unmet: Tuple[str, ...] = ()

    @property
    def converged(self) -> bool:
        return self.status is Status.CONVERGED

    @property
    def conduction(self) -> float:
        """Net conductive heat flow delivered through the surface to the zone side [W]."""
        return self.inside_conduction


@dataclass(frozen=True)
class _FaceExchange:
    condition: Convective
    convection: ConvectionResult  # evaluated at the guess temperature
    air_temperature: float

    @property
    def h_conv(self) -> float:
        return self.convection.coefficient


class SurfaceCoupling:
    """Coupling loop owning one surface's conduction solver."""

    def __init__(
        self,
        name: str,
        construction: Construction,
        geometry: SurfaceGeometry,
        config: Optional[SimulationConfig] = None,
        solver: Optional[ConductionSolver] = None,
    ):
        self.name = name
        self.construction = construction
        self.geometry = geometry
        self.config = config or SimulationConfig()
        self.solver = solver or ConductionSolver(construction, config=self.config)
        self.last_result: Optional[TimestepResult] = None

    def initialize(self, temperature: Union[float, Sequence[float]]) -> SurfaceThermalState:
        return self.solver.initialize(temperature)

    def initialize_steady(self, t_outside: float, t_inside: float) -> SurfaceThermalState:
        return self.solver.initialize_steady(t_outside, t_inside)

    @property
    def state(self) -> SurfaceThermalState:
        return self.solver.state

    def _exchange(self, boundary: BoundaryCondition, t_guess: float, tilt: float, layer: Layer) -> _FaceExchange:
        t_air = boundary.air_temperature
        if isinstance(boundary, OutdoorBoundary):
            convection = convect(
                FaceKind.EXTERIOR,
                tilt,
                t_guess,
                t_air,
                area=self.geometry.area,
                roughness=self.geometry.roughness,
                wind_speed=boundary.wind_speed,
                wind_direction=boundary.wind_direction,
                azimuth=self.geometry.azimuth,
                perimeter_over_area=self.geometry.perimeter_over_area,
            )
            absorbed = layer.solar_absorptance * boundary.incident_solar
        elif isinstance(boundary, ZoneBoundary):
            convection = convect(FaceKind.INTERIOR, tilt, t_guess, t_air, area=self.geometry.area)
            absorbed = layer.solar_absorptance * boundary.shortwave_gain + boundary.longwave_gain
        else:
            raise TypeError(f"Unsupported boundary condition: {type(boundary).__name__}")

        h = convection.coefficient
        h_r = 0.0
        longwave = 0.0
        eps = layer.thermal_absorptance
        if boundary.ir_irradiance is not None and eps > 0:
            t_k = t_guess + KELVIN
            h_r = 4.0 * eps * SIGMA * t_k ** 3
            longwave = eps * (boundary.ir_irradiance - SIGMA * t_k ** 4) + h_r * (t_guess - t_air)
        condition = Convective(coefficient=h + h_r, temperature=t_air, flux=absorbed + longwave)
        return _FaceExchange(condition, convection, t_air)

    def step(self, outside: BoundaryCondition, inside: BoundaryCondition) -> TimestepResult:
        """Advance the surface one timestep and commit the result.

        A forced stop still commits the best estimate; the returned status
        says so.
        """
        tol = self.config.tolerances
        dt = self.config.timestep
        area = self.geometry.area
        state = self.solver.snapshot()
        t_out, t_in = state.outside_temperature, state.inside_temperature

        previous: Optional[Tuple[float, float, float, float]] = None
        result: Optional[ConductionResult] = None
        ex_out = ex_in = None
        status = Status.DID_NOT_CONVERGE
        unmet: Tuple[str, ...] = ()
        iterations = 0
        d_temp = d_load = float("inf")
        for iterations in range(1, self.config.max_iterations + 1):
            ex_out = self._exchange(outside, t_out, self.geometry.tilt, self.construction.outside_layer)
            ex_in = self._exchange(inside, t_in, self.geometry.inside_tilt, self.construction.inside_layer)
            result = self.solver.trial(ex_out.condition, ex_in.condition, dt)
            current = (
                result.outside_temperature,
                result.inside_temperature,
                result.outside_flux * area,
                result.inside_flux * area,
            )
            if previous is not None:
                d_temp = max(abs(current[0] - previous[0]), abs(current[1] - previous[1]))
                d_load = max(abs(current[2] - previous[2]), abs(current[3] - previous[3]))
                if d_temp <= tol.temperature and d_load <= tol.loads:
                    status = Status.CONVERGED
                    break
            previous = current
            t_out, t_in = result.outside_temperature, result.inside_temperature

        if status is not Status.CONVERGED:
            unmet = tuple(
                name
                for name, delta, limit in (
                    ("temperature", d_temp, tol.temperature),
                    ("loads", d_load, tol.loads),
                )
                if not delta <= limit
            )
            logger.warning(
                "Surface %r did not converge after %d iterations: %s tolerance not met "
                "(dT=%.4g C, dQ=%.4g W)",
                self.name, iterations, " and ".join(unmet), d_temp, d_load,
            )
        else:
            logger.debug("Surface %r converged in %d iterations", self.name, iterations)

        self.solver.commit(result)
        out = TimestepResult(
            outside_temperature=result.outside_temperature,
            inside_temperature=result.inside_temperature,
            outside_coefficient=ex_out.h_conv,
            inside_coefficient=ex_in.h_conv,
            outside_convection=ex_out.h_conv * (ex_out.air_temperature - result.outside_temperature) * area,
            inside_convection=ex_in.h_conv * (ex_in.air_temperature - result.inside_temperature) * area,
            outside_conduction=result.outside_flux * area,
            inside_conduction=-result.inside_flux * area,
            stored_heat=result.stored_flux * area,
            iterations=iterations,
            status=status,
            unmet=unmet,
        )
        for value in (out.outside_temperature, out.inside_temperature, out.outside_conduction, out.inside_conduction):
            if not math.isfinite(value):
                raise NonFiniteResult(f"Surface {self.name!r} produced a non-finite result", where="timestep")
        self.last_result = out
        return out
