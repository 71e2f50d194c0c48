"""Simulation driver: a surface arena plus end-to-end runs.

Surfaces are independent, so each one lives in the arena behind an integer
handle and owns its coupling loop and conduction state. ``step_all`` advances
every surface one timestep, optionally in a thread pool; timesteps of one
surface always run in order.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union
import logging

from .config import SimulationConfig
from .construction import layer_interfaces
from .coupling import BoundaryCondition, SurfaceCoupling, TimestepResult
from .dataclasses import Construction, Status, SurfaceGeometry, SurfaceThermalState
from .warmup import DesignDay, WarmupController, WarmupResult

logger = logging.getLogger(__name__)

BoundaryPair = Tuple[BoundaryCondition, BoundaryCondition]


@dataclass(frozen=True)
class SurfaceInput:
    name: str
    construction: Construction
    geometry: SurfaceGeometry
    seed: Union[None, float, str] = None  # see WarmupController.run


class SurfaceArena:
    """Owns the coupling loops of all surfaces, addressed by handle.

    With ``config.parallel`` one thread pool is shared by every call until
    :meth:`close`; use the arena as a context manager to release it.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()
        self._surfaces: List[SurfaceCoupling] = []
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "SurfaceArena":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def add(self, name: str, construction: Construction, geometry: SurfaceGeometry) -> int:
        self._surfaces.append(SurfaceCoupling(name, construction, geometry, self.config))
        return len(self._surfaces) - 1

    def __getitem__(self, handle: int) -> SurfaceCoupling:
        return self._surfaces[handle]

    def __len__(self) -> int:
        return len(self._surfaces)

    def __iter__(self) -> Iterator[SurfaceCoupling]:
        return iter(self._surfaces)

    def _map(self, fn, items: Sequence) -> List:
        if self.config.parallel and len(items) > 1:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
            return list(self._executor.map(fn, items))
        return [fn(item) for item in items]

    def warmup(self, days: Sequence[DesignDay], seeds: Optional[Sequence[Union[None, float, str]]] = None) -> List[WarmupResult]:
        """Warm every surface up on its own design day (``days[handle]``)."""
        if len(days) != len(self._surfaces):
            raise ValueError(f"Expected {len(self._surfaces)} design days, got {len(days)}")
        seeds = list(seeds) if seeds is not None else [None] * len(self._surfaces)
        controller = WarmupController(self.config)
        return self._map(
            lambda handle: controller.run(self._surfaces[handle], days[handle], seeds[handle]),
            list(range(len(self._surfaces))),
        )

    def step_all(self, boundaries: Sequence[BoundaryPair]) -> List[TimestepResult]:
        """Advance every surface one timestep; ``boundaries[handle]`` is ``(outside, inside)``."""
        if len(boundaries) != len(self._surfaces):
            raise ValueError(f"Expected {len(self._surfaces)} boundary pairs, got {len(boundaries)}")
        return self._map(
            lambda handle: self._surfaces[handle].step(*boundaries[handle]),
            list(range(len(self._surfaces))),
        )


@dataclass
class SimulationRun:
    names: List[str]
    warmup: List[Optional[WarmupResult]]
    steps: List[List[TimestepResult]] = field(default_factory=list)  # [timestep][handle]
    states: List[SurfaceThermalState] = field(default_factory=list)  # final state per handle
    depths: List[List[float]] = field(default_factory=list)  # node depth per handle [m]

    def surface(self, handle: int) -> List[TimestepResult]:
        return [step[handle] for step in self.steps]

    def non_converged(self) -> Dict[str, int]:
        counts = {name: 0 for name in self.names}
        for step in self.steps:
            for name, result in zip(self.names, step):
                if not result.converged:
                    counts[name] += 1
        return counts


def simulate(
    surfaces: Sequence[SurfaceInput],
    series: Sequence[Sequence[BoundaryPair]],
    config: Optional[SimulationConfig] = None,
    warmup: bool = True,
    warmup_day: Optional[Sequence[Sequence[BoundaryPair]]] = None,
) -> SimulationRun:
    """Warm up and run every surface over ``series[timestep][surface]``.

    Without ``warmup_day`` (laid out like ``series``) the first day of the
    series is the warm-up design day. With ``warmup=False`` each surface is
    seeded from its ``seed`` (default: steady profile at the first step).
    """
    config = config or SimulationConfig()
    if not series:
        raise ValueError("Boundary series is empty")
    names = [s.name for s in surfaces]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Surface names must be unique, repeated: {', '.join(duplicates)}")
    with SurfaceArena(config) as arena:
        return _run(arena, surfaces, series, config, warmup, warmup_day)


def _run(
    arena: SurfaceArena,
    surfaces: Sequence[SurfaceInput],
    series: Sequence[Sequence[BoundaryPair]],
    config: SimulationConfig,
    warmup: bool,
    warmup_day: Optional[Sequence[Sequence[BoundaryPair]]],
) -> SimulationRun:
    for s in surfaces:
        arena.add(s.name, s.construction, s.geometry)
    seeds = [s.seed for s in surfaces]
    logger.info("Simulating %d surfaces over %d timesteps of %.0f s", len(arena), len(series), config.timestep)

    warmups: List[Optional[WarmupResult]] = [None] * len(arena)
    if warmup:
        day_steps = warmup_day if warmup_day is not None else series[: config.timesteps_per_day]
        days = [[step[handle] for step in day_steps] for handle in range(len(arena))]
        warmups = list(arena.warmup(days, seeds))
        for name, w in zip([s.name for s in surfaces], warmups):
            if w is not None and w.status is Status.WARMUP_NOT_CONVERGED:
                logger.warning("Results for %r on the first simulated day may be unreliable", name)
    else:
        for handle, seed in enumerate(seeds):
            coupling = arena[handle]
            first_out, first_in = series[0][handle]
            if seed is None or seed == "steady":
                coupling.initialize_steady(first_out.air_temperature, first_in.air_temperature)
            else:
                coupling.initialize(float(seed))

    run = SimulationRun([s.name for s in surfaces], warmups)
    for boundaries in series:
        run.steps.append(arena.step_all(boundaries))
    run.states = [coupling.state for coupling in arena]
    run.depths = [coupling.solver.discretization.positions() for coupling in arena]
    logger.info("Simulation finished; non-converged timesteps: %s", run.non_converged())
    return run


def simulate_surface(
    surface: SurfaceInput,
    series: Sequence[BoundaryPair],
    config: Optional[SimulationConfig] = None,
    warmup: bool = True,
) -> Dict[str, object]:
    """Single-surface run flattened into plain lists, for reports and the web API."""
    config = config or SimulationConfig()
    run = simulate([surface], [[pair] for pair in series], config, warmup=warmup)
    steps = run.surface(0)
    w = run.warmup[0]
    construction = surface.construction
    return {
        "name": surface.name,
        "U": construction.u_value(),
        "R_total": construction.total_resistance,
        "heat_capacity": construction.total_heat_capacity,
        "timestep": config.timestep,
        "time_h": [(i + 1) * config.timestep / 3600.0 for i in range(len(steps))],
        "theta_out": [r.outside_temperature for r in steps],
        "theta_in": [r.inside_temperature for r in steps],
        "h_out": [r.outside_coefficient for r in steps],
        "h_in": [r.inside_coefficient for r in steps],
        "q_conv_out": [r.outside_convection for r in steps],
        "q_conv_in": [r.inside_convection for r in steps],
        "q_cond_out": [r.outside_conduction for r in steps],
        "q_cond_in": [r.inside_conduction for r in steps],
        "stored": [r.stored_heat for r in steps],
        "iterations": [r.iterations for r in steps],
        "status": [r.status.value for r in steps],
        "non_converged": run.non_converged()[surface.name],
        "warmup": None if w is None else {
            "status": w.status.value,
            "days": w.days,
            "temperature_deltas": list(w.temperature_deltas),
            "load_deltas": list(w.load_deltas),
        },
        "profile_depth": run.depths[0],
        "profile": list(run.states[0].nodes),
        "interfaces": list(layer_interfaces(construction)),
    }
