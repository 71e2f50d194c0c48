"""Warm-up: replay a design day until the surface settles into a periodic state."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union
import logging

from .config import SimulationConfig
from .coupling import BoundaryCondition, SurfaceCoupling
from .dataclasses import Status

logger = logging.getLogger(__name__)

DesignDay = Sequence[Tuple[BoundaryCondition, BoundaryCondition]]


@dataclass(frozen=True)
class WarmupResult:
    status: Status
    days: int
    temperature_deltas: Tuple[float, ...]  # [°C], one per cycle after the first
    load_deltas: Tuple[float, ...]  # [W]
    non_converged_steps: int = 0

    @property
    def converged(self) -> bool:
        return self.status is Status.CONVERGED


class WarmupController:
    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()

    def run(
        self,
        coupling: SurfaceCoupling,
        day: DesignDay,
        seed: Union[None, float, str] = None,
    ) -> WarmupResult:
        """Cycle *day* through *coupling* until day-over-day drift is within tolerance.

        ``seed`` re-seeds the surface first: a number seeds a uniform
        temperature, ``"steady"`` the steady profile between the first
        timestep's air temperatures. ``None`` keeps the current state, or
        seeds steady when the surface has none yet.

        Drift is measured at the end of each cycle on the face temperatures
        and face conduction flows, so convergence needs at least two cycles;
        with ``max_warmup_days == 1`` the result is always unconverged.
        """
        if not day:
            raise ValueError("Warm-up design day has no timesteps")
        if seed == "steady" or (seed is None and not coupling.solver.is_ready):
            first_out, first_in = day[0]
            coupling.initialize_steady(first_out.air_temperature, first_in.air_temperature)
        elif isinstance(seed, str):
            raise ValueError(f"Unknown warm-up seed: {seed!r}")
        elif seed is not None:
            coupling.initialize(float(seed))

        tol = self.config.tolerances
        min_days = self.config.min_warmup_days
        max_days = self.config.max_warmup_days
        t_deltas = []
        q_deltas = []
        non_converged = 0
        previous: Optional[Tuple[float, float, float, float]] = None
        days = 0
        for days in range(1, max_days + 1):
            for outside, inside in day:
                last = coupling.step(outside, inside)
                if not last.converged:
                    non_converged += 1
            current = (
                last.outside_temperature,
                last.inside_temperature,
                last.outside_conduction,
                last.inside_conduction,
            )
            if previous is not None:
                d_temp = max(abs(current[0] - previous[0]), abs(current[1] - previous[1]))
                d_load = max(abs(current[2] - previous[2]), abs(current[3] - previous[3]))
                t_deltas.append(d_temp)
                q_deltas.append(d_load)
                logger.debug("Warm-up %r day %d: dT=%.4g C, dQ=%.4g W", coupling.name, days, d_temp, d_load)
                if days >= min_days and d_temp <= tol.temperature and d_load <= tol.loads:
                    logger.info("Warm-up of %r converged after %d days", coupling.name, days)
                    return WarmupResult(Status.CONVERGED, days, tuple(t_deltas), tuple(q_deltas), non_converged)
            previous = current

        logger.warning(
            "Warm-up of %r did not converge in %d days (dT=%.4g C, dQ=%.4g W); continuing",
            coupling.name, days,
            t_deltas[-1] if t_deltas else float("nan"),
            q_deltas[-1] if q_deltas else float("nan"),
        )
        return WarmupResult(Status.WARMUP_NOT_CONVERGED, days, tuple(t_deltas), tuple(q_deltas), non_converged)
