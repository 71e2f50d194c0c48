"""Transient one-dimensional conduction through a layered construction.

The solver marches node temperatures with a fully implicit (backward Euler)
finite-volume scheme, so any positive timestep is stable. Nodes are laid out
by :mod:`envelope.construction`; the outside face is node ``0`` and the
inside face is the last node.

Each face takes one of three conditions:

- :class:`FixedTemperature` pins the face node,
- :class:`FixedFlux` injects a heat flux into the face [W/m²],
- :class:`Convective` injects ``coefficient·(temperature − T_face) + flux``,
  treated implicitly in ``T_face``.

Face fluxes in the results come from the face node energy balance and are
positive into the solid, so ``outside_flux + inside_flux == stored_flux``.

Usage::

    solver = ConductionSolver(construction, config=config)
    solver.initialize(25.0)
    t_out, t_in, stored = solver.advance(FixedTemperature(30.0), FixedTemperature(20.0), 1200.0)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union
import logging
import math

import numpy as np

from .config import SimulationConfig
from .construction import Discretization, discretize_for, steady_profile
from .dataclasses import Construction, SurfaceThermalState
from .errors import NonFiniteResult, NotInitialized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixedTemperature:
    value: float  # [°C]


@dataclass(frozen=True)
class FixedFlux:
    value: float  # [W/m2], positive into the solid


@dataclass(frozen=True)
class Convective:
    coefficient: float  # [W/m²K]
    temperature: float  # [°C]
    flux: float = 0.0  # [W/m2], extra source absorbed at the face


FaceCondition = Union[FixedTemperature, FixedFlux, Convective]


@dataclass(frozen=True)
class ConductionResult:
    nodes: Tuple[float, ...]
    outside_flux: float  # [W/m2] into the solid
    inside_flux: float  # [W/m2] into the solid
    stored_flux: float  # rate of change of stored heat [W/m2]
    dt: float  # [s]

    @property
    def outside_temperature(self) -> float:
        return self.nodes[0]

    @property
    def inside_temperature(self) -> float:
        return self.nodes[-1]

    def to_state(self) -> SurfaceThermalState:
        return SurfaceThermalState(self.nodes, self.outside_flux, self.inside_flux)


def _finite(value: float, where: str) -> float:
    v = float(value)
    if not math.isfinite(v):
        raise NonFiniteResult(f"Non-finite {where}: {value!r}", where=where)
    return v


class ConductionSolver:
    """Per-surface conduction model.

    The solver starts Uninitialized; :meth:`initialize` (or
    :meth:`initialize_steady`) makes it Ready. :meth:`trial` never changes the
    state, :meth:`commit` and :meth:`advance` replace it.
    """

    def __init__(
        self,
        construction: Construction,
        discretization: Optional[Discretization] = None,
        config: Optional[SimulationConfig] = None,
    ):
        self.construction = construction
        self.config = config or SimulationConfig()
        self.discretization = discretization or discretize_for(construction, self.config)
        self._caps = self.discretization.capacitances()
        self._cond = self.discretization.conductances()
        n = self.discretization.n_nodes
        k = np.zeros((n, n))
        idx = np.arange(n - 1)
        k[idx, idx] += self._cond
        k[idx + 1, idx + 1] += self._cond
        k[idx, idx + 1] -= self._cond
        k[idx + 1, idx] -= self._cond
        self._stiffness = k
        self._state: Optional[SurfaceThermalState] = None
        logger.debug(
            "Conduction solver for %r: %d nodes, elements per layer %s",
            construction.name, n, self.discretization.elements,
        )

    @property
    def n_nodes(self) -> int:
        return self.discretization.n_nodes

    @property
    def is_ready(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> SurfaceThermalState:
        return self._require_state()

    def _require_state(self) -> SurfaceThermalState:
        if self._state is None:
            raise NotInitialized(
                f"Conduction solver for {self.construction.name!r} has no temperature profile; "
                "call initialize() first"
            )
        return self._state

    def initialize(self, temperature: Union[float, Sequence[float]]) -> SurfaceThermalState:
        """Seed the nodes with a uniform temperature or a full node profile."""
        if isinstance(temperature, (int, float)):
            nodes = [_finite(temperature, "seed temperature")] * self.n_nodes
        else:
            nodes = [_finite(t, "seed temperature") for t in temperature]
            if len(nodes) != self.n_nodes:
                raise ValueError(f"Seed profile has {len(nodes)} values, expected {self.n_nodes}")
        self._state = SurfaceThermalState(tuple(nodes))
        return self._state

    def initialize_steady(self, t_outside: float, t_inside: float) -> SurfaceThermalState:
        """Seed with the steady profile between two face temperatures."""
        profile = steady_profile(
            self.discretization,
            _finite(t_outside, "seed temperature"),
            _finite(t_inside, "seed temperature"),
        )
        self._state = SurfaceThermalState(tuple(profile))
        return self._state

    def snapshot(self) -> SurfaceThermalState:
        return self._require_state()

    def restore(self, state: SurfaceThermalState) -> None:
        if len(state.nodes) != self.n_nodes:
            raise ValueError(f"State has {len(state.nodes)} nodes, expected {self.n_nodes}")
        self._state = state

    def trial(self, outside: FaceCondition, inside: FaceCondition, dt: float) -> ConductionResult:
        """Compute the state one timestep ahead without committing it."""
        state = self._require_state()
        dt = _finite(dt, "timestep")
        if dt <= 0:
            raise ValueError(f"timestep must be > 0, got {dt!r}")

        t_old = np.asarray(state.nodes, dtype=float)
        c_dt = self._caps / dt
        a = self._stiffness.copy()
        a[np.diag_indices_from(a)] += c_dt
        b = c_dt * t_old
        last = self.n_nodes - 1
        self._apply(a, b, 0, outside, "outside")
        self._apply(a, b, last, inside, "inside")

        try:
            t_new = np.linalg.solve(a, b)
        except np.linalg.LinAlgError as exc:
            raise NonFiniteResult(
                f"Singular conduction system for {self.construction.name!r}", where="nodes"
            ) from exc
        if not np.all(np.isfinite(t_new)):
            raise NonFiniteResult(
                f"Conduction produced non-finite temperatures for {self.construction.name!r}", where="nodes"
            )

        stored = c_dt * (t_new - t_old)
        q_out = stored[0] + self._cond[0] * (t_new[0] - t_new[1])
        q_in = stored[last] + self._cond[-1] * (t_new[last] - t_new[last - 1])
        return ConductionResult(
            nodes=tuple(float(t) for t in t_new),
            outside_flux=float(q_out),
            inside_flux=float(q_in),
            stored_flux=float(stored.sum()),
            dt=dt,
        )

    @staticmethod
    def _apply(a: np.ndarray, b: np.ndarray, k: int, condition: FaceCondition, face: str) -> None:
        if isinstance(condition, FixedTemperature):
            a[k, :] = 0.0
            a[k, k] = 1.0
            b[k] = _finite(condition.value, f"{face} face temperature")
        elif isinstance(condition, FixedFlux):
            b[k] += _finite(condition.value, f"{face} face flux")
        elif isinstance(condition, Convective):
            h = _finite(condition.coefficient, f"{face} face coefficient")
            if h < 0:
                raise ValueError(f"{face} face coefficient must be >= 0, got {h!r}")
            a[k, k] += h
            b[k] += h * _finite(condition.temperature, f"{face} face temperature") + _finite(
                condition.flux, f"{face} face flux"
            )
        else:
            raise TypeError(f"Unsupported {face} face condition: {type(condition).__name__}")

    def commit(self, result: ConductionResult) -> SurfaceThermalState:
        self._require_state()
        if len(result.nodes) != self.n_nodes:
            raise ValueError(f"Result has {len(result.nodes)} nodes, expected {self.n_nodes}")
        self._state = result.to_state()
        return self._state

    def advance(self, outside: FaceCondition, inside: FaceCondition, dt: float) -> Tuple[float, float, float]:
        """March one timestep and commit it.

        Returns ``(outside_face_T, inside_face_T, stored_heat_flux)``.
        """
        result = self.trial(outside, inside, dt)
        self.commit(result)
        return result.outside_temperature, result.inside_temperature, result.stored_flux
