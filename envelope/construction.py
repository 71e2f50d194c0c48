"""Discretization of a construction into conduction nodes.

Nodes sit on element boundaries, so the first and last nodes are the outside
and inside faces and layer interfaces share a node. Each element contributes
half of its heat capacity to either end node and a conductance λ/dx between
them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple
import math

import numpy as np

from .config import SimulationConfig
from .dataclasses import Construction, Layer


@dataclass(frozen=True)
class Discretization:
    construction: Construction
    elements: Tuple[int, ...]  # element count per layer
    dx: Tuple[float, ...]  # element thickness per layer [m]

    @property
    def n_nodes(self) -> int:
        return sum(self.elements) + 1

    def capacitances(self) -> np.ndarray:
        """Heat capacity lumped on each node [J/m²K]."""
        caps = np.zeros(self.n_nodes)
        j = 0
        for layer, n, dx in zip(self.construction.layers, self.elements, self.dx):
            half = 0.5 * layer.rho * layer.cp * dx
            for _ in range(n):
                caps[j] += half
                caps[j + 1] += half
                j += 1
        return caps

    def conductances(self) -> np.ndarray:
        """Conductance between node i and i+1 [W/m²K]."""
        out: List[float] = []
        for layer, n, dx in zip(self.construction.layers, self.elements, self.dx):
            out.extend([layer.lambda_ / dx] * n)
        return np.asarray(out, dtype=float)

    def positions(self) -> List[float]:
        """Depth of each node measured from the outside face [m]."""
        xs = [0.0]
        accum = 0.0
        for n, dx in zip(self.elements, self.dx):
            for _ in range(n):
                accum += dx
                xs.append(accum)
        return xs

    def layer_of_node(self) -> List[int]:
        """Index of the layer each node belongs to (interfaces count toward the outer layer)."""
        out = [0]
        for i, n in enumerate(self.elements):
            out.extend([i] * n)
        return out


def elements_for_layer(layer: Layer, dt: float, space_constant: float, max_dx: float, max_elements: int) -> int:
    """Number of elements for *layer*.

    Target spacing is ``sqrt(space_constant · alpha · dt)`` capped at
    ``max_dx``; low diffusivity and thick layers get more elements.
    """
    dx_target = min(max_dx, math.sqrt(space_constant * layer.diffusivity * dt))
    n = int(math.ceil(layer.d / dx_target - 1e-9))
    return max(1, min(max_elements, n))


def discretize(
    construction: Construction,
    dt: float,
    space_constant: float = 3.0,
    max_dx: float = 0.04,
    max_elements: int = 40,
) -> Discretization:
    elements = tuple(
        elements_for_layer(layer, dt, space_constant, max_dx, max_elements)
        for layer in construction.layers
    )
    dx = tuple(layer.d / n for layer, n in zip(construction.layers, elements))
    return Discretization(construction, elements, dx)


def discretize_for(construction: Construction, config: SimulationConfig) -> Discretization:
    return discretize(
        construction,
        config.timestep,
        space_constant=config.space_constant,
        max_dx=config.max_dx,
        max_elements=config.max_elements_per_layer,
    )


def steady_profile(discretization: Discretization, t_outside: float, t_inside: float) -> List[float]:
    """Steady-state node temperatures for fixed face temperatures.

    Temperatures fall linearly with accumulated resistance from the outside
    face (``t_outside``) to the inside face (``t_inside``).
    """
    resistances = 1.0 / discretization.conductances()
    r_total = float(resistances.sum())
    temps = [t_outside]
    r_accum = 0.0
    for r in resistances:
        r_accum += float(r)
        temps.append(t_outside + (t_inside - t_outside) * r_accum / r_total)
    temps[-1] = t_inside
    return temps


def layer_interfaces(construction: Construction) -> Sequence[float]:
    """Depth of each layer boundary from the outside face [m]: ``[0, d1, d1+d2, ...]``."""
    xs = [0.0]
    accum = 0.0
    for layer in construction.layers:
        accum += layer.d
        xs.append(accum)
    return xs
