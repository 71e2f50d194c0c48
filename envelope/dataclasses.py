from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple
import math

from .errors import EmptyConstruction, InvalidMaterial


def _require_positive(value: float, field_name: str, owner: str) -> float:
    """Return *value* as float or raise ``InvalidMaterial`` naming the field."""
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidMaterial(f"{owner}: {field_name} is not a number: {value!r}", field_name, value) from exc
    if not math.isfinite(v) or v <= 0:
        raise InvalidMaterial(f"{owner}: {field_name} must be finite and > 0, got {value!r}", field_name, value)
    return v


def _require_fraction(value: float, field_name: str, owner: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidMaterial(f"{owner}: {field_name} is not a number: {value!r}", field_name, value) from exc
    if not math.isfinite(v) or v < 0 or v > 1:
        raise InvalidMaterial(f"{owner}: {field_name} must be within [0, 1], got {value!r}", field_name, value)
    return v


@dataclass(frozen=True)
class Layer:
    name: str
    d: float  # thickness [m]
    lambda_: float  # thermal conductivity [W/mK]
    rho: float  # density [kg/m3]
    cp: float  # specific heat [J/kgK]
    thermal_absorptance: float = 0.9  # longwave emissivity [-]
    solar_absorptance: float = 0.7  # [-]
    visible_absorptance: float = 0.7  # [-]

    def __post_init__(self) -> None:
        owner = f"Layer {self.name!r}"
        for name in ("d", "lambda_", "rho", "cp"):
            object.__setattr__(self, name, _require_positive(getattr(self, name), name, owner))
        for name in ("thermal_absorptance", "solar_absorptance", "visible_absorptance"):
            object.__setattr__(self, name, _require_fraction(getattr(self, name), name, owner))

    @property
    def resistance(self) -> float:
        """Thermal resistance d/λ [m²K/W]."""
        return self.d / self.lambda_

    @property
    def heat_capacity(self) -> float:
        """Areal heat capacity ρ·c·d [J/m²K]."""
        return self.rho * self.cp * self.d

    @property
    def diffusivity(self) -> float:
        """Thermal diffusivity λ/(ρ·c) [m²/s]."""
        return self.lambda_ / (self.rho * self.cp)


@dataclass(frozen=True)
class Construction:
    """Ordered layer stack, outside to inside.

    ``total_resistance`` and ``total_heat_capacity`` are computed once when the
    construction is built.
    """

    name: str
    layers: Tuple[Layer, ...]
    total_resistance: float = field(init=False)  # [m²K/W], surface films excluded
    total_heat_capacity: float = field(init=False)  # [J/m²K]

    def __post_init__(self) -> None:
        layers = tuple(self.layers)
        if not layers:
            raise EmptyConstruction(self.name)
        for layer in layers:
            if not isinstance(layer, Layer):
                raise InvalidMaterial(f"Construction {self.name!r}: expected Layer, got {type(layer).__name__}")
        object.__setattr__(self, "layers", layers)
        object.__setattr__(self, "total_resistance", sum(layer.resistance for layer in layers))
        object.__setattr__(self, "total_heat_capacity", sum(layer.heat_capacity for layer in layers))

    @classmethod
    def from_tuples(cls, name: str, rows: Sequence[Sequence[float]]) -> "Construction":
        """Build from ``(d, lambda_, rho, cp)`` tuples, outside layer first."""
        layers = [
            Layer(f"{name} layer {i + 1}", *row)  # type: ignore[arg-type]
            for i, row in enumerate(rows)
        ]
        return cls(name, tuple(layers))

    @property
    def thickness(self) -> float:
        return sum(layer.d for layer in self.layers)

    @property
    def outside_layer(self) -> Layer:
        return self.layers[0]

    @property
    def inside_layer(self) -> Layer:
        return self.layers[-1]

    def u_value(self, rsi: float = 0.13, rse: float = 0.04) -> float:
        """Return U [W/m²K] including the inside and outside surface film resistances."""
        return 1.0 / (rsi + self.total_resistance + rse)


class Roughness(Enum):
    """Exterior roughness classes and their forced-convection multipliers."""

    VERY_ROUGH = 2.17  # stucco
    ROUGH = 1.67  # brick
    MEDIUM_ROUGH = 1.52  # concrete
    MEDIUM_SMOOTH = 1.13  # clear pine
    SMOOTH = 1.11  # smooth plaster
    VERY_SMOOTH = 1.00  # glass

    @classmethod
    def parse(cls, value: "Roughness | str") -> "Roughness":
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls[key]
        except KeyError as exc:
            raise ValueError(f"Unknown roughness class: {value!r}") from exc


class FaceKind(Enum):
    EXTERIOR = "exterior"
    INTERIOR = "interior"


class Status(Enum):
    CONVERGED = "converged"
    DID_NOT_CONVERGE = "did_not_converge"
    WARMUP_NOT_CONVERGED = "warmup_not_converged"


@dataclass(frozen=True)
class SurfaceGeometry:
    """Geometry-derived inputs for one surface.

    ``tilt`` is the angle between the outside face normal and the zenith in
    degrees (0 roof facing up, 90 wall, 180 floor seen from below). The inside
    face normal points the opposite way.
    """

    area: float  # [m2]
    tilt: float = 90.0  # [deg]
    azimuth: float = 180.0  # [deg], outward normal, clockwise from north
    perimeter: Optional[float] = None  # [m], defaults to a square of the same area
    roughness: Roughness = Roughness.MEDIUM_ROUGH

    def __post_init__(self) -> None:
        object.__setattr__(self, "area", _require_positive(self.area, "area", "SurfaceGeometry"))
        if self.perimeter is not None:
            object.__setattr__(self, "perimeter", _require_positive(self.perimeter, "perimeter", "SurfaceGeometry"))
        if not 0.0 <= float(self.tilt) <= 180.0:
            raise ValueError(f"tilt must be within [0, 180] degrees, got {self.tilt!r}")
        object.__setattr__(self, "roughness", Roughness.parse(self.roughness))

    @property
    def inside_tilt(self) -> float:
        return 180.0 - self.tilt

    @property
    def perimeter_over_area(self) -> float:
        perimeter = self.perimeter if self.perimeter is not None else 4.0 * math.sqrt(self.area)
        return perimeter / self.area


@dataclass(frozen=True)
class OutdoorBoundary:
    air_temperature: float  # [°C]
    wind_speed: float = 0.0  # [m/s] at surface height
    wind_direction: float = 0.0  # [deg], direction the wind comes from
    incident_solar: float = 0.0  # [W/m2]
    ir_irradiance: Optional[float] = None  # incident longwave [W/m2]


@dataclass(frozen=True)
class ZoneBoundary:
    air_temperature: float  # [°C]
    shortwave_gain: float = 0.0  # incident shortwave [W/m2]
    longwave_gain: float = 0.0  # absorbed radiant gains [W/m2]
    ir_irradiance: Optional[float] = None  # incident longwave [W/m2]


@dataclass(frozen=True)
class ConvectionResult:
    coefficient: float  # h [W/m²K], always > 0
    heat_flux: float  # h·(T_air − T_surface) [W/m2], positive into the surface
    heat_flow: float  # heat_flux · area [W]


@dataclass(frozen=True)
class SurfaceThermalState:
    """Committed nodal temperatures of one surface, outside node first."""

    nodes: Tuple[float, ...]  # [°C]
    outside_flux: float = 0.0  # conduction into the solid at the outside face [W/m2]
    inside_flux: float = 0.0  # conduction into the solid at the inside face [W/m2]

    @property
    def outside_temperature(self) -> float:
        return self.nodes[0]

    @property
    def inside_temperature(self) -> float:
        return self.nodes[-1]
