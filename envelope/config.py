"""Run-wide configuration, constructed once and passed to every component."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict
import json
import math


def _positive(value: float, name: str) -> float:
    v = float(value)
    if not math.isfinite(v) or v <= 0:
        raise ValueError(f"{name} must be finite and > 0, got {value!r}")
    return v


def _whole(value: Any, name: str) -> int:
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a whole number, got {value!r}") from exc
    if isinstance(value, bool) or not v.is_integer():
        raise ValueError(f"{name} must be a whole number, got {value!r}")
    return int(v)


@dataclass(frozen=True)
class ConvergenceTolerances:
    loads: float = 0.04  # [W]
    temperature: float = 0.4  # [°C]

    def __post_init__(self) -> None:
        object.__setattr__(self, "loads", _positive(self.loads, "loads tolerance"))
        object.__setattr__(self, "temperature", _positive(self.temperature, "temperature tolerance"))


@dataclass(frozen=True)
class SimulationConfig:
    timestep: float = 600.0  # [s]
    tolerances: ConvergenceTolerances = field(default_factory=ConvergenceTolerances)
    max_iterations: int = 100  # coupling iterations per surface and timestep
    min_warmup_days: int = 1
    max_warmup_days: int = 25
    parallel: bool = False
    max_workers: int | None = None
    # Discretization: dx = min(max_dx, sqrt(space_constant · alpha · dt))
    space_constant: float = 3.0
    max_dx: float = 0.04  # [m]
    max_elements_per_layer: int = 40

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestep", _positive(self.timestep, "timestep"))
        object.__setattr__(self, "space_constant", _positive(self.space_constant, "space_constant"))
        object.__setattr__(self, "max_dx", _positive(self.max_dx, "max_dx"))
        if isinstance(self.tolerances, dict):
            object.__setattr__(self, "tolerances", ConvergenceTolerances(**self.tolerances))
        for name in ("max_iterations", "max_elements_per_layer", "min_warmup_days", "max_warmup_days"):
            object.__setattr__(self, name, _whole(getattr(self, name), name))
        if self.max_workers is not None:
            object.__setattr__(self, "max_workers", _whole(self.max_workers, "max_workers"))
        if self.max_iterations < 2:
            # a convergence check needs two passes
            raise ValueError(f"max_iterations must be >= 2, got {self.max_iterations!r}")
        if self.max_elements_per_layer < 1:
            raise ValueError(f"max_elements_per_layer must be >= 1, got {self.max_elements_per_layer!r}")
        if self.min_warmup_days < 1 or self.max_warmup_days < self.min_warmup_days:
            raise ValueError(
                f"warm-up bounds must satisfy 1 <= min <= max, got "
                f"min={self.min_warmup_days!r} max={self.max_warmup_days!r}"
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers!r}")

    @property
    def timesteps_per_day(self) -> int:
        return max(1, int(round(86400.0 / self.timestep)))

    def with_overrides(self, **kwargs: Any) -> "SimulationConfig":
        return replace(self, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: str | Path | None = None) -> SimulationConfig:
    """Load a :class:`SimulationConfig` from a JSON file.

    Keys mirror the dataclass fields; ``tolerances`` may be given as
    ``{"loads": ..., "temperature": ...}``. Missing keys keep their defaults,
    unknown keys raise ``ValueError``. ``None`` returns the defaults.
    """
    if path is None:
        return SimulationConfig()
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be an object in {config_path}")
    known = set(SimulationConfig.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys in {config_path}: {', '.join(unknown)}")
    return SimulationConfig(**data)
