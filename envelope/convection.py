"""Convection coefficients for interior and exterior faces.

Natural convection uses the TARP set (Walton's stable/unstable correlations
for tilted and horizontal faces, the ASHRAE vertical wall correlation
otherwise). Exterior faces also get a forced term from Sparrow's windward /
leeward correlation scaled by the roughness multiplier, and keep the larger of
the two.

Every function here is pure: the same inputs give the same coefficient, so the
coupling loop can call it as often as it likes.
"""
from __future__ import annotations

from typing import Optional
import math

from .dataclasses import ConvectionResult, FaceKind, Roughness
from .errors import NonFiniteResult

# Lower bound for any convection coefficient [W/m²K]
MIN_COEFFICIENT = 0.1

# Faces whose normal is within this cosine of vertical count as horizontal for windward checks
_HORIZONTAL_COS = 0.98
_VERTICAL_COS = 1e-6
_LEEWARD_ANGLE = 100.0  # [deg]


def _check(value: Optional[float], name: str) -> None:
    if value is not None and not math.isfinite(value):
        raise NonFiniteResult(f"Convection input {name} is not finite: {value!r}", where=name)


def ashrae_vertical(delta_t: float) -> float:
    return 1.31 * abs(delta_t) ** (1.0 / 3.0)


def walton_unstable(delta_t: float, cos_tilt: float) -> float:
    return 9.482 * abs(delta_t) ** (1.0 / 3.0) / (7.238 - abs(cos_tilt))


def walton_stable(delta_t: float, cos_tilt: float) -> float:
    return 1.810 * abs(delta_t) ** (1.0 / 3.0) / (1.382 + abs(cos_tilt))


def natural(tilt: float, delta_t: float) -> float:
    """Buoyancy-driven coefficient for a face.

    ``tilt`` is the face normal angle from the zenith in degrees and
    ``delta_t`` is surface minus air temperature. Heat leaving an upward
    facing face (or entering a downward facing one) is the unstable regime.
    """
    cos_tilt = math.cos(math.radians(tilt))
    if abs(cos_tilt) < _VERTICAL_COS or delta_t == 0.0:
        return ashrae_vertical(delta_t)
    if delta_t * cos_tilt > 0:
        return walton_unstable(delta_t, cos_tilt)
    return walton_stable(delta_t, cos_tilt)


def is_windward(tilt: float, azimuth: float, wind_direction: float) -> bool:
    if abs(math.cos(math.radians(tilt))) >= _HORIZONTAL_COS:
        return True
    diff = abs(wind_direction - azimuth) % 360.0
    diff = min(diff, 360.0 - diff)
    return diff <= _LEEWARD_ANGLE


def forced(
    wind_speed: float,
    tilt: float,
    roughness: Roughness,
    azimuth: float = 180.0,
    wind_direction: Optional[float] = None,
    perimeter_over_area: float = 1.0,
) -> float:
    """Sparrow forced convection: ``2.537 · W_f · R_f · sqrt(P·V/A)``.

    Leeward faces get ``W_f = 0.5``. Without a wind direction the face is
    taken as windward.
    """
    if wind_speed <= 0.0:
        return 0.0
    w_f = 1.0
    if wind_direction is not None and not is_windward(tilt, azimuth, wind_direction):
        w_f = 0.5
    return 2.537 * w_f * Roughness.parse(roughness).value * math.sqrt(perimeter_over_area * wind_speed)


def coefficient(
    face: FaceKind,
    tilt: float,
    delta_t: float,
    roughness: Roughness = Roughness.MEDIUM_ROUGH,
    wind_speed: Optional[float] = None,
    wind_direction: Optional[float] = None,
    azimuth: float = 180.0,
    perimeter_over_area: float = 1.0,
) -> float:
    """Convection coefficient [W/m²K] for one face, never below ``MIN_COEFFICIENT``."""
    _check(tilt, "tilt")
    _check(delta_t, "delta_t")
    _check(wind_speed, "wind_speed")
    _check(wind_direction, "wind_direction")
    _check(azimuth, "azimuth")
    _check(perimeter_over_area, "perimeter_over_area")

    h = natural(tilt, delta_t)
    if FaceKind(face) is FaceKind.EXTERIOR and wind_speed:
        h = max(h, forced(
            wind_speed,
            tilt,
            roughness,
            azimuth=azimuth,
            wind_direction=wind_direction,
            perimeter_over_area=perimeter_over_area,
        ))
    return max(h, MIN_COEFFICIENT)


def convect(
    face: FaceKind,
    tilt: float,
    surface_temperature: float,
    air_temperature: float,
    area: float = 1.0,
    **kwargs,
) -> ConvectionResult:
    """Coefficient plus the flux it drives into the surface and the matching flow over *area*."""
    h = coefficient(face, tilt, surface_temperature - air_temperature, **kwargs)
    flux = h * (air_temperature - surface_temperature)
    return ConvectionResult(coefficient=h, heat_flux=flux, heat_flow=flux * area)
