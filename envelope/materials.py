from __future__ import annotations

from pathlib import Path
import csv
from typing import List, Dict

from .dataclasses import Layer

ROOT = Path(__file__).resolve().parents[1]
MATERIALS_CSV = ROOT / 'context' / 'materials.csv'

# name -> (lambda_, rho, cp, thermal_absorptance, solar_absorptance)
BUILTIN_MATERIALS: Dict[str, tuple] = {
    'concrete': (0.816, 1700.0, 800.0, 0.9, 0.7),
    'polyurethane': (0.0252, 17.5, 2400.0, 0.9, 0.7),
    'brick': (0.72, 1920.0, 840.0, 0.9, 0.7),
    'gypsum': (0.16, 800.0, 1090.0, 0.9, 0.5),
    'mineral wool': (0.04, 30.0, 840.0, 0.9, 0.7),
    'glass': (0.9, 2500.0, 840.0, 0.84, 0.1),
}


def _require_float(s: str | float | int | None, field: str, row: int) -> float:
    """Parse *s* as float or raise ``ValueError`` with row context."""
    if s is None or str(s).strip() == "":
        raise ValueError(f"Missing value for {field!r} in row {row}")
    if isinstance(s, (int, float)):
        return float(s)
    txt = str(s).strip().replace("\u00a0", " ").replace(" ", "").replace(",", ".")
    try:
        return float(txt)
    except ValueError as exc:
        raise ValueError(f"Invalid number for {field!r} in row {row}: {s}") from exc


def _optional_float(s: str | None, field: str, row: int, default: float) -> float:
    if s is None or str(s).strip() == "":
        return default
    return _require_float(s, field, row)


def load_materials() -> List[Dict[str, float | str]]:
    """Load material presets from context/materials.csv if present.

    Expected columns (case-insensitive, flexible order):
    name, lambda, rho, cp, and optionally thermal_absorptance, solar_absorptance
    """
    if not MATERIALS_CSV.exists():
        return []
    out: List[Dict[str, float | str]] = []
    with MATERIALS_CSV.open('r', encoding='utf-8') as f:
        rdr = csv.DictReader(f)
        for idx, row in enumerate(rdr, start=2):  # header is row 1
            if not any(row.values()):
                continue
            row = {(k or '').strip().lower(): v for k, v in row.items()}
            name = (row.get('name') or '').strip()
            if not name:
                raise ValueError(f"Missing value for 'name' in row {idx}")
            try:
                out.append({
                    'name': name,
                    'lambda_': _require_float(row.get('lambda') or row.get('lambda_') or row.get('conductivity'), 'lambda', idx),
                    'rho': _require_float(row.get('rho') or row.get('density'), 'rho', idx),
                    'cp': _require_float(row.get('cp') or row.get('specific_heat'), 'cp', idx),
                    'thermal_absorptance': _optional_float(row.get('thermal_absorptance'), 'thermal_absorptance', idx, 0.9),
                    'solar_absorptance': _optional_float(row.get('solar_absorptance'), 'solar_absorptance', idx, 0.7),
                })
            except ValueError as exc:
                raise ValueError(f"Error parsing materials.csv: {exc}") from exc
    return out


def preset(name: str, d: float) -> Layer:
    """Build a Layer of thickness *d* from a named preset.

    The CSV presets win over the built-in ones; lookup ignores case.
    """
    key = name.strip().lower()
    for mat in load_materials():
        if str(mat['name']).strip().lower() == key:
            return Layer(
                name=str(mat['name']),
                d=d,
                lambda_=float(mat['lambda_']),
                rho=float(mat['rho']),
                cp=float(mat['cp']),
                thermal_absorptance=float(mat['thermal_absorptance']),
                solar_absorptance=float(mat['solar_absorptance']),
            )
    if key not in BUILTIN_MATERIALS:
        raise KeyError(f"Unknown material preset: {name!r}")
    lambda_, rho, cp, thermal_abs, solar_abs = BUILTIN_MATERIALS[key]
    return Layer(
        name=name,
        d=d,
        lambda_=lambda_,
        rho=rho,
        cp=cp,
        thermal_absorptance=thermal_abs,
        solar_absorptance=solar_abs,
    )
