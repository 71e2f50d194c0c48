import sys
from pathlib import Path
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from envelope import materials
from envelope.dataclasses import Layer


def test_load_materials_parses_csv(tmp_path, monkeypatch):
    csv_text = (
        "Name,lambda,rho,cp,solar_absorptance\n"
        "Sample,\"0,5\",1000,900,0.3\n"
    )
    f = tmp_path / "materials.csv"
    f.write_text(csv_text, encoding="utf-8")
    monkeypatch.setattr(materials, "MATERIALS_CSV", f)
    data = materials.load_materials()
    assert data == [
        {
            "name": "Sample",
            "lambda_": 0.5,
            "rho": 1000.0,
            "cp": 900.0,
            "thermal_absorptance": 0.9,
            "solar_absorptance": 0.3,
        }
    ]


def test_load_materials_raises_on_bad_row(tmp_path, monkeypatch):
    csv_text = (
        "name,lambda,rho,cp\n"
        "Bad,not_a_number,1000,900\n"
    )
    f = tmp_path / "materials.csv"
    f.write_text(csv_text, encoding="utf-8")
    monkeypatch.setattr(materials, "MATERIALS_CSV", f)
    with pytest.raises(ValueError):
        materials.load_materials()


def test_missing_csv_gives_no_presets(tmp_path, monkeypatch):
    monkeypatch.setattr(materials, "MATERIALS_CSV", tmp_path / "missing.csv")
    assert materials.load_materials() == []


def test_shipped_csv_loads():
    names = [m["name"] for m in materials.load_materials()]
    assert "Concrete" in names


def test_preset_prefers_csv_then_builtin(tmp_path, monkeypatch):
    f = tmp_path / "materials.csv"
    f.write_text("name,lambda,rho,cp\nConcrete,1.5,2300,1000\n", encoding="utf-8")
    monkeypatch.setattr(materials, "MATERIALS_CSV", f)
    layer = materials.preset("concrete", 0.15)
    assert isinstance(layer, Layer)
    assert layer.lambda_ == 1.5
    assert layer.d == 0.15
    glass = materials.preset("Glass", 0.006)
    assert glass.solar_absorptance == 0.1


def test_unknown_preset_raises(tmp_path, monkeypatch):
    monkeypatch.setattr(materials, "MATERIALS_CSV", tmp_path / "missing.csv")
    with pytest.raises(KeyError):
        materials.preset("unobtainium", 0.1)
