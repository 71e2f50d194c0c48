from flask import Flask, request, jsonify
import sys
from pathlib import Path

# Ensure repository root is on sys.path for package import
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from envelope.config import ConvergenceTolerances, SimulationConfig
from envelope.core import SurfaceInput, simulate_surface
from envelope.dataclasses import Construction, Layer, OutdoorBoundary, SurfaceGeometry, ZoneBoundary
from envelope.errors import EnvelopeError
from envelope.materials import load_materials
from envelope.report import report

app = Flask(__name__)

EXAMPLE = {
    'layers': [{'name': 'Concrete', 'd': 0.2, 'lambda_': 0.816, 'rho': 1700, 'cp': 800}],
    'geometry': {'area': 10.0, 'tilt': 90, 'azimuth': 180, 'roughness': 'MEDIUM_ROUGH'},
    'config': {'timestep': 1200, 'tolerances': {'loads': 0.04, 'temperature': 0.4}},
    'series': [
        {'outside': {'air_temperature': 30, 'wind_speed': 2.0, 'wind_direction': 180, 'incident_solar': 0},
         'inside': {'air_temperature': 20}},
    ],
}


def _layers(data: dict) -> list[Layer]:
    layers_in = data.get('layers', [])
    if not isinstance(layers_in, list) or not layers_in:
        raise ValueError('No layers provided')
    layers: list[Layer] = []
    for idx, L in enumerate(layers_in):
        try:
            layers.append(Layer(
                name=str(L.get('name', f'Layer {idx+1}')),
                d=float(L['d']),
                lambda_=float(L['lambda_']),
                rho=float(L['rho']),
                cp=float(L['cp']),
                thermal_absorptance=float(L.get('thermal_absorptance', 0.9)),
                solar_absorptance=float(L.get('solar_absorptance', 0.7)),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f'Invalid layer at index {idx}: {e}') from e
    return layers


def _series(data: dict) -> list:
    rows = data.get('series', [])
    if not isinstance(rows, list) or not rows:
        raise ValueError('No boundary series provided')
    out = []
    for idx, row in enumerate(rows):
        try:
            out.append((OutdoorBoundary(**row['outside']), ZoneBoundary(**row['inside'])))
        except (KeyError, TypeError) as e:
            raise ValueError(f'Invalid series row at index {idx}: {e}') from e
    return out


@app.route('/simulate', methods=['GET', 'POST'])
def simulate_api():
    # Simple help on GET to avoid 405 if user navigates directly
    if request.method == 'GET':
        return jsonify({
            'ok': True,
            'usage': 'POST JSON to this endpoint with {layers, geometry, config, series, seed?, warmup?, html?}',
            'example': EXAMPLE,
        })
    try:
        data = request.get_json(force=True, silent=True)
        if not isinstance(data, dict):
            raise ValueError('Request body must be a JSON object')
        construction = Construction(str(data.get('name', 'construction')), tuple(_layers(data)))
        geometry = SurfaceGeometry(**data.get('geometry', {'area': 1.0}))
        cfg = dict(data.get('config', {}))
        if 'tolerances' in cfg:
            cfg['tolerances'] = ConvergenceTolerances(**cfg['tolerances'])
        config = SimulationConfig(**cfg)
        surface = SurfaceInput(construction.name, construction, geometry, data.get('seed'))
        result = simulate_surface(surface, _series(data), config, warmup=bool(data.get('warmup', True)))
        if data.get('html'):
            result['html'] = report(result)
        return jsonify({'ok': True, 'result': result})
    except (EnvelopeError, ValueError, TypeError) as e:
        return jsonify({'ok': False, 'error': str(e)}), 400


@app.route('/materials', methods=['GET'])
def materials_api():
    mats = load_materials()
    q = request.args.get('q')
    if q:
        ql = q.lower()
        mats = [m for m in mats if ql in str(m.get('name', '')).lower()]
    return jsonify({'ok': True, 'materials': mats})


@app.errorhandler(405)
def handle_405(e):
    return jsonify({'ok': False, 'error': 'Method Not Allowed', 'hint': 'GET /simulate for usage, POST JSON to /simulate'}), 405


if __name__ == '__main__':
    app.run(debug=True)
