"""Generate HTML reports with charts for a single-surface run."""

from __future__ import annotations

import base64
from io import BytesIO
from typing import Iterable, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402


def _encode_fig(fig) -> str:
    buf = BytesIO()
    fig.savefig(buf, format="png", bbox_inches="tight")
    plt.close(fig)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _plot_temperatures(t: Iterable[float], out: Iterable[float], inside: Iterable[float]) -> str:
    fig, ax = plt.subplots()
    t = list(t)
    ax.plot(t, list(out), label="θ outside face")
    ax.plot(t, list(inside), label="θ inside face")
    ax.set_xlabel("t [h]")
    ax.set_ylabel("θ [°C]")
    ax.set_title("Face temperatures")
    ax.legend()
    return _encode_fig(fig)


def _plot_flows(t: Iterable[float], q_out: Iterable[float], q_in: Iterable[float], stored: Iterable[float]) -> str:
    fig, ax = plt.subplots()
    t = list(t)
    ax.plot(t, list(q_out), label="conduction in (outside)")
    ax.plot(t, list(q_in), label="conduction out (inside)")
    ax.plot(t, list(stored), label="stored", linestyle="--")
    ax.set_xlabel("t [h]")
    ax.set_ylabel("Q [W]")
    ax.set_title("Heat flows")
    ax.legend()
    return _encode_fig(fig)


def _plot_profile(xs: Sequence[float], temps: Sequence[float], interfaces: Sequence[float]) -> str:
    fig, ax = plt.subplots()
    ax.plot(list(xs), list(temps), marker="o")
    for x in interfaces[1:-1]:
        ax.axvline(x, color="grey", linewidth=0.8)
    ax.set_xlabel("depth from outside face [m]")
    ax.set_ylabel("θ [°C]")
    ax.set_title("Final temperature profile")
    return _encode_fig(fig)


def _warmup_table(warmup: dict | None) -> str:
    if not warmup:
        return "<p>No warm-up was run.</p>"
    rows = "".join(
        f"<tr><td>{i + 2}</td><td>{dt:.4f}</td><td>{dq:.4f}</td></tr>"
        for i, (dt, dq) in enumerate(zip(warmup.get("temperature_deltas", []), warmup.get("load_deltas", [])))
    )
    return (
        f"<p>Status: {warmup.get('status')} after {warmup.get('days')} days</p>"
        "<table id='warmup'>"
        "<tr><th>Day</th><th>Δθ (°C)</th><th>ΔQ (W)</th></tr>"
        f"{rows}</table>"
    )


def _mean(values: Sequence[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else float("nan")


def report(results: dict) -> str:
    """Generate an HTML report from :func:`envelope.core.simulate_surface` results."""

    t = results.get("time_h", [])
    lis = [
        f"<li>Surface: {results.get('name', '')}</li>",
        f"<li>U-value: {results.get('U', float('nan')):.4f} W/m²K</li>",
        f"<li>ΣR: {results.get('R_total', float('nan')):.4f} m²K/W</li>",
        f"<li>Heat capacity: {results.get('heat_capacity', float('nan')):.0f} J/m²K</li>",
        f"<li>Timesteps: {len(t)} × {results.get('timestep', float('nan')):.0f} s</li>",
        f"<li>Mean h outside: {_mean(results.get('h_out', [])):.3f} W/m²K, "
        f"inside: {_mean(results.get('h_in', [])):.3f} W/m²K</li>",
        f"<li>Non-converged timesteps: {results.get('non_converged', 0)}</li>",
    ]

    temp_chart = _plot_temperatures(t, results.get("theta_out", []), results.get("theta_in", []))
    flow_chart = _plot_flows(
        t, results.get("q_cond_out", []), results.get("q_cond_in", []), results.get("stored", [])
    )
    profile_chart = ""
    if results.get("profile"):
        profile_chart = _plot_profile(
            results.get("profile_depth", []), results["profile"], results.get("interfaces", [])
        )

    parts = [
        "<h2>Surface Heat Transfer Report</h2>",
        "<ul>",
        *lis,
        "</ul>",
        "<h3>Charts</h3>",
        f"<img src='data:image/png;base64,{temp_chart}' alt='Temperature chart' />",
        f"<img src='data:image/png;base64,{flow_chart}' alt='Heat flow chart' />",
        f"<img src='data:image/png;base64,{profile_chart}' alt='Profile chart' />" if profile_chart else "",
        "<h3>Warm-up</h3>",
        _warmup_table(results.get("warmup")),
    ]
    return "\n".join([p for p in parts if p])
