"""Charts: position trace with ramp markers, and speed check regression lines."""
from pathlib import Path
from typing import Any, Iterable, Optional

import numpy as np

from ..data.types import DetectionMethod, DualRampResult, SpeedCheckAnalysis, Trace
from ..speedcheck.regression import as_regression_points


def _pyplot(output_path: Optional[Path]):
    try:
        import matplotlib
        if output_path is not None:
            matplotlib.use("Agg")  # no display when saving to file
        import matplotlib.pyplot as plt
    except ImportError:
        raise ImportError("matplotlib is required for plotting. Install with: pip install matplotlib") from None
    return plt


def _finish(fig, plt, output_path: Optional[Path]) -> None:
    fig.tight_layout()
    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=150)
        plt.close(fig)
    else:
        plt.show()


def plot_trace(
    trace: Trace,
    result: Optional[DualRampResult] = None,
    output_path: Optional[Path] = None,
) -> None:
    """Plot position vs time with up/down ramp markers and their fitted lines.

    Args:
        trace: Calibrated trace.
        result: If provided, marker lines and ramp chords are drawn.
        output_path: If provided, save figure here; otherwise display.
    """
    plt = _pyplot(output_path)
    fig, ax = plt.subplots(figsize=(12, 5))
    ax.plot(trace.time, trace.position, color="black", linewidth=1.2, label="Position")

    title = f"Slide position - {trace.file_id}"
    if result is not None:
        for seg, color, name in ((result.ramp_up, "green", "up"), (result.ramp_down, "red", "down")):
            for idx in (seg.start_index, seg.end_index):
                ax.axvline(x=trace.time[idx], color=color, linewidth=0.8, linestyle="--", alpha=0.8)
            ax.plot(
                [seg.start_time, seg.end_time],
                [seg.start_position, seg.end_position],
                color=color,
                linewidth=2,
                label=f"Ramp {name}: {seg.velocity:.3f} mm/s",
            )
        title += f"  [{result.detection_method.value}]"
        if result.detection_method == DetectionMethod.FALLBACK:
            title += "  review required"

    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Position (mm)")
    ax.set_title(title)
    ax.legend(loc="upper right", fontsize=9)
    ax.grid(True, alpha=0.3)
    _finish(fig, plt, output_path)


def plot_speed_check(
    analysis: SpeedCheckAnalysis,
    regression_data: Iterable[Any] = (),
    output_path: Optional[Path] = None,
    x_max: float = 4.5,
) -> None:
    """Measured up-ramp points, calculated and manual regression lines, and machine speed limits."""
    plt = _pyplot(output_path)
    fig, ax = plt.subplots(figsize=(11, 8))

    pts = sorted(
        ((float(p.voltage), float(p.velocity)) for p in as_regression_points(regression_data) if p.voltage > 0),
        key=lambda vv: vv[0],
    )
    pts = [(0.0, 0.0)] + pts
    xs, ys = zip(*pts)
    ax.plot(xs, ys, color="black", marker="o", linewidth=1, label="Measured (v)")

    x = np.linspace(0.0, x_max, 50)
    ax.plot(x, analysis.calculated_slope * x + analysis.intercept, color="tab:blue", label="Regression (calculated)")
    ax.plot(x, analysis.manual_slope * x, color="tab:red", label=f"Regression (factor {analysis.manual_slope_factor:.2f})")

    params = analysis.machine_params
    for level in (params.lower, params.middle, params.upper):
        ax.axhline(y=level, color="gray", linewidth=1, linestyle="--")
    ax.axhspan(params.lower, params.upper, color="green", alpha=0.08, label=f"{analysis.machine_type} speed band")

    ax.set_xlim(0, x_max)
    ax.set_xlabel("Input voltage UE (V)")
    ax.set_ylabel("Slide velocity (mm/s)")
    ax.set_title(f"Speed check - {analysis.machine_type}")
    ax.legend(loc="upper left", fontsize=9)
    ax.grid(True, alpha=0.3)
    _finish(fig, plt, output_path)
