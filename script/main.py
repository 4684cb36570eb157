"""Entry point: load trace CSVs, detect ramps, map voltages, run speed check, plot/export."""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List

from ramptest.config import DEFAULT_INGEST, MACHINE_TYPES, Calibration, IngestConfig
from ramptest.data import load_traces
from ramptest.detect import assess_detection_quality, detect_dual_ramps
from ramptest.errors import RampTestError
from ramptest.export_report import build_report_payload, export_report_json
from ramptest.mapping import map_to_voltages, pending_files, prepare_regression_data, sort_for_display
from ramptest.signal import estimate_sample_rate, lowpass_filter
from ramptest.speedcheck import analyze_speed_check, deviation_category, full_range_regression
from ramptest.data.types import Trace


def _parse_assignments(items: List[str]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for item in items:
        name, sep, volts = item.rpartition("=")
        if not sep or not name:
            raise SystemExit(f"Invalid --assign value {item!r}; expected FILE=VOLTS")
        try:
            out[name] = float(volts)
        except ValueError:
            raise SystemExit(f"Invalid --assign value {item!r}; expected FILE=VOLTS") from None
    return out


def main() -> None:
    parser = argparse.ArgumentParser(description="Valve ramp test analysis")
    parser.add_argument(
        "paths",
        nargs="+",
        help="CSV trace files or a directory containing them",
    )
    parser.add_argument(
        "--assign",
        action="append",
        default=[],
        metavar="FILE=VOLTS",
        help="Voltage magnitude for a file (repeatable), e.g. run3.csv=1.5",
    )
    parser.add_argument(
        "--machine",
        default="GAA100",
        choices=sorted(MACHINE_TYPES),
        help="Machine type for speed limits (default: GAA100)",
    )
    parser.add_argument(
        "--factor",
        type=float,
        default=1.0,
        help="Manual slope factor, expected 0.5-2.0 (default: 1.0)",
    )
    parser.add_argument(
        "--calibration",
        type=float,
        nargs=3,
        default=None,
        metavar=("OFFSET", "MAX_POS", "MAX_VOLT"),
        help="Three-parameter position calibration (default: raw x 10)",
    )
    parser.add_argument(
        "--filter",
        type=float,
        default=None,
        metavar="HZ",
        help="Low-pass filter cutoff in Hz applied to positions before detection",
    )
    parser.add_argument(
        "--smooth",
        type=int,
        default=None,
        metavar="N",
        help="Moving-average window for marker detection",
    )
    parser.add_argument(
        "--plot-dir",
        type=str,
        default=None,
        help="Save trace and speed check plots to this directory",
    )
    parser.add_argument(
        "--export",
        type=str,
        default=None,
        metavar="PATH",
        help="Export report JSON to PATH",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=os.getenv("RAMPTEST_LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )

    files: List[Path] = []
    for p in map(Path, args.paths):
        files.extend(sorted(p.glob("*.csv")) if p.is_dir() else [p])
    if not files:
        raise SystemExit("No CSV files found.")

    ingest = DEFAULT_INGEST
    if args.calibration is not None:
        ingest = IngestConfig(calibration=Calibration(*args.calibration))

    try:
        traces = load_traces(files, config=ingest)
    except (OSError, RampTestError) as exc:
        raise SystemExit(f"Failed to load traces: {exc}")

    if args.filter is not None:
        traces = [
            Trace(
                file_id=t.file_id,
                time=t.time,
                position=lowpass_filter(t.position, estimate_sample_rate(t.time), args.filter),
            )
            for t in traces
        ]

    results = []
    print("Ramp detection:")
    for trace in traces:
        try:
            result = detect_dual_ramps(trace, smoothing_window=args.smooth)
        except RampTestError as exc:
            print(f"  {trace.file_id}: {exc}")
            continue
        quality = assess_detection_quality(result, trace)
        flag = "  [review]" if quality.requires_review else ""
        print(
            f"  {result.file_id}: {result.detection_method.value}  "
            f"up={result.ramp_up.velocity:.4f} mm/s  down={result.ramp_down.velocity:.4f} mm/s{flag}"
        )
        results.append(result)

    assignments = _parse_assignments(args.assign)
    pending = pending_files(results, assignments)
    if pending:
        print(f"Pending (no voltage assigned): {', '.join(pending)}")

    points = map_to_voltages(results, assignments)
    print("Voltage mapping:")
    for p in sort_for_display(points):
        print(f"  {p.voltage:+7.2f} V  {p.velocity:+10.4f} mm/s  {p.ramp_type.value:9s} {p.file_id or '-'}")

    analysis = None
    error = None
    regression_data = prepare_regression_data(points)
    try:
        overall = full_range_regression(regression_data)
        print(f"Full-range fit: {overall.equation}  (R^2 {overall.r_squared:.4f}, {overall.point_count} points)")
    except RampTestError as exc:
        print(f"Full-range fit not available: {exc}")
    try:
        analysis = analyze_speed_check(regression_data, args.factor, args.machine)
    except RampTestError as exc:
        error = exc
        print(f"Speed check not available: {exc}")

    if analysis is not None:
        params = analysis.machine_params
        print(f"Speed check ({analysis.machine_type}, {params.category}):")
        print(f"  Calculated slope: {analysis.calculated_slope:.4f} mm/s per V  (R^2 {analysis.r_squared:.4f})")
        print(f"  Manual slope: {analysis.manual_slope:.4f} (factor {analysis.manual_slope_factor:.2f})")
        print(
            f"  Voltage for {params.lower}/{params.middle}/{params.upper} mm/s: "
            f"{analysis.band_voltages.lower:.3f}/{analysis.band_voltages.middle:.3f}/{analysis.band_voltages.upper:.3f} V"
        )
        for d in analysis.deviations:
            print(
                f"  {d.target_speed:5.1f} mm/s -> {d.forecasted_voltage:7.3f} V  "
                f"deviation {d.deviation_percent:+.1f} % ({deviation_category(d.deviation_percent).value})"
            )

    if args.plot_dir:
        from ramptest.viz import plot_speed_check, plot_trace

        out_dir = Path(args.plot_dir)
        by_id = {t.file_id: t for t in traces}
        for result in results:
            plot_trace(by_id[result.file_id], result, output_path=out_dir / f"{Path(result.file_id).stem}.png")
        if analysis is not None:
            plot_speed_check(analysis, regression_data, output_path=out_dir / "speed_check.png")
        print(f"Saved plots to {out_dir}")

    if args.export:
        payload = build_report_payload(results, assignments, points, speed_check=analysis, speed_check_error=error)
        export_report_json(payload, Path(args.export))
        print(f"Exported report JSON to {args.export}")

    if error is not None and assignments:
        sys.exit(1)


if __name__ == "__main__":
    main()
