"""Run the valve ramp analysis from in-memory data (API entry point). No file I/O or plotting."""
import logging
from types import MappingProxyType
from typing import Any, Dict, List, Optional

from .config import DEFAULT_CONFIG, RampTestConfig
from .data import load_trace_from_dict
from .data.types import DualRampResult, SpeedCheckAnalysis, Trace
from .detect import detect_dual_ramps, recalculate_dual_velocity
from .errors import RampTestError
from .export_report import build_report_payload
from .mapping import map_to_voltages, prepare_regression_data
from .speedcheck import analyze_speed_check, get_machine_params

log = logging.getLogger(__name__)


def _apply_markers(result: DualRampResult, trace: Trace, markers: Dict[str, Any], config: RampTestConfig) -> DualRampResult:
    ramp_up, ramp_down = recalculate_dual_velocity(
        trace,
        tuple(markers["ramp_up"]),
        tuple(markers["ramp_down"]),
        config=config.detection,
    )
    return result.with_manual_ramps(ramp_up, ramp_down)


def run_analysis(data: Dict[str, Any], config: RampTestConfig = DEFAULT_CONFIG) -> Dict[str, Any]:
    """Run detection, voltage mapping and speed check on in-memory data and return the report payload.

    Intended for API use: no files are written, no plots are generated.
    Input dict keys:
        traces: list of {file_id, time, position} (or {file_id, data: [...]})
        assignments: {file_id: voltage magnitude}
        machine_type: key into the machine registry
        manual_slope_factor: optional, default from config
        approval_status: optional {file_id: bool}; only approved files enter the regression
        markers: optional {file_id: {"ramp_up": [start, end], "ramp_down": [start, end]}}
        smoothing_window: optional moving-average window for detection
        include_traces: optional bool, attach time/position arrays to the report

    Returns:
        Report payload dict (files, mapped_points, statistics, speed_check,
        speed_check_error, analysis). Suitable for JSON response or storage.

    Raises:
        UnknownMachineTypeError: If machine_type is not registered.
        ValueError: If required keys are missing, a trace is invalid or a
            manual marker pair is rejected.
    """
    missing = {"traces", "machine_type"} - set(data.keys())
    if missing:
        raise ValueError(f"Missing required keys: {missing}")

    machine_type = data["machine_type"]
    get_machine_params(machine_type, config.machine_types)

    assignments = MappingProxyType(dict(data.get("assignments") or {}))
    markers = data.get("markers") or {}
    factor = data.get("manual_slope_factor", config.speed_check.slope_factor_default)

    traces: Dict[str, Trace] = {}
    results: List[DualRampResult] = []
    for raw in data["traces"]:
        trace = load_trace_from_dict(raw)
        result = detect_dual_ramps(
            trace,
            config=config.detection,
            smoothing_window=data.get("smoothing_window"),
        )
        if trace.file_id in markers:
            result = _apply_markers(result, trace, markers[trace.file_id], config)
        traces[trace.file_id] = trace
        results.append(result)

    points = map_to_voltages(results, assignments)
    approval_status = data.get("approval_status")
    regression_data = prepare_regression_data(points, approval_status)

    speed_check: Optional[SpeedCheckAnalysis] = None
    error: Optional[RampTestError] = None
    try:
        speed_check = analyze_speed_check(
            regression_data,
            factor,
            machine_type,
            config=config.speed_check,
            machine_types=config.machine_types,
        )
    except RampTestError as exc:
        log.info("Speed check not available: %s", exc)
        error = exc

    return build_report_payload(
        results,
        assignments,
        points,
        speed_check=speed_check,
        speed_check_error=error,
        traces=traces if data.get("include_traces") else None,
        approval_status=approval_status,
    )
