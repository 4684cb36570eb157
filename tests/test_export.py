import json

import pytest

from conftest import make_triangle_trace
from ramptest.analysis_response import build_analysis_response, build_deviation_rows
from ramptest.config import MACHINE_TYPES
from ramptest.detect import detect_dual_ramps
from ramptest.errors import InsufficientDataError
from ramptest.export_report import build_report_payload, export_report_json, speed_check_to_dict
from ramptest.mapping import map_to_voltages, prepare_regression_data
from ramptest.speedcheck import analyze_speed_check


@pytest.fixture
def report_inputs():
    trace = make_triangle_trace()
    result = detect_dual_ramps(trace)
    assignments = {"run1.csv": 2.0}
    points = map_to_voltages([result], assignments)
    return trace, result, assignments, points


def test_payload_structure(report_inputs):
    trace, result, assignments, points = report_inputs
    analysis = analyze_speed_check(prepare_regression_data(points), 1.0, "GAA100")
    payload = build_report_payload([result], assignments, points, speed_check=analysis)

    assert set(payload) == {"files", "mapped_points", "statistics", "speed_check", "speed_check_error", "analysis"}
    assert payload["files"][0]["assigned_voltage"] == 2.0
    assert payload["statistics"]["total_points"] == 3
    assert payload["analysis"]["detection"]["run1.csv"]["value"] == "triangle_based"
    assert payload["analysis"]["value_order"][0] == "calculated_slope"

    reference = payload["mapped_points"][1]
    assert reference == {"voltage": 0.0, "velocity": 0.0, "file_id": None, "ramp_type": "reference"}


def test_speed_check_error_recorded(report_inputs):
    _, result, _, _ = report_inputs
    points = map_to_voltages([result], {})
    payload = build_report_payload(
        [result], {}, points, speed_check_error=InsufficientDataError("No regression data provided")
    )
    assert payload["speed_check"] is None
    assert payload["speed_check_error"] == {
        "type": "InsufficientDataError",
        "message": "No regression data provided",
    }
    assert payload["analysis"]["deviations"] == []


def test_traces_attached_on_request(report_inputs):
    trace, result, assignments, points = report_inputs
    payload = build_report_payload([result], assignments, points, traces={"run1.csv": trace})
    entry = payload["files"][0]
    assert entry["position_mm"][0] == 0.0
    assert len(entry["time_s"]) == trace.sample_count
    assert entry["quality"]["ramp_down_r_squared"] == pytest.approx(1.0)


def test_speed_check_to_dict_lists():
    analysis = analyze_speed_check([{"voltage": 2.0, "velocity": 4.0}], 1.0, "AMS60")
    d = speed_check_to_dict(analysis)
    assert d["voltage_range"] == [0.0, 4.0]
    assert isinstance(d["deviations"], list)
    assert d["deviations"][2]["target_speed"] == 1.0
    assert d["band_voltages"]["lower"] == pytest.approx(0.5)


def test_deviation_rows_categories():
    rows = build_deviation_rows(
        [
            {"target_speed": 0.0, "forecasted_voltage": 0.0, "actual_speed": 0.0, "deviation_percent": 0.0},
            {"target_speed": 3.2, "forecasted_voltage": 1.0, "actual_speed": 3.3, "deviation_percent": 3.1},
            {"target_speed": 5.0, "forecasted_voltage": 2.0, "actual_speed": 5.5, "deviation_percent": 10.0},
        ],
        MACHINE_TYPES["GAA100"],
    )
    assert [r["category"] for r in rows] == ["good", "warning", "error"]
    assert [r["speed_band"] for r in rows] == ["below", "lower", "above"]


def test_analysis_response_without_speed_check():
    out = build_analysis_response({"files": [{"file_id": "x", "detection_method": "fallback"}]})
    assert out["values"] == {}
    assert "Review required" in out["detection"]["x"]["explanation"]


def test_export_report_json(tmp_path, report_inputs):
    _, result, assignments, points = report_inputs
    payload = build_report_payload([result], assignments, points)
    out = tmp_path / "nested" / "report.json"
    export_report_json(payload, out)

    loaded = json.loads(out.read_text(encoding="utf-8"))
    assert loaded["files"][0]["file_id"] == "run1.csv"
    assert loaded["speed_check"] is None


def test_statistics_carry_full_range_fit(report_inputs):
    _, result, assignments, points = report_inputs
    fit = build_report_payload([result], assignments, points)["statistics"]["regression"]
    assert fit["error"] is None
    # (+2 V, +10 mm/s) and (-2 V, -10 mm/s)
    assert fit["fit"]["slope"] == pytest.approx(5.0)
    assert fit["fit"]["intercept"] == pytest.approx(0.0, abs=1e-9)
    assert fit["fit"]["point_count"] == 2
    assert fit["fit"]["voltage_range"] == [-2.0, 2.0]


def test_full_range_fit_error_is_reported(report_inputs):
    _, result, assignments, points = report_inputs
    unapproved = build_report_payload([result], assignments, points, approval_status={"run1.csv": False})
    assert unapproved["statistics"]["regression"] == {
        "fit": None,
        "error": {
            "type": "InsufficientDataError",
            "message": "At least 2 data points required for regression, got 0",
        },
    }
    json.dumps(unapproved)
