import numpy as np
import pytest

from conftest import make_triangle_trace
from ramptest.config import DetectionConfig
from ramptest.data.types import DetectionMethod, Trace
from ramptest.detect import (
    assess_detection_quality,
    detect_dual_ramps,
    fallback_markers,
    find_triangle_markers,
    validate_dual_ramp_result,
)
from ramptest.errors import GeometricDetectionFailure, InsufficientDataError


def _assert_ordered(result, min_dist=5):
    up, down = result.ramp_up, result.ramp_down
    assert up.start_index < up.end_index < down.start_index < down.end_index
    assert up.end_index - up.start_index >= min_dist
    assert down.end_index - down.start_index >= min_dist


def test_example_scenario_triangle_based(triangle_trace):
    result = detect_dual_ramps(triangle_trace)

    assert result.detection_method == DetectionMethod.TRIANGLE_BASED
    assert result.file_id == "run1.csv"
    assert result.ramp_up.velocity == pytest.approx(10.0, rel=1e-9)
    assert result.ramp_down.velocity == pytest.approx(10.0, rel=1e-9)
    _assert_ordered(result)


def test_triangle_markers_include_buffer(triangle_trace):
    # 80 % / 20 % crossings at 67/31 and 133/169, pushed out by 3 samples
    markers = find_triangle_markers(triangle_trace.position)
    assert markers == (28, 70, 130, 172)


def test_segment_fields_match_trace(triangle_trace):
    up = detect_dual_ramps(triangle_trace).ramp_up
    assert up.start_time == triangle_trace.time[up.start_index]
    assert up.end_position == triangle_trace.position[up.end_index]
    assert up.duration == pytest.approx(up.end_time - up.start_time)
    assert up.duration > 0


def test_noisy_trace_still_triangle_based():
    trace = make_triangle_trace(noise=0.2, seed=3)
    result = detect_dual_ramps(trace)
    assert result.detection_method == DetectionMethod.TRIANGLE_BASED
    assert result.ramp_up.velocity == pytest.approx(10.0, rel=0.05)
    assert result.ramp_down.velocity == pytest.approx(10.0, rel=0.05)
    _assert_ordered(result)


def test_smoothing_window_keeps_raw_velocity(triangle_trace):
    result = detect_dual_ramps(triangle_trace, smoothing_window=5)
    assert result.detection_method == DetectionMethod.TRIANGLE_BASED
    up = result.ramp_up
    raw = (triangle_trace.position[up.end_index] - triangle_trace.position[up.start_index]) / (
        triangle_trace.time[up.end_index] - triangle_trace.time[up.start_index]
    )
    assert up.velocity == pytest.approx(raw)


def test_down_velocity_is_magnitude(triangle_trace):
    result = detect_dual_ramps(triangle_trace)
    down = result.ramp_down
    assert down.end_position < down.start_position
    assert down.velocity >= 0


def test_up_velocity_sign_follows_position_change():
    # Valley first: global max sits at the start, so the left scan fails and fallback is used
    t = np.arange(100) * 0.1
    pos = np.concatenate([np.linspace(20, 0, 50), np.linspace(0, 20, 50)])
    result = detect_dual_ramps(Trace("valley.csv", t, pos))
    up = result.ramp_up
    assert np.sign(up.velocity) == np.sign(up.end_position - up.start_position)
    assert result.ramp_down.velocity >= 0


def test_flat_trace_uses_fallback(flat_trace):
    result = detect_dual_ramps(flat_trace)

    assert result.detection_method == DetectionMethod.FALLBACK
    assert (result.ramp_up.start_index, result.ramp_up.end_index) == (10, 40)
    assert (result.ramp_down.start_index, result.ramp_down.end_index) == (60, 90)
    _assert_ordered(result)


@pytest.mark.parametrize("n", [20, 37, 100, 1000, 4321])
def test_fallback_markers_are_function_of_length(n):
    up_start, up_end, down_start, down_end = fallback_markers(n)
    assert up_start == int(n * 0.1)
    assert down_start >= int(n * 0.6)
    assert up_start < up_end < down_start < down_end <= n - 1
    assert up_end - up_start >= 5
    assert down_end - down_start >= 5
    assert fallback_markers(n) == (up_start, up_end, down_start, down_end)


def test_fallback_is_deterministic(flat_trace):
    a = detect_dual_ramps(flat_trace)
    b = detect_dual_ramps(flat_trace)
    assert a == b


def test_small_range_raises_geometric_failure(flat_trace):
    with pytest.raises(GeometricDetectionFailure):
        find_triangle_markers(flat_trace.position)


def test_peak_at_edge_uses_fallback():
    t = np.arange(60) * 0.1
    pos = np.linspace(0.0, 25.0, 60)
    result = detect_dual_ramps(Trace("rise_only.csv", t, pos))
    assert result.detection_method == DetectionMethod.FALLBACK
    _assert_ordered(result)


def test_zero_time_interval_falls_back():
    trace = make_triangle_trace()
    t = trace.time.copy()
    # Freeze the clock over the detected up ramp so its duration is zero
    t[20:80] = t[20]
    frozen = Trace("frozen.csv", t, trace.position)
    result = detect_dual_ramps(frozen)
    assert result.detection_method == DetectionMethod.FALLBACK


def test_trace_below_min_samples_is_rejected():
    with pytest.raises(InsufficientDataError):
        Trace("short.csv", np.arange(9) * 0.1, np.zeros(9))


def test_detector_min_samples_from_config(triangle_trace):
    with pytest.raises(InsufficientDataError):
        detect_dual_ramps(triangle_trace, config=DetectionConfig(min_samples=500))


@pytest.mark.parametrize("n", [10, 11])
def test_too_short_for_fallback_pair(n):
    trace = Trace("tiny.csv", np.arange(n) * 0.1, np.full(n, 2.0))
    with pytest.raises(InsufficientDataError):
        detect_dual_ramps(trace)


def test_fallback_packs_ramps_into_short_trace():
    assert fallback_markers(12) == (0, 5, 6, 11)
    result = detect_dual_ramps(Trace("twelve.csv", np.arange(12) * 0.1, np.full(12, 2.0)))
    assert result.detection_method == DetectionMethod.FALLBACK
    assert (result.ramp_up.start_index, result.ramp_up.end_index) == (0, 5)
    assert (result.ramp_down.start_index, result.ramp_down.end_index) == (6, 11)
    _assert_ordered(result)


def test_file_id_override(triangle_trace):
    assert detect_dual_ramps(triangle_trace, file_id="other").file_id == "other"


def test_validate_and_quality(triangle_trace, flat_trace):
    good = detect_dual_ramps(triangle_trace)
    validate_dual_ramp_result(good)
    quality = assess_detection_quality(good, triangle_trace)
    assert quality.confidence == "medium"
    assert not quality.requires_review
    assert quality.ramp_up_r_squared > 0.95

    fallback = detect_dual_ramps(flat_trace)
    quality = assess_detection_quality(fallback)
    assert quality.confidence == "low"
    assert quality.requires_review
    assert quality.ramp_up_r_squared is None
