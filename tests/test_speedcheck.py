import math

import numpy as np
import pytest

from ramptest.config import MACHINE_TYPES, VOLTAGE_SCALE, MachineParams, SpeedCheckConfig
from ramptest.data.types import MappedPoint, RampType
from ramptest.errors import (
    DegenerateRegressionError,
    InsufficientDataError,
    InvalidInputError,
    UnknownMachineTypeError,
)
from ramptest.speedcheck import (
    DeviationCategory,
    SpeedBand,
    analyze_speed_check,
    calculate_deviations,
    calculate_regression_slope,
    clamp_slope_factor,
    classify_speed,
    deviation_category,
    forecast_voltage_for_speed,
    full_range_regression,
    get_machine_params,
    linear_regression,
    regression_line,
    slope_factor_for_slope,
)


def _linear_data(k: float, limit: float = 4.0):
    return [{"voltage": v, "velocity": k * v} for v in VOLTAGE_SCALE if v <= limit]


@pytest.mark.parametrize("k", [0.37, 2.5, 12.0])
def test_regression_recovers_slope(k):
    result = calculate_regression_slope(_linear_data(k))
    assert result.slope == pytest.approx(k, rel=1e-9)
    assert result.intercept == pytest.approx(0.0, abs=1e-9)
    assert result.r_squared == pytest.approx(1.0)
    # 12 scale values up to 4 V plus the origin
    assert result.point_count == 13
    assert result.voltage_range == (0.0, 4.0)


def test_points_above_limit_and_negative_are_ignored():
    data = _linear_data(2.0) + [{"voltage": 9.0, "velocity": 100.0}, {"voltage": -2.0, "velocity": -50.0}]
    assert calculate_regression_slope(data).slope == pytest.approx(2.0)


def test_example_scenario_limit_leaves_only_origin():
    with pytest.raises(InsufficientDataError):
        calculate_regression_slope([{"voltage": 0.0, "velocity": 0.0}, {"voltage": 5.0, "velocity": 10.0}])


def test_explicit_origin_is_not_duplicated():
    data = [{"voltage": 0.0, "velocity": 0.0}, {"voltage": 2.0, "velocity": 4.0}]
    assert calculate_regression_slope(data).point_count == 2


def test_near_zero_point_not_merged_with_origin():
    data = [{"voltage": 1e-12, "velocity": 0.0}, {"voltage": 2.0, "velocity": 4.0}]
    assert calculate_regression_slope(data).point_count == 3


def test_empty_regression_input():
    with pytest.raises(InsufficientDataError):
        calculate_regression_slope([])


def test_non_finite_input_rejected():
    with pytest.raises(InvalidInputError):
        calculate_regression_slope([{"voltage": 1.0, "velocity": float("nan")}])


def test_identical_voltages_degenerate():
    with pytest.raises(DegenerateRegressionError):
        linear_regression(np.array([0.1, 0.1, 0.1]), np.array([1.0, 1.1, 0.9]))


def test_linear_regression_with_intercept():
    result = linear_regression(np.array([0.0, 1.0, 2.0, 3.0]), np.array([1.0, 3.0, 5.0, 7.0]))
    assert result.slope == pytest.approx(2.0)
    assert result.intercept == pytest.approx(1.0)
    assert result.equation == "y = 2.0000x + 1.0000"


def test_regression_line_samples():
    result = linear_regression(np.array([0.0, 2.0]), np.array([0.0, 4.0]))
    x, y = regression_line(result, -1.0, 1.0, num=3)
    assert list(x) == [-1.0, 0.0, 1.0]
    assert list(y) == [-2.0, 0.0, 2.0]


def test_accepts_mapped_points_and_pairs():
    points = [MappedPoint(2.0, 5.0, "a", RampType.UP), (1.0, 2.5)]
    assert calculate_regression_slope(points).slope == pytest.approx(2.5)


def test_deviation_grid():
    deviations = calculate_deviations(2.0)
    assert len(deviations) == 21
    assert [d.target_speed for d in deviations] == [i * 0.5 for i in range(21)]
    zero = deviations[0]
    assert (zero.target_speed, zero.forecasted_voltage, zero.actual_speed, zero.deviation_percent) == (0, 0, 0, 0)
    for d in deviations[1:]:
        assert d.forecasted_voltage == pytest.approx(d.target_speed / 2.0)
        assert d.actual_speed == pytest.approx(d.target_speed)
        assert abs(d.deviation_percent) < 1e-9


def test_zero_manual_slope_is_degenerate():
    with pytest.raises(DegenerateRegressionError):
        forecast_voltage_for_speed(1.0, 0.0)
    with pytest.raises(DegenerateRegressionError):
        calculate_deviations(0.0)
    # zero-only grid never divides
    assert calculate_deviations(0.0, target_speeds=(0.0,))[0].deviation_percent == 0


def test_analyze_speed_check_full():
    analysis = analyze_speed_check(_linear_data(2.0), 1.5, "AMS60")

    assert analysis.calculated_slope == pytest.approx(2.0)
    assert analysis.manual_slope_factor == 1.5
    assert analysis.manual_slope == pytest.approx(3.0)
    assert analysis.intercept == pytest.approx(0.0, abs=1e-9)
    assert analysis.machine_params == MACHINE_TYPES["AMS60"]
    assert analysis.machine_params.lower == 1.0
    assert analysis.band_voltages.middle == pytest.approx(1.5 / 3.0)
    assert analysis.deviations[0].deviation_percent == 0
    assert analysis.voltage_range == (0.0, 4.0)


def test_analyze_zero_deviation_at_unit_factor():
    analysis = analyze_speed_check(_linear_data(4.2), 1.0, "GAA100")
    assert analysis.deviations[0].deviation_percent == 0
    assert analysis.manual_slope == analysis.calculated_slope


def test_analyze_does_not_clamp_factor():
    analysis = analyze_speed_check(_linear_data(1.0), 3.0, "GAA60")
    assert analysis.manual_slope_factor == 3.0
    assert analysis.manual_slope == pytest.approx(3.0)


def test_analyze_unknown_machine_checked_first():
    with pytest.raises(UnknownMachineTypeError) as info:
        analyze_speed_check([], 1.0, "XYZ")
    assert info.value.machine_type == "XYZ"
    assert "GAA100" in info.value.known


def test_analyze_validation_errors():
    with pytest.raises(InsufficientDataError):
        analyze_speed_check([], 1.0, "GAA100")
    with pytest.raises(InsufficientDataError):
        analyze_speed_check([{"voltage": 7.0, "velocity": 14.0}], 1.0, "GAA100")
    with pytest.raises(InvalidInputError):
        analyze_speed_check([{"voltage": 1.0, "velocity": math.inf}], 1.0, "GAA100")
    with pytest.raises(InvalidInputError):
        analyze_speed_check(_linear_data(1.0), float("nan"), "GAA100")
    with pytest.raises(DegenerateRegressionError):
        analyze_speed_check([{"voltage": 1.0, "velocity": 0.0}], 1.0, "GAA100")


def test_single_point_in_range_is_enough():
    analysis = analyze_speed_check([{"voltage": 2.0, "velocity": 5.0}], 1.0, "GAA100")
    assert analysis.point_count == 2
    assert analysis.calculated_slope == pytest.approx(2.5)


def test_custom_config_and_registry():
    registry = {"TEST": MachineParams(lower=5.0, middle=6.0, upper=7.0, category="Bench")}
    config = SpeedCheckConfig(voltage_limit=10.0, target_speeds=(0.0, 5.0))
    analysis = analyze_speed_check(
        [{"voltage": 8.0, "velocity": 8.0}], 1.0, "TEST", config=config, machine_types=registry
    )
    assert analysis.calculated_slope == pytest.approx(1.0)
    assert len(analysis.deviations) == 2
    with pytest.raises(UnknownMachineTypeError):
        get_machine_params("GAA100", registry)


def test_slope_factor_helpers():
    assert clamp_slope_factor(0.1) == 0.5
    assert clamp_slope_factor(5.0) == 2.0
    assert clamp_slope_factor(1.2) == 1.2
    assert slope_factor_for_slope(3.0, 2.0) == pytest.approx(1.5)
    with pytest.raises(DegenerateRegressionError):
        slope_factor_for_slope(3.0, 0.0)


def test_deviation_category_thresholds():
    assert deviation_category(0.0) == DeviationCategory.GOOD
    assert deviation_category(-2.0) == DeviationCategory.GOOD
    assert deviation_category(4.9) == DeviationCategory.WARNING
    assert deviation_category(-5.1) == DeviationCategory.ERROR


def test_classify_speed_bands():
    params = MACHINE_TYPES["GAA100"]
    assert classify_speed(2.9, params) == SpeedBand.BELOW
    assert classify_speed(3.0, params) == SpeedBand.LOWER
    assert classify_speed(3.5, params) == SpeedBand.MIDDLE
    assert classify_speed(4.0, params) == SpeedBand.MIDDLE
    assert classify_speed(4.5, params) == SpeedBand.ABOVE


def test_full_range_regression_uses_both_polarities():
    data = [{"voltage": v, "velocity": 3.0 * v + 0.5} for v in (-10.0, -2.0, 1.0, 7.0)]
    result = full_range_regression(data)
    assert result.slope == pytest.approx(3.0)
    assert result.intercept == pytest.approx(0.5)
    assert result.point_count == 4
    assert result.voltage_range == (-10.0, 7.0)


def test_full_range_regression_errors():
    with pytest.raises(InsufficientDataError):
        full_range_regression([])
    with pytest.raises(InsufficientDataError):
        full_range_regression([(1.0, 2.0)])
    with pytest.raises(DegenerateRegressionError):
        full_range_regression([(1.0, 2.0), (1.0, 3.0)])


@pytest.mark.parametrize(
    "item",
    [{"voltage": 1.0}, {"velocity": 2.0}, (1.0, 2.0, 3.0), 5.0, ("a", 1.0)],
)
def test_malformed_points_rejected(item):
    with pytest.raises(InvalidInputError):
        calculate_regression_slope([item])
