"""Least-squares regression of velocity on voltage."""
import logging
from typing import Any, Iterable, List, Mapping, Tuple

import numpy as np

from ..config import DEFAULT_SPEED_CHECK
from ..data.types import RegressionPoint, RegressionResult
from ..errors import DegenerateRegressionError, InsufficientDataError, InvalidInputError

log = logging.getLogger(__name__)

MIN_REGRESSION_POINTS = 2


def as_regression_points(data: Iterable[Any]) -> List[RegressionPoint]:
    """Normalize {voltage, velocity} dicts, objects with those attributes, or pairs.

    Raises:
        InvalidInputError: If an item has no voltage/velocity or a value is not numeric.
    """
    out: List[RegressionPoint] = []
    for item in data:
        try:
            if isinstance(item, Mapping):
                v, vel = item["voltage"], item["velocity"]
            elif hasattr(item, "voltage") and hasattr(item, "velocity"):
                v, vel = item.voltage, item.velocity
            else:
                v, vel = item
            out.append(RegressionPoint(voltage=float(v), velocity=float(vel)))
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidInputError(f"Invalid voltage or velocity value: {item!r}") from exc
    return out


def check_finite(points: Iterable[RegressionPoint]) -> None:
    for p in points:
        if not (np.isfinite(p.voltage) and np.isfinite(p.velocity)):
            raise InvalidInputError(f"Non-finite voltage or velocity: ({p.voltage}, {p.velocity})")


def linear_regression(voltage: np.ndarray, velocity: np.ndarray) -> RegressionResult:
    """Ordinary least squares y = slope * x + intercept from the raw sums.

    Raises:
        InsufficientDataError: Fewer than 2 points.
        DegenerateRegressionError: All voltages identical (zero denominator).
    """
    x = np.asarray(voltage, dtype=float)
    y = np.asarray(velocity, dtype=float)
    n = len(x)
    if n < MIN_REGRESSION_POINTS:
        raise InsufficientDataError(f"At least {MIN_REGRESSION_POINTS} data points required for regression, got {n}")

    sum_x = float(np.sum(x))
    sum_y = float(np.sum(y))
    sum_xy = float(np.sum(x * y))
    sum_xx = float(np.sum(x * x))
    denominator = n * sum_xx - sum_x * sum_x
    # Rounding can leave a tiny non-zero denominator for identical voltages
    if denominator == 0 or np.all(x == x[0]):
        raise DegenerateRegressionError("Cannot calculate regression: all voltages are identical")

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    ss_tot = float(np.sum((y - mean_y) ** 2))
    ss_res = float(np.sum((y - (slope * x + intercept)) ** 2))
    r_squared = 1.0 - ss_res / ss_tot if ss_tot != 0 else 0.0

    return RegressionResult(slope=slope, intercept=intercept, point_count=n, r_squared=r_squared)


def points_in_range(points: Iterable[RegressionPoint], voltage_limit: float) -> List[RegressionPoint]:
    """Points with 0 <= voltage <= voltage_limit."""
    return [p for p in points if 0 <= p.voltage <= voltage_limit]


def with_origin(points: List[RegressionPoint]) -> List[RegressionPoint]:
    """Prepend (0, 0) unless an exact (0, 0) is already present; keep one (0, 0) only."""
    out = [RegressionPoint(0.0, 0.0)]
    for p in points:
        if p.voltage == 0 and p.velocity == 0:
            continue
        out.append(p)
    return out


def calculate_regression_slope(
    regression_data: Iterable[Any],
    voltage_limit: float = DEFAULT_SPEED_CHECK.voltage_limit,
) -> RegressionResult:
    """Regression over the 0..voltage_limit range, always including the origin.

    Near-zero points are kept as separate measurements; only an exact (0, 0)
    is merged with the implicit reference point.

    Raises:
        InsufficientDataError: Empty input, or fewer than 2 points after
            filtering and adding the origin.
        InvalidInputError: Non-finite values.
        DegenerateRegressionError: Zero variance in voltage.
    """
    points = as_regression_points(regression_data)
    if not points:
        raise InsufficientDataError("No regression data provided")
    check_finite(points)

    used = with_origin(points_in_range(points, voltage_limit))
    if len(used) < MIN_REGRESSION_POINTS:
        raise InsufficientDataError(
            f"Insufficient data points in 0-{voltage_limit}V range (including origin)"
        )

    x = np.array([p.voltage for p in used])
    y = np.array([p.velocity for p in used])
    result = linear_regression(x, y)
    log.debug("Regression over %d points in 0-%sV: %s, R^2=%.4f", result.point_count, voltage_limit, result.equation, result.r_squared)
    return RegressionResult(
        slope=result.slope,
        intercept=result.intercept,
        point_count=result.point_count,
        r_squared=result.r_squared,
        voltage_range=(0.0, float(voltage_limit)),
    )


def full_range_regression(regression_data: Iterable[Any]) -> RegressionResult:
    """Regression over every measured point, both polarities, no origin added.

    This is the overview fit across the whole voltage scale; the speed check
    uses calculate_regression_slope instead.

    Raises:
        InsufficientDataError: Fewer than 2 points.
        InvalidInputError: Non-finite values.
        DegenerateRegressionError: Zero variance in voltage.
    """
    points = as_regression_points(regression_data)
    check_finite(points)
    x = np.array([p.voltage for p in points])
    y = np.array([p.velocity for p in points])
    result = linear_regression(x, y)
    return RegressionResult(
        slope=result.slope,
        intercept=result.intercept,
        point_count=result.point_count,
        r_squared=result.r_squared,
        voltage_range=(float(x.min()), float(x.max())),
    )


def regression_line(
    result: RegressionResult,
    x_min: float = -10.0,
    x_max: float = 10.0,
    num: int = 101,
) -> Tuple[np.ndarray, np.ndarray]:
    """Evenly spaced (voltage, velocity) samples along the fitted line."""
    x = np.linspace(x_min, x_max, num)
    return x, result.slope * x + result.intercept
