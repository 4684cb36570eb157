"""Velocity and RampSegment construction from marker indices."""
import numpy as np

from ..data.types import RampSegment, Trace
from ..errors import ZeroTimeIntervalError


def compute_velocity(trace: Trace, start_index: int, end_index: int) -> float:
    """Average velocity between two samples: delta position / delta time (mm/s).

    Raises:
        ZeroTimeIntervalError: If both samples share the same timestamp.
    """
    dt = float(trace.time[end_index] - trace.time[start_index])
    if dt == 0:
        raise ZeroTimeIntervalError(
            f"{trace.file_id}: zero time interval between samples {start_index} and {end_index}"
        )
    dp = float(trace.position[end_index] - trace.position[start_index])
    return dp / dt


def build_segment(trace: Trace, start_index: int, end_index: int, magnitude: bool = False) -> RampSegment:
    """RampSegment for [start_index, end_index]; magnitude=True stores abs(velocity)."""
    velocity = compute_velocity(trace, start_index, end_index)
    if magnitude:
        velocity = abs(velocity)
    t = trace.time
    p = trace.position
    return RampSegment(
        start_index=int(start_index),
        end_index=int(end_index),
        start_time=float(t[start_index]),
        end_time=float(t[end_index]),
        start_position=float(p[start_index]),
        end_position=float(p[end_index]),
        velocity=float(velocity),
        duration=float(t[end_index] - t[start_index]),
    )


def segment_r_squared(trace: Trace, start_index: int, end_index: int) -> float:
    """Linearity of position vs time over the segment (0 when undefined)."""
    t = trace.time[start_index : end_index + 1]
    p = trace.position[start_index : end_index + 1]
    if len(t) < 3:
        return 0.0
    dt = t - t.mean()
    dp = p - p.mean()
    denom = float(np.sum(dt * dt) * np.sum(dp * dp))
    if denom == 0:
        return 0.0
    r = float(np.sum(dt * dp)) / np.sqrt(denom)
    return r * r
