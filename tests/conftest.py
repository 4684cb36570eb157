"""Synthetic valve traces shared by the test modules."""
import numpy as np
import pytest

from ramptest.data.types import Trace


def make_triangle_trace(
    file_id: str = "run1.csv",
    n: int = 200,
    dt: float = 0.05,
    up: tuple = (20, 80),
    down: tuple = (120, 180),
    travel: float = 30.0,
    noise: float = 0.0,
    seed: int = 0,
) -> Trace:
    """Flat - linear rise - flat top - linear fall - flat."""
    t = np.arange(n) * dt
    pos = np.zeros(n)
    i = np.arange(n)
    rising = (i >= up[0]) & (i <= up[1])
    pos[rising] = (i[rising] - up[0]) * travel / (up[1] - up[0])
    pos[(i > up[1]) & (i < down[0])] = travel
    falling = (i >= down[0]) & (i <= down[1])
    pos[falling] = travel - (i[falling] - down[0]) * travel / (down[1] - down[0])
    if noise:
        pos = pos + np.random.default_rng(seed).normal(0.0, noise, n)
    return Trace(file_id=file_id, time=t, position=pos)


@pytest.fixture
def triangle_trace() -> Trace:
    return make_triangle_trace()


@pytest.fixture
def flat_trace() -> Trace:
    n = 100
    t = np.arange(n) * 0.1
    pos = 5.0 + 0.2 * np.sin(np.arange(n) / 7.0)
    return Trace(file_id="flat.csv", time=t, position=pos)
