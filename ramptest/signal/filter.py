"""Smoothing for position traces before ramp detection."""
import numpy as np
from scipy.ndimage import uniform_filter1d
from scipy.signal import butter, filtfilt


def lowpass_filter(signal: np.ndarray, sample_rate: float, cutoff_hz: float, order: int = 4) -> np.ndarray:
    """Zero-phase low-pass Butterworth filter.

    Args:
        signal: 1D position (or other) signal.
        sample_rate: Sampling frequency in Hz.
        cutoff_hz: Cutoff frequency in Hz.
        order: Butterworth order (default 4).

    Returns:
        Filtered signal, same shape as input.
    """
    if sample_rate <= 0:
        return signal.copy()
    nyq = 0.5 * sample_rate
    normal_cutoff = cutoff_hz / nyq
    # filtfilt needs more samples than 3 * filter length
    if normal_cutoff >= 1.0 or len(signal) <= 3 * (2 * order + 1):
        return signal.copy()
    b, a = butter(order, normal_cutoff, btype="low", analog=False)
    return filtfilt(b, a, signal.astype(float))


def moving_average(signal: np.ndarray, window: int) -> np.ndarray:
    """Centered moving average with edge values repeated."""
    if window <= 1:
        return signal.astype(float)
    w = min(window, len(signal))
    return uniform_filter1d(signal.astype(float), size=w, mode="nearest")


def estimate_sample_rate(time: np.ndarray) -> float:
    """Sample rate from the median time step (Hz); 0 if time never advances."""
    dt = np.diff(np.asarray(time, dtype=float))
    dt = dt[dt > 0]
    if len(dt) == 0:
        return 0.0
    return float(1.0 / np.median(dt))
