"""Stateless windowed-sinc FIR filters, applied by convolution.

Cutoffs are fractions of the sample rate (see :func:`cutoff_from_frequency`);
``band`` is the transition width, also as a fraction of the sample rate.
"""

from __future__ import annotations

import math
from typing import TypeAlias

import numpy as np
from numpy.typing import NDArray
from scipy.signal import fftconvolve  # type: ignore[import]

from .errors import InvalidParameterError

FloatArray: TypeAlias = NDArray[np.float64]


def cutoff_from_frequency(frequency: float, sample_rate: int) -> float:
    if sample_rate <= 0:
        raise InvalidParameterError(f"sample_rate must be positive, got {sample_rate!r}")
    return frequency / sample_rate


def _check_cutoff(cutoff: float) -> None:
    if not 0.0 < cutoff < 0.5:
        raise InvalidParameterError(f"cutoff fraction must be within (0, 0.5), got {cutoff!r}")


def _check_band(band: float) -> None:
    if not 0.0 < band < 1.0:
        raise InvalidParameterError(f"transition band must be within (0, 1), got {band!r}")


def blackman_window(size: int) -> FloatArray:
    return np.blackman(size).astype(np.float64)


def lowpass_kernel(cutoff: float, band: float) -> FloatArray:
    """Blackman-windowed sinc; passes frequencies below ``cutoff``."""
    _check_cutoff(cutoff)
    _check_band(band)
    n = math.ceil(4.0 / band)
    if n % 2 == 1:
        n += 1
    taps = np.arange(n, dtype=np.float64) - (n - 1) / 2.0
    kernel = np.sinc(2.0 * cutoff * taps) * blackman_window(n)
    return kernel / kernel.sum()


def spectral_invert(kernel: FloatArray) -> FloatArray:
    """Turn a low-pass kernel into the complementary high-pass kernel."""
    if len(kernel) % 2 != 0:
        raise InvalidParameterError("spectral inversion needs an even-length kernel")
    inverted = -np.asarray(kernel, dtype=np.float64)
    inverted[len(kernel) // 2] += 1.0
    return inverted


def highpass_kernel(cutoff: float, band: float) -> FloatArray:
    return spectral_invert(lowpass_kernel(cutoff, band))


def bandpass_kernel(low: float, high: float, band: float) -> FloatArray:
    if low > high:
        raise InvalidParameterError(f"band edges out of order: {low!r} > {high!r}")
    return np.convolve(highpass_kernel(low, band), lowpass_kernel(high, band))


def bandreject_kernel(low: float, high: float, band: float) -> FloatArray:
    if low > high:
        raise InvalidParameterError(f"band edges out of order: {low!r} > {high!r}")
    return lowpass_kernel(low, band) + highpass_kernel(high, band)


def convolve(kernel: FloatArray, signal: FloatArray) -> FloatArray:
    """Apply ``kernel`` to ``signal``; the output is centred and keeps the input length."""
    signal = np.asarray(signal, dtype=np.float64)
    if signal.size == 0:
        return signal.copy()
    return np.asarray(fftconvolve(signal, kernel, mode="same"), dtype=np.float64)
