from __future__ import annotations

import numpy as np
import pytest

from pcmsynth.errors import InvalidParameterError
from pcmsynth.fir import (
    bandpass_kernel,
    bandreject_kernel,
    blackman_window,
    convolve,
    cutoff_from_frequency,
    highpass_kernel,
    lowpass_kernel,
    spectral_invert,
)

SAMPLE_RATE = 44_100


def test_lowpass_kernel_has_unity_dc_gain() -> None:
    kernel = lowpass_kernel(0.1, 0.05)
    assert len(kernel) % 2 == 0
    assert kernel.sum() == pytest.approx(1.0)


def test_highpass_kernel_blocks_dc() -> None:
    assert highpass_kernel(0.1, 0.05).sum() == pytest.approx(0.0, abs=1e-12)


def test_band_kernels_build() -> None:
    assert bandpass_kernel(0.05, 0.2, 0.05).size > 0
    assert bandreject_kernel(0.05, 0.2, 0.05).size > 0
    with pytest.raises(InvalidParameterError):
        bandpass_kernel(0.2, 0.05, 0.05)
    with pytest.raises(InvalidParameterError):
        bandreject_kernel(0.2, 0.05, 0.05)


def test_blackman_window_tapers_to_zero() -> None:
    window = blackman_window(64)
    assert window[0] == pytest.approx(0.0, abs=1e-12)
    assert window.max() <= 1.0


def test_lowpass_removes_high_tone() -> None:
    t = np.arange(SAMPLE_RATE) / SAMPLE_RATE
    low = np.sin(2 * np.pi * 80.0 * t)
    mixed = low + np.sin(2 * np.pi * 6_000.0 * t)

    kernel = lowpass_kernel(cutoff_from_frequency(400.0, SAMPLE_RATE), 0.01)
    filtered = convolve(kernel, mixed)

    assert filtered.shape == mixed.shape
    middle = slice(2_000, -2_000)
    assert np.max(np.abs(filtered[middle] - low[middle])) < 0.05


def test_convolve_empty_signal() -> None:
    assert convolve(lowpass_kernel(0.1, 0.1), np.array([])).size == 0


def test_invalid_kernel_parameters() -> None:
    with pytest.raises(InvalidParameterError):
        lowpass_kernel(0.6, 0.05)
    with pytest.raises(InvalidParameterError):
        lowpass_kernel(0.1, 0.0)
    with pytest.raises(InvalidParameterError):
        spectral_invert(np.ones(3))
