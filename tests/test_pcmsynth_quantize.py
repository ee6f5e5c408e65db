from __future__ import annotations

import math
from collections.abc import Iterator

import numpy as np
import pytest

from pcmsynth.errors import InvalidParameterError, NumericOverflowError
from pcmsynth.quantize import (
    pcm_dtype,
    pcm_range,
    quantize,
    quantize_array,
    quantize_samples,
    unquantize,
    unquantize_array,
)


def test_full_scale_maps_to_extremes() -> None:
    assert quantize(1.0) == 32_767
    assert quantize(-1.0) == -32_768
    assert quantize(0.0) == 0


@pytest.mark.parametrize(("bits", "expected"), [(8, (-128, 127)), (16, (-32_768, 32_767)), (24, (-8_388_608, 8_388_607))])
def test_extremes_for_each_depth(bits: int, expected: tuple[int, int]) -> None:
    assert pcm_range(bits) == expected
    assert (quantize(-1.0, bits), quantize(1.0, bits)) == expected


def test_out_of_range_input_clips() -> None:
    assert quantize(2.0) == 32_767
    assert quantize(-5.0) == -32_768
    assert quantize(math.inf) == 32_767


def test_rounds_half_away_from_zero() -> None:
    assert quantize(0.5) == 16_384
    assert quantize(-0.5) == -16_384


def test_array_matches_scalar() -> None:
    values = np.linspace(-1.5, 1.5, 101)
    expected = [quantize(float(v)) for v in values]
    actual = quantize_array(values)
    assert actual.dtype == np.int16
    assert actual.tolist() == expected


def test_nan_is_an_error() -> None:
    with pytest.raises(NumericOverflowError):
        quantize(math.nan)
    with pytest.raises(NumericOverflowError):
        quantize_array(np.array([0.0, math.nan]))


def test_unsupported_bit_depths_rejected() -> None:
    with pytest.raises(InvalidParameterError):
        quantize(0.5, 1)
    with pytest.raises(InvalidParameterError):
        pcm_range(33)


def test_dtypes() -> None:
    assert pcm_dtype(8) == np.int8
    assert pcm_dtype(16) == np.int16
    assert pcm_dtype(24) == np.int32


def test_unquantize_inverts_scaling() -> None:
    assert unquantize(quantize(0.25)) == pytest.approx(0.25, abs=1 / 32_767)
    assert np.allclose(unquantize_array(np.array([0, 16_384])), [0.0, 0.5], atol=1e-4)


def test_quantize_samples_is_lazy() -> None:
    stream = quantize_samples(iter([0.0, 1.0]))
    assert isinstance(stream, Iterator)
    assert list(stream) == [0, 32_767]
