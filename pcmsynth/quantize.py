from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from typing import Any, TypeAlias

import numpy as np
from numpy.typing import NDArray

from .errors import InvalidParameterError, NumericOverflowError

IntArray: TypeAlias = NDArray[np.signedinteger[Any]]

MIN_BIT_DEPTH = 2
MAX_BIT_DEPTH = 32


def _check_bit_depth(bit_depth: int) -> None:
    if not MIN_BIT_DEPTH <= bit_depth <= MAX_BIT_DEPTH:
        raise InvalidParameterError(
            f"bit depth must be within [{MIN_BIT_DEPTH}, {MAX_BIT_DEPTH}], got {bit_depth!r}"
        )


def pcm_range(bit_depth: int) -> tuple[int, int]:
    """Smallest and largest signed integer of ``bit_depth`` bits."""
    _check_bit_depth(bit_depth)
    return -(1 << (bit_depth - 1)), (1 << (bit_depth - 1)) - 1


def _scale(bit_depth: int) -> float:
    return ((1 << bit_depth) - 1) / 2.0


def pcm_dtype(bit_depth: int) -> np.dtype[Any]:
    """Narrowest numpy integer type that holds ``bit_depth`` bits."""
    _check_bit_depth(bit_depth)
    if bit_depth <= 8:
        return np.dtype(np.int8)
    if bit_depth <= 16:
        return np.dtype(np.int16)
    return np.dtype(np.int32)


def quantize(value: float, bit_depth: int = 16) -> int:
    """Map [-1, 1] onto the signed integer range of ``bit_depth``.

    Input is clamped to [-1, 1] first, scaled by ``(2**bits - 1) / 2``, rounded
    half away from zero and clipped, so 1.0 gives the maximum, -1.0 the
    minimum, and out-of-range input never wraps.
    """
    if math.isnan(value):
        raise NumericOverflowError("cannot quantize NaN")
    lo, hi = pcm_range(bit_depth)
    clamped = min(1.0, max(-1.0, value))
    scaled = clamped * _scale(bit_depth)
    rounded = int(math.copysign(math.floor(abs(scaled) + 0.5), scaled))
    return max(lo, min(hi, rounded))


def quantize_array(samples: NDArray[np.floating[Any]], bit_depth: int = 16) -> IntArray:
    """Vectorized :func:`quantize` with the same rounding and clipping."""
    values = np.asarray(samples, dtype=np.float64)
    if np.isnan(values).any():
        raise NumericOverflowError("cannot quantize NaN")
    lo, hi = pcm_range(bit_depth)
    scaled = np.clip(values, -1.0, 1.0) * _scale(bit_depth)
    rounded = np.sign(scaled) * np.floor(np.abs(scaled) + 0.5)
    return np.clip(rounded, lo, hi).astype(pcm_dtype(bit_depth))


def quantize_samples(samples: Iterable[float], bit_depth: int = 16) -> Iterator[int]:
    """Lazily quantize a stream of float samples."""
    _check_bit_depth(bit_depth)
    for sample in samples:
        yield quantize(sample, bit_depth)


def unquantize(value: int, bit_depth: int = 16) -> float:
    """Inverse scaling of :func:`quantize` (without undoing its rounding)."""
    _check_bit_depth(bit_depth)
    return value / _scale(bit_depth)


def unquantize_array(samples: IntArray, bit_depth: int = 16) -> NDArray[np.float64]:
    _check_bit_depth(bit_depth)
    return np.asarray(samples, dtype=np.float64) / _scale(bit_depth)
