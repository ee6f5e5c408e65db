"""
Stateful biquad filters.

Coefficients follow the RBJ audio-EQ cookbook (bilinear transform). The
recursion memory is a two-word transposed direct form II state, carried as an
immutable value: ``step(state, x)`` returns the output and the next state.
:class:`BiquadFilter` owns a state for callers that prefer ``tick``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, NamedTuple, Protocol, TypeAlias, Union, cast, get_args

import numpy as np
from numpy.typing import NDArray
from scipy.signal import freqz, lfilter  # type: ignore[import]

from .delay import DelayState
from .delay import step as delay_step
from .errors import InvalidParameterError

FloatArray: TypeAlias = NDArray[np.float64]

BiquadKind = Literal["lowpass", "highpass", "bandpass", "bandreject", "allpass"]
DelayKind = Literal["comb", "delay", "allpass_delay"]
FilterKind = Literal[BiquadKind, DelayKind]

BIQUAD_KINDS: tuple[str, ...] = get_args(BiquadKind)
DEFAULT_Q = 1.0 / math.sqrt(2.0)


class Filter(Protocol):
    sample_rate: int

    def tick(self, x: float) -> float: ...

    def reset(self) -> None: ...


@dataclass(frozen=True, slots=True)
class BiquadCoefficients:
    kind: BiquadKind
    cutoff: float
    q: float
    sample_rate: int
    b0: float
    b1: float
    b2: float
    a1: float
    a2: float

    @property
    def b(self) -> tuple[float, float, float]:
        return (self.b0, self.b1, self.b2)

    @property
    def a(self) -> tuple[float, float, float]:
        return (1.0, self.a1, self.a2)


@lru_cache(maxsize=512)
def design_biquad(
    kind: BiquadKind, cutoff: float, sample_rate: int, q: float = DEFAULT_Q
) -> BiquadCoefficients:
    """Normalized (a0 == 1) coefficients for a second-order section."""
    if kind not in BIQUAD_KINDS:
        raise InvalidParameterError(f"Unknown biquad kind: {kind!r}. Valid: {list(BIQUAD_KINDS)}")
    if sample_rate <= 0:
        raise InvalidParameterError(f"sample_rate must be positive, got {sample_rate!r}")
    nyquist = sample_rate / 2
    if not math.isfinite(cutoff) or cutoff <= 0 or cutoff >= nyquist:
        raise InvalidParameterError(
            f"cutoff must be within (0, {nyquist}) Hz for sample_rate={sample_rate}, got {cutoff!r}"
        )
    if not math.isfinite(q) or q <= 0:
        raise InvalidParameterError(f"Q must be positive, got {q!r}")

    w0 = 2.0 * math.pi * cutoff / sample_rate
    cos_w0 = math.cos(w0)
    alpha = math.sin(w0) / (2.0 * q)

    match kind:
        case "lowpass":
            b0, b1, b2 = (1 - cos_w0) / 2, 1 - cos_w0, (1 - cos_w0) / 2
        case "highpass":
            b0, b1, b2 = (1 + cos_w0) / 2, -(1 + cos_w0), (1 + cos_w0) / 2
        case "bandpass":
            b0, b1, b2 = alpha, 0.0, -alpha
        case "bandreject":
            b0, b1, b2 = 1.0, -2 * cos_w0, 1.0
        case "allpass":
            b0, b1, b2 = 1 - alpha, -2 * cos_w0, 1 + alpha

    a0 = 1 + alpha
    a1 = -2 * cos_w0
    a2 = 1 - alpha
    return BiquadCoefficients(
        kind=kind,
        cutoff=cutoff,
        q=q,
        sample_rate=sample_rate,
        b0=b0 / a0,
        b1=b1 / a0,
        b2=b2 / a0,
        a1=a1 / a0,
        a2=a2 / a0,
    )


class BiquadState(NamedTuple):
    coefficients: BiquadCoefficients
    z1: float = 0.0
    z2: float = 0.0


def biquad_step(state: BiquadState, x: float) -> tuple[float, BiquadState]:
    c = state.coefficients
    y = c.b0 * x + state.z1
    z1 = c.b1 * x - c.a1 * y + state.z2
    z2 = c.b2 * x - c.a2 * y
    return y, BiquadState(c, z1, z2)


FilterState: TypeAlias = Union[BiquadState, DelayState]


def step(state: FilterState, x: float) -> tuple[float, FilterState]:
    """Advance any filter state by one sample."""
    if isinstance(state, BiquadState):
        return biquad_step(state, x)
    return delay_step(state, x)


class BiquadFilter:
    """Owning wrapper around a :class:`BiquadState`."""

    def __init__(
        self,
        kind: BiquadKind,
        cutoff: float,
        sample_rate: int,
        q: float = DEFAULT_Q,
    ) -> None:
        self.coefficients = design_biquad(kind, float(cutoff), int(sample_rate), float(q))
        self.state = BiquadState(self.coefficients)

    def __repr__(self) -> str:
        c = self.coefficients
        return f"BiquadFilter({c.kind!r}, cutoff={c.cutoff}, sample_rate={c.sample_rate}, q={c.q})"

    @property
    def kind(self) -> BiquadKind:
        return self.coefficients.kind

    @property
    def sample_rate(self) -> int:
        return self.coefficients.sample_rate

    def tick(self, x: float) -> float:
        y, self.state = biquad_step(self.state, x)
        return y

    def process(self, signal: FloatArray) -> FloatArray:
        """Filter a block, continuing from (and updating) the current state."""
        c = self.coefficients
        zi = np.array([self.state.z1, self.state.z2], dtype=np.float64)
        filtered, zf = cast(
            tuple[FloatArray, FloatArray],
            lfilter(c.b, c.a, np.asarray(signal, dtype=np.float64), zi=zi),
        )
        self.state = BiquadState(c, float(zf[0]), float(zf[1]))
        return np.asarray(filtered, dtype=np.float64)

    def reset(self) -> None:
        self.state = BiquadState(self.coefficients)

    def magnitude_db(self, frequency: float) -> float:
        """Steady-state gain in dB at ``frequency`` Hz."""
        c = self.coefficients
        _, response = freqz(c.b, c.a, worN=[frequency], fs=c.sample_rate)
        return 20.0 * math.log10(max(abs(complex(response[0])), 1e-12))


def lowpass(cutoff: float, sample_rate: int, q: float = DEFAULT_Q) -> BiquadFilter:
    return BiquadFilter("lowpass", cutoff, sample_rate, q)


def highpass(cutoff: float, sample_rate: int, q: float = DEFAULT_Q) -> BiquadFilter:
    return BiquadFilter("highpass", cutoff, sample_rate, q)


def bandpass(center: float, sample_rate: int, q: float = DEFAULT_Q) -> BiquadFilter:
    return BiquadFilter("bandpass", center, sample_rate, q)


def bandreject(center: float, sample_rate: int, q: float = DEFAULT_Q) -> BiquadFilter:
    return BiquadFilter("bandreject", center, sample_rate, q)


def allpass(center: float, sample_rate: int, q: float = DEFAULT_Q) -> BiquadFilter:
    return BiquadFilter("allpass", center, sample_rate, q)
