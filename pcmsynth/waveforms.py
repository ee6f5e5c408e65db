"""
Waveform generators.

Every generator is an immutable value that maps elapsed time ``t`` (seconds)
to an amplitude in [-1, 1]. Frequencies may be constants or callables of time
for sweeps; the phase of a swept generator is ``t * f(t)``.
"""

from __future__ import annotations

import itertools
import math
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, TypeAlias, Union

import numpy as np
from numpy.typing import NDArray

from .envelope import attack_decay
from .errors import InvalidParameterError
from .karplus import KarplusStrong

FloatArray: TypeAlias = NDArray[np.float64]
Frequency: TypeAlias = Union[float, Callable[[float], float]]

SAMPLE_RATE = 44_100
TAU = 2.0 * math.pi

_NOISE_BLOCK = 4096
_PLUCK_MIN_TABLE = 4096

# (frequency ratio, amplitude, decay multiplier)
# http://computermusicresource.com/Simple.bell.tutorial.html
BELL_PARTIALS: tuple[tuple[float, float, float], ...] = (
    (0.56, 1.5, 1.0),
    (0.92, 0.5, 2.0),
    (1.19, 0.25, 4.0),
    (1.71, 0.125, 6.0),
    (2.00, 0.0625, 8.4),
    (2.74, 0.03125, 10.8),
    (3.00, 0.015625, 13.6),
    (3.76, 0.0078125, 16.4),
    (4.07, 0.00390625, 19.6),
)


def _clamp(value: float) -> float:
    if value > 1.0:
        return 1.0
    if value < -1.0:
        return -1.0
    return value


def _freq_at(frequency: Frequency, t: float) -> float:
    if callable(frequency):
        return float(frequency(t))
    return frequency


def _check_frequency(frequency: Frequency) -> None:
    if callable(frequency):
        return
    if not math.isfinite(frequency) or frequency < 0:
        raise InvalidParameterError(f"frequency must be finite and >= 0, got {frequency!r}")


def _check_sample_rate(sample_rate: int) -> None:
    if sample_rate <= 0:
        raise InvalidParameterError(f"sample_rate must be positive, got {sample_rate!r}")


# =============================================================================
# PERIODIC GENERATORS
# =============================================================================


@dataclass(frozen=True, slots=True)
class Sine:
    frequency: Frequency

    def __post_init__(self) -> None:
        _check_frequency(self.frequency)

    def __call__(self, t: float) -> float:
        return math.sin(TAU * _freq_at(self.frequency, t) * t)


@dataclass(frozen=True, slots=True)
class Square:
    frequency: Frequency

    def __post_init__(self) -> None:
        _check_frequency(self.frequency)

    def __call__(self, t: float) -> float:
        value = math.sin(TAU * _freq_at(self.frequency, t) * t)
        return 1.0 if math.copysign(1.0, value) > 0 else -1.0


@dataclass(frozen=True, slots=True)
class Sawtooth:
    frequency: Frequency

    def __post_init__(self) -> None:
        _check_frequency(self.frequency)

    def __call__(self, t: float) -> float:
        phase = _freq_at(self.frequency, t) * t
        return 2.0 * (phase - math.floor(phase)) - 1.0


@dataclass(frozen=True, slots=True)
class Triangle:
    frequency: Frequency

    def __post_init__(self) -> None:
        _check_frequency(self.frequency)

    def __call__(self, t: float) -> float:
        phase = _freq_at(self.frequency, t) * t
        return 4.0 * abs(phase - math.floor(phase) - 0.5) - 1.0


@dataclass(frozen=True, slots=True)
class Tangent:
    """Clipped tangent; a harsh buzz that saturates at the rails."""

    frequency: Frequency

    def __post_init__(self) -> None:
        _check_frequency(self.frequency)

    def __call__(self, t: float) -> float:
        value = math.tan(math.pi * _freq_at(self.frequency, t) * t - 0.5) / 4.0
        return _clamp(value)


@dataclass(frozen=True, slots=True)
class Bell:
    """Additive bell from nine inharmonic partials with per-partial decay."""

    frequency: Frequency
    attack: float = 0.003
    decay: float = 0.5

    def __post_init__(self) -> None:
        _check_frequency(self.frequency)
        if self.attack < 0 or self.decay < 0:
            raise InvalidParameterError("bell attack and decay must be >= 0")

    def __call__(self, t: float) -> float:
        base = _freq_at(self.frequency, t)
        total = 0.0
        for ratio, amplitude, decay_mult in BELL_PARTIALS:
            shape = attack_decay(t, self.attack, self.decay * decay_mult)
            total += math.sin(TAU * base * ratio * t) * amplitude * shape
        return _clamp(total / 2.0)


# =============================================================================
# NOISE
# =============================================================================


@lru_cache(maxsize=64)
def _noise_block(seed: int, block: int) -> FloatArray:
    rng = np.random.default_rng((seed, block & 0xFFFFFFFF, block >> 32 & 0xFFFFFFFF))
    values = rng.uniform(-1.0, 1.0, _NOISE_BLOCK)
    values.setflags(write=False)
    return values


@dataclass(frozen=True, slots=True)
class Noise:
    """White noise that depends only on ``seed`` and the sample index of ``t``."""

    seed: int = 0
    sample_rate: int = SAMPLE_RATE

    def __post_init__(self) -> None:
        _check_sample_rate(self.sample_rate)
        if self.seed < 0:
            raise InvalidParameterError(f"noise seed must be >= 0, got {self.seed!r}")

    def __call__(self, t: float) -> float:
        index = math.floor(t * self.sample_rate)
        block, offset = divmod(index, _NOISE_BLOCK)
        return float(_noise_block(self.seed, block)[offset])


# =============================================================================
# PLUCKED STRING
# =============================================================================


@lru_cache(maxsize=32)
def _pluck_table(
    frequency: float, decay: float, sample_rate: int, seed: int, length: int
) -> FloatArray:
    string = KarplusStrong(frequency, sample_rate=sample_rate, decay=decay, seed=seed)
    table = string.process(np.zeros(length))
    table.setflags(write=False)
    return table


@dataclass(frozen=True, slots=True)
class PluckedString:
    """Karplus-Strong string rendered from a seeded excitation.

    Evaluation renders the string once into a memoized table, so any ``t`` can
    be sampled without holding mutable state. The pipeline drives a live
    :class:`~pcmsynth.karplus.KarplusStrong` instead, one step per sample.
    """

    frequency: float
    decay: float = 0.996
    sample_rate: int = SAMPLE_RATE
    seed: int = 0

    def __post_init__(self) -> None:
        if callable(self.frequency):
            raise InvalidParameterError("plucked strings need a constant frequency")
        # Build once to run the string's own parameter checks.
        KarplusStrong(self.frequency, sample_rate=self.sample_rate, decay=self.decay, seed=self.seed)

    def __call__(self, t: float) -> float:
        if t < 0:
            return 0.0
        index = math.floor(t * self.sample_rate)
        length = _PLUCK_MIN_TABLE
        while length <= index:
            length *= 2
        table = _pluck_table(self.frequency, self.decay, self.sample_rate, self.seed, length)
        return float(table[index])

    def string(self) -> KarplusStrong:
        return KarplusStrong(
            self.frequency, sample_rate=self.sample_rate, decay=self.decay, seed=self.seed
        )


# =============================================================================
# SAMPLE PLAYBACK
# =============================================================================


def _readonly_buffer(samples: Sequence[float] | FloatArray) -> FloatArray:
    buffer = np.array(samples, dtype=np.float64).reshape(-1)
    buffer.setflags(write=False)
    return buffer


@dataclass(frozen=True, slots=True, eq=False)
class SampleBased:
    """Plays back a recorded buffer with linear interpolation."""

    samples: FloatArray = field(repr=False)
    sample_rate: int = SAMPLE_RATE
    playback_rate: float = 1.0

    def __post_init__(self) -> None:
        _check_sample_rate(self.sample_rate)
        if not math.isfinite(self.playback_rate) or self.playback_rate <= 0:
            raise InvalidParameterError(
                f"playback_rate must be positive, got {self.playback_rate!r}"
            )
        object.__setattr__(self, "samples", _readonly_buffer(self.samples))

    def __len__(self) -> int:
        return int(self.samples.size)

    @property
    def duration(self) -> float:
        return self.samples.size / (self.sample_rate * self.playback_rate)

    def __call__(self, t: float) -> float:
        if t < 0 or self.samples.size == 0:
            return 0.0
        position = t * self.sample_rate * self.playback_rate
        index = math.floor(position)
        last = self.samples.size - 1
        if index > last:
            return 0.0
        if index == last:
            return _clamp(float(self.samples[last])) if position == index else 0.0
        frac = position - index
        left = float(self.samples[index])
        right = float(self.samples[index + 1])
        return _clamp(left + (right - left) * frac)


Waveform: TypeAlias = Union[
    Sine, Square, Triangle, Sawtooth, Tangent, Bell, Noise, PluckedString, SampleBased
]

# Waveforms that can be built from a frequency alone.
WAVEFORM_KINDS: Mapping[str, Callable[..., Any]] = MappingProxyType(
    {
        "sine": Sine,
        "square": Square,
        "triangle": Triangle,
        "sawtooth": Sawtooth,
        "tangent": Tangent,
        "bell": Bell,
        "pluck": PluckedString,
    }
)


def evaluate(waveform: Callable[[float], float], t: float) -> float:
    """Amplitude of ``waveform`` at ``t`` seconds, clamped to [-1, 1]."""
    return _clamp(float(waveform(t)))


def make_samples(
    duration: float, sample_rate: int, waveform: Callable[[float], float]
) -> FloatArray:
    """Raw (unnormalized, unquantized) samples of ``waveform`` for ``duration`` seconds."""
    _check_sample_rate(sample_rate)
    count = max(0, math.floor(sample_rate * duration))
    return np.fromiter(
        (waveform(i / sample_rate) for i in range(count)), dtype=np.float64, count=count
    )


def samples_iter(sample_rate: int, waveform: Callable[[float], float]) -> Iterator[float]:
    """Endless lazy stream of samples at ``t = i / sample_rate``."""
    _check_sample_rate(sample_rate)
    for i in itertools.count():
        yield waveform(i / sample_rate)
