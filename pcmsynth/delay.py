"""
Ring-buffer feedback structures: comb, feed-forward delay and Schroeder all-pass.

Each structure keeps exactly ``delay_samples`` past values in a fixed-size
circular buffer with a cursor. The value read at the cursor was written
``delay_samples`` steps earlier; the new value is written back in its place.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Literal, TypeAlias

import numpy as np
from numpy.typing import NDArray

from .errors import InvalidParameterError

FloatArray: TypeAlias = NDArray[np.float64]
DelayStructure = Literal["comb", "delay", "allpass"]


def delay_samples_for(seconds: float, sample_rate: int) -> int:
    """Delay length in whole samples for ``seconds`` at ``sample_rate``."""
    if sample_rate <= 0:
        raise InvalidParameterError(f"sample_rate must be positive, got {sample_rate!r}")
    if not math.isfinite(seconds) or seconds <= 0:
        raise InvalidParameterError(f"delay time must be positive, got {seconds!r}")
    return max(1, round(seconds * sample_rate))


def _validate(delay_samples: int, gain: float, damping: float) -> None:
    if int(delay_samples) != delay_samples or delay_samples < 1:
        raise InvalidParameterError(f"delay length must be a whole number >= 1, got {delay_samples!r}")
    if not math.isfinite(gain) or abs(gain) >= 1.0:
        raise InvalidParameterError(f"feedback gain must satisfy |gain| < 1, got {gain!r}")
    if not 0.0 <= damping < 1.0:
        raise InvalidParameterError(f"damping must be within [0, 1), got {damping!r}")


class DelayLine:
    """Fixed-length circular buffer; ``read`` then ``write`` advances one sample."""

    __slots__ = ("buffer", "index")

    def __init__(self, delay_samples: int) -> None:
        if delay_samples < 1:
            raise InvalidParameterError(f"delay length must be >= 1, got {delay_samples!r}")
        self.buffer: FloatArray = np.zeros(int(delay_samples), dtype=np.float64)
        self.index = 0

    def __len__(self) -> int:
        return int(self.buffer.size)

    def read(self) -> float:
        return float(self.buffer[self.index])

    def peek(self, offset: int) -> float:
        """Value ``offset`` positions ahead of the cursor (older samples first)."""
        return float(self.buffer[(self.index + offset) % self.buffer.size])

    def write(self, value: float) -> None:
        self.buffer[self.index] = value
        self.index += 1
        if self.index == self.buffer.size:
            self.index = 0

    def clear(self) -> None:
        self.buffer.fill(0.0)
        self.index = 0


@dataclass(frozen=True, slots=True)
class DelayState:
    """Recursion memory of a delay structure.

    ``buffer`` is shared between a state and its successor: once ``step`` has
    returned, only the returned state is valid. :func:`copy_state` makes a
    snapshot that can be stepped independently.
    """

    structure: DelayStructure
    buffer: FloatArray
    gain: float
    sample_rate: int
    cursor: int = 0
    damping: float = 0.0
    damped: float = 0.0

    @property
    def delay_samples(self) -> int:
        return int(self.buffer.size)


def new_state(
    structure: DelayStructure,
    delay_samples: int,
    gain: float,
    *,
    sample_rate: int = 44_100,
    damping: float = 0.0,
) -> DelayState:
    _validate(delay_samples, gain, damping)
    if structure not in ("comb", "delay", "allpass"):
        raise InvalidParameterError(f"Unknown delay structure: {structure!r}")
    if damping and structure != "comb":
        raise InvalidParameterError("damping only applies to comb filters")
    return DelayState(
        structure=structure,
        buffer=np.zeros(int(delay_samples), dtype=np.float64),
        gain=float(gain),
        sample_rate=int(sample_rate),
        damping=float(damping),
    )


def step(state: DelayState, x: float) -> tuple[float, DelayState]:
    """Advance one sample; returns the output and the state to use next.

    The ring buffer is updated in place and handed on to the returned state,
    so ``state`` is consumed by this call. Stepping it a second time reads
    history that has already moved on. Use :func:`copy_state` to branch.
    """
    buffer = state.buffer
    cursor = state.cursor
    delayed = float(buffer[cursor])
    damped = state.damped

    match state.structure:
        case "comb":
            # y[n] = x[n] + g * lp(y[n - N]); a one-pole low-pass damps the loop
            damped = delayed * (1.0 - state.damping) + damped * state.damping
            y = x + state.gain * damped
            buffer[cursor] = y
        case "delay":
            y = x + state.gain * delayed
            buffer[cursor] = x
        case _:
            buffer[cursor] = x + state.gain * delayed
            y = delayed - x

    cursor += 1
    if cursor == buffer.size:
        cursor = 0
    return y, replace(state, cursor=cursor, damped=damped)


def copy_state(state: DelayState) -> DelayState:
    """Independent snapshot of ``state`` that later steps on the original do not touch."""
    return replace(state, buffer=state.buffer.copy())


class _DelayFilter:
    structure: DelayStructure

    def __init__(
        self,
        delay_samples: int,
        gain: float,
        *,
        sample_rate: int = 44_100,
        damping: float = 0.0,
    ) -> None:
        self.state = new_state(
            self.structure, delay_samples, gain, sample_rate=sample_rate, damping=damping
        )

    @classmethod
    def from_seconds(cls, seconds: float, gain: float, *, sample_rate: int = 44_100, **kwargs: float):
        return cls(delay_samples_for(seconds, sample_rate), gain, sample_rate=sample_rate, **kwargs)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(delay_samples={self.delay_samples}, "
            f"gain={self.state.gain}, sample_rate={self.sample_rate})"
        )

    @property
    def delay_samples(self) -> int:
        return self.state.delay_samples

    @property
    def sample_rate(self) -> int:
        return self.state.sample_rate

    def tick(self, x: float) -> float:
        y, self.state = step(self.state, x)
        return y

    def process(self, signal: FloatArray) -> FloatArray:
        out = np.empty(len(signal), dtype=np.float64)
        state = self.state
        for i, x in enumerate(np.asarray(signal, dtype=np.float64)):
            out[i], state = step(state, float(x))
        self.state = state
        return out

    def reset(self) -> None:
        self.state.buffer.fill(0.0)
        self.state = replace(self.state, cursor=0, damped=0.0)


class CombFilter(_DelayFilter):
    """Feedback comb: ``y[n] = x[n] + gain * y[n - N]``."""

    structure = "comb"


class DelayFilter(_DelayFilter):
    """Feed-forward echo: ``y[n] = x[n] + gain * x[n - N]``."""

    structure = "delay"

    def __init__(self, delay_samples: int, gain: float, *, sample_rate: int = 44_100) -> None:
        super().__init__(delay_samples, gain, sample_rate=sample_rate)


class AllPassDelay(_DelayFilter):
    """Schroeder all-pass section built on a delay line (freeverb form)."""

    structure = "allpass"

    def __init__(self, delay_samples: int, gain: float, *, sample_rate: int = 44_100) -> None:
        super().__init__(delay_samples, gain, sample_rate=sample_rate)
