from __future__ import annotations

import math
from typing import TypeAlias

import numpy as np
from numpy.typing import NDArray

from .delay import DelayLine
from .errors import InvalidParameterError

FloatArray: TypeAlias = NDArray[np.float64]


def string_length(frequency: float, sample_rate: int) -> int:
    """Ring-buffer length of a string tuned to ``frequency``."""
    return round(sample_rate / frequency)


class KarplusStrong:
    """Plucked string: a noise-filled delay line with an averaging loss filter.

    Each tick emits the sample under the cursor and writes back
    ``decay * (current + next) / 2``. The optional input is added to the
    written value, so a silent input leaves the plucked string ringing freely.
    """

    def __init__(
        self,
        frequency: float,
        *,
        sample_rate: int = 44_100,
        decay: float = 0.996,
        seed: int = 0,
    ) -> None:
        if sample_rate <= 0:
            raise InvalidParameterError(f"sample_rate must be positive, got {sample_rate!r}")
        if not math.isfinite(frequency) or frequency <= 0 or frequency >= sample_rate / 2:
            raise InvalidParameterError(
                f"string frequency must be within (0, {sample_rate / 2}) Hz, got {frequency!r}"
            )
        if not 0.0 < decay <= 1.0:
            raise InvalidParameterError(f"decay must be within (0, 1], got {decay!r}")
        length = string_length(frequency, sample_rate)
        if length < 2:
            raise InvalidParameterError(f"string buffer too short ({length}) for {frequency} Hz")

        self.frequency = float(frequency)
        self.sample_rate = int(sample_rate)
        self.decay = float(decay)
        self.seed = seed
        self._line = DelayLine(length)
        self._excite()

    def __repr__(self) -> str:
        return (
            f"KarplusStrong({self.frequency}, sample_rate={self.sample_rate}, "
            f"decay={self.decay}, seed={self.seed})"
        )

    def _excite(self) -> None:
        rng = np.random.default_rng(self.seed)
        self._line.buffer[:] = rng.uniform(-1.0, 1.0, len(self._line))
        self._line.index = 0

    @property
    def buffer_length(self) -> int:
        return len(self._line)

    def tick(self, x: float = 0.0) -> float:
        out = self._line.read()
        self._line.write(self.decay * 0.5 * (out + self._line.peek(1)) + x)
        return out

    def process(self, signal: FloatArray) -> FloatArray:
        out = np.empty(len(signal), dtype=np.float64)
        for i, x in enumerate(np.asarray(signal, dtype=np.float64)):
            out[i] = self.tick(float(x))
        return out

    def reset(self) -> None:
        """Pluck again with the same excitation."""
        self._excite()
