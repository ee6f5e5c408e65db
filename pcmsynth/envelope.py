from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .errors import InvalidParameterError


def attack_decay(t: float, attack: float, decay: float) -> float:
    """Two-stage linear envelope: rise over ``attack``, fall to zero over ``decay``."""
    if t < 0.0:
        return 0.0
    if t < attack:
        return t / attack
    if t < attack + decay:
        return 1.0 - (t - attack) / decay
    return 0.0


@dataclass(frozen=True, slots=True)
class Envelope:
    """Linear ADSR gain curve.

    Times are seconds measured from note-on; ``sustain`` is a level in [0, 1].
    A zero-length stage is an instantaneous jump.
    """

    attack: float = 0.005
    decay: float = 0.05
    sustain: float = 0.8
    release: float = 0.1

    def __post_init__(self) -> None:
        for name in ("attack", "decay", "release"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise InvalidParameterError(f"envelope {name} must be >= 0, got {value!r}")
        if not 0.0 <= self.sustain <= 1.0:
            raise InvalidParameterError(f"sustain must be within [0, 1], got {self.sustain!r}")

    def _held_level(self, elapsed: float) -> float:
        if elapsed < self.attack:
            return elapsed / self.attack
        if elapsed < self.attack + self.decay:
            return 1.0 - (1.0 - self.sustain) * (elapsed - self.attack) / self.decay
        return self.sustain

    def gain(self, elapsed: float, note_active: bool = True, held: float | None = None) -> float:
        """Gain ``elapsed`` seconds after note-on.

        ``held`` is how long the note was held before release. Without it a
        released note is taken to have let go as soon as it reached sustain
        (``attack + decay``), so the release still runs out ``release``
        seconds later.
        """
        if elapsed < 0.0:
            return 0.0
        if note_active:
            return self._held_level(elapsed)
        if held is None:
            held = self.attack + self.decay
        released_at = max(0.0, min(held, elapsed))
        since_release = elapsed - released_at
        if since_release >= self.release:
            return 0.0
        level = self._held_level(released_at)
        return level * (1.0 - since_release / self.release)

    def tail_end(self, held: float) -> float:
        """Seconds after note-on at which the release reaches zero."""
        return max(0.0, held) + self.release

    def is_silent(self, elapsed: float, held: float) -> bool:
        return elapsed >= self.tail_end(held)

    def render(self, count: int, sample_rate: int, held: float) -> NDArray[np.float64]:
        """Gain curve for ``count`` samples of a note held for ``held`` seconds."""
        return np.fromiter(
            (
                self.gain(t, note_active=t < held, held=held)
                for t in (i / sample_rate for i in range(count))
            ),
            dtype=np.float64,
            count=count,
        )


def gain(envelope: Envelope, elapsed: float, note_active: bool, held: float | None = None) -> float:
    return envelope.gain(elapsed, note_active, held)


def apply_envelope(
    signal: NDArray[np.float64], envelope: Envelope, held: float, sample_rate: int
) -> NDArray[np.float64]:
    """Apply ``envelope`` to a signal whose first sample is note-on."""
    return signal * envelope.render(len(signal), sample_rate, held)
