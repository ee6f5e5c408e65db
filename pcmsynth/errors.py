from __future__ import annotations


class PcmSynthError(Exception):
    """Base error for the pcmsynth library."""


class InvalidParameterError(PcmSynthError, ValueError):
    """Raised when a generator, filter or config receives an unusable parameter."""


class MalformedEventStreamError(PcmSynthError):
    """Raised when a note event stream is corrupt beyond local recovery."""


class NumericOverflowError(PcmSynthError, ArithmeticError):
    """Raised when the mix produces NaN or infinity."""

    def __init__(self, message: str, *, sample_index: int | None = None) -> None:
        super().__init__(message)
        self.sample_index = sample_index
