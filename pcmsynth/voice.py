from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field

from .config import Instrument
from .envelope import Envelope
from .errors import InvalidParameterError
from .filters import Filter
from .karplus import KarplusStrong
from .midi import Timeline
from .waveforms import PluckedString

_LOGGER = logging.getLogger("pcmsynth.voice")


@dataclass(frozen=True, slots=True)
class VoiceRequest:
    """A note to be voiced: ``[onset, offset)`` in seconds at ``frequency``."""

    onset: float
    offset: float
    frequency: float
    gain: float = 1.0
    channel: int = 0

    def __post_init__(self) -> None:
        if self.onset < 0 or self.offset < self.onset:
            raise InvalidParameterError(
                f"voice interval must satisfy 0 <= onset <= offset, got [{self.onset}, {self.offset})"
            )


def requests_from_timeline(timeline: Timeline) -> list[VoiceRequest]:
    return [
        VoiceRequest(
            onset=note.onset,
            offset=note.offset,
            frequency=note.frequency,
            gain=note.gain,
            channel=note.channel,
        )
        for note in timeline
    ]


@dataclass(slots=True)
class Voice:
    """One sounding note: generator × envelope × gain, then the filter chain.

    The generator is evaluated at time since onset. A plucked string is driven
    through its own live Karplus-Strong string, one step per rendered sample.
    """

    waveform: Callable[[float], float]
    envelope: Envelope
    onset: float
    offset: float
    gain: float = 1.0
    filters: list[Filter] = field(default_factory=list)
    channel: int = 0
    string: KarplusStrong | None = None

    def __post_init__(self) -> None:
        if self.onset < 0 or self.offset < self.onset:
            raise InvalidParameterError(
                f"voice interval must satisfy 0 <= onset <= offset, got [{self.onset}, {self.offset})"
            )
        if self.string is None and isinstance(self.waveform, PluckedString):
            self.string = self.waveform.string()

    @property
    def held(self) -> float:
        return self.offset - self.onset

    @property
    def tail_end(self) -> float:
        """Absolute time at which the release has decayed to silence."""
        return self.onset + self.envelope.tail_end(self.held)

    def render(self, t: float) -> float:
        """Next output sample; must be called once per sample, in time order."""
        elapsed = t - self.onset
        if self.string is not None:
            source = self.string.tick()
        else:
            source = self.waveform(elapsed)
        y = source * self.envelope.gain(elapsed, t < self.offset, self.held) * self.gain
        for stage in self.filters:
            y = stage.tick(y)
        return y


def spawn_voice(
    request: VoiceRequest, instrument: Instrument, sample_rate: int, *, seed: int | None = None
) -> Voice:
    return Voice(
        waveform=instrument.make_waveform(request.frequency, sample_rate, seed=seed),
        envelope=instrument.make_envelope(),
        onset=request.onset,
        offset=request.offset,
        gain=request.gain * instrument.gain,
        filters=instrument.make_filters(sample_rate),
        channel=request.channel,
    )


def check_sample_rate(voice: Voice, sample_rate: int) -> None:
    for stage in voice.filters:
        if stage.sample_rate != sample_rate:
            raise InvalidParameterError(
                f"filter {stage!r} was designed for {stage.sample_rate} Hz "
                f"but the render runs at {sample_rate} Hz"
            )
    if voice.string is not None and voice.string.sample_rate != sample_rate:
        raise InvalidParameterError(
            f"plucked string tuned at {voice.string.sample_rate} Hz "
            f"but the render runs at {sample_rate} Hz"
        )


class VoiceArena:
    """Active voices keyed by a stable, increasing id.

    Iteration follows id (insertion) order, which fixes the summation order of
    the mix.
    """

    def __init__(self) -> None:
        self._voices: dict[int, Voice] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._voices)

    def __iter__(self) -> Iterator[tuple[int, Voice]]:
        return iter(list(self._voices.items()))

    def __contains__(self, voice_id: int) -> bool:
        return voice_id in self._voices

    @property
    def next_id(self) -> int:
        return self._next_id

    def add(self, voice: Voice) -> int:
        voice_id = self._next_id
        self._next_id += 1
        self._voices[voice_id] = voice
        return voice_id

    def get(self, voice_id: int) -> Voice:
        return self._voices[voice_id]

    def remove(self, voice_id: int) -> Voice:
        return self._voices.pop(voice_id)

    def voices(self) -> Sequence[Voice]:
        return tuple(self._voices.values())

    def retire_finished(self, t: float) -> list[int]:
        """Drop voices whose release tail has ended by ``t``."""
        finished = [voice_id for voice_id, voice in self._voices.items() if t >= voice.tail_end]
        for voice_id in finished:
            del self._voices[voice_id]
        if finished:
            _LOGGER.debug("Retired %d voice(s) at %.4fs", len(finished), t)
        return finished
