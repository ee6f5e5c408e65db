from __future__ import annotations

import logging
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .delay import AllPassDelay, CombFilter, DelayFilter
from .envelope import Envelope
from .errors import InvalidParameterError
from .filters import BIQUAD_KINDS, DEFAULT_Q, BiquadFilter, Filter, FilterKind
from .midi import bpm_to_tempo
from .waveforms import WAVEFORM_KINDS, Bell, Noise, PluckedString, Waveform

_LOGGER = logging.getLogger("pcmsynth.config")

SAMPLE_RATE = 44_100

BitDepth = Literal[8, 16, 24, 32]
WaveformName = Literal["sine", "square", "triangle", "sawtooth", "tangent", "bell", "pluck", "noise"]
NormalizationPolicy = Literal["headroom", "peak"]


class EnvelopeSettings(BaseModel):
    attack: float = Field(0.005, ge=0.0)
    decay: float = Field(0.05, ge=0.0)
    sustain: float = Field(0.8, ge=0.0, le=1.0)
    release: float = Field(0.1, ge=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_envelope(self) -> Envelope:
        return Envelope(
            attack=self.attack, decay=self.decay, sustain=self.sustain, release=self.release
        )


class FilterSpec(BaseModel):
    """Declarative description of one stage of a voice's filter chain.

    Biquad kinds need ``cutoff`` (and use ``q``); delay kinds need
    ``delay_samples`` (and use ``gain``, plus ``damping`` for combs).
    """

    kind: FilterKind
    cutoff: float | None = Field(None, gt=0.0)
    q: float = Field(DEFAULT_Q, gt=0.0)
    delay_samples: int | None = Field(None, ge=1)
    gain: float = 0.5
    damping: float = Field(0.0, ge=0.0, lt=1.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _check_required(self) -> "FilterSpec":
        if self.kind in BIQUAD_KINDS:
            if self.cutoff is None:
                raise ValueError(f"{self.kind} filter needs a cutoff")
        elif self.delay_samples is None:
            raise ValueError(f"{self.kind} filter needs delay_samples")
        return self

    def build(self, sample_rate: int) -> Filter:
        """Instantiate the stage; parameter problems raise InvalidParameterError."""
        match self.kind:
            case "comb":
                assert self.delay_samples is not None
                return CombFilter(
                    self.delay_samples, self.gain, sample_rate=sample_rate, damping=self.damping
                )
            case "delay":
                assert self.delay_samples is not None
                return DelayFilter(self.delay_samples, self.gain, sample_rate=sample_rate)
            case "allpass_delay":
                assert self.delay_samples is not None
                return AllPassDelay(self.delay_samples, self.gain, sample_rate=sample_rate)
            case _:
                assert self.cutoff is not None
                return BiquadFilter(self.kind, self.cutoff, sample_rate, self.q)  # type: ignore[arg-type]


class Instrument(BaseModel):
    """Maps a note frequency to a waveform, envelope and filter chain."""

    waveform: WaveformName = "sine"
    envelope: EnvelopeSettings = EnvelopeSettings()
    filters: tuple[FilterSpec, ...] = ()
    gain: float = Field(1.0, ge=0.0)
    pluck_decay: float = Field(0.996, gt=0.0, le=1.0)
    bell_attack: float = Field(0.003, ge=0.0)
    bell_decay: float = Field(0.5, ge=0.0)
    seed: int = Field(0, ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def make_waveform(self, frequency: float, sample_rate: int, *, seed: int | None = None) -> Waveform:
        seed = self.seed if seed is None else seed
        match self.waveform:
            case "noise":
                return Noise(seed=seed, sample_rate=sample_rate)
            case "pluck":
                return PluckedString(
                    frequency, decay=self.pluck_decay, sample_rate=sample_rate, seed=seed
                )
            case "bell":
                return Bell(frequency, attack=self.bell_attack, decay=self.bell_decay)
            case name:
                try:
                    factory = WAVEFORM_KINDS[name]
                except KeyError as exc:
                    raise InvalidParameterError(f"Unknown waveform: {name!r}") from exc
                return factory(frequency)

    def make_envelope(self) -> Envelope:
        return self.envelope.to_envelope()

    def make_filters(self, sample_rate: int) -> list[Filter]:
        chain = [spec.build(sample_rate) for spec in self.filters]
        if chain:
            _LOGGER.debug("Built %d filter stage(s) at %d Hz", len(chain), sample_rate)
        return chain


class RenderConfig(BaseModel):
    """Output format and mixing policy for a render.

    ``duration`` of ``None`` renders until the last voice's release has ended.
    ``tempo`` is ``"midi"`` to follow the stream's tempo events, or a fixed BPM.
    ``normalization="headroom"`` divides the mix by ``headroom``;
    ``"peak"`` divides by the running peak of the raw mix (never below 1).

    With the default ``headroom`` of 1.0, overlapping full-scale voices can
    push the mix past [-1, 1]; the quantizer then clips those samples to the
    PCM extremes (it never wraps). Set ``headroom`` to the expected polyphony,
    or use ``"peak"``, to keep the mix in range.
    """

    sample_rate: int = Field(SAMPLE_RATE, gt=0)
    bit_depth: BitDepth = 16
    duration: float | None = Field(None, ge=0.0)
    tempo: Union[Literal["midi"], float] = "midi"
    normalization: NormalizationPolicy = "headroom"
    headroom: float = Field(1.0, gt=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("tempo")
    @classmethod
    def _check_tempo(cls, value: Union[str, float]) -> Union[str, float]:
        if isinstance(value, str):
            return value
        if value <= 0:
            raise ValueError(f"fixed tempo must be a positive BPM, got {value!r}")
        return value

    @property
    def fixed_tempo(self) -> int | None:
        """Fixed tempo in microseconds per quarter note, or None to follow the stream."""
        if self.tempo == "midi":
            return None
        return bpm_to_tempo(float(self.tempo))
