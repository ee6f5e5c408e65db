from __future__ import annotations

import pytest
from pydantic import ValidationError

from pcmsynth.config import EnvelopeSettings, FilterSpec, Instrument, RenderConfig
from pcmsynth.delay import AllPassDelay, CombFilter, DelayFilter
from pcmsynth.envelope import Envelope
from pcmsynth.errors import InvalidParameterError
from pcmsynth.filters import BiquadFilter
from pcmsynth.waveforms import Bell, Noise, PluckedString, Square


def test_render_config_defaults() -> None:
    config = RenderConfig()
    assert config.sample_rate == 44_100
    assert config.bit_depth == 16
    assert config.duration is None
    assert config.normalization == "headroom"
    assert config.fixed_tempo is None


def test_fixed_tempo_from_bpm() -> None:
    assert RenderConfig(tempo=120).fixed_tempo == 500_000


@pytest.mark.parametrize(
    "payload",
    [
        {"bit_depth": 12},
        {"sample_rate": 0},
        {"tempo": -5},
        {"headroom": 0},
        {"normalization": "loudness"},
        {"unknown": True},
    ],
)
def test_render_config_rejects_bad_values(payload: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        RenderConfig.model_validate(payload)


def test_configs_are_frozen() -> None:
    config = RenderConfig()
    with pytest.raises(ValidationError):
        config.sample_rate = 8_000  # type: ignore[misc]


def test_envelope_settings_build_envelope() -> None:
    settings = EnvelopeSettings(attack=0.1, decay=0.2, sustain=0.3, release=0.4)
    assert settings.to_envelope() == Envelope(attack=0.1, decay=0.2, sustain=0.3, release=0.4)
    with pytest.raises(ValidationError):
        EnvelopeSettings(sustain=2.0)


class TestFilterSpec:
    def test_biquad_needs_cutoff(self) -> None:
        with pytest.raises(ValidationError):
            FilterSpec(kind="lowpass")

    def test_delay_kinds_need_length(self) -> None:
        with pytest.raises(ValidationError):
            FilterSpec(kind="comb")

    def test_builds_each_kind(self) -> None:
        assert isinstance(FilterSpec(kind="highpass", cutoff=200.0).build(8_000), BiquadFilter)
        assert isinstance(FilterSpec(kind="comb", delay_samples=10).build(8_000), CombFilter)
        assert isinstance(FilterSpec(kind="delay", delay_samples=10).build(8_000), DelayFilter)
        assert isinstance(
            FilterSpec(kind="allpass_delay", delay_samples=10).build(8_000), AllPassDelay
        )

    def test_build_checks_filter_parameters(self) -> None:
        with pytest.raises(InvalidParameterError):
            FilterSpec(kind="lowpass", cutoff=5_000.0).build(8_000)
        with pytest.raises(InvalidParameterError):
            FilterSpec(kind="comb", delay_samples=10, gain=1.0).build(8_000)


class TestInstrument:
    def test_waveform_choice(self) -> None:
        assert isinstance(Instrument(waveform="square").make_waveform(220.0, 8_000), Square)
        assert isinstance(Instrument(waveform="bell").make_waveform(220.0, 8_000), Bell)

    def test_seeded_waveforms_take_seed(self) -> None:
        noise = Instrument(waveform="noise", seed=4).make_waveform(220.0, 8_000)
        assert noise == Noise(seed=4, sample_rate=8_000)
        pluck = Instrument(waveform="pluck").make_waveform(220.0, 8_000, seed=9)
        assert isinstance(pluck, PluckedString)
        assert pluck.seed == 9
        assert pluck.sample_rate == 8_000

    def test_make_filters_builds_fresh_chain(self) -> None:
        instrument = Instrument(filters=(FilterSpec(kind="comb", delay_samples=4),))
        first = instrument.make_filters(8_000)
        second = instrument.make_filters(8_000)
        assert len(first) == 1
        assert first[0] is not second[0]

    def test_rejects_unknown_waveform(self) -> None:
        with pytest.raises(ValidationError):
            Instrument.model_validate({"waveform": "organ"})
