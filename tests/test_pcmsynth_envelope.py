from __future__ import annotations

import numpy as np
import pytest

from pcmsynth.envelope import Envelope, apply_envelope, attack_decay, gain
from pcmsynth.errors import InvalidParameterError


class TestEnvelopeStages:
    """Gain across attack, decay, sustain and release."""

    def test_attack_ramps_up(self) -> None:
        env = Envelope(attack=1.0, decay=1.0, sustain=0.5, release=1.0)
        assert env.gain(0.0) == 0.0
        assert env.gain(0.5) == pytest.approx(0.5)
        assert env.gain(1.0) == pytest.approx(1.0)

    def test_decay_falls_to_sustain(self) -> None:
        env = Envelope(attack=1.0, decay=1.0, sustain=0.5, release=1.0)
        assert env.gain(1.5) == pytest.approx(0.75)
        assert env.gain(3.0) == pytest.approx(0.5)
        assert env.gain(100.0) == pytest.approx(0.5)

    def test_release_ramps_to_zero(self) -> None:
        env = Envelope(attack=1.0, decay=1.0, sustain=0.5, release=1.0)
        assert env.gain(3.0, note_active=False, held=3.0) == pytest.approx(0.5)
        assert env.gain(3.5, note_active=False, held=3.0) == pytest.approx(0.25)
        assert env.gain(4.0, note_active=False, held=3.0) == 0.0

    def test_release_during_attack_starts_from_current_level(self) -> None:
        env = Envelope(attack=1.0, decay=0.0, sustain=1.0, release=1.0)
        assert env.gain(0.75, note_active=False, held=0.5) == pytest.approx(0.375)

    def test_release_without_hold_time_starts_at_sustain(self) -> None:
        env = Envelope(attack=0.5, decay=0.5, sustain=0.6, release=1.0)
        assert env.gain(1.0, note_active=False) == pytest.approx(0.6)
        assert env.gain(1.5, note_active=False) == pytest.approx(0.3)
        assert env.gain(2.0, note_active=False) == 0.0
        assert env.gain(5.0, note_active=False) == 0.0

    def test_negative_time_is_silent(self) -> None:
        assert Envelope().gain(-0.1) == 0.0


def test_zero_length_stages_jump() -> None:
    env = Envelope(attack=0.0, decay=0.0, sustain=0.7, release=0.0)
    assert env.gain(0.0) == pytest.approx(0.7)
    assert env.gain(1.0, note_active=False, held=1.0) == 0.0
    assert env.gain(2.0, note_active=False, held=1.0) == 0.0


def test_tail_end_and_silence() -> None:
    env = Envelope(release=0.25)
    assert env.tail_end(2.0) == pytest.approx(2.25)
    assert env.is_silent(2.25, held=2.0)
    assert not env.is_silent(2.2, held=2.0)


def test_render_and_apply() -> None:
    env = Envelope(attack=0.0, decay=0.0, sustain=1.0, release=0.0)
    curve = env.render(4, 4, held=0.5)
    assert list(curve) == [1.0, 1.0, 0.0, 0.0]
    shaped = apply_envelope(np.full(4, 0.5), env, held=0.5, sample_rate=4)
    assert list(shaped) == [0.5, 0.5, 0.0, 0.0]


def test_module_level_gain_matches_method() -> None:
    env = Envelope(attack=0.2, decay=0.2, sustain=0.4, release=0.2)
    assert gain(env, 0.1, True) == env.gain(0.1)


def test_released_gain_reaches_zero_without_hold_time() -> None:
    env = Envelope(attack=0.0, decay=0.0, sustain=0.8, release=0.1)
    assert gain(env, 0.05, False) == pytest.approx(0.4)
    assert gain(env, env.release, False) == 0.0
    assert gain(env, 5.0, False) == 0.0


def test_invalid_envelopes_rejected() -> None:
    with pytest.raises(InvalidParameterError):
        Envelope(sustain=1.5)
    with pytest.raises(InvalidParameterError):
        Envelope(attack=-0.1)


def test_attack_decay_envelope() -> None:
    assert attack_decay(0.25, 1.0, 1.0) == 0.25
    assert attack_decay(0.5, 1.0, 1.0) == 0.5
    assert attack_decay(1.0, 1.0, 1.0) == 1.0
    assert attack_decay(1.5, 1.0, 1.0) == 0.5
    assert attack_decay(3.0, 1.0, 1.0) == 0.0
    assert attack_decay(-0.5, 1.0, 1.0) == 0.0
