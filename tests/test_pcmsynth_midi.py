from __future__ import annotations

import pytest

from pcmsynth.errors import InvalidParameterError, MalformedEventStreamError
from pcmsynth.midi import (
    NoteEvent,
    TempoChange,
    TimelineBuilder,
    bpm_to_tempo,
    build_timeline,
    note_frequency,
    pitch_to_frequency,
    tempo_to_bpm,
    timeline_from_deltas,
)

TPQ = 480


def on(tick: int, pitch: int = 60, velocity: int = 100, channel: int = 0) -> NoteEvent:
    return NoteEvent(tick=tick, channel=channel, pitch=pitch, velocity=velocity)


def off(tick: int, pitch: int = 60, channel: int = 0) -> NoteEvent:
    return NoteEvent(tick=tick, channel=channel, pitch=pitch, velocity=0, kind="note_off")


def test_pitch_frequencies() -> None:
    assert pitch_to_frequency(69) == pytest.approx(440.0)
    assert pitch_to_frequency(81) == pytest.approx(880.0)
    assert note_frequency(9, 4) == pytest.approx(440.0)
    assert note_frequency(0, 4) == pytest.approx(261.63, abs=0.1)
    assert note_frequency(2, 3) == pytest.approx(146.83, abs=0.1)
    assert note_frequency(6, 6) == pytest.approx(1479.98, abs=0.1)


def test_tempo_conversions() -> None:
    assert bpm_to_tempo(120) == 500_000
    assert tempo_to_bpm(1_000_000) == pytest.approx(60.0)
    with pytest.raises(InvalidParameterError):
        bpm_to_tempo(0)


def test_ticks_convert_at_default_tempo() -> None:
    timeline = build_timeline([on(0), on(480, pitch=64)], ticks_per_quarter=TPQ)
    assert [note.onset for note in timeline] == [0.0, pytest.approx(0.5)]


def test_note_off_closes_note() -> None:
    timeline = build_timeline([on(0), off(960)], ticks_per_quarter=TPQ)
    (note,) = timeline.notes
    assert note.offset == pytest.approx(1.0)
    assert note.duration == pytest.approx(1.0)
    assert note.matched
    assert note.frequency == pytest.approx(pitch_to_frequency(60))
    assert note.gain == pytest.approx(100 / 127)


def test_zero_velocity_note_on_is_note_off() -> None:
    timeline = build_timeline([on(0), on(240, velocity=0)], ticks_per_quarter=TPQ)
    (note,) = timeline.notes
    assert note.offset == pytest.approx(0.25)


def test_unmatched_note_on_sounds_until_end() -> None:
    events = [on(0), on(960, pitch=64), off(1_920, pitch=64)]
    timeline = build_timeline(events, ticks_per_quarter=TPQ)
    first, second = timeline.notes
    assert not first.matched
    assert first.offset == pytest.approx(2.0)
    assert timeline.end_time == pytest.approx(2.0)
    assert second.matched


def test_unmatched_note_off_is_ignored() -> None:
    timeline = build_timeline([off(0, pitch=70), on(10), off(20)], ticks_per_quarter=TPQ)
    assert len(timeline) == 1
    assert timeline.notes[0].pitch == 60


def test_repeated_pitch_closes_earliest_first() -> None:
    events = [on(0), on(480), off(960), off(1_440)]
    timeline = build_timeline(events, ticks_per_quarter=TPQ)
    assert [note.offset for note in timeline] == [
        pytest.approx(1.0),
        pytest.approx(1.5),
    ]


def test_channels_are_tracked_separately() -> None:
    events = [on(0, channel=0), on(0, channel=1), off(480, channel=1), off(960, channel=0)]
    timeline = build_timeline(events, ticks_per_quarter=TPQ)
    assert timeline.channels() == (0, 1)
    assert timeline.for_channel(1)[0].offset == pytest.approx(0.5)
    assert timeline.for_channel(0)[0].offset == pytest.approx(1.0)


def test_tempo_change_applies_from_its_tick() -> None:
    events = [on(0), TempoChange(tick=960, tempo=1_000_000), on(1_440, pitch=64)]
    timeline = build_timeline(events, ticks_per_quarter=TPQ)
    assert timeline.notes[1].onset == pytest.approx(2.0)


def test_fixed_tempo_ignores_tempo_events() -> None:
    events = [TempoChange(tick=0, tempo=250_000), on(480)]
    timeline = build_timeline(
        events,
        ticks_per_quarter=TPQ,
        tempo=bpm_to_tempo(60),
        follow_tempo_changes=False,
    )
    assert timeline.notes[0].onset == pytest.approx(1.0)


def test_delta_times_accumulate() -> None:
    timeline = timeline_from_deltas([(0, on(0)), (480, on(0, pitch=64)), (480, off(0))], ticks_per_quarter=TPQ)
    assert [note.onset for note in timeline] == [0.0, pytest.approx(0.5)]
    assert timeline.notes[0].offset == pytest.approx(1.0)


def test_points_are_time_ordered() -> None:
    timeline = build_timeline([on(0), on(240, pitch=64), off(480), off(960, pitch=64)], ticks_per_quarter=TPQ)
    times = [point.time for point in timeline.points()]
    assert times == sorted(times)
    assert timeline.points()[-1].gain == 0.0


class TestMalformedStreams:
    def test_out_of_order_events_rejected(self) -> None:
        with pytest.raises(MalformedEventStreamError):
            build_timeline([on(480), on(0)], ticks_per_quarter=TPQ)

    def test_negative_delta_rejected(self) -> None:
        builder = TimelineBuilder(TPQ)
        with pytest.raises(MalformedEventStreamError):
            builder.feed(-1, on(0))

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"channel": 16},
            {"pitch": 128},
            {"velocity": 200},
            {"tick": -1},
        ],
    )
    def test_out_of_range_fields_rejected(self, kwargs: dict[str, int]) -> None:
        fields = {"tick": 0, "channel": 0, "pitch": 60, "velocity": 100} | kwargs
        with pytest.raises(MalformedEventStreamError):
            NoteEvent(**fields)

    def test_non_positive_tempo_rejected(self) -> None:
        with pytest.raises(MalformedEventStreamError):
            TempoChange(tick=0, tempo=0)

    def test_invalid_resolution_rejected(self) -> None:
        with pytest.raises(InvalidParameterError):
            TimelineBuilder(0)
