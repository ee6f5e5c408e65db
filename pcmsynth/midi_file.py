"""Standard MIDI file reader built on mido.

Only single-stream files are voiced: format 0 directly, format 1 after merging
its tracks into one stream. Format 2 (independent sequences) is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import mido  # type: ignore[import]

from .config import Instrument, RenderConfig
from .errors import MalformedEventStreamError
from .logging_utils import log_exception
from .midi import DEFAULT_TEMPO, MidiEvent, NoteEvent, TempoChange, Timeline, TimelineBuilder
from .pipeline import PcmStream, render_timeline

_LOGGER = logging.getLogger("pcmsynth.midi_file")


@dataclass(frozen=True, slots=True)
class MidiSong:
    ticks_per_quarter: int
    events: tuple[MidiEvent, ...]
    end_tick: int

    @property
    def tempo_changes(self) -> tuple[TempoChange, ...]:
        return tuple(event for event in self.events if isinstance(event, TempoChange))


def _open(path: str | Path) -> mido.MidiFile:
    try:
        return mido.MidiFile(str(path))
    except (OSError, EOFError, ValueError, KeyError, IndexError) as exc:
        log_exception("reading MIDI file", exc, details={"path": str(path)})
        raise MalformedEventStreamError(f"could not parse MIDI file {path}: {exc}") from exc


def song_from_midi(midi: mido.MidiFile) -> MidiSong:
    """Flatten a parsed file into absolute-tick note and tempo events."""
    if midi.type == 2:
        raise MalformedEventStreamError("format 2 MIDI files are not supported")
    if midi.ticks_per_beat <= 0:
        raise MalformedEventStreamError(
            f"SMPTE or invalid time division is not supported: {midi.ticks_per_beat!r}"
        )

    if not midi.tracks:
        raise MalformedEventStreamError("MIDI file has no tracks")
    stream = midi.tracks[0] if midi.type == 0 else mido.merge_tracks(midi.tracks)
    events: list[MidiEvent] = []
    tick = 0
    for message in stream:
        tick += message.time
        match message.type:
            case "note_on" | "note_off":
                events.append(
                    NoteEvent(
                        tick=tick,
                        channel=message.channel,
                        pitch=message.note,
                        velocity=message.velocity,
                        kind=message.type,
                    )
                )
            case "set_tempo":
                events.append(TempoChange(tick=tick, tempo=message.tempo))
            case _:
                pass
    _LOGGER.debug(
        "Read %d note/tempo event(s) over %d ticks (type %d, %d tpq)",
        len(events),
        tick,
        midi.type,
        midi.ticks_per_beat,
    )
    return MidiSong(ticks_per_quarter=midi.ticks_per_beat, events=tuple(events), end_tick=tick)


def read_midi_file(path: str | Path) -> MidiSong:
    return song_from_midi(_open(path))


def song_to_timeline(song: MidiSong, config: RenderConfig | None = None) -> Timeline:
    config = config or RenderConfig()
    fixed = config.fixed_tempo
    builder = TimelineBuilder(
        song.ticks_per_quarter,
        tempo=fixed if fixed is not None else DEFAULT_TEMPO,
        follow_tempo_changes=fixed is None,
    )
    for event in song.events:
        builder.add(event)
    builder.advance(song.end_tick - builder.tick)
    return builder.build()


def timeline_from_midi_file(path: str | Path, config: RenderConfig | None = None) -> Timeline:
    return song_to_timeline(read_midi_file(path), config)


def render_midi_file(
    path: str | Path,
    instrument: Instrument | None = None,
    config: RenderConfig | None = None,
) -> PcmStream:
    """Read, schedule and voice a MIDI file with a single instrument."""
    return render_timeline(timeline_from_midi_file(path, config), instrument, config)
