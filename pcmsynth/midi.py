"""
Note events → timeline.

Events arrive in stream order with absolute ticks (or as deltas through
:meth:`TimelineBuilder.feed`). Ticks are converted to seconds with the tempo
in force at each tick; a tempo change only affects ticks at or after it.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from typing import Literal, TypeAlias, Union

from .errors import InvalidParameterError, MalformedEventStreamError

_LOGGER = logging.getLogger("pcmsynth.midi")

DEFAULT_TEMPO = 500_000  # microseconds per quarter note (120 BPM)
A4_PITCH = 69
A4_FREQUENCY = 440.0

NoteKind = Literal["note_on", "note_off"]


def pitch_to_frequency(pitch: float, a4: float = A4_FREQUENCY) -> float:
    """Equal-tempered frequency of a MIDI pitch."""
    return a4 * 2.0 ** ((pitch - A4_PITCH) / 12.0)


def note_frequency(semitone: int, octave: int, a4: float = A4_FREQUENCY) -> float:
    """Frequency of ``semitone`` (0=C .. 11=B) in scientific-pitch ``octave``."""
    return pitch_to_frequency(12 * (octave + 1) + semitone, a4)


def bpm_to_tempo(bpm: float) -> int:
    if bpm <= 0:
        raise InvalidParameterError(f"bpm must be positive, got {bpm!r}")
    return round(60_000_000 / bpm)


def tempo_to_bpm(tempo: int) -> float:
    return 60_000_000 / tempo


@dataclass(frozen=True, slots=True)
class NoteEvent:
    tick: int
    channel: int
    pitch: int
    velocity: int
    kind: NoteKind = "note_on"

    def __post_init__(self) -> None:
        if self.tick < 0:
            raise MalformedEventStreamError(f"negative tick: {self.tick!r}")
        if not 0 <= self.channel <= 15:
            raise MalformedEventStreamError(f"channel out of range: {self.channel!r}")
        if not 0 <= self.pitch <= 127:
            raise MalformedEventStreamError(f"pitch out of range: {self.pitch!r}")
        if not 0 <= self.velocity <= 127:
            raise MalformedEventStreamError(f"velocity out of range: {self.velocity!r}")
        if self.kind not in ("note_on", "note_off"):
            raise MalformedEventStreamError(f"unknown note event kind: {self.kind!r}")

    @property
    def is_note_terminating(self) -> bool:
        # NoteOn with velocity 0 is a NoteOff
        return self.kind == "note_off" or self.velocity == 0


@dataclass(frozen=True, slots=True)
class TempoChange:
    tick: int
    tempo: int  # microseconds per quarter note

    def __post_init__(self) -> None:
        if self.tick < 0:
            raise MalformedEventStreamError(f"negative tick: {self.tick!r}")
        if self.tempo <= 0:
            raise MalformedEventStreamError(f"tempo must be positive, got {self.tempo!r}")


MidiEvent: TypeAlias = Union[NoteEvent, TempoChange]


@dataclass(frozen=True, slots=True)
class TimedNote:
    onset: float
    offset: float
    channel: int
    pitch: int
    velocity: int
    frequency: float
    gain: float
    matched: bool = True

    @property
    def duration(self) -> float:
        return self.offset - self.onset


@dataclass(frozen=True, slots=True)
class TimelinePoint:
    time: float
    channel: int
    frequency: float
    gain: float


@dataclass(frozen=True, slots=True)
class Timeline:
    notes: tuple[TimedNote, ...]
    end_time: float

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self) -> Iterator[TimedNote]:
        return iter(self.notes)

    def channels(self) -> tuple[int, ...]:
        return tuple(sorted({note.channel for note in self.notes}))

    def for_channel(self, channel: int) -> tuple[TimedNote, ...]:
        return tuple(note for note in self.notes if note.channel == channel)

    def points(self) -> tuple[TimelinePoint, ...]:
        """Onset/offset points; an offset carries zero gain. Sorted by time."""
        points: list[TimelinePoint] = []
        for note in self.notes:
            points.append(TimelinePoint(note.onset, note.channel, note.frequency, note.gain))
            points.append(TimelinePoint(note.offset, note.channel, note.frequency, 0.0))
        return tuple(sorted(points, key=lambda point: point.time))


@dataclass(slots=True)
class _PendingNote:
    onset: float
    channel: int
    pitch: int
    velocity: int
    offset_tick: int | None = None
    offset: float | None = None


class TimelineBuilder:
    """Consumes note and tempo events in stream order and builds a :class:`Timeline`."""

    def __init__(
        self,
        ticks_per_quarter: int,
        *,
        tempo: int = DEFAULT_TEMPO,
        follow_tempo_changes: bool = True,
    ) -> None:
        if ticks_per_quarter <= 0:
            raise InvalidParameterError(
                f"ticks_per_quarter must be positive, got {ticks_per_quarter!r}"
            )
        if tempo <= 0:
            raise InvalidParameterError(f"tempo must be positive, got {tempo!r}")
        self.ticks_per_quarter = ticks_per_quarter
        self.follow_tempo_changes = follow_tempo_changes
        self._tick = 0
        self._anchor_tick = 0
        self._anchor_seconds = 0.0
        self._seconds_per_tick = self._rate(tempo)
        self._pending: list[_PendingNote] = []
        self._open: defaultdict[tuple[int, int], deque[int]] = defaultdict(deque)
        self._ignored_note_offs = 0

    def _rate(self, tempo: int) -> float:
        return (tempo / 1_000_000) / self.ticks_per_quarter

    @property
    def tick(self) -> int:
        return self._tick

    def seconds_at(self, tick: int) -> float:
        """Seconds at ``tick`` under the tempo currently in force."""
        return self._anchor_seconds + (tick - self._anchor_tick) * self._seconds_per_tick

    def feed(self, delta: int, event: MidiEvent) -> None:
        """Add ``event`` ``delta`` ticks after the previous one; its own tick is ignored."""
        if delta < 0:
            raise MalformedEventStreamError(f"negative delta time: {delta!r}")
        self.add(replace(event, tick=self._tick + delta))

    def add(self, event: MidiEvent) -> None:
        if event.tick < self._tick:
            raise MalformedEventStreamError(
                f"event at tick {event.tick} arrived after tick {self._tick}"
            )
        self._tick = event.tick

        if isinstance(event, TempoChange):
            if self.follow_tempo_changes:
                self._anchor_seconds = self.seconds_at(event.tick)
                self._anchor_tick = event.tick
                self._seconds_per_tick = self._rate(event.tempo)
            return

        key = (event.channel, event.pitch)
        if event.is_note_terminating:
            queue = self._open.get(key)
            if not queue:
                self._ignored_note_offs += 1
                _LOGGER.debug(
                    "Ignoring note-off without open note (channel=%d pitch=%d tick=%d)",
                    event.channel,
                    event.pitch,
                    event.tick,
                )
                return
            pending = self._pending[queue.popleft()]
            pending.offset_tick = event.tick
            pending.offset = self.seconds_at(event.tick)
            return

        self._open[key].append(len(self._pending))
        self._pending.append(
            _PendingNote(
                onset=self.seconds_at(event.tick),
                channel=event.channel,
                pitch=event.pitch,
                velocity=event.velocity,
            )
        )

    def advance(self, delta: int) -> None:
        """Move the running tick without an event (e.g. end-of-track padding)."""
        if delta < 0:
            raise MalformedEventStreamError(f"negative delta time: {delta!r}")
        self._tick += delta

    def build(self) -> Timeline:
        end_time = self.seconds_at(self._tick)
        notes: list[TimedNote] = []
        unmatched = 0
        for pending in self._pending:
            matched = pending.offset is not None
            if not matched:
                unmatched += 1
            notes.append(
                TimedNote(
                    onset=pending.onset,
                    offset=pending.offset if pending.offset is not None else end_time,
                    channel=pending.channel,
                    pitch=pending.pitch,
                    velocity=pending.velocity,
                    frequency=pitch_to_frequency(pending.pitch),
                    gain=pending.velocity / 127.0,
                    matched=matched,
                )
            )
        if unmatched:
            _LOGGER.debug("%d note(s) still sounding at track end (%.3fs)", unmatched, end_time)
        if self._ignored_note_offs:
            _LOGGER.debug("Ignored %d unmatched note-off event(s)", self._ignored_note_offs)
        return Timeline(notes=tuple(notes), end_time=end_time)


def build_timeline(
    events: Iterable[MidiEvent],
    *,
    ticks_per_quarter: int,
    tempo: int = DEFAULT_TEMPO,
    follow_tempo_changes: bool = True,
) -> Timeline:
    """Timeline from events carrying absolute ticks."""
    builder = TimelineBuilder(
        ticks_per_quarter, tempo=tempo, follow_tempo_changes=follow_tempo_changes
    )
    for event in events:
        builder.add(event)
    return builder.build()


def timeline_from_deltas(
    events: Iterable[tuple[int, MidiEvent]],
    *,
    ticks_per_quarter: int,
    tempo: int = DEFAULT_TEMPO,
    follow_tempo_changes: bool = True,
) -> Timeline:
    """Timeline from ``(delta_ticks, event)`` pairs in stream order."""
    builder = TimelineBuilder(
        ticks_per_quarter, tempo=tempo, follow_tempo_changes=follow_tempo_changes
    )
    for delta, event in events:
        builder.feed(delta, event)
    return builder.build()
