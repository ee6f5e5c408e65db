from __future__ import annotations

from .audio import PcmSink, WavSink, load_sample, read_wav, write_wav
from .config import EnvelopeSettings, FilterSpec, Instrument, RenderConfig
from .delay import AllPassDelay, CombFilter, DelayFilter, DelayLine, DelayState, copy_state
from .envelope import Envelope, attack_decay
from .errors import (
    InvalidParameterError,
    MalformedEventStreamError,
    NumericOverflowError,
    PcmSynthError,
)
from .filters import BiquadFilter, BiquadState, design_biquad, step
from .karplus import KarplusStrong
from .logging_utils import configure_logging as _configure_logging
from .midi import (
    NoteEvent,
    TempoChange,
    Timeline,
    TimelineBuilder,
    TimedNote,
    build_timeline,
    pitch_to_frequency,
    timeline_from_deltas,
)
from .midi_file import MidiSong, read_midi_file, render_midi_file, timeline_from_midi_file
from .pipeline import (
    PcmStream,
    SamplePipeline,
    peak_normalize,
    render_timeline,
    render_voices,
    render_waveform,
)
from .quantize import quantize, quantize_array, quantize_samples, unquantize
from .voice import Voice, VoiceArena, VoiceRequest
from .waveforms import (
    SAMPLE_RATE,
    Bell,
    Noise,
    PluckedString,
    SampleBased,
    Sawtooth,
    Sine,
    Square,
    Tangent,
    Triangle,
    Waveform,
    evaluate,
    make_samples,
    samples_iter,
)

__all__ = [
    "SAMPLE_RATE",
    "AllPassDelay",
    "Bell",
    "BiquadFilter",
    "BiquadState",
    "CombFilter",
    "DelayFilter",
    "DelayLine",
    "DelayState",
    "Envelope",
    "EnvelopeSettings",
    "FilterSpec",
    "Instrument",
    "InvalidParameterError",
    "KarplusStrong",
    "MalformedEventStreamError",
    "MidiSong",
    "Noise",
    "NoteEvent",
    "NumericOverflowError",
    "PcmSink",
    "PcmStream",
    "PcmSynthError",
    "PluckedString",
    "RenderConfig",
    "SampleBased",
    "SamplePipeline",
    "Sawtooth",
    "Sine",
    "Square",
    "Tangent",
    "TempoChange",
    "TimedNote",
    "Timeline",
    "TimelineBuilder",
    "Triangle",
    "Voice",
    "VoiceArena",
    "VoiceRequest",
    "WavSink",
    "Waveform",
    "attack_decay",
    "build_timeline",
    "copy_state",
    "design_biquad",
    "evaluate",
    "load_sample",
    "make_samples",
    "peak_normalize",
    "pitch_to_frequency",
    "quantize",
    "quantize_array",
    "quantize_samples",
    "read_midi_file",
    "read_wav",
    "render_midi_file",
    "render_timeline",
    "render_voices",
    "render_waveform",
    "samples_iter",
    "step",
    "timeline_from_deltas",
    "timeline_from_midi_file",
    "unquantize",
    "write_wav",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
