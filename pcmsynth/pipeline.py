"""
Sample pipeline: voices → mix → normalization → quantized PCM.

The pipeline is a pull-based, single-pass iterator. Sample ``i`` sits at
``t = i / sample_rate``; every active voice is rendered for it in voice-id
order and the results are summed in that order, so the same input always
produces bit-identical output. Normalization is either a fixed headroom divisor
(default) or the running peak of the raw mix.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from typing import Any, TypeAlias, Union

import numpy as np
from numpy.typing import NDArray

from .config import Instrument, RenderConfig
from .envelope import Envelope
from .errors import InvalidParameterError, NumericOverflowError
from .logging_utils import log_exception
from .midi import Timeline
from .quantize import IntArray, quantize, quantize_array
from .voice import (
    Voice,
    VoiceArena,
    VoiceRequest,
    check_sample_rate,
    requests_from_timeline,
    spawn_voice,
)

_LOGGER = logging.getLogger("pcmsynth.pipeline")

FloatArray: TypeAlias = NDArray[np.float64]
VoiceSource: TypeAlias = Union[Voice, VoiceRequest]

DEFAULT_CHUNK = 4096
_FLAT = Envelope(attack=0.0, decay=0.0, sustain=1.0, release=0.0)


def peak_normalize(samples: NDArray[np.floating[Any]]) -> FloatArray:
    """Scale a finished buffer so its largest magnitude is 1.0."""
    values = np.asarray(samples, dtype=np.float64)
    if values.size == 0:
        return values.copy()
    peak = float(np.max(np.abs(values)))
    if peak == 0.0:
        return values.copy()
    return values / peak


class SamplePipeline:
    """Lazy mixer over a finite set of voices; iterate once for float samples."""

    def __init__(
        self,
        sources: Iterable[VoiceSource],
        config: RenderConfig | None = None,
        *,
        instrument: Instrument | None = None,
    ) -> None:
        self.config = config or RenderConfig()
        self.instrument = instrument or Instrument()
        self.sample_rate = self.config.sample_rate
        self._envelope = self.instrument.make_envelope()

        items = list(sources)
        # sorted() is stable, so voices starting together keep their given order
        ordered = sorted(items, key=lambda item: item.onset)
        self._check_sources(ordered)
        self._pending: deque[VoiceSource] = deque(ordered)
        self.total_samples = self._sample_count(items)
        self._arena = VoiceArena()
        self._index = 0
        self._peak = 0.0
        self._finished = False
        _LOGGER.debug(
            "Pipeline ready: %d voice(s), %d samples at %d Hz",
            len(items),
            self.total_samples,
            self.sample_rate,
        )

    def _check_sources(self, ordered: list[VoiceSource]) -> None:
        """Reject unusable voices and instrument settings before any sample is produced."""
        requests = [item for item in ordered if isinstance(item, VoiceRequest)]
        if requests:
            self.instrument.make_filters(self.sample_rate)
        for voice_id, item in enumerate(ordered):
            if isinstance(item, Voice):
                check_sample_rate(item, self.sample_rate)
            else:
                self.instrument.make_waveform(
                    item.frequency, self.sample_rate, seed=self.instrument.seed + voice_id
                )

    def _tail_end(self, item: VoiceSource) -> float:
        if isinstance(item, Voice):
            return item.tail_end
        return item.onset + self._envelope.tail_end(item.offset - item.onset)

    def _sample_count(self, items: list[VoiceSource]) -> int:
        if self.config.duration is not None:
            return math.floor(self.config.duration * self.sample_rate)
        if not items:
            return 0
        return math.ceil(max(self._tail_end(item) for item in items) * self.sample_rate)

    @property
    def position(self) -> int:
        """Index of the next sample to be produced."""
        return self._index

    @property
    def active_voices(self) -> int:
        return len(self._arena)

    def _admit(self, t: float) -> None:
        while self._pending and self._pending[0].onset <= t:
            item = self._pending[0]
            if isinstance(item, VoiceRequest):
                # ids follow onset order, matching the seeds checked at construction
                seed = self.instrument.seed + self._arena.next_id
                item = spawn_voice(item, self.instrument, self.sample_rate, seed=seed)
            self._pending.popleft()
            self._arena.add(item)

    def _normalize(self, mix: float) -> float:
        if self.config.normalization == "peak":
            self._peak = max(self._peak, abs(mix))
            return mix / max(1.0, self._peak)
        return mix / self.config.headroom

    def __iter__(self) -> Iterator[float]:
        return self

    def __next__(self) -> float:
        if self._finished or self._index >= self.total_samples:
            if not self._finished:
                self._finished = True
                _LOGGER.info(
                    "Rendered %d samples (%.3fs) at %d Hz",
                    self._index,
                    self._index / self.sample_rate,
                    self.sample_rate,
                )
            raise StopIteration

        index = self._index
        t = index / self.sample_rate
        self._admit(t)

        mix = 0.0
        for voice in self._arena.voices():
            mix += voice.render(t)

        if not math.isfinite(mix):
            self._finished = True
            _LOGGER.warning("Non-finite mix value %r at sample %d; aborting render", mix, index)
            error = NumericOverflowError(
                f"mix produced {mix!r} at sample {index} (t={t:.6f}s)", sample_index=index
            )
            log_exception(
                "render",
                error,
                details={
                    "sample_index": index,
                    "time": t,
                    "sample_rate": self.sample_rate,
                    "active_voices": len(self._arena),
                },
            )
            raise error

        self._index += 1
        self._arena.retire_finished(self._index / self.sample_rate)
        return self._normalize(mix)

    def take(self, count: int) -> FloatArray:
        """Pull up to ``count`` samples into an array."""
        out = np.fromiter(
            (sample for _, sample in zip(range(count), self)), dtype=np.float64
        )
        return out


class PcmStream:
    """Quantized view of a :class:`SamplePipeline`; also single-pass."""

    def __init__(self, pipeline: SamplePipeline, bit_depth: int | None = None) -> None:
        self.pipeline = pipeline
        self.bit_depth = bit_depth if bit_depth is not None else pipeline.config.bit_depth
        self.sample_rate = pipeline.sample_rate

    @property
    def total_samples(self) -> int:
        return self.pipeline.total_samples

    def __iter__(self) -> Iterator[int]:
        return self

    def __next__(self) -> int:
        return quantize(next(self.pipeline), self.bit_depth)

    def chunks(self, size: int = DEFAULT_CHUNK) -> Iterator[IntArray]:
        if size <= 0:
            raise InvalidParameterError(f"chunk size must be positive, got {size!r}")
        while True:
            block = self.pipeline.take(size)
            if block.size == 0:
                return
            yield quantize_array(block, self.bit_depth)


def render_voices(
    sources: Iterable[VoiceSource],
    config: RenderConfig | None = None,
    *,
    instrument: Instrument | None = None,
) -> PcmStream:
    return PcmStream(SamplePipeline(sources, config, instrument=instrument))


def render_timeline(
    timeline: Timeline,
    instrument: Instrument | None = None,
    config: RenderConfig | None = None,
) -> PcmStream:
    """Voice every note of ``timeline`` with ``instrument``."""
    return render_voices(requests_from_timeline(timeline), config, instrument=instrument)


def render_waveform(
    waveform: Callable[[float], float],
    config: RenderConfig,
    *,
    envelope: Envelope | None = None,
    gain: float = 1.0,
) -> PcmStream:
    """Render a single generator for ``config.duration`` seconds."""
    if config.duration is None:
        raise InvalidParameterError("rendering a bare waveform needs an explicit duration")
    voice = Voice(
        waveform=waveform,
        envelope=envelope or _FLAT,
        onset=0.0,
        offset=config.duration,
        gain=gain,
    )
    return render_voices([voice], config)
