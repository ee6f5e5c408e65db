from __future__ import annotations

import itertools
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType, TracebackType
from typing import Any, Protocol

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import InvalidParameterError
from .pipeline import DEFAULT_CHUNK, PcmStream
from .quantize import IntArray, pcm_range
from .waveforms import SampleBased

# libsndfile stores 8-bit WAV as unsigned; it converts from our signed values.
WAV_SUBTYPES: Mapping[int, str] = MappingProxyType(
    {8: "PCM_U8", 16: "PCM_16", 24: "PCM_24", 32: "PCM_32"}
)


class PcmSink(Protocol):
    """Consumer of quantized mono samples."""

    def write(self, samples: IntArray) -> None: ...

    def close(self) -> None: ...


class WavSink:
    """Writes quantized samples to a mono WAV file through soundfile."""

    def __init__(self, path: str | Path, *, sample_rate: int, bit_depth: int = 16) -> None:
        try:
            subtype = WAV_SUBTYPES[bit_depth]
        except KeyError as exc:
            raise InvalidParameterError(
                f"WAV output supports bit depths {sorted(WAV_SUBTYPES)}, got {bit_depth!r}"
            ) from exc
        self.path = Path(path)
        self.sample_rate = sample_rate
        self.bit_depth = bit_depth
        self.frames_written = 0
        self._lo, self._hi = pcm_range(bit_depth)
        self._handle = sf.SoundFile(
            self.path,
            mode="w",
            samplerate=sample_rate,
            channels=1,
            format="WAV",
            subtype=subtype,
        )

    def __enter__(self) -> "WavSink":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def write(self, samples: IntArray | Iterable[int]) -> None:
        block = np.asarray(samples if isinstance(samples, np.ndarray) else list(samples), dtype=np.int64)
        if block.size == 0:
            return
        if block.min() < self._lo or block.max() > self._hi:
            raise InvalidParameterError(f"samples exceed the {self.bit_depth}-bit range")
        # soundfile scales int32 data from full range down to the file's subtype
        self._handle.write((block << (32 - self.bit_depth)).astype(np.int32))
        self.frames_written += int(block.size)

    def close(self) -> None:
        if not self._handle.closed:
            self._handle.close()


def write_wav(
    path: str | Path,
    samples: PcmStream | IntArray | Iterable[int],
    *,
    sample_rate: int | None = None,
    bit_depth: int | None = None,
    chunk_size: int = DEFAULT_CHUNK,
) -> Path:
    """Drain ``samples`` into a WAV file and return its path.

    A :class:`PcmStream` brings its own sample rate and bit depth; other
    sources need ``sample_rate`` (``bit_depth`` defaults to 16).
    """
    match samples:
        case PcmStream() as stream:
            rate = sample_rate or stream.sample_rate
            depth = bit_depth or stream.bit_depth
            with WavSink(path, sample_rate=rate, bit_depth=depth) as sink:
                for block in stream.chunks(chunk_size):
                    sink.write(block)
            return sink.path
        case np.ndarray() as array:
            if sample_rate is None:
                raise InvalidParameterError("sample_rate is required for raw sample arrays")
            with WavSink(path, sample_rate=sample_rate, bit_depth=bit_depth or 16) as sink:
                sink.write(array)
            return sink.path
        case str() | bytes():
            raise InvalidParameterError("samples must be integers, not text")
        case Iterable() as iterable:
            if sample_rate is None:
                raise InvalidParameterError("sample_rate is required for raw sample streams")
            iterator = iter(iterable)
            with WavSink(path, sample_rate=sample_rate, bit_depth=bit_depth or 16) as sink:
                while block := list(itertools.islice(iterator, chunk_size)):
                    sink.write(block)
            return sink.path
        case _:
            raise InvalidParameterError("samples must be a PcmStream, an array or an iterable")


def read_wav(path: str | Path) -> tuple[NDArray[np.float64], int]:
    """Mono float samples in [-1, 1] and the file's sample rate."""
    data, sample_rate = sf.read(str(path), dtype="float64", always_2d=True)
    frames: NDArray[Any] = np.asarray(data, dtype=np.float64)
    return frames.mean(axis=1), int(sample_rate)


def load_sample(path: str | Path, *, playback_rate: float = 1.0) -> SampleBased:
    """Load a WAV file as a sample-playback generator."""
    samples, sample_rate = read_wav(path)
    return SampleBased(samples, sample_rate=sample_rate, playback_rate=playback_rate)
