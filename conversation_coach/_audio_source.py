"""Audio sources feeding the energy loop.

A source is acquired with ``async with`` and released on every exit
path. While acquired, ``read_frame()`` returns the most recent
fixed-size window of samples, or None if nothing has arrived yet.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import numpy as np

from ._types import AudioFrame

logger = logging.getLogger(__name__)

DEFAULT_FRAME_SIZE = 2048
DEFAULT_SAMPLE_RATE = 16000


class AudioAcquisitionError(RuntimeError):
    """The audio device or stream could not be opened."""


@runtime_checkable
class AudioSource(Protocol):
    sample_rate: int

    async def __aenter__(self) -> "AudioSource": ...

    async def __aexit__(self, *exc_info) -> None: ...

    def read_frame(self) -> AudioFrame | None: ...


class _RingBuffer:
    """Thread-safe window over the latest ``size`` samples."""

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"frame size must be positive, got {size}")
        self._size = size
        self._data = np.zeros(0, dtype=np.float32)
        self._lock = threading.Lock()

    def push(self, samples: np.ndarray) -> None:
        chunk = np.asarray(samples, dtype=np.float32).ravel()
        if chunk.size == 0:
            return
        with self._lock:
            self._data = np.concatenate((self._data, chunk))[-self._size :]

    def latest(self) -> np.ndarray | None:
        with self._lock:
            if self._data.size == 0:
                return None
            return self._data.copy()

    def clear(self) -> None:
        with self._lock:
            self._data = np.zeros(0, dtype=np.float32)


class FrameBufferSource:
    """Push-based source for samples delivered by a transport layer.

    Args:
        sample_rate: Sample rate of pushed audio.
        frame_size: Samples per analysis window.
    """

    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE, frame_size: int = DEFAULT_FRAME_SIZE) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate
        self._buffer = _RingBuffer(frame_size)
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def __aenter__(self) -> "FrameBufferSource":
        self._open = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._open = False
        self._buffer.clear()

    def push(self, samples: np.ndarray) -> None:
        """Append samples (mono float in [-1, 1]); only the latest window is kept."""
        self._buffer.push(samples)

    def read_frame(self) -> AudioFrame | None:
        if not self._open:
            return None
        samples = self._buffer.latest()
        if samples is None:
            return None
        return AudioFrame(samples=samples, sample_rate=self.sample_rate)


class MicrophoneSource:
    """Live microphone capture through sounddevice.

    The PortAudio stream is opened on ``__aenter__`` and always stopped
    and closed on ``__aexit__``. A stream that opens but fails to start is
    closed before the error propagates. The callback writes into the same
    ring buffer a FrameBufferSource uses.

    Args:
        sample_rate: Capture rate.
        frame_size: Samples per analysis window.
        device: sounddevice device index or name; None for the default input.
        stream_factory: Callable with the ``sd.InputStream`` signature;
            None uses sounddevice.
    """

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        frame_size: int = DEFAULT_FRAME_SIZE,
        device: int | str | None = None,
        stream_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self._device = device
        self._stream_factory = stream_factory
        self._buffer = _RingBuffer(frame_size)
        self._stream = None

    def _callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            logger.debug("Audio input status: %s", status)
        self._buffer.push(indata[:, 0])

    async def __aenter__(self) -> "MicrophoneSource":
        if self._stream_factory is not None:
            factory = self._stream_factory
            errors: tuple[type[BaseException], ...] = (OSError, ValueError)
        else:
            try:
                import sounddevice as sd
            except OSError as exc:
                # sounddevice raises OSError at import when PortAudio is missing.
                raise AudioAcquisitionError(f"Audio backend unavailable: {exc}") from exc
            factory = sd.InputStream
            errors = (sd.PortAudioError, OSError, ValueError)

        try:
            stream = factory(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=512,
                device=self._device,
                callback=self._callback,
            )
        except errors as exc:
            raise AudioAcquisitionError(f"Could not open microphone: {exc}") from exc

        try:
            stream.start()
        except errors as exc:
            stream.close()
            raise AudioAcquisitionError(f"Could not start microphone: {exc}") from exc

        self._stream = stream
        logger.info("Microphone capture started (%d Hz)", self.sample_rate)
        return self

    async def __aexit__(self, *exc_info) -> None:
        stream, self._stream = self._stream, None
        self._buffer.clear()
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("Microphone capture stopped")

    def read_frame(self) -> AudioFrame | None:
        if self._stream is None:
            return None
        samples = self._buffer.latest()
        if samples is None:
            return None
        return AudioFrame(samples=samples, sample_rate=self.sample_rate)
