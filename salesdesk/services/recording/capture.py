"""Voice note capture encoded to an in-memory WAV file."""

import io
import logging
from abc import ABC, abstractmethod

import numpy as np
import soundfile as sf

from salesdesk.core.config import get_settings
from salesdesk.core.exceptions import MediaDecodeError

logger = logging.getLogger(__name__)


def encode_wav(frames: list[np.ndarray], sample_rate: int, channels: int) -> bytes:
    """Concatenate float32 capture blocks and encode them as 16-bit PCM WAV."""
    if frames:
        data = np.concatenate(frames, axis=0)
    else:
        data = np.zeros((0, channels), dtype=np.float32)
    buf = io.BytesIO()
    sf.write(buf, data, sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


class MicrophoneCapture(ABC):
    """Interface for a start/stop microphone recorder."""

    @abstractmethod
    def start(self) -> None:
        """Open the input device and begin buffering audio.

        Raises:
            PermissionDeniedError: Access refused or no input device.
        """

    @abstractmethod
    def stop(self) -> bytes:
        """Stop capturing and return everything recorded as WAV bytes.

        Raises:
            SalesDeskError: The captured audio could not be finalised.
        """

    @property
    @abstractmethod
    def is_active(self) -> bool: ...


class ClipCapture(MicrophoneCapture):
    """Adapts a clip recorded by the browser (``st.audio_input``).

    The browser owns the microphone, so ``start()`` only opens a session
    and the clip arrives through ``feed()``. ``stop()`` normalises it to the
    configured sample rate and channel count.
    """

    def __init__(self, sample_rate: int | None = None, channels: int | None = None) -> None:
        settings = get_settings()
        self._sample_rate = sample_rate or settings.recording_sample_rate
        self._channels = channels or settings.recording_channels
        self._clip = b""
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> None:
        self._clip = b""
        self._active = True

    def feed(self, data: bytes) -> None:
        """Hand over the clip the browser recorded for the open session."""
        if self._active:
            self._clip = data

    def stop(self) -> bytes:
        """Return the session's clip as WAV bytes.

        Raises:
            MediaDecodeError: The clip is not decodable audio.
        """
        clip, self._clip = self._clip, b""
        self._active = False
        if not clip:
            return encode_wav([], self._sample_rate, self._channels)
        try:
            data, sample_rate = sf.read(io.BytesIO(clip), dtype="float32", always_2d=True)
        except RuntimeError as exc:
            logger.warning("Could not decode recorded clip: %s", exc)
            raise MediaDecodeError("Recorded audio could not be decoded") from exc

        if self._channels == 1 and data.shape[1] > 1:
            data = data.mean(axis=1, keepdims=True)

        if sample_rate != self._sample_rate and len(data):
            num_samples = int(len(data) / sample_rate * self._sample_rate)
            indices = np.linspace(0, len(data) - 1, num_samples)
            positions = np.arange(len(data))
            data = np.stack(
                [np.interp(indices, positions, data[:, ch]) for ch in range(data.shape[1])],
                axis=1,
            ).astype(np.float32)

        logger.info("Recording stopped (%d frames at %d Hz)", len(data), self._sample_rate)
        return encode_wav([data], self._sample_rate, data.shape[1])
