"""Use case: turn an arbitrary audio/video byte buffer into mono 16 kHz float32 samples."""

from __future__ import annotations

import asyncio
import logging
import math

import numpy as np

from emerald_transcribe.l1_entities.audio_constants import SAMPLE_RATE
from emerald_transcribe.l1_entities.errors import DecodeFailureError, UnsupportedFormatError
from emerald_transcribe.l2_use_cases.ports.audio_decoder import AudioDecoder

log = logging.getLogger('emerald.audio')

_SUPPORTED_MAJOR_TYPES = ('audio', 'video')
_STEREO_GAIN = math.sqrt(2)


def is_media_type(mime_type: str) -> bool:
    """True when *mime_type* names an audio or video payload (parameters ignored)."""
    major = mime_type.split(';', 1)[0].strip().split('/', 1)[0].lower()
    return major in _SUPPORTED_MAJOR_TYPES


def downmix(channels: np.ndarray) -> np.ndarray:
    """Collapse a ``(channels, samples)`` array to mono.

    Stereo uses ``sqrt(2) * (L + R) / 2`` to keep loudness close to the
    source; mono is passed through.
    """
    if channels.ndim == 1:
        return channels.astype(np.float32, copy=False)
    if channels.shape[0] == 1:
        return channels[0].astype(np.float32, copy=False)
    if channels.shape[0] == 2:
        left = channels[0].astype(np.float64)
        right = channels[1].astype(np.float64)
        return (_STEREO_GAIN * (left + right) / 2).astype(np.float32)
    raise UnsupportedFormatError(f'Unsupported channel count: {channels.shape[0]} (mono or stereo only)')


class AudioNormalizer:
    """Decodes media bytes and downmixes them into a MediaSampleBuffer."""

    def __init__(self, decoder: AudioDecoder, sample_rate: int = SAMPLE_RATE) -> None:
        self._decoder = decoder
        self._sample_rate = sample_rate

    def normalize(self, data: bytes, mime_type: str) -> np.ndarray:
        if not is_media_type(mime_type):
            raise UnsupportedFormatError(f'Unsupported file type: {mime_type or "unknown"}')
        if not data:
            raise DecodeFailureError('Media buffer is empty')

        decoded = self._decoder.decode(data, self._sample_rate)
        audio = downmix(np.atleast_2d(decoded))
        if audio.size == 0:
            raise DecodeFailureError('Decoding produced no audio samples')

        log.debug(
            'Normalized %s: %d channel(s) -> %d samples (%.2fs)',
            mime_type,
            np.atleast_2d(decoded).shape[0],
            audio.size,
            audio.size / self._sample_rate,
        )
        return audio

    async def normalize_async(self, data: bytes, mime_type: str) -> np.ndarray:
        """Same as normalize(), off the event loop thread."""
        return await asyncio.to_thread(self.normalize, data, mime_type)
