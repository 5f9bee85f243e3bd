"""Port: media decoding."""

from __future__ import annotations

from typing import Protocol

import numpy as np


class AudioDecoder(Protocol):
    """Abstract media decoder -- resampling is the decoder's job, not the caller's."""

    def decode(self, data: bytes, sample_rate: int) -> np.ndarray:
        """Decode *data* into a float32 ``(channels, samples)`` array at *sample_rate*.

        Raises DecodeFailureError when the bytes cannot be decoded.
        """
        ...
