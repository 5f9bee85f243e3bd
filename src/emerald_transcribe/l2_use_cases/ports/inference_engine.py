"""Port: speech-to-text inference engine."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import numpy as np

from emerald_transcribe.l1_entities.device_profile import DeviceProfile
from emerald_transcribe.l1_entities.transcript import TranscriptResult
from emerald_transcribe.l2_use_cases.ports.model_resolver import FileProgressCallback

# Called with the 1-based count of processed chunks; returning False stops the run.
ChunkCallback = Callable[[int], bool]


class TranscriptionPipeline(Protocol):
    """A loaded model. Read-only after load; calls may block for a long time."""

    def transcribe(
        self,
        audio: np.ndarray,
        *,
        language: str,
        chunk_length_s: float,
        on_chunk: ChunkCallback | None = None,
    ) -> TranscriptResult:
        """Transcribe mono 16 kHz audio into word-level chunks.

        Raises RunCancelledError when *on_chunk* returns False before the
        final chunk; on the final chunk the finished transcript is returned.
        """
        ...


class ModelLoader(Protocol):
    """Builds a TranscriptionPipeline for a device profile (blocking)."""

    def load(
        self,
        profile: DeviceProfile,
        on_progress: FileProgressCallback | None = None,
    ) -> TranscriptionPipeline:
        """Fetch weights and initialise the engine."""
        ...
