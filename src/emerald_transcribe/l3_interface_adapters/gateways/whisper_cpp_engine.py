"""Gateway: whisper.cpp engine -- implements ModelLoader and TranscriptionPipeline ports."""

from __future__ import annotations

import contextlib
import logging
import os

import numpy as np
from pywhispercpp.model import Model

from emerald_transcribe.l1_entities.audio_constants import SAMPLE_RATE
from emerald_transcribe.l1_entities.device_profile import DeviceProfile
from emerald_transcribe.l1_entities.errors import InferenceError, ModelLoadError, RunCancelledError
from emerald_transcribe.l1_entities.transcript import TranscriptChunk, TranscriptResult
from emerald_transcribe.l2_use_cases.ports.inference_engine import ChunkCallback
from emerald_transcribe.l2_use_cases.ports.model_resolver import FileProgressCallback, ModelResolver

log = logging.getLogger('emerald.engine')

# One segment per word, with token-level timing.
_WORD_PARAMS = {'token_timestamps': True, 'max_len': 1, 'split_on_word': True}


@contextlib.contextmanager
def _suppress_c_stdout():
    """Redirect C-level stdout and stderr to /dev/null.

    whisper.cpp prints init/progress messages directly via C fprintf,
    bypassing Python's sys.stdout.
    """
    devnull = os.open(os.devnull, os.O_WRONLY)
    old_stdout = os.dup(1)
    old_stderr = os.dup(2)
    try:
        os.dup2(devnull, 1)
        os.dup2(devnull, 2)
        yield
    finally:
        os.dup2(old_stdout, 1)
        os.dup2(old_stderr, 2)
        os.close(devnull)
        os.close(old_stdout)
        os.close(old_stderr)


class WhisperCppPipeline:
    """pywhispercpp adapter. Splits audio into fixed windows, one inference call each,
    and converts centisecond segment times to absolute seconds.

    Each window is decoded with *overlap_s* of neighbouring audio on both sides so a
    word straddling a boundary is heard whole; a word belongs to the window its
    midpoint falls in, which keeps every word exactly once.
    """

    def __init__(self, model: Model, overlap_s: float = 1.0) -> None:
        self._model = model
        self._pad = max(int(overlap_s * SAMPLE_RATE), 0)

    def transcribe(
        self,
        audio: np.ndarray,
        *,
        language: str,
        chunk_length_s: float,
        on_chunk: ChunkCallback | None = None,
    ) -> TranscriptResult:
        window = max(int(chunk_length_s * SAMPLE_RATE), 1)
        total = len(audio)
        chunks: list[TranscriptChunk] = []

        for index, start in enumerate(range(0, total, window), start=1):
            end = min(start + window, total)
            last = end >= total
            lo = max(start - self._pad, 0)
            piece = np.ascontiguousarray(audio[lo : min(end + self._pad, total)], dtype=np.float32)
            try:
                with _suppress_c_stdout():
                    raw_segments = self._model.transcribe(piece, language=language, **_WORD_PARAMS)
            except Exception as exc:
                raise InferenceError(f'whisper.cpp failed on chunk {index}: {exc}') from exc

            chunks.extend(_owned_words(raw_segments, lo, start, None if last else end))

            # stop requests on the final window are ignored
            if on_chunk is not None and not on_chunk(index) and not last:
                raise RunCancelledError(f'Transcription cancelled after chunk {index}')

        return TranscriptResult(text=''.join(c.text for c in chunks).strip(), chunks=tuple(chunks))


def _owned_words(raw_segments, lo: int, start: int, end: int | None) -> list[TranscriptChunk]:
    """Words whose midpoint lies in samples [start, end); *lo* is the decoded piece's first sample."""
    base = lo / SAMPLE_RATE
    owned: list[TranscriptChunk] = []
    for seg in raw_segments:
        if not seg.text.strip():
            continue
        t0 = base + seg.t0 / 100.0
        t1 = base + seg.t1 / 100.0
        mid = (t0 + t1) / 2 * SAMPLE_RATE
        if mid < start or (end is not None and mid >= end):
            continue
        owned.append(TranscriptChunk(text=seg.text, timestamp=(round(t0, 2), round(t1, 2))))
    return owned


class WhisperCppModelLoader:
    """Resolves weights for a profile, then initialises a whisper.cpp context."""

    def __init__(self, resolver: ModelResolver, n_threads: int | None = None, overlap_s: float = 1.0) -> None:
        self._resolver = resolver
        self._n_threads = n_threads
        self._overlap_s = overlap_s

    def load(self, profile: DeviceProfile, on_progress: FileProgressCallback | None = None) -> WhisperCppPipeline:
        model_path = self._resolver.resolve(profile, on_progress)
        log.info('Initialising whisper.cpp (%s, dtype=%s): %s', profile.value, profile.spec.dtype, model_path)
        kwargs: dict = {'print_progress': False, 'print_realtime': False}
        if self._n_threads:
            kwargs['n_threads'] = self._n_threads
        try:
            with _suppress_c_stdout():
                model = Model(model_path, **kwargs)
        except Exception as exc:
            raise ModelLoadError(f'whisper.cpp could not load {model_path}: {exc}') from exc
        return WhisperCppPipeline(model, overlap_s=self._overlap_s)
