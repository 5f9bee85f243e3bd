"""Use case: user-facing percent/ETA from download byte counts and inference chunk counts."""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Mapping

from emerald_transcribe.l1_entities.audio_constants import CHUNK_LENGTH_S, SAMPLE_RATE
from emerald_transcribe.l1_entities.progress import ProgressItem, RunProgress

RUN_PERCENT_CAP = 95


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def load_fraction(items: Mapping[str, ProgressItem]) -> float | None:
    """Overall download fraction across files; None while no file has reported (indeterminate)."""
    if not items:
        return None
    loaded = sum(item.loaded for item in items.values())
    total = sum(item.total for item in items.values())
    return min(loaded / max(total, 1), 1.0)


def load_percent(items: Mapping[str, ProgressItem]) -> int | None:
    fraction = load_fraction(items)
    if fraction is None:
        return None
    return _round_half_up(fraction * 100)


def expected_chunks(num_samples: int, chunk_length_s: float = CHUNK_LENGTH_S, sample_rate: int = SAMPLE_RATE) -> int:
    """``ceil(duration / chunk_length)``, at least 1 so a short clip still reports one chunk."""
    duration = num_samples / sample_rate
    return max(math.ceil(duration / chunk_length_s), 1)


class RunProgressEstimator:
    """Percent and ETA for one run.

    Percent never decreases within a run and stays at or below 95 until
    ``finish()``. The heartbeat value is only offered before the first chunk.
    """

    def __init__(
        self,
        num_samples: int,
        chunk_length_s: float = CHUNK_LENGTH_S,
        *,
        heartbeat_percent: int = 5,
        sample_rate: int = SAMPLE_RATE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total_chunks = expected_chunks(num_samples, chunk_length_s, sample_rate)
        self.processed_chunks = 0
        self._heartbeat_percent = heartbeat_percent
        self._clock = clock
        self._started = clock()
        self._last_percent = 0

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    @property
    def has_chunk_signal(self) -> bool:
        return self.processed_chunks > 0

    def start(self) -> RunProgress:
        return RunProgress(percent=0, message='Preparing audio')

    def on_chunk(self) -> RunProgress:
        self.processed_chunks += 1
        c, t = self.processed_chunks, self.total_chunks
        percent = self._advance(min(_round_half_up(100 * c / t), RUN_PERCENT_CAP))
        eta = _round_half_up((self.elapsed / c) * max(t - c, 0))
        return RunProgress(percent=percent, eta_seconds=eta, message=f'Processing chunk {c}/{t}')

    def heartbeat(self) -> RunProgress | None:
        """Liveness value while no chunk has completed; None once one has."""
        if self.has_chunk_signal:
            return None
        percent = self._advance(self._heartbeat_percent)
        return RunProgress(percent=percent, message='Processing audio...')

    def finish(self) -> RunProgress:
        self._last_percent = 100
        return RunProgress(percent=100, eta_seconds=0, message='Finalizing transcript')

    def _advance(self, percent: int) -> int:
        self._last_percent = max(self._last_percent, min(percent, RUN_PERCENT_CAP))
        return self._last_percent
