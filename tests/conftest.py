"""Shared test fixtures and protocol-conforming fakes."""

from __future__ import annotations

import threading
from pathlib import Path

import numpy as np
import pytest

from emerald_transcribe.l1_entities.config import AppConfig
from emerald_transcribe.l1_entities.device_profile import DeviceProfile
from emerald_transcribe.l1_entities.errors import InferenceError, ModelLoadError, RunCancelledError
from emerald_transcribe.l1_entities.protocol import DoneStatus, InitiateStatus, ProgressStatus
from emerald_transcribe.l1_entities.transcript import TranscriptChunk, TranscriptResult
from emerald_transcribe.l4_frameworks_and_drivers.infra_config import build_app_config

# --- Protocol-conforming Fakes ---


def make_result(*words: str) -> TranscriptResult:
    """One chunk per word, half a second each."""
    chunks = tuple(
        TranscriptChunk(text=f' {w}', timestamp=(round(i * 0.5, 2), round(i * 0.5 + 0.5, 2))) for i, w in enumerate(words)
    )
    return TranscriptResult(text=''.join(c.text for c in chunks).strip(), chunks=chunks)


class FakePipeline:
    """Fake TranscriptionPipeline -- reports *chunks* chunk boundaries, then returns *result*.

    When *gate* is given, each transcribe call blocks until it is set.
    """

    def __init__(
        self,
        result: TranscriptResult | None = None,
        chunks: int = 1,
        error: Exception | None = None,
        gate: threading.Event | None = None,
    ) -> None:
        self._result = result or make_result('hello', 'world')
        self._chunks = chunks
        self._error = error
        self._gate = gate
        self.calls: list[tuple[np.ndarray, str, float]] = []

    def transcribe(self, audio, *, language, chunk_length_s, on_chunk=None):
        self.calls.append((audio, language, chunk_length_s))
        if self._gate is not None:
            self._gate.wait(timeout=5)
        if self._error is not None:
            raise self._error
        for index in range(1, self._chunks + 1):
            if on_chunk is not None and not on_chunk(index) and index < self._chunks:
                raise RunCancelledError(f'Transcription cancelled after chunk {index}')
        return self._result


class FakeModelLoader:
    """Fake ModelLoader -- counts loads, optionally reports file progress and fails."""

    def __init__(
        self,
        pipeline: FakePipeline | None = None,
        files: tuple[tuple[str, int], ...] = (),
        fail_times: int = 0,
        gate: threading.Event | None = None,
    ) -> None:
        self.pipeline = pipeline or FakePipeline()
        self._files = files
        self._fail_times = fail_times
        self._gate = gate
        self.load_calls: list[DeviceProfile] = []
        self._lock = threading.Lock()

    def load(self, profile, on_progress=None):
        with self._lock:
            self.load_calls.append(profile)
            attempt = len(self.load_calls)
        if self._gate is not None:
            self._gate.wait(timeout=5)
        if attempt <= self._fail_times:
            raise ModelLoadError(f'Simulated load failure #{attempt}')
        for name, size in self._files:
            if on_progress is not None:
                on_progress(InitiateStatus(file=name, total=size))
                on_progress(ProgressStatus(file=name, loaded=size // 2, total=size))
                on_progress(ProgressStatus(file=name, loaded=size, total=size))
                on_progress(DoneStatus(file=name))
        return self.pipeline


class FakeAudioDecoder:
    """Fake AudioDecoder -- returns a fixed ``(channels, samples)`` array."""

    def __init__(self, channels: np.ndarray | None = None, error: Exception | None = None) -> None:
        self._channels = channels if channels is not None else np.zeros((1, 16000), dtype=np.float32)
        self._error = error
        self.decode_calls: list[tuple[bytes, int]] = []

    def decode(self, data: bytes, sample_rate: int) -> np.ndarray:
        self.decode_calls.append((data, sample_rate))
        if self._error is not None:
            raise self._error
        return self._channels


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# --- Standard Fixtures ---


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    d = tmp_path / 'output'
    d.mkdir()
    return d


@pytest.fixture
def default_config() -> AppConfig:
    return build_app_config({})


@pytest.fixture
def sample_config_yaml(tmp_path: Path) -> Path:
    content = """\
model:
  name: "tiny"
transcription:
  language: "de"
  chunk_length_s: 20.0
device: "portable"
output:
  directory: "./test_output"
"""
    p = tmp_path / 'config.yaml'
    p.write_text(content, encoding='utf-8')
    return p


@pytest.fixture
def fake_loader() -> FakeModelLoader:
    return FakeModelLoader()


@pytest.fixture
def fake_decoder() -> FakeAudioDecoder:
    return FakeAudioDecoder()


@pytest.fixture
def inference_error() -> InferenceError:
    return InferenceError('engine exploded')
