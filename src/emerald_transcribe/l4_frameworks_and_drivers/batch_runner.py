"""Batch runner -- headless transcribe-from-file through the worker process."""

from __future__ import annotations

import asyncio
import mimetypes
import sys
from collections.abc import Callable
from pathlib import Path

import numpy as np

from emerald_transcribe.l1_entities.audio_constants import SAMPLE_RATE
from emerald_transcribe.l1_entities.config import AppConfig
from emerald_transcribe.l1_entities.device_profile import DeviceProfile
from emerald_transcribe.l1_entities.errors import (
    DecodeFailureError,
    InferenceError,
    ModelLoadError,
    ProtocolViolationError,
    RunCancelledError,
    UnsupportedFormatError,
)
from emerald_transcribe.l1_entities.protocol import (
    CompleteStatus,
    ErrorStatus,
    InitiateStatus,
    LoadingStatus,
    ProcessingStatus,
    ProgressStatus,
    ReadyStatus,
)
from emerald_transcribe.l1_entities.transcript import TranscriptResult, format_wall_time
from emerald_transcribe.l3_interface_adapters.controllers.controller_proxy import ControllerProxy, HostState
from emerald_transcribe.l4_frameworks_and_drivers.container import DependencyContainer
from emerald_transcribe.l4_frameworks_and_drivers.infra_config import InfraConfig

_RUN_ERRORS = {
    'inference': InferenceError,
    'cancelled': RunCancelledError,
}


def _err(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def guess_mime_type(path: Path) -> str:
    return mimetypes.guess_type(path.name)[0] or ''


class _ProgressPrinter:
    """Subscribes to the proxy and prints load/run progress lines to stderr."""

    def __init__(self, proxy: ControllerProxy) -> None:
        self._proxy = proxy
        self._last_load_percent: int | None = None
        self._last_run_percent: int | None = None

    def __call__(self, state: HostState, status: object) -> None:
        if isinstance(status, LoadingStatus):
            _err(status.message)
        elif isinstance(status, InitiateStatus):
            size = f' ({status.total / 1e6:.0f} MB)' if status.total else ''
            _err(f'  Fetching {status.file}{size}')
        elif isinstance(status, ProgressStatus):
            percent = self._proxy.load_percent
            if percent is not None and percent != self._last_load_percent:
                self._last_load_percent = percent
                _err(f'  Downloading model: {percent}%')
        elif isinstance(status, ReadyStatus):
            _err('Model ready.')
        elif isinstance(status, ProcessingStatus):
            if status.percent == self._last_run_percent:
                return
            self._last_run_percent = status.percent
            eta = f' (~{status.eta_seconds}s left)' if status.eta_seconds else ''
            _err(f'  {status.percent:3d}% {status.message}{eta}')


async def _next_terminal(
    receive: Callable,
    proxy: ControllerProxy,
    is_terminal: Callable[[object], bool],
) -> object:
    """Feed worker statuses into *proxy* until one satisfies *is_terminal*."""
    while True:
        status = await receive()
        if status is None:
            raise RuntimeError('Worker process exited unexpectedly')
        proxy.dispatch(status)
        if isinstance(status, ErrorStatus) and status.scope == 'command':
            raise ProtocolViolationError(status.message)
        if is_terminal(status):
            return status


async def _await_ready(receive: Callable, proxy: ControllerProxy) -> None:
    status = await _next_terminal(
        receive,
        proxy,
        lambda s: isinstance(s, ReadyStatus) or (isinstance(s, ErrorStatus) and s.scope == 'load'),
    )
    if isinstance(status, ErrorStatus):
        raise ModelLoadError(status.message)


async def transcribe_media(
    container: DependencyContainer,
    data: bytes,
    mime_type: str,
    device: DeviceProfile,
    language: str,
) -> tuple[TranscriptResult, float]:
    """Load the model and normalise the media concurrently, then run one transcription."""
    worker = container.build_worker()
    worker.start()
    proxy = ControllerProxy(send=worker.send)
    proxy.subscribe(_ProgressPrinter(proxy))
    try:
        proxy.load(device)
        audio_task = asyncio.create_task(container.normalizer.normalize_async(data, mime_type))
        ready_task = asyncio.create_task(_await_ready(worker.receive, proxy))
        done, pending = await asyncio.wait({audio_task, ready_task}, return_when=asyncio.FIRST_EXCEPTION)
        for task in pending:
            task.cancel()
        # media errors take precedence over load errors
        for task in (audio_task, ready_task):
            if task in done:
                task.result()
        audio: np.ndarray = audio_task.result()

        _err(f'Duration: {format_wall_time(audio.size / SAMPLE_RATE)}  ({audio.size:,} samples @ {SAMPLE_RATE} Hz)')
        proxy.run(audio, language)
        status = await _next_terminal(
            worker.receive,
            proxy,
            lambda s: isinstance(s, CompleteStatus) or (isinstance(s, ErrorStatus) and s.scope == 'run'),
        )
        if isinstance(status, ErrorStatus):
            raise _RUN_ERRORS.get(status.kind.value, InferenceError)(status.message)
        return status.result, status.elapsed_ms
    finally:
        worker.close()


def run_batch(
    media_path: Path,
    config: AppConfig,
    out_dir: Path,
    infra: InfraConfig,
    mime_type: str | None = None,
    container: DependencyContainer | None = None,
) -> TranscriptResult:
    """Transcribe *media_path* and write ``transcript.json`` into *out_dir*. Blocks until done."""
    container = container or DependencyContainer(config, out_dir, infra=infra, log_dir=out_dir)
    mime = mime_type or guess_mime_type(media_path)

    device = config.forced_device() or container.probe.probe()
    _err(f'Device: {device.value} (~{device.size_mb} MB model)')
    _err(f'Loading media: {media_path} [{mime or "unknown type"}]')

    try:
        result, elapsed_ms = asyncio.run(
            transcribe_media(
                container,
                media_path.read_bytes(),
                mime,
                device,
                config.transcription.language,
            )
        )
    except (UnsupportedFormatError, DecodeFailureError) as exc:
        _err(f'Error: {exc}')
        raise SystemExit(1) from exc
    except ModelLoadError as exc:
        _err(f'Error loading model: {exc}')
        raise SystemExit(1) from exc
    except (InferenceError, RunCancelledError, ProtocolViolationError, RuntimeError) as exc:
        _err(f'Error during transcription: {exc}')
        raise SystemExit(1) from exc

    path = container.exporter.save(result)
    _err(f'\nTranscription complete: {len(result.chunks)} words in {elapsed_ms:.2f}ms.')
    _err(f'Saved:\n  Transcript: {path}\n')
    print(result.text)
    return result
