"""PipelineController -- worker-side owner of the model-readiness and run state machines."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

import numpy as np
from pydantic import ValidationError

from emerald_transcribe.l1_entities.audio_constants import CHUNK_LENGTH_S, SAMPLE_RATE
from emerald_transcribe.l1_entities.device_profile import DeviceProfile
from emerald_transcribe.l1_entities.errors import (
    ErrorKind,
    ModelLoadError,
    ProtocolViolationError,
    RunCancelledError,
)
from emerald_transcribe.l1_entities.pipeline_state import ReadinessState, RunState
from emerald_transcribe.l1_entities.progress import RunProgress
from emerald_transcribe.l1_entities.protocol import (
    CompleteStatus,
    ErrorStatus,
    LoadCommand,
    LoadingStatus,
    ProcessingStatus,
    ReadyStatus,
    RunCommand,
    parse_command,
)
from emerald_transcribe.l2_use_cases.model_cache import ModelCache
from emerald_transcribe.l2_use_cases.ports.inference_engine import TranscriptionPipeline
from emerald_transcribe.l2_use_cases.progress_estimator import RunProgressEstimator

log = logging.getLogger('emerald.worker')


class PipelineController:
    """Implements the command/status protocol on the worker side.

    ``handle()`` validates a command against the current state synchronously
    and schedules the actual work as a task, so the controller keeps reading
    (and rejecting) commands while a load or a run is in flight. Every run
    ends with exactly one terminal status; its heartbeat task never outlives it.
    """

    def __init__(
        self,
        model_cache: ModelCache,
        emit: Callable[[object], None],
        *,
        chunk_length_s: float = CHUNK_LENGTH_S,
        heartbeat_interval: float = 2.0,
        heartbeat_percent: int = 5,
        warmup_language: str = 'en',
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache = model_cache
        self._emit = emit
        self._chunk_length_s = chunk_length_s
        self._heartbeat_interval = heartbeat_interval
        self._heartbeat_percent = heartbeat_percent
        self._warmup_language = warmup_language
        self._clock = clock

        self.readiness = ReadinessState.UNLOADED
        self.run_state = RunState.IDLE
        self.device: DeviceProfile | None = None

        self._pipeline: TranscriptionPipeline | None = None
        self._cancel_requested: threading.Event | None = None
        self._tasks: set[asyncio.Task] = set()

    # --- command intake ---

    def handle(self, raw: Any) -> None:
        """Dispatch one command. Must be called from the running event loop."""
        try:
            command = parse_command(raw)
        except ValidationError as exc:
            self._reject(ProtocolViolationError(f'Malformed command: {exc.error_count()} validation error(s)'))
            return

        try:
            if isinstance(command, LoadCommand):
                self._start_load(command.device)
            elif isinstance(command, RunCommand):
                self._start_run(command)
            else:
                self._request_cancel()
        except ProtocolViolationError as exc:
            self._reject(exc)

    async def serve(self, receive: Callable[[], Awaitable[Any]]) -> None:
        """Read commands until *receive* yields None, then drain in-flight work."""
        while True:
            raw = await receive()
            if raw is None:
                log.info('Shutdown requested')
                break
            self.handle(raw)
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait for every scheduled load/run task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- load ---

    def _start_load(self, device: DeviceProfile) -> None:
        if self.readiness is ReadinessState.LOADING:
            raise ProtocolViolationError('Model is already loading')
        if self.readiness is ReadinessState.READY:
            if device is self.device:
                self._send(ReadyStatus(device=device))
                return
            raise ProtocolViolationError(
                f'Model already loaded for {self.device.value if self.device else "?"}; '
                f'restart the worker to switch to {device.value}'
            )

        self.readiness = ReadinessState.LOADING
        self.device = device
        self._spawn(self._load(device))

    async def _load(self, device: DeviceProfile) -> None:
        self._send(LoadingStatus(message=f'Loading model ({device.value})...'))
        try:
            pipeline = await self._cache.get_or_load(device, on_progress=self._send)
            if device is DeviceProfile.ACCELERATED:
                self._send(LoadingStatus(message='Compiling kernels and warming up model...'))
                await self._warm_up(pipeline)
        except Exception as exc:
            log.error('Model load failed (%s): %s', device.value, exc, exc_info=True)
            self.readiness = ReadinessState.FAILED
            self.device = None
            self._send(ErrorStatus(message=str(exc), kind=ErrorKind.MODEL_LOAD, scope='load'))
            return

        self._pipeline = pipeline
        self.readiness = ReadinessState.READY
        log.info('Model ready (%s)', device.value)
        self._send(ReadyStatus(device=device))

    async def _warm_up(self, pipeline: TranscriptionPipeline) -> None:
        try:
            await asyncio.to_thread(
                pipeline.transcribe,
                np.zeros(SAMPLE_RATE, dtype=np.float32),
                language=self._warmup_language,
                chunk_length_s=self._chunk_length_s,
            )
        except Exception as exc:
            raise ModelLoadError(f'Warm-up inference failed: {exc}') from exc

    # --- run ---

    def _start_run(self, command: RunCommand) -> None:
        if self.readiness is not ReadinessState.READY or self._pipeline is None:
            raise ProtocolViolationError(f'Model is not ready (state: {self.readiness.value})')
        if self.run_state is RunState.RUNNING:
            raise ProtocolViolationError('A transcription run is already in progress')
        if command.audio.size == 0:
            raise ProtocolViolationError('Audio buffer is empty')

        self.run_state = RunState.RUNNING
        self._cancel_requested = threading.Event()
        self._spawn(self._run(self._pipeline, command, self._cancel_requested))

    def _request_cancel(self) -> None:
        if self.run_state is not RunState.RUNNING or self._cancel_requested is None:
            raise ProtocolViolationError('No transcription run in progress')
        log.info('Cancellation requested; stopping at next chunk boundary')
        self._cancel_requested.set()

    async def _run(
        self,
        pipeline: TranscriptionPipeline,
        command: RunCommand,
        cancel_requested: threading.Event,
    ) -> None:
        audio = command.audio
        started = self._clock()
        estimator = RunProgressEstimator(
            audio.size,
            self._chunk_length_s,
            heartbeat_percent=self._heartbeat_percent,
            clock=self._clock,
        )
        log.info(
            'Run started: %.1fs audio, %d chunk(s), language=%s',
            audio.size / SAMPLE_RATE,
            estimator.total_chunks,
            command.language,
        )
        self._send_progress(estimator.start())

        loop = asyncio.get_running_loop()
        heartbeat = asyncio.create_task(self._heartbeat(estimator))

        def _chunk_done() -> None:
            heartbeat.cancel()
            self._send_progress(estimator.on_chunk())

        def _on_chunk(_count: int) -> bool:
            # inference thread
            loop.call_soon_threadsafe(_chunk_done)
            return not cancel_requested.is_set()

        failure: ErrorStatus | None = None
        try:
            result = await asyncio.to_thread(
                pipeline.transcribe,
                audio,
                language=command.language,
                chunk_length_s=self._chunk_length_s,
                on_chunk=_on_chunk,
            )
        except RunCancelledError as exc:
            log.info('Run cancelled after %d chunk(s)', estimator.processed_chunks)
            failure = ErrorStatus(message=str(exc) or 'Transcription cancelled', kind=ErrorKind.CANCELLED, scope='run')
        except Exception as exc:
            log.error('Transcription error: %s', exc, exc_info=True)
            failure = ErrorStatus(
                message=str(exc) or 'An error occurred during processing',
                kind=ErrorKind.INFERENCE,
                scope='run',
            )
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat

        if failure is not None:
            self.run_state = RunState.ERRORED
            self._send(failure)
        else:
            self._send_progress(estimator.finish())
            elapsed_ms = (self._clock() - started) * 1000
            self.run_state = RunState.COMPLETED
            log.info('Run complete: %d chunk(s) in %.0f ms', len(result.chunks), elapsed_ms)
            self._send(CompleteStatus(result=result, elapsed_ms=elapsed_ms))
        self.run_state = RunState.IDLE
        self._cancel_requested = None

    async def _heartbeat(self, estimator: RunProgressEstimator) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            progress = estimator.heartbeat()
            if progress is None:
                return
            self._send_progress(progress)

    # --- helpers ---

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _reject(self, exc: ProtocolViolationError) -> None:
        log.warning('Rejected command: %s', exc)
        self._send(ErrorStatus(message=str(exc), kind=exc.kind, scope='command'))

    def _send_progress(self, progress: RunProgress) -> None:
        self._send(
            ProcessingStatus(
                percent=progress.percent,
                eta_seconds=progress.eta_seconds,
                message=progress.message,
            )
        )

    def _send(self, status: object) -> None:
        log.debug('-> %s', getattr(status, 'status', status))
        self._emit(status)
