"""ControllerProxy -- host-side command sender and pure status reducer."""

from __future__ import annotations

import logging
from collections.abc import Callable

import numpy as np
from pydantic import BaseModel, ConfigDict

from emerald_transcribe.l1_entities.device_profile import DeviceProfile
from emerald_transcribe.l1_entities.pipeline_state import ReadinessState, RunState
from emerald_transcribe.l1_entities.progress import FileState, ProgressItem, RunProgress
from emerald_transcribe.l1_entities.protocol import (
    CancelCommand,
    CompleteStatus,
    DoneStatus,
    ErrorStatus,
    InitiateStatus,
    LoadCommand,
    LoadingStatus,
    ProcessingStatus,
    ProgressStatus,
    ReadyStatus,
    RunCommand,
    parse_status,
)
from emerald_transcribe.l1_entities.transcript import TranscriptResult
from emerald_transcribe.l2_use_cases.progress_estimator import load_percent

log = logging.getLogger('emerald.host')


class HostState(BaseModel):
    """Everything a UI needs to render model loading and transcription progress."""

    model_config = ConfigDict(frozen=True)

    readiness: ReadinessState = ReadinessState.UNLOADED
    device: DeviceProfile | None = None
    loading_message: str = ''
    progress_items: dict[str, ProgressItem] = {}
    run_state: RunState = RunState.IDLE
    run_progress: RunProgress | None = None
    result: TranscriptResult | None = None
    elapsed_ms: float | None = None
    last_error: ErrorStatus | None = None


def reduce_status(state: HostState, status: object) -> HostState:
    """Return the state after applying one worker status. Never mutates *state*."""
    status = parse_status(status)

    if isinstance(status, LoadingStatus):
        return state.model_copy(update={'readiness': ReadinessState.LOADING, 'loading_message': status.message})

    if isinstance(status, InitiateStatus):
        items = dict(state.progress_items)
        items[status.file] = ProgressItem(file=status.file, total=status.total)
        return state.model_copy(update={'progress_items': items})

    if isinstance(status, ProgressStatus):
        current = state.progress_items.get(status.file)
        if current is None:
            return state
        items = dict(state.progress_items)
        items[status.file] = current.model_copy(
            update={'loaded': status.loaded, 'total': status.total, 'state': FileState.PROGRESSING}
        )
        return state.model_copy(update={'progress_items': items})

    if isinstance(status, DoneStatus):
        if status.file not in state.progress_items:
            return state
        items = {k: v for k, v in state.progress_items.items() if k != status.file}
        return state.model_copy(update={'progress_items': items})

    if isinstance(status, ReadyStatus):
        return state.model_copy(
            update={
                'readiness': ReadinessState.READY,
                'device': status.device or state.device,
                'progress_items': {},
                'loading_message': '',
            }
        )

    if isinstance(status, ProcessingStatus):
        progress = RunProgress(percent=status.percent, eta_seconds=status.eta_seconds, message=status.message)
        return state.model_copy(update={'run_state': RunState.RUNNING, 'run_progress': progress})

    if isinstance(status, CompleteStatus):
        return state.model_copy(
            update={
                'result': status.result,
                'elapsed_ms': status.elapsed_ms,
                'run_state': RunState.IDLE,
                'run_progress': None,
            }
        )

    if isinstance(status, ErrorStatus):
        if status.scope == 'load':
            return state.model_copy(
                update={'readiness': ReadinessState.FAILED, 'progress_items': {}, 'last_error': status}
            )
        if status.scope == 'run':
            return state.model_copy(update={'run_state': RunState.IDLE, 'run_progress': None, 'last_error': status})
        return state.model_copy(update={'last_error': status})

    raise TypeError(f'Unhandled status: {status!r}')


class ControllerProxy:
    """Sends commands to the worker and folds its statuses into a HostState.

    Transport-agnostic: *send* is any callable that delivers a command model.
    State only moves on worker statuses, so a rejected command leaves it intact.
    """

    def __init__(self, send: Callable[[object], None]) -> None:
        self._send = send
        self.state = HostState()
        self._listeners: list[Callable[[HostState, object], None]] = []

    def subscribe(self, listener: Callable[[HostState, object], None]) -> None:
        """Register *listener* to be called with (new_state, status) after each status."""
        self._listeners.append(listener)

    @property
    def load_percent(self) -> int | None:
        """Overall model download percent; None means indeterminate (show a spinner)."""
        return load_percent(self.state.progress_items)

    def load(self, device: DeviceProfile) -> None:
        self._send(LoadCommand(device=device))

    def run(self, audio: np.ndarray, language: str) -> None:
        self.state = self.state.model_copy(update={'result': None, 'elapsed_ms': None, 'last_error': None})
        self._send(RunCommand(audio=audio, language=language))

    def cancel(self) -> None:
        self._send(CancelCommand())

    def dispatch(self, status: object) -> HostState:
        status = parse_status(status)
        self.state = reduce_status(self.state, status)
        log.debug('<- %s', status.status)
        for listener in self._listeners:
            listener(self.state, status)
        return self.state
