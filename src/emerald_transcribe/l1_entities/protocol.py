"""Tagged command/status messages exchanged between host and worker.

Commands are tagged by ``type`` and statuses by ``status``; both are pydantic
discriminated unions so either side can validate plain dicts as well as models.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from emerald_transcribe.l1_entities.device_profile import DeviceProfile
from emerald_transcribe.l1_entities.errors import ErrorKind
from emerald_transcribe.l1_entities.transcript import TranscriptResult

# --- Commands (host -> worker) ---


class LoadCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal['load'] = 'load'
    device: DeviceProfile


class RunCommand(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: Literal['run'] = 'run'
    audio: np.ndarray
    language: str = 'en'

    @field_validator('audio', mode='before')
    @classmethod
    def _as_float32(cls, value: Any) -> np.ndarray:
        audio = np.asarray(value, dtype=np.float32)
        if audio.ndim != 1:
            raise ValueError(f'audio must be a mono 1-D buffer, got shape {audio.shape}')
        return audio


class CancelCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal['cancel'] = 'cancel'


Command = Annotated[Union[LoadCommand, RunCommand, CancelCommand], Field(discriminator='type')]

# --- Statuses (worker -> host) ---


class LoadingStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal['loading'] = 'loading'
    message: str


class InitiateStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal['initiate'] = 'initiate'
    file: str
    total: int = 0


class ProgressStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal['progress'] = 'progress'
    file: str
    loaded: int
    total: int


class DoneStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal['done'] = 'done'
    file: str


class ReadyStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal['ready'] = 'ready'
    device: DeviceProfile | None = None


class ProcessingStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal['processing'] = 'processing'
    percent: int = Field(ge=0, le=100)
    eta_seconds: int | None = Field(default=None, ge=0)
    message: str = ''


class CompleteStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal['complete'] = 'complete'
    result: TranscriptResult
    elapsed_ms: float


ErrorScope = Literal['load', 'run', 'command']


class ErrorStatus(BaseModel):
    """Terminal failure of a load or run, or rejection of a single command (scope='command')."""

    model_config = ConfigDict(frozen=True)

    status: Literal['error'] = 'error'
    message: str
    kind: ErrorKind
    scope: ErrorScope


Status = Annotated[
    Union[
        LoadingStatus,
        InitiateStatus,
        ProgressStatus,
        DoneStatus,
        ReadyStatus,
        ProcessingStatus,
        CompleteStatus,
        ErrorStatus,
    ],
    Field(discriminator='status'),
]

_COMMAND_ADAPTER: TypeAdapter = TypeAdapter(Command)
_STATUS_ADAPTER: TypeAdapter = TypeAdapter(Status)


def parse_command(raw: Any) -> Any:
    """Validate *raw* (a command model or a plain dict) into a command model."""
    if isinstance(raw, (LoadCommand, RunCommand, CancelCommand)):
        return raw
    return _COMMAND_ADAPTER.validate_python(raw)


def parse_status(raw: Any) -> Any:
    """Validate *raw* (a status model or a plain dict) into a status model."""
    if isinstance(raw, BaseModel) and getattr(raw, 'status', None) is not None:
        return raw
    return _STATUS_ADAPTER.validate_python(raw)
