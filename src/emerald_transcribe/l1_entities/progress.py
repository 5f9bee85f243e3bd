"""Progress entities for model downloads and transcription runs."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


class FileState(enum.Enum):
    INITIATED = 'initiated'
    PROGRESSING = 'progressing'
    DONE = 'done'


class ProgressItem(BaseModel):
    """Download progress of one model file, keyed by its file name."""

    model_config = ConfigDict(frozen=True)

    file: str
    loaded: int = 0
    total: int = 0
    state: FileState = FileState.INITIATED


class RunProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    percent: int = Field(ge=0, le=100)
    eta_seconds: int | None = Field(default=None, ge=0)
    message: str = ''
