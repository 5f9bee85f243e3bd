"""L1 entity: states of the model-readiness and transcription-run machines."""

from __future__ import annotations

import enum


class ReadinessState(enum.Enum):
    UNLOADED = 'unloaded'
    LOADING = 'loading'
    READY = 'ready'
    FAILED = 'failed'


class RunState(enum.Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETED = 'completed'
    ERRORED = 'errored'
