"""Port: model file resolution."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from emerald_transcribe.l1_entities.device_profile import DeviceProfile

# Receives InitiateStatus / ProgressStatus / DoneStatus messages, one stream per file.
FileProgressCallback = Callable[[object], None]


class ModelResolver(Protocol):
    """Abstract model resolver -- maps a device profile to local weight files."""

    def resolve(self, profile: DeviceProfile, on_progress: FileProgressCallback | None = None) -> str:
        """Download (or find cached) weights for *profile*; return the local path. Raises on failure."""
        ...
