"""Port: transcript export."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from emerald_transcribe.l1_entities.transcript import TranscriptResult


class TranscriptExporter(Protocol):
    def save(self, result: TranscriptResult) -> Path:
        """Persist *result* as ``transcript.json`` and return its path."""
        ...
