"""Transcript result entity and its JSON export format."""

from __future__ import annotations

import json
import re

from pydantic import BaseModel, ConfigDict

# Collapses the multi-line ``[start, end]`` arrays json.dumps produces with indent.
_TIMESTAMP_ARRAY = re.compile(r'("timestamp": )\[\s+(\S+)\s+(\S+)\s+\]')


def format_wall_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS for wall-clock display."""
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    return f'{hours:02d}:{minutes:02d}:{secs:02d}'


class TranscriptChunk(BaseModel):
    """A single word (or word fragment) with its time span in seconds."""

    model_config = ConfigDict(frozen=True)

    text: str
    timestamp: tuple[float, float]

    @property
    def start(self) -> float:
        return self.timestamp[0]

    @property
    def end(self) -> float:
        return self.timestamp[1]


class TranscriptResult(BaseModel):
    """Ordered word-level chunks produced by one run."""

    model_config = ConfigDict(frozen=True)

    text: str = ''
    chunks: tuple[TranscriptChunk, ...] = ()

    def to_json(self) -> str:
        """Indented JSON with every timestamp pair kept on one line."""
        raw = json.dumps(self.model_dump(mode='json'), indent=2, ensure_ascii=False)
        return _TIMESTAMP_ARRAY.sub(r'\1[\2 \3]', raw)

    @classmethod
    def from_json(cls, document: str) -> TranscriptResult:
        return cls.model_validate_json(document)
