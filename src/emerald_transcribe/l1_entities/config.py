"""Configuration Pydantic models -- pure schema, no infrastructure defaults."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from emerald_transcribe.l1_entities.device_profile import DeviceProfile


class ModelConfig(BaseModel):
    repo: str
    name: str


class TranscriptionConfig(BaseModel):
    language: str
    chunk_length_s: float = Field(gt=0)
    overlap_s: float = Field(ge=0)
    heartbeat_interval: float = Field(gt=0)
    heartbeat_percent: int = Field(ge=0, le=95)
    warmup_language: str


class OutputConfig(BaseModel):
    directory: str


class AppConfig(BaseModel):
    model: ModelConfig
    transcription: TranscriptionConfig
    output: OutputConfig
    device: Literal['auto', 'accelerated', 'portable'] = 'auto'

    def forced_device(self) -> DeviceProfile | None:
        """Device profile pinned by config, or None when it should be probed."""
        if self.device == 'auto':
            return None
        return DeviceProfile(self.device)
