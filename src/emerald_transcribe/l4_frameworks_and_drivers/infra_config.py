"""Infrastructure provider configs -- lives in L4, not domain."""

from __future__ import annotations

import copy

from pydantic import BaseModel, Field

from emerald_transcribe.l1_entities.config import AppConfig
from emerald_transcribe.l3_interface_adapters.gateways.yaml_config_loader import deep_merge

APP_CONFIG_DEFAULTS: dict = {
    'model': {
        'repo': 'ggerganov/whisper.cpp',
        'name': 'base',
    },
    'transcription': {
        'language': 'en',
        'chunk_length_s': 30.0,
        'overlap_s': 1.0,
        'heartbeat_interval': 2.0,
        'heartbeat_percent': 5,
        'warmup_language': 'en',
    },
    'device': 'auto',
    'output': {
        'directory': './output',
    },
}


def build_app_config(raw: dict) -> AppConfig:
    """Merge *raw* user overrides on top of defaults, then validate."""
    merged = copy.deepcopy(APP_CONFIG_DEFAULTS)
    deep_merge(merged, raw)
    return AppConfig.model_validate(merged)


class HuggingFaceProviderConfig(BaseModel):
    endpoint: str | None = None  # None -> huggingface_hub default / HF_ENDPOINT env
    token: str | None = None  # None -> huggingface_hub reads HF_TOKEN env


class WorkerConfig(BaseModel):
    n_threads: int | None = None  # None -> whisper.cpp default


class InfraConfig(BaseModel):
    """Groups all provider-specific settings outside the domain layer."""

    huggingface: HuggingFaceProviderConfig = Field(default_factory=HuggingFaceProviderConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
