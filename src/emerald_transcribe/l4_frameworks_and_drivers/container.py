"""Dependency container -- composition root for wiring all layers together."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from emerald_transcribe.l1_entities.config import AppConfig
from emerald_transcribe.l2_use_cases.model_cache import ModelCache
from emerald_transcribe.l2_use_cases.normalize_audio_use_case import AudioNormalizer
from emerald_transcribe.l2_use_cases.ports.capability_probe import CapabilityProbe
from emerald_transcribe.l2_use_cases.ports.transcript_exporter import TranscriptExporter
from emerald_transcribe.l3_interface_adapters.controllers.pipeline_controller import PipelineController
from emerald_transcribe.l3_interface_adapters.gateways.ffmpeg_audio_decoder import FfmpegAudioDecoder
from emerald_transcribe.l3_interface_adapters.gateways.file_transcript_exporter import FileTranscriptExporter
from emerald_transcribe.l3_interface_adapters.gateways.subprocess_worker import SubprocessWorker
from emerald_transcribe.l3_interface_adapters.gateways.whisper_cpp_capability_probe import WhisperCppCapabilityProbe
from emerald_transcribe.l4_frameworks_and_drivers.infra_config import InfraConfig


class DependencyContainer:
    """Creates and wires the host-side instances. Easy to override for testing."""

    def __init__(
        self,
        config: AppConfig,
        output_dir: Path,
        infra: InfraConfig | None = None,
        log_dir: Path | None = None,
    ) -> None:
        self.config = config
        self.output_dir = output_dir
        self.infra = infra or InfraConfig()
        self.log_dir = log_dir

        self.normalizer = AudioNormalizer(FfmpegAudioDecoder())
        self.probe: CapabilityProbe = WhisperCppCapabilityProbe()
        self.exporter: TranscriptExporter = FileTranscriptExporter(output_dir)

    def build_worker(self) -> SubprocessWorker:
        return SubprocessWorker(
            config_data=self.config.model_dump(mode='json'),
            infra_data=self.infra.model_dump(mode='json'),
            log_dir=str(self.log_dir) if self.log_dir else None,
        )

    @staticmethod
    def build_pipeline_controller(
        config: AppConfig,
        infra: InfraConfig,
        emit: Callable[[object], None],
    ) -> PipelineController:
        """Worker-side wiring: resolver -> loader -> cache -> controller."""
        from emerald_transcribe.l3_interface_adapters.gateways.hf_model_resolver import (  # noqa: PLC0415 -- deferred: worker process only
            HfModelResolver,
        )
        from emerald_transcribe.l3_interface_adapters.gateways.whisper_cpp_engine import (  # noqa: PLC0415 -- deferred: worker process only
            WhisperCppModelLoader,
        )

        resolver = HfModelResolver(
            model_name=config.model.name,
            repo_id=config.model.repo,
            token=infra.huggingface.token,
            endpoint=infra.huggingface.endpoint,
        )
        tc = config.transcription
        cache = ModelCache(WhisperCppModelLoader(resolver, n_threads=infra.worker.n_threads, overlap_s=tc.overlap_s))
        return PipelineController(
            cache,
            emit,
            chunk_length_s=tc.chunk_length_s,
            heartbeat_interval=tc.heartbeat_interval,
            heartbeat_percent=tc.heartbeat_percent,
            warmup_language=tc.warmup_language,
        )
