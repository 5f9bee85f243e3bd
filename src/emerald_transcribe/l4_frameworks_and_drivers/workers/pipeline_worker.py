"""Pipeline worker -- process body that serves the command protocol over a Pipe."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from emerald_transcribe.l1_entities.config import AppConfig
from emerald_transcribe.l3_interface_adapters.gateways.pipe_channel import PipeChannel
from emerald_transcribe.l4_frameworks_and_drivers.container import DependencyContainer
from emerald_transcribe.l4_frameworks_and_drivers.infra_config import InfraConfig
from emerald_transcribe.l4_frameworks_and_drivers.logging_setup import setup_file_logging

log = logging.getLogger('emerald.worker')


def serve_pipeline(conn: Any, config_data: dict, infra_data: dict, log_dir: str | None = None) -> None:
    """Run the PipelineController event loop until the host sends the shutdown sentinel."""
    if log_dir:
        setup_file_logging(Path(log_dir))

    config = AppConfig.model_validate(config_data)
    infra = InfraConfig.model_validate(infra_data)
    channel = PipeChannel(conn)
    controller = DependencyContainer.build_pipeline_controller(config, infra, emit=channel.send)

    log.info('Worker serving (model=%s/%s)', config.model.repo, config.model.name)
    try:
        asyncio.run(controller.serve(channel.receive))
    finally:
        channel.close()
        log.info('Worker stopped')
