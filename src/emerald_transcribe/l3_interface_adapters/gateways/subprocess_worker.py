"""Gateway: transcription worker in a subprocess -- isolates model loading and inference."""

from __future__ import annotations

import logging
import multiprocessing as mp
import os
from typing import Any

from emerald_transcribe.l3_interface_adapters.gateways.pipe_channel import PipeChannel

log = logging.getLogger('emerald.host')


def _subprocess_entry(conn: Any, config_data: dict, infra_data: dict, log_dir: str | None) -> None:
    """Subprocess main: build the PipelineController and serve commands until shutdown.

    Permanently redirects C-level stdout/stderr to /dev/null so whisper.cpp's
    fprintf() calls do not escape to the parent's terminal.
    """
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, 1)
    os.dup2(devnull, 2)
    os.close(devnull)

    from emerald_transcribe.l4_frameworks_and_drivers.workers.pipeline_worker import (  # noqa: PLC0415 -- deferred: subprocess only
        serve_pipeline,
    )

    serve_pipeline(conn, config_data, infra_data, log_dir)


class SubprocessWorker:
    """Host-side handle to the worker process.

    Uses multiprocessing.Pipe (raw socket pair) rather than Queue; commands
    and statuses are pickled pydantic models, delivered in order.
    """

    def __init__(self, config_data: dict, infra_data: dict | None = None, log_dir: str | None = None) -> None:
        self._config_data = config_data
        self._infra_data = infra_data or {}
        self._log_dir = log_dir
        self._process: Any = None  # SpawnProcess; typed as Any -- context returns a subclass
        self._channel: PipeChannel | None = None

    def start(self) -> None:
        ctx = mp.get_context('spawn')
        parent_conn, child_conn = ctx.Pipe(duplex=True)
        self._process = ctx.Process(
            target=_subprocess_entry,
            args=(child_conn, self._config_data, self._infra_data, self._log_dir),
            daemon=True,
        )
        self._process.start()
        child_conn.close()  # parent only needs its own end
        self._channel = PipeChannel(parent_conn)
        log.info('Worker process started (pid=%s)', self._process.pid)

    def send(self, command: Any) -> None:
        if self._channel is None:
            raise RuntimeError('Worker not started. Call start() first.')
        self._channel.send(command)

    async def receive(self) -> Any:
        """Next status from the worker, or None if the worker has gone away."""
        if self._channel is None:
            raise RuntimeError('Worker not started. Call start() first.')
        return await self._channel.receive()

    def close(self) -> None:
        if self._channel is not None:
            try:
                self._channel.send(None)
            except Exception:  # noqa: S110 -- best-effort shutdown signal; pipe may already be closed
                pass
            self._channel.close()
            self._channel = None
        if self._process is not None:
            self._process.join(timeout=5)
            if self._process.is_alive():
                log.warning('Worker did not exit in time; terminating')
                self._process.terminate()
                self._process.join(timeout=1)  # reap zombie after SIGTERM
            self._process = None
