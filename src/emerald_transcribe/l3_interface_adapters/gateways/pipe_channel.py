"""Gateway: ordered message channel over a multiprocessing Connection."""

from __future__ import annotations

import asyncio
import logging
import threading
from multiprocessing.connection import Connection
from typing import Any

log = logging.getLogger('emerald.channel')


class PipeChannel:
    """Async-friendly wrapper over one end of a ``multiprocessing.Pipe``.

    ``receive()`` waits in a worker thread so the event loop never blocks;
    it returns None once the peer closes its end. ``send()`` is safe to call
    from any thread.
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self._send_lock = threading.Lock()

    def send(self, message: Any) -> None:
        with self._send_lock:
            self._conn.send(message)

    def _recv_blocking(self) -> Any:
        try:
            return self._conn.recv()
        except (EOFError, OSError):
            log.debug('Channel closed by peer')
            return None

    async def receive(self) -> Any:
        return await asyncio.to_thread(self._recv_blocking)

    def close(self) -> None:
        try:
            self._conn.close()
        except OSError:  # noqa: S110 -- best-effort; ignore double-close
            pass
