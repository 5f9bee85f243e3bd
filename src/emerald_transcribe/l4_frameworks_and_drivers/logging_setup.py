"""File-based debug logging setup."""

from __future__ import annotations

import logging
import os
from pathlib import Path

LOG_FILENAME = 'emerald_debug.log'


def setup_file_logging(output_dir: Path) -> Path:
    """Configure file-based debug logging into the output directory.

    Safe to call from both the host and the worker process; each process
    appends to the same file with its pid in the record.
    """
    log_path = output_dir / LOG_FILENAME
    handler = logging.FileHandler(log_path, encoding='utf-8')
    handler.setFormatter(logging.Formatter('%(asctime)s %(process)d %(name)s %(levelname)s %(message)s'))
    root = logging.getLogger('emerald')
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    logging.getLogger('emerald.host').info('Debug logging started (pid %d) → %s', os.getpid(), log_path)
    return log_path
