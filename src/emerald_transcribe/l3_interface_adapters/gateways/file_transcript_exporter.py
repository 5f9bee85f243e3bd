"""Gateway: file-based transcript export -- implements TranscriptExporter port."""

from __future__ import annotations

import logging
from pathlib import Path

from emerald_transcribe.l1_entities.transcript import TranscriptResult, format_wall_time

log = logging.getLogger('emerald.persist')

TRANSCRIPT_FILENAME = 'transcript.json'


class FileTranscriptExporter:
    """Writes transcripts into an output directory."""

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = output_dir
        self._output_dir.mkdir(parents=True, exist_ok=True)

    def save(self, result: TranscriptResult) -> Path:
        path = self._output_dir / TRANSCRIPT_FILENAME
        path.write_text(result.to_json() + '\n', encoding='utf-8')
        last_ts = format_wall_time(result.chunks[-1].end) if result.chunks else '?'
        log.debug('Wrote %d chunks to %s (last_ts=%s)', len(result.chunks), path.name, last_ts)
        return path
