"""Gateway: ffmpeg media decoder -- implements AudioDecoder port."""

from __future__ import annotations

import logging
import shutil
import subprocess  # noqa: S404 -- intentional: shells out to ffmpeg/ffprobe with a fixed arg list, not shell=True
import tempfile
from pathlib import Path

import numpy as np

from emerald_transcribe.l1_entities.errors import DecodeFailureError

log = logging.getLogger('emerald.audio')

_FFMPEG_TIMEOUT = 300  # seconds
_FFPROBE_TIMEOUT = 30  # seconds
# probe and decode must read the same stream
_AUDIO_STREAM = 'a:0'


def _require(tool: str) -> None:
    if shutil.which(tool) is None:
        raise RuntimeError(
            f'{tool} is required but not found on PATH.\n  macOS:  brew install ffmpeg\n  Debian: apt install ffmpeg'
        )


def _run(cmd: list[str], timeout: int) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(cmd, capture_output=True, timeout=timeout)  # noqa: S603
    except subprocess.TimeoutExpired as exc:
        raise DecodeFailureError(f'{cmd[0]} timed out after {timeout}s') from exc
    except OSError as exc:
        raise RuntimeError(f'Failed to launch {cmd[0]}: {exc}') from exc


def probe_channels(path: Path) -> int:
    """Channel count of the first audio stream in *path*."""
    result = _run(
        [
            'ffprobe',
            '-v',
            'quiet',
            '-select_streams',
            _AUDIO_STREAM,
            '-show_entries',
            'stream=channels',
            '-of',
            'csv=p=0',
            str(path),
        ],
        _FFPROBE_TIMEOUT,
    )
    out = result.stdout.decode('utf-8', errors='replace').strip()
    if result.returncode != 0 or not out:
        raise DecodeFailureError('No decodable audio stream found')
    try:
        channels = int(out.splitlines()[0].strip().rstrip(','))
    except ValueError as exc:
        raise DecodeFailureError(f'Unexpected ffprobe output: {out!r}') from exc
    if channels < 1:
        raise DecodeFailureError('Audio stream reports no channels')
    return channels


class FfmpegAudioDecoder:
    """Decodes any container ffmpeg understands (WAV, FLAC, MP3, M4A, OGG, MP4, ...).

    Bytes are spooled to a temporary file because several containers (MP4
    with a trailing moov atom, for one) cannot be demuxed from a pipe.
    """

    def decode(self, data: bytes, sample_rate: int) -> np.ndarray:
        _require('ffmpeg')
        _require('ffprobe')

        with tempfile.TemporaryDirectory(prefix='emerald-') as tmp:
            path = Path(tmp) / 'media'
            path.write_bytes(data)
            channels = probe_channels(path)
            result = _run(
                [
                    'ffmpeg',
                    '-i',
                    str(path),
                    '-map',
                    f'0:{_AUDIO_STREAM}',
                    '-vn',
                    '-ar',
                    str(sample_rate),
                    '-f',
                    'f32le',
                    '-v',
                    'quiet',
                    'pipe:1',
                ],
                _FFMPEG_TIMEOUT,
            )

        if result.returncode != 0:
            stderr = result.stderr.decode('utf-8', errors='replace').strip()
            raise DecodeFailureError(f'ffmpeg exited with code {result.returncode}\n{stderr}'.strip())

        if not result.stdout:
            raise DecodeFailureError('ffmpeg produced no audio output')

        samples = np.frombuffer(result.stdout, dtype=np.float32)
        usable = len(samples) - len(samples) % channels
        log.debug('Decoded %d bytes: %d channel(s), %d frames', len(data), channels, usable // channels)
        # interleaved frames -> (channels, samples)
        return samples[:usable].reshape(-1, channels).T.copy()
