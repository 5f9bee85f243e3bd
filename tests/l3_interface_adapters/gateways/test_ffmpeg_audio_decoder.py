"""Tests for ffmpeg media decoder gateway -- patches subprocess.run and shutil.which."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from emerald_transcribe.l1_entities.errors import DecodeFailureError
from emerald_transcribe.l3_interface_adapters.gateways.ffmpeg_audio_decoder import FfmpegAudioDecoder, probe_channels

MODULE = 'emerald_transcribe.l3_interface_adapters.gateways.ffmpeg_audio_decoder'


def _proc(returncode: int = 0, stdout: bytes = b'', stderr: bytes = b'') -> MagicMock:
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


@patch(f'{MODULE}.shutil.which', return_value='/usr/bin/ffmpeg')
@patch(f'{MODULE}.subprocess.run')
class TestFfmpegAudioDecoder:
    def test_mono_decode(self, mock_run: MagicMock, _which):
        samples = np.linspace(-1, 1, 16000, dtype=np.float32)
        mock_run.side_effect = [_proc(stdout=b'1\n'), _proc(stdout=samples.tobytes())]

        result = FfmpegAudioDecoder().decode(b'RIFF....', 16000)

        assert result.shape == (1, 16000)
        np.testing.assert_array_equal(result[0], samples)

    def test_stereo_deinterleaved(self, mock_run: MagicMock, _which):
        interleaved = np.array([0.1, 0.9, 0.2, 0.8, 0.3, 0.7], dtype=np.float32)
        mock_run.side_effect = [_proc(stdout=b'2\n'), _proc(stdout=interleaved.tobytes())]

        result = FfmpegAudioDecoder().decode(b'data', 16000)

        np.testing.assert_array_equal(result[0], [0.1, 0.2, 0.3])
        np.testing.assert_array_equal(result[1], [0.9, 0.8, 0.7])

    def test_requests_target_rate_as_f32le(self, mock_run: MagicMock, _which):
        mock_run.side_effect = [_proc(stdout=b'1\n'), _proc(stdout=np.zeros(4, dtype=np.float32).tobytes())]

        FfmpegAudioDecoder().decode(b'data', 16000)

        ffmpeg_cmd = mock_run.call_args_list[1].args[0]
        assert ffmpeg_cmd[0] == 'ffmpeg'
        assert ffmpeg_cmd[ffmpeg_cmd.index('-ar') + 1] == '16000'
        assert ffmpeg_cmd[ffmpeg_cmd.index('-f') + 1] == 'f32le'
        assert '-vn' in ffmpeg_cmd

    def test_decode_and_channel_count_use_first_audio_stream(self, mock_run: MagicMock, _which):
        # stereo first track, 5.1 second track: both commands must target the first
        mock_run.side_effect = [_proc(stdout=b'2\n'), _proc(stdout=np.zeros(600, dtype=np.float32).tobytes())]

        result = FfmpegAudioDecoder().decode(b'data', 16000)

        probe_cmd, ffmpeg_cmd = (c.args[0] for c in mock_run.call_args_list)
        assert probe_cmd[probe_cmd.index('-select_streams') + 1] == 'a:0'
        assert ffmpeg_cmd[ffmpeg_cmd.index('-map') + 1] == '0:a:0'
        assert ffmpeg_cmd.index('-map') > ffmpeg_cmd.index('-i')
        assert result.shape == (2, 300)

    def test_no_audio_stream(self, mock_run: MagicMock, _which):
        mock_run.side_effect = [_proc(returncode=1)]
        with pytest.raises(DecodeFailureError, match='No decodable audio stream'):
            FfmpegAudioDecoder().decode(b'garbage', 16000)

    def test_nonzero_exit(self, mock_run: MagicMock, _which):
        mock_run.side_effect = [_proc(stdout=b'2\n'), _proc(returncode=1, stderr=b'Invalid data found')]
        with pytest.raises(DecodeFailureError, match='exited with code 1'):
            FfmpegAudioDecoder().decode(b'data', 16000)

    def test_empty_output(self, mock_run: MagicMock, _which):
        mock_run.side_effect = [_proc(stdout=b'1\n'), _proc(stdout=b'')]
        with pytest.raises(DecodeFailureError, match='no audio output'):
            FfmpegAudioDecoder().decode(b'data', 16000)

    def test_timeout(self, mock_run: MagicMock, _which):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd='ffprobe', timeout=30)
        with pytest.raises(DecodeFailureError, match='timed out'):
            FfmpegAudioDecoder().decode(b'data', 16000)

    def test_temp_file_removed(self, mock_run: MagicMock, _which):
        seen: list[Path] = []

        def _run(cmd, **_kw):
            if cmd[0] == 'ffprobe':
                path = Path(cmd[-1])
                assert path.read_bytes() == b'data'
                seen.append(path)
                return _proc(stdout=b'1\n')
            return _proc(stdout=np.zeros(2, dtype=np.float32).tobytes())

        mock_run.side_effect = _run

        FfmpegAudioDecoder().decode(b'data', 16000)
        assert len(seen) == 1
        assert not seen[0].exists()


@patch(f'{MODULE}.shutil.which', return_value=None)
def test_missing_ffmpeg(_which):
    with pytest.raises(RuntimeError, match='ffmpeg is required'):
        FfmpegAudioDecoder().decode(b'data', 16000)


@patch(f'{MODULE}.subprocess.run')
class TestProbeChannels:
    def test_parses_count(self, mock_run: MagicMock, tmp_path: Path):
        mock_run.return_value = _proc(stdout=b'2\n')
        assert probe_channels(tmp_path / 'x') == 2

    def test_trailing_comma_tolerated(self, mock_run: MagicMock, tmp_path: Path):
        mock_run.return_value = _proc(stdout=b'6,\n')
        assert probe_channels(tmp_path / 'x') == 6

    def test_garbage_output(self, mock_run: MagicMock, tmp_path: Path):
        mock_run.return_value = _proc(stdout=b'stereo\n')
        with pytest.raises(DecodeFailureError, match='Unexpected ffprobe output'):
            probe_channels(tmp_path / 'x')

    def test_zero_channels(self, mock_run: MagicMock, tmp_path: Path):
        mock_run.return_value = _proc(stdout=b'0\n')
        with pytest.raises(DecodeFailureError, match='no channels'):
            probe_channels(tmp_path / 'x')
