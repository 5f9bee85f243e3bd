"""Tests for AudioNormalizer -- mime gating, decoding, and downmix."""

from __future__ import annotations

import math

import numpy as np
import pytest

from emerald_transcribe.l1_entities.errors import DecodeFailureError, UnsupportedFormatError
from emerald_transcribe.l2_use_cases.normalize_audio_use_case import AudioNormalizer, downmix, is_media_type
from tests.conftest import FakeAudioDecoder


class TestIsMediaType:
    @pytest.mark.parametrize('mime', ['audio/wav', 'audio/mpeg', 'video/mp4', 'Audio/OGG', 'audio/webm; codecs=opus'])
    def test_accepts_audio_and_video(self, mime):
        assert is_media_type(mime)

    @pytest.mark.parametrize('mime', ['', 'text/plain', 'image/png', 'application/octet-stream', 'audiox/wav'])
    def test_rejects_other_types(self, mime):
        assert not is_media_type(mime)


class TestDownmix:
    def test_mono_passthrough(self):
        mono = np.array([[0.1, -0.2, 0.3]], dtype=np.float32)
        np.testing.assert_array_equal(downmix(mono), mono[0])

    def test_one_dimensional_passthrough(self):
        samples = np.array([0.5, 0.25], dtype=np.float32)
        np.testing.assert_array_equal(downmix(samples), samples)

    def test_stereo_formula(self):
        stereo = np.array([[0.2, 0.4, -1.0], [0.6, 0.0, 1.0]], dtype=np.float32)
        expected = math.sqrt(2) * (stereo[0].astype(np.float64) + stereo[1]) / 2
        np.testing.assert_allclose(downmix(stereo), expected, rtol=1e-6)

    def test_stereo_commutative(self):
        rng = np.random.default_rng(7)
        left = rng.uniform(-1, 1, 1000).astype(np.float32)
        right = rng.uniform(-1, 1, 1000).astype(np.float32)
        np.testing.assert_array_equal(downmix(np.stack([left, right])), downmix(np.stack([right, left])))

    def test_output_is_float32(self):
        stereo = np.ones((2, 10), dtype=np.float32)
        assert downmix(stereo).dtype == np.float32

    def test_more_than_two_channels_rejected(self):
        with pytest.raises(UnsupportedFormatError, match='channel count: 6'):
            downmix(np.zeros((6, 100), dtype=np.float32))


class TestAudioNormalizer:
    def test_rejects_non_media_before_decoding(self):
        decoder = FakeAudioDecoder()
        normalizer = AudioNormalizer(decoder)
        with pytest.raises(UnsupportedFormatError, match='text/plain'):
            normalizer.normalize(b'hello', 'text/plain')
        assert decoder.decode_calls == []

    def test_empty_bytes_is_decode_failure(self):
        normalizer = AudioNormalizer(FakeAudioDecoder())
        with pytest.raises(DecodeFailureError):
            normalizer.normalize(b'', 'audio/wav')

    def test_decoder_error_propagates(self):
        normalizer = AudioNormalizer(FakeAudioDecoder(error=DecodeFailureError('corrupt header')))
        with pytest.raises(DecodeFailureError, match='corrupt header'):
            normalizer.normalize(b'\x00\x01', 'audio/wav')

    def test_decodes_at_target_rate(self):
        decoder = FakeAudioDecoder()
        AudioNormalizer(decoder).normalize(b'data', 'audio/wav')
        assert decoder.decode_calls == [(b'data', 16000)]

    def test_length_matches_decoded_frames(self):
        stereo = np.zeros((2, 48000), dtype=np.float32)
        audio = AudioNormalizer(FakeAudioDecoder(stereo)).normalize(b'data', 'video/mp4')
        assert audio.shape == (48000,)

    def test_mono_output_unchanged(self):
        mono = np.linspace(-1, 1, 320, dtype=np.float32).reshape(1, -1)
        audio = AudioNormalizer(FakeAudioDecoder(mono)).normalize(b'data', 'audio/flac')
        np.testing.assert_array_equal(audio, mono[0])

    def test_no_samples_is_decode_failure(self):
        empty = np.zeros((1, 0), dtype=np.float32)
        with pytest.raises(DecodeFailureError, match='no audio samples'):
            AudioNormalizer(FakeAudioDecoder(empty)).normalize(b'data', 'audio/wav')

    def test_surround_rejected(self):
        surround = np.zeros((6, 100), dtype=np.float32)
        with pytest.raises(UnsupportedFormatError):
            AudioNormalizer(FakeAudioDecoder(surround)).normalize(b'data', 'audio/wav')

    @pytest.mark.asyncio
    async def test_normalize_async(self):
        audio = await AudioNormalizer(FakeAudioDecoder()).normalize_async(b'data', 'audio/wav')
        assert audio.shape == (16000,)
