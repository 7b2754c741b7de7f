"""Tests for PCM conversion and framing helpers."""

import numpy as np
import pytest

from voicechat.audio.pcm import (
    PCM_SCALE,
    float_to_pcm16,
    is_silent,
    pcm16_to_float,
    split_frames,
    split_samples,
)


class TestFloatToPcm16:
    """Tests for float_to_pcm16."""

    def test_full_scale_little_endian(self):
        """Test +1 and -1 map to +/-32767, little-endian."""
        assert float_to_pcm16([1.0]) == b"\xff\x7f"
        assert float_to_pcm16([-1.0]) == b"\x01\x80"
        assert float_to_pcm16([0.0]) == b"\x00\x00"

    def test_two_bytes_per_sample(self):
        """Test output length is two bytes per sample."""
        assert len(float_to_pcm16(np.zeros(1000, dtype=np.float32))) == 2000

    def test_clamps_out_of_range(self):
        """Test values outside [-1, 1] are clamped, never wrapped."""
        data = float_to_pcm16([2.5, -7.0, float("inf"), float("-inf")])
        values = np.frombuffer(data, dtype="<i2")
        assert list(values) == [32767, -32767, 32767, -32767]

    def test_nan_becomes_zero(self):
        """Test NaN samples become silence."""
        assert float_to_pcm16([float("nan")]) == b"\x00\x00"

    def test_empty(self):
        """Test empty input yields empty bytes."""
        assert float_to_pcm16([]) == b""

    def test_accepts_plain_lists(self):
        """Test JSON-style lists of numbers are accepted."""
        assert float_to_pcm16([0, 1, -1]) == float_to_pcm16(np.array([0.0, 1.0, -1.0]))

    def test_decode_within_one_step(self):
        """Test decoding the bytes lands within 1/32767 of every input."""
        rng = np.random.default_rng(42)
        samples = rng.uniform(-1.0, 1.0, 5000)
        samples[:3] = [-1.0, 0.0, 1.0]

        decoded = pcm16_to_float(float_to_pcm16(samples))

        assert decoded.shape == samples.shape
        assert np.all(np.abs(decoded - samples) <= 1.0 / PCM_SCALE)


class TestSplitFrames:
    """Tests for split_frames."""

    def test_two_second_chunk(self):
        """Test 32000 samples become 32 frames of 2048 bytes, last one shorter."""
        data = float_to_pcm16(np.zeros(32000))
        frames = split_frames(data, 2048)

        assert len(frames) == 32
        assert all(len(f) == 2048 for f in frames[:-1])
        assert len(frames[-1]) == 64000 - 31 * 2048
        assert b"".join(frames) == data

    def test_exact_multiple(self):
        """Test no empty trailing frame for exact multiples."""
        frames = split_frames(b"\x00" * 4096, 2048)
        assert [len(f) for f in frames] == [2048, 2048]

    def test_empty(self):
        """Test empty buffer yields no frames."""
        assert split_frames(b"", 2048) == []

    def test_invalid_size(self):
        """Test non-positive frame size is rejected."""
        with pytest.raises(ValueError):
            split_frames(b"\x00\x00", 0)


class TestSplitSamples:
    """Tests for split_samples."""

    def test_one_second_pieces(self):
        """Test 32000 samples split into two 16000-sample requests."""
        pieces = split_samples(np.arange(32000, dtype=np.float32), 16000)
        assert [len(p) for p in pieces] == [16000, 16000]
        assert pieces[1][0] == 16000

    def test_last_piece_shorter(self):
        """Test the remainder becomes a shorter final piece."""
        pieces = split_samples(np.zeros(40000, dtype=np.float32), 16000)
        assert [len(p) for p in pieces] == [16000, 16000, 8000]


class TestIsSilent:
    """Tests for is_silent."""

    def test_all_below_threshold(self):
        """Test frame at or below threshold is silent."""
        frame = np.array([0.01, -0.01, 0.0, 0.005], dtype=np.float32)
        assert is_silent(frame, 0.01)

    def test_single_loud_sample(self):
        """Test one sample above threshold makes the frame voiced."""
        frame = np.zeros(4096, dtype=np.float32)
        frame[100] = -0.2
        assert not is_silent(frame, 0.01)

    def test_empty_frame(self):
        """Test empty frame counts as silence."""
        assert is_silent(np.array([], dtype=np.float32), 0.01)
