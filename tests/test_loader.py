"""Tests for audio loading and framing."""

import numpy as np
import pytest
import soundfile as sf
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from tonelock.input import AudioLoader, iter_frames

SR = 22050


@pytest.fixture
def wav_file(tmp_path):
    """One second of a quiet 440 Hz sine."""
    t = np.arange(SR) / SR
    audio = 0.25 * np.sin(2 * np.pi * 440.0 * t)
    path = tmp_path / "sine.wav"
    sf.write(str(path), audio, SR)
    return path


class TestAudioLoader:
    """Test file loading."""

    def test_load_normalizes(self, wav_file):
        audio, sr = AudioLoader().load(str(wav_file))
        assert sr == SR
        assert len(audio) == SR
        assert np.abs(audio).max() == pytest.approx(1.0)

    def test_load_without_normalization(self, wav_file):
        audio, _ = AudioLoader(normalize=False).load(str(wav_file))
        assert np.abs(audio).max() == pytest.approx(0.25, abs=1e-3)

    def test_resamples(self, wav_file):
        audio, sr = AudioLoader(target_sr=11025).load(str(wav_file))
        assert sr == 11025
        assert len(audio) == pytest.approx(11025, abs=2)

    def test_offset_and_duration(self, wav_file):
        """Only the requested window is read."""
        audio, _ = AudioLoader().load(str(wav_file), offset=0.25, duration=0.5)
        assert len(audio) == pytest.approx(SR // 2, abs=2)

    def test_invalid_time_range(self, wav_file):
        with pytest.raises(ValueError):
            AudioLoader().load(str(wav_file), offset=-1.0)
        with pytest.raises(ValueError):
            AudioLoader().load(str(wav_file), duration=0.0)

    def test_returns_float64(self, wav_file):
        audio, _ = AudioLoader().load(str(wav_file))
        assert audio.dtype == np.float64

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AudioLoader().load(str(tmp_path / "missing.wav"))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("not audio")
        with pytest.raises(ValueError):
            AudioLoader().load(str(path))

    def test_invalid_sample_rate(self):
        with pytest.raises(ValueError):
            AudioLoader(target_sr=0)

    def test_duration(self):
        assert AudioLoader().get_duration(np.zeros(SR * 2)) == pytest.approx(2.0)


class TestIterFrames:
    """Test streaming-style framing."""

    def test_frame_count_and_times(self):
        audio = np.arange(2048, dtype=float)
        frames = list(iter_frames(audio, sr=1000, frame_length=1024, hop_length=512))
        assert len(frames) == 4
        assert [time for time, _ in frames] == [512.0, 1024.0, 1536.0, 2048.0]
        assert all(len(frame) == 1024 for _, frame in frames)

    def test_frames_hold_most_recent_samples(self):
        audio = np.arange(2048, dtype=float)
        frames = list(iter_frames(audio, sr=1000, frame_length=1024, hop_length=512))

        # First frame: zero padding, then the first hop of audio
        first = frames[0][1]
        assert not np.any(first[:512])
        np.testing.assert_array_equal(first[512:], audio[:512])

        np.testing.assert_array_equal(frames[-1][1], audio[1024:2048])

    def test_short_audio(self):
        assert list(iter_frames(np.zeros(100), frame_length=2048, hop_length=512)) == []

    def test_invalid_hop(self):
        with pytest.raises(ValueError):
            list(iter_frames(np.zeros(100), hop_length=0))
