"""Tests for the chord front end: chroma, onsets and accumulation."""

import numpy as np
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from tonelock.analysis import (
    FrontEndConfig,
    FrameAnalyzer,
    OnsetDetector,
    ChromaAccumulator,
    prepare_frame,
    rms,
)

SR = 22050
N_FFT = 2048

C2 = 65.41
C4 = 261.63
E4 = 329.63
G4 = 392.00


def tone(*frequencies: float, n: int = N_FFT, amplitude: float = 0.2) -> np.ndarray:
    t = np.arange(n) / SR
    return sum(amplitude * np.sin(2 * np.pi * f * t) for f in frequencies)


def unit(pitch_class: int) -> np.ndarray:
    chroma = np.zeros(12)
    chroma[pitch_class] = 1.0
    return chroma


@pytest.fixture
def analyzer():
    return FrameAnalyzer()


class TestFrameHelpers:
    """Test gain, clamping and level measurement."""

    def test_rms_of_sine(self):
        assert rms(tone(440.0, amplitude=1.0)) == pytest.approx(np.sqrt(0.5), rel=0.01)

    def test_rms_of_empty_frame(self):
        assert rms(np.array([])) == 0.0

    def test_prepare_frame_clamps(self):
        frame = prepare_frame(np.array([2.0, -3.0, np.nan, 0.25]))
        np.testing.assert_allclose(frame, [1.0, -1.0, 0.0, 0.25])

    def test_prepare_frame_gain(self):
        frame = prepare_frame(np.array([0.05, -0.05]), gain=10.0)
        np.testing.assert_allclose(frame, [0.5, -0.5])


class TestFrameAnalyzer:
    """Test per-frame chromagrams."""

    def test_major_triad(self, analyzer):
        """A C-E-G chord puts its three pitch classes on top."""
        chroma = analyzer.chroma(tone(C4, E4, G4))
        assert chroma.shape == (12,)
        assert set(np.argsort(chroma)[-3:]) == {0, 4, 7}
        assert chroma.max() == pytest.approx(1.0)

    def test_bass_band_ignores_upper_notes(self, analyzer):
        """Only the low C reaches the bass chromagram."""
        bass = analyzer.bass_chroma(tone(C2, E4, G4))
        assert int(np.argmax(bass)) == 0
        assert bass[4] < 0.1
        assert bass[7] < 0.1

    def test_analyze_returns_both_bands(self, analyzer):
        chroma, bass, power = analyzer.analyze(tone(C2, C4, E4, G4))
        assert power.shape == (N_FFT // 2 + 1,)
        assert int(np.argmax(bass)) == 0
        assert set(np.argsort(chroma)[-3:]) == {0, 4, 7}

    def test_silence_gives_zero_chroma(self, analyzer):
        assert not np.any(analyzer.chroma(np.zeros(N_FFT)))

    def test_short_frame_is_padded(self, analyzer):
        """Frames shorter than n_fft are zero-padded."""
        power = analyzer.power_spectrum(tone(440.0, n=1000))
        assert power.shape == (N_FFT // 2 + 1,)


class TestOnsetDetector:
    """Test streaming onset detection."""

    def test_note_start_is_onset(self, analyzer):
        detector = OnsetDetector()
        silence = analyzer.power_spectrum(np.zeros(N_FFT))
        note = analyzer.power_spectrum(tone(C4, E4, G4))

        assert detector.process(silence, now_ms=0.0) == (False, 0.0)
        is_onset, strength = detector.process(note, now_ms=23.0)
        assert is_onset
        assert strength > 0.5

    def test_steady_note_is_not_onset(self, analyzer):
        detector = OnsetDetector()
        note = analyzer.power_spectrum(tone(C4, E4, G4))
        detector.process(analyzer.power_spectrum(np.zeros(N_FFT)), now_ms=0.0)
        detector.process(note, now_ms=23.0)

        is_onset, strength = detector.process(note, now_ms=46.0)
        assert not is_onset
        assert strength == pytest.approx(0.0, abs=1e-9)

    def test_minimum_interval(self, analyzer):
        """A second onset too soon after the first is ignored."""
        detector = OnsetDetector()
        silence = analyzer.power_spectrum(np.zeros(N_FFT))
        note = analyzer.power_spectrum(tone(C4, E4, G4))

        detector.process(silence, now_ms=0.0)
        assert detector.process(note, now_ms=100.0)[0]
        detector.process(silence, now_ms=120.0)
        assert not detector.process(note, now_ms=130.0)[0]
        detector.process(silence, now_ms=160.0)
        assert detector.process(note, now_ms=200.0)[0]

    def test_reset(self, analyzer):
        detector = OnsetDetector()
        note = analyzer.power_spectrum(tone(C4))
        detector.process(note, now_ms=0.0)
        detector.reset()
        # First frame after reset has no previous spectrum to compare
        assert detector.process(note, now_ms=10.0) == (False, 0.0)


class TestChromaAccumulator:
    """Test adaptive-decay accumulation and warm-up."""

    def test_warm_up(self):
        accumulator = ChromaAccumulator(FrontEndConfig(warmup_frames=3))
        for _ in range(2):
            accumulator.update(unit(0))
        assert not accumulator.is_warm
        accumulator.update(unit(0))
        assert accumulator.is_warm

    def test_output_normalized(self):
        accumulator = ChromaAccumulator()
        out = accumulator.update(unit(0) * 0.5)
        assert out.max() == pytest.approx(1.0)

    def test_steady_input_uses_max_decay(self):
        accumulator = ChromaAccumulator()
        accumulator.update(unit(0))
        assert accumulator.decay_for(unit(0)) == pytest.approx(0.7)

    def test_new_chord_uses_min_decay(self):
        """Large spectral change lets the new frame take over quickly."""
        accumulator = ChromaAccumulator()
        accumulator.update(unit(0))
        assert accumulator.decay_for(unit(5)) == pytest.approx(0.2)

        out = accumulator.update(unit(5))
        assert int(np.argmax(out)) == 5

    def test_first_frame_taken_as_is(self):
        accumulator = ChromaAccumulator()
        assert accumulator.decay_for(unit(3)) == 0.0
        np.testing.assert_allclose(accumulator.update(unit(3)), unit(3))

    def test_reset(self):
        accumulator = ChromaAccumulator()
        for _ in range(5):
            accumulator.update(unit(0))
        accumulator.reset()
        assert accumulator.frames == 0
        assert not accumulator.is_warm
        np.testing.assert_allclose(accumulator.update(unit(7)), unit(7))


class TestFrontEndConfig:
    """Test configuration validation."""

    def test_hop_ms(self):
        assert FrontEndConfig().hop_ms == pytest.approx(1000 * 512 / 22050)

    def test_invalid_band(self):
        with pytest.raises(ValueError):
            FrontEndConfig(chroma_min_freq=3000.0)

    def test_invalid_decay(self):
        with pytest.raises(ValueError):
            FrontEndConfig(min_decay=0.8, max_decay=0.7)

    def test_invalid_warmup(self):
        with pytest.raises(ValueError):
            FrontEndConfig(warmup_frames=0)
