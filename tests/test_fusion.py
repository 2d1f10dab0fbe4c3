"""Tests for fusing note-activation model output with chroma results."""

import numpy as np
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from tonelock.inference import (
    ChordResult,
    FusionConfig,
    average_activations,
    chroma_from_activations,
    fuse_ml_result,
)

# Key index = MIDI - 21
C4_KEY, E4_KEY, G4_KEY = 39, 43, 46


def activations(**keys) -> np.ndarray:
    frame = np.zeros(88)
    for key, value in keys.items():
        frame[int(key[1:])] = value
    return frame


def result(symbol: str, root: int, quality: str, confidence: float) -> ChordResult:
    return ChordResult(symbol=symbol, root=root, quality=quality, confidence=confidence)


class TestChromaFromActivations:
    """Test folding 88 keys into pitch classes."""

    def test_c_major_keys(self):
        frame = activations(k39=0.9, k43=0.8, k46=0.7)
        chroma = chroma_from_activations(frame)
        assert chroma[0] == pytest.approx(1.0)
        assert chroma[4] == pytest.approx(0.8 / 0.9)
        assert chroma[7] == pytest.approx(0.7 / 0.9)
        assert np.count_nonzero(chroma) == 3

    def test_octaves_fold_together(self):
        """A0 (key 0) and A4 (key 48) land in the same bin."""
        chroma = chroma_from_activations(activations(k0=0.6, k48=0.6))
        assert np.count_nonzero(chroma) == 1
        assert chroma[9] == pytest.approx(1.0)

    def test_threshold(self):
        chroma = chroma_from_activations(activations(k39=0.9, k43=0.3), threshold=0.5)
        assert chroma[4] == 0.0

    def test_nothing_active(self):
        assert not np.any(chroma_from_activations(np.full(88, 0.1)))

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            chroma_from_activations(np.zeros(12))


class TestAverageActivations:
    """Test recency-weighted averaging of model frames."""

    def test_single_frame(self):
        frame = activations(k39=0.9)
        np.testing.assert_allclose(average_activations(frame), frame)

    def test_newer_frames_weigh_more(self):
        """With two frames the newer one has twice the weight."""
        old = activations(k39=1.0)
        new = activations(k43=1.0)
        averaged = average_activations([old, new])
        assert averaged[C4_KEY] == pytest.approx(1 / 3)
        assert averaged[E4_KEY] == pytest.approx(2 / 3)

    def test_bad_shape(self):
        with pytest.raises(ValueError):
            average_activations(np.zeros((3, 12)))
        with pytest.raises(ValueError):
            average_activations(np.zeros((0, 88)))


class TestFuseMlResult:
    """Test the fusion rules."""

    def test_no_ml_result(self):
        chroma = result("C", 0, "maj", 0.6)
        assert fuse_ml_result(chroma, None) is chroma

    def test_agreement_boosts(self):
        fused = fuse_ml_result(result("C", 0, "maj", 0.6), result("C", 0, "maj", 0.9))
        assert fused.symbol == "C"
        assert fused.confidence == pytest.approx(0.69)

    def test_boost_is_capped(self):
        fused = fuse_ml_result(result("C", 0, "maj", 0.95), result("C", 0, "maj", 0.9))
        assert fused.confidence == 1.0

    def test_confident_ml_overrides_doubtful_chroma(self):
        fused = fuse_ml_result(result("C", 0, "maj", 0.4), result("Am", 9, "min", 0.85))
        assert fused.symbol == "Am"
        assert fused.root == 9
        assert fused.confidence == pytest.approx(0.85)

    def test_confident_chroma_kept(self):
        chroma = result("C", 0, "maj", 0.6)
        assert fuse_ml_result(chroma, result("Am", 9, "min", 0.95)) is chroma

    def test_doubtful_ml_ignored(self):
        chroma = result("C", 0, "maj", 0.3)
        assert fuse_ml_result(chroma, result("Am", 9, "min", 0.7)) is chroma


class TestFusionConfig:
    """Test configuration validation."""

    def test_boost_below_one(self):
        with pytest.raises(ValueError):
            FusionConfig(agreement_boost=0.9)

    def test_threshold_out_of_range(self):
        with pytest.raises(ValueError):
            FusionConfig(activation_threshold=1.5)
