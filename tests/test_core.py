"""Tests for core note conversions and chroma helpers."""

import pytest
import numpy as np
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from tonelock.core import (
    PitchReading,
    frequency_to_note_info,
    frequency_to_semitones,
    semitones_to_frequency,
    semitone_distance,
    as_chroma,
    normalize_chroma,
    dominant_bass_pitch_class,
    UNKNOWN_PITCH_CLASS,
)


class TestNoteConversion:
    """Test frequency to note conversion."""

    def test_a4_reference(self):
        """440 Hz is A4 with no deviation."""
        info = frequency_to_note_info(440.0)
        assert info.note_name == "A"
        assert info.octave == 4
        assert info.cents == 0
        assert info.midi == 69
        assert info.semitones_from_a4 == 0

    def test_low_e_string(self):
        """Low E guitar string is E2."""
        info = frequency_to_note_info(82.41)
        assert info.label == "E2"
        assert abs(info.cents) <= 1

    def test_sharp_note_name(self):
        """Accidentals use sharps."""
        assert frequency_to_note_info(466.16).label == "A#4"

    def test_cents_deviation(self):
        """A pitch 10 cents sharp of A4 reports +10 cents."""
        info = frequency_to_note_info(440.0 * 2 ** (10 / 1200))
        assert info.note_name == "A"
        assert info.cents == 10

    def test_flat_deviation_rounds_to_nearest_note(self):
        """A pitch 30 cents flat of A4 is still A4."""
        info = frequency_to_note_info(440.0 * 2 ** (-30 / 1200))
        assert info.label == "A4"
        assert info.cents == -30

    def test_non_positive_frequency_raises(self):
        """Zero or negative frequencies are rejected."""
        with pytest.raises(ValueError):
            frequency_to_note_info(0.0)
        with pytest.raises(ValueError):
            frequency_to_note_info(-10.0)

    def test_semitone_round_trip(self):
        """Semitone conversion inverts frequency conversion."""
        assert semitones_to_frequency(frequency_to_semitones(261.63)) == pytest.approx(261.63)

    def test_semitone_distance_octave(self):
        """An octave is 12 semitones in either direction."""
        assert semitone_distance(440.0, 880.0) == pytest.approx(12.0)
        assert semitone_distance(880.0, 440.0) == pytest.approx(12.0)


class TestPitchReading:
    """Test PitchReading construction."""

    def test_from_frequency_fills_note(self):
        """Note fields are derived from the frequency."""
        reading = PitchReading.from_frequency(110.0, confidence=0.9, jitter=0.5, timestamp_ms=20.0)
        assert reading.note_name == "A"
        assert reading.octave == 2
        assert reading.semitones_from_a4 == -24
        assert reading.timestamp_ms == 20.0

    def test_confidence_clamped(self):
        """Confidence is clamped to [0, 1]."""
        assert PitchReading.from_frequency(440.0, confidence=1.7).confidence == 1.0
        assert PitchReading.from_frequency(440.0, confidence=-0.2).confidence == 0.0

    def test_jitter_ratio(self):
        """Jitter ratio is jitter over frequency."""
        reading = PitchReading.from_frequency(200.0, confidence=0.9, jitter=1.0)
        assert reading.jitter_ratio == pytest.approx(0.005)


class TestChromaHelpers:
    """Test chroma validation and bass detection."""

    def test_wrong_length_raises(self):
        """Chroma vectors must have 12 bins."""
        with pytest.raises(ValueError):
            as_chroma([1.0, 0.5, 0.2])

    def test_nan_and_negative_cleaned(self):
        """NaN becomes 0 and negative values are clipped."""
        chroma = as_chroma([np.nan, -1.0] + [0.5] * 10)
        assert chroma[0] == 0.0
        assert chroma[1] == 0.0

    def test_normalize_peak_is_one(self):
        """Normalization scales the peak to 1."""
        chroma = normalize_chroma([2.0, 1.0] + [0.0] * 10)
        assert chroma.max() == 1.0
        assert chroma[1] == 0.5

    def test_normalize_all_zero(self):
        """All-zero chroma stays zero."""
        assert not np.any(normalize_chroma(np.zeros(12)))

    def test_dominant_bass_found(self):
        """A clear bass peak gives its pitch class."""
        bass = np.full(12, 0.1)
        bass[7] = 0.9
        assert dominant_bass_pitch_class(bass) == 7

    def test_flat_bass_unknown(self):
        """A flat bass spectrum has no dominant note."""
        assert dominant_bass_pitch_class(np.full(12, 0.5)) == UNKNOWN_PITCH_CLASS

    def test_weak_bass_unknown(self):
        """A peak below the minimum is not dominant."""
        bass = np.zeros(12)
        bass[2] = 0.2
        assert dominant_bass_pitch_class(bass) == UNKNOWN_PITCH_CLASS
