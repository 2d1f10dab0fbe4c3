"""Shared fixtures: synthetic tones and WAV files."""

import numpy as np
import pytest
import soundfile as sf

SR = 22050

C_MAJOR_VOICING = {130.81: 0.3, 261.63: 0.2, 329.63: 0.2, 392.00: 0.2}  # C3 C4 E4 G4
G_MAJOR_VOICING = {98.00: 0.35, 246.94: 0.2, 293.66: 0.2, 392.00: 0.2}  # G2 B3 D4 G4


def chord_tone(voicing, seconds: float, sr: int = SR) -> np.ndarray:
    """Sum of sines; ``voicing`` maps frequency to amplitude."""
    t = np.arange(int(seconds * sr)) / sr
    return sum(amp * np.sin(2 * np.pi * freq * t) for freq, amp in voicing.items())


def sine_tone(frequency: float, seconds: float, amplitude: float = 0.5, sr: int = SR) -> np.ndarray:
    return chord_tone({frequency: amplitude}, seconds, sr)


@pytest.fixture
def c_major_audio():
    return chord_tone(C_MAJOR_VOICING, 2.0)


@pytest.fixture
def progression_audio():
    """C major for 1.5 s, then G major for 1.5 s."""
    return np.concatenate([
        chord_tone(C_MAJOR_VOICING, 1.5),
        chord_tone(G_MAJOR_VOICING, 1.5),
    ])


@pytest.fixture
def c_major_wav(tmp_path, c_major_audio):
    path = tmp_path / "c_major.wav"
    sf.write(str(path), c_major_audio, SR)
    return path


@pytest.fixture
def a_string_wav(tmp_path):
    """One second of the open A string (110 Hz)."""
    path = tmp_path / "a_string.wav"
    sf.write(str(path), sine_tone(110.0, 1.0), SR)
    return path
