"""Pitch conversions - frequency, MIDI number, note name and cents."""

from dataclasses import dataclass
import numpy as np

from .constants import PITCH_NAMES, A4_FREQUENCY, A4_MIDI


@dataclass(frozen=True)
class NoteInfo:
    """Nearest equal-tempered note for a frequency."""

    note_name: str  # Pitch class name (e.g. "E", "A#")
    octave: int  # Scientific octave (A4 = 440 Hz)
    cents: int  # Deviation from the nearest note, rounded
    midi: int  # Nearest MIDI number

    @property
    def label(self) -> str:
        """Note with octave (e.g. 'E2')."""
        return f"{self.note_name}{self.octave}"

    @property
    def semitones_from_a4(self) -> int:
        return self.midi - A4_MIDI

    @property
    def pitch_class(self) -> int:
        return self.midi % 12


def frequency_to_semitones(frequency: float) -> float:
    """Convert frequency (Hz) to fractional MIDI pitch (A4 = 69)."""
    return 12 * np.log2(frequency / A4_FREQUENCY) + A4_MIDI


def semitones_to_frequency(semitones: float) -> float:
    """Convert fractional MIDI pitch to frequency (Hz)."""
    return A4_FREQUENCY * (2 ** ((semitones - A4_MIDI) / 12.0))


def frequency_to_note_info(frequency: float) -> NoteInfo:
    """
    Find the nearest note to a frequency.

    Args:
        frequency: Frequency in Hz (must be positive)

    Returns:
        NoteInfo with note name, octave, cents deviation and MIDI number

    Raises:
        ValueError: If frequency is not positive
    """
    if frequency <= 0:
        raise ValueError(f"Frequency must be positive, got {frequency}")

    semitones = float(frequency_to_semitones(frequency))
    midi = int(round(semitones))
    cents = int(round((semitones - midi) * 100))

    return NoteInfo(
        note_name=PITCH_NAMES[midi % 12],
        octave=(midi // 12) - 1,
        cents=cents,
        midi=midi,
    )


def semitone_distance(freq_a: float, freq_b: float) -> float:
    """Absolute distance between two frequencies in semitones."""
    return abs(float(frequency_to_semitones(freq_a) - frequency_to_semitones(freq_b)))


@dataclass(frozen=True)
class PitchReading:
    """One frame's pitch estimate, ready for stabilization."""

    frequency: float  # Hz
    semitones_from_a4: int
    cents: int  # Deviation from the nearest note
    note_name: str
    octave: int
    confidence: float  # 0-1
    jitter: float  # Hz
    timestamp_ms: float

    @property
    def jitter_ratio(self) -> float:
        if self.frequency <= 0:
            return float("inf")
        return self.jitter / self.frequency

    @classmethod
    def from_frequency(
        cls,
        frequency: float,
        confidence: float,
        jitter: float = 0.0,
        timestamp_ms: float = 0.0,
    ) -> "PitchReading":
        """Build a reading from a frequency, filling in note name and cents."""
        info = frequency_to_note_info(frequency)
        return cls(
            frequency=float(frequency),
            semitones_from_a4=info.semitones_from_a4,
            cents=info.cents,
            note_name=info.note_name,
            octave=info.octave,
            confidence=float(min(1.0, max(0.0, confidence))),
            jitter=float(jitter),
            timestamp_ms=float(timestamp_ms),
        )
