"""Core types and constants for tonelock."""

from .note import (
    NoteInfo,
    PitchReading,
    frequency_to_note_info,
    frequency_to_semitones,
    semitones_to_frequency,
    semitone_distance,
)
from .chroma import as_chroma, normalize_chroma, zero_chroma, dominant_bass_pitch_class
from .clock import Clock, monotonic_ms
from .constants import (
    PITCH_NAMES,
    CHORD_QUALITIES,
    QUALITY_DISPLAY,
    NO_CHORD,
    NO_NOTE,
    UNKNOWN_PITCH_CLASS,
    DEFAULT_SR,
    DEFAULT_HOP_LENGTH,
    DEFAULT_N_FFT,
)

__all__ = [
    "NoteInfo",
    "PitchReading",
    "frequency_to_note_info",
    "frequency_to_semitones",
    "semitones_to_frequency",
    "semitone_distance",
    "as_chroma",
    "normalize_chroma",
    "zero_chroma",
    "dominant_bass_pitch_class",
    "Clock",
    "monotonic_ms",
    "PITCH_NAMES",
    "CHORD_QUALITIES",
    "QUALITY_DISPLAY",
    "NO_CHORD",
    "NO_NOTE",
    "UNKNOWN_PITCH_CLASS",
    "DEFAULT_SR",
    "DEFAULT_HOP_LENGTH",
    "DEFAULT_N_FFT",
]
