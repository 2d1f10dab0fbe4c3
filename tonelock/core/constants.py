"""Global constants for tonelock."""

# Pitch names
PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Chord vocabulary: 12 roots x 7 qualities
CHORD_QUALITIES = ("maj", "min", "7", "maj7", "min7", "sus2", "sus4")

# Display suffix per quality (e.g. "A" + "m7")
QUALITY_DISPLAY = {
    "maj": "",
    "min": "m",
    "7": "7",
    "maj7": "maj7",
    "min7": "m7",
    "sus2": "sus2",
    "sus4": "sus4",
}

# Idle sentinels
NO_CHORD = "N/C"
NO_NOTE = "-"
UNKNOWN_PITCH_CLASS = -1

# Audio processing defaults
DEFAULT_SR = 22050
DEFAULT_HOP_LENGTH = 512
DEFAULT_N_FFT = 2048

# Tuning reference
A4_FREQUENCY = 440.0
A4_MIDI = 69

# Piano-roll note activations cover the 88 piano keys
PIANO_MIN = 21  # A0
PIANO_MAX = 108  # C8
PIANO_KEYS = PIANO_MAX - PIANO_MIN + 1
