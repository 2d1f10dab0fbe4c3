"""Chroma vector helpers.

A chroma vector is 12 non-negative floats indexed by pitch class
(0=C ... 11=B), normalized so the largest bin is 1 (or all zero).
"""

from typing import Sequence, Union
import numpy as np

from .constants import UNKNOWN_PITCH_CLASS

ChromaLike = Union[Sequence[float], np.ndarray]


def as_chroma(values: ChromaLike) -> np.ndarray:
    """
    Validate and copy a chroma vector.

    Raises:
        ValueError: If the vector does not have exactly 12 bins
    """
    chroma = np.asarray(values, dtype=float).reshape(-1)
    if chroma.shape[0] != 12:
        raise ValueError(f"Chroma vector must have 12 bins, got {chroma.shape[0]}")
    chroma = np.nan_to_num(chroma, nan=0.0, posinf=0.0, neginf=0.0)
    return np.clip(chroma, 0.0, None)


def normalize_chroma(values: ChromaLike) -> np.ndarray:
    """Scale a chroma vector so its peak is 1. All-zero input stays zero."""
    chroma = as_chroma(values)
    peak = chroma.max()
    if peak > 0:
        chroma = chroma / peak
    return chroma


def zero_chroma() -> np.ndarray:
    return np.zeros(12)


def dominant_bass_pitch_class(
    bass_chroma: ChromaLike,
    min_peak: float = 0.3,
    mean_ratio: float = 2.0,
) -> int:
    """
    Get the dominant bass pitch class from a bass chroma vector.

    The peak must exceed ``min_peak`` and be more than ``mean_ratio`` times
    the mean of all 12 bins, otherwise the bass is considered unreadable.

    Returns:
        Pitch class (0-11), or -1 if no bin is clearly dominant
    """
    bass = as_chroma(bass_chroma)
    idx = int(np.argmax(bass))
    peak = bass[idx]
    if peak > min_peak and peak > mean_ratio * bass.mean():
        return idx
    return UNKNOWN_PITCH_CLASS
