"""Fusion of neural note activations with chroma-based chord results.

A note-activation model (88 piano keys, MIDI 21-108) can run beside the
chroma front end. Its output is folded into a chroma vector, classified
like any other frame, and fused with the chroma result before temporal
consensus.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Union
import numpy as np

from ..core.constants import PIANO_MIN, PIANO_KEYS
from .chords import ChordResult


@dataclass
class FusionConfig:
    """Configuration for ML/chroma fusion.

    Attributes:
        agreement_boost: Confidence multiplier when both sources agree (default: 1.15)
        ml_override_confidence: ML confidence above which it may override (default: 0.8)
        chroma_doubt_confidence: Chroma confidence below which it may be overridden (default: 0.5)
        activation_threshold: Minimum key activation counted as "on" (default: 0.4)
        min_ml_confidence: ML results at or below this are discarded (default: 0.5)
    """

    agreement_boost: float = 1.15
    ml_override_confidence: float = 0.8
    chroma_doubt_confidence: float = 0.5
    activation_threshold: float = 0.4
    min_ml_confidence: float = 0.5

    def __post_init__(self):
        if self.agreement_boost < 1:
            raise ValueError(f"agreement_boost must be >= 1, got {self.agreement_boost}")
        for name in (
            "ml_override_confidence",
            "chroma_doubt_confidence",
            "activation_threshold",
            "min_ml_confidence",
        ):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be in [0, 1], got {value}")


def chroma_from_activations(
    activations: Union[Sequence[float], np.ndarray],
    threshold: float = 0.5,
) -> np.ndarray:
    """
    Fold 88 piano-key activations into a normalized chroma vector.

    Args:
        activations: One activation per key, A0 (MIDI 21) to C8 (MIDI 108)
        threshold: Activations below this are ignored

    Returns:
        12-bin chroma, peak-normalized (all zero when nothing is active)
    """
    keys = np.asarray(activations, dtype=float).reshape(-1)
    if keys.shape[0] != PIANO_KEYS:
        raise ValueError(f"Expected {PIANO_KEYS} key activations, got {keys.shape[0]}")

    chroma = np.zeros(12)
    pitch_classes = (np.arange(PIANO_KEYS) + PIANO_MIN) % 12
    active = keys >= threshold
    np.add.at(chroma, pitch_classes[active], keys[active])

    peak = chroma.max()
    if peak > 0:
        chroma /= peak
    return chroma


def average_activations(
    frames: Union[Sequence[Sequence[float]], np.ndarray],
) -> np.ndarray:
    """
    Average per-frame key activations with a linear recency ramp.

    Frame f of F gets weight (f + 1) / F, so the newest frame counts fully.

    Args:
        frames: Array of shape [n_frames, 88]

    Returns:
        88 averaged activations
    """
    frames = np.asarray(frames, dtype=float)
    if frames.ndim == 1:
        frames = frames[np.newaxis, :]
    if frames.shape[0] == 0 or frames.shape[1] != PIANO_KEYS:
        raise ValueError(f"Expected frames of shape [n, {PIANO_KEYS}], got {frames.shape}")

    weights = np.arange(1, frames.shape[0] + 1) / frames.shape[0]
    return weights @ frames / weights.sum()


def fuse_ml_result(
    chroma_result: ChordResult,
    ml_result: Optional[ChordResult],
    config: Optional[FusionConfig] = None,
) -> ChordResult:
    """
    Fuse a chroma-based chord with the latest ML chord.

    - Same label: chroma confidence is boosted.
    - Confident ML against a doubtful chroma result: the ML label wins.
    - Otherwise the chroma result is returned unchanged.
    """
    if ml_result is None:
        return chroma_result
    config = config or FusionConfig()

    if ml_result.symbol == chroma_result.symbol:
        return ChordResult(
            symbol=chroma_result.symbol,
            root=chroma_result.root,
            quality=chroma_result.quality,
            confidence=min(1.0, chroma_result.confidence * config.agreement_boost),
            chroma=chroma_result.chroma,
        )

    if (
        ml_result.confidence > config.ml_override_confidence
        and chroma_result.confidence < config.chroma_doubt_confidence
    ):
        return ChordResult(
            symbol=ml_result.symbol,
            root=ml_result.root,
            quality=ml_result.quality,
            confidence=ml_result.confidence,
            chroma=chroma_result.chroma,
        )

    return chroma_result
