"""Inference layer - Chord recognition from chroma.

This layer turns chroma vectors into chord labels:
- Template matching with bass anchoring and transition priors
- Temporal voting over a sliding window (sequence consensus)
- Fusion with an external note-activation model

Pipeline: Chroma → Classifier → [ML fusion] → Sequence consensus
"""

from .chords import (
    ClassifierConfig,
    ChordCandidate,
    ChordResult,
    ChordClassifier,
    DEFAULT_TRANSITION_PLAUSIBILITY,
    transition_plausibility,
    chord_symbol,
)
from .sequence import SequenceConfig, SequenceConsensus
from .fusion import FusionConfig, average_activations, chroma_from_activations, fuse_ml_result

__all__ = [
    # Classification
    "ClassifierConfig",
    "ChordCandidate",
    "ChordResult",
    "ChordClassifier",
    "DEFAULT_TRANSITION_PLAUSIBILITY",
    "transition_plausibility",
    "chord_symbol",
    # Temporal voting
    "SequenceConfig",
    "SequenceConsensus",
    # ML fusion
    "FusionConfig",
    "average_activations",
    "chroma_from_activations",
    "fuse_ml_result",
]
