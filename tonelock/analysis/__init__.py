"""Analysis layer - Low-level signal analysis.

This layer extracts per-frame features from raw audio:
- Chromagrams (full band and bass band)
- Onset detection and chroma accumulation
- Pitch enhancement (confidence, jitter, octave correction)
"""

from .features import (
    FrontEndConfig,
    FrameAnalyzer,
    OnsetDetector,
    ChromaAccumulator,
    prepare_frame,
    rms,
)
from .pitch import (
    EnhancerConfig,
    EnhancedPitchResult,
    PitchEnhancer,
    NO_PITCH,
    lag_correlation,
    normalized_autocorrelation,
)

__all__ = [
    # Chord front end
    "FrontEndConfig",
    "FrameAnalyzer",
    "OnsetDetector",
    "ChromaAccumulator",
    "prepare_frame",
    "rms",
    # Pitch
    "EnhancerConfig",
    "EnhancedPitchResult",
    "PitchEnhancer",
    "NO_PITCH",
    "lag_correlation",
    "normalized_autocorrelation",
]
