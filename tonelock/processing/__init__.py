"""Processing layer - Temporal stabilization of per-frame results.

This layer turns jittery frame-by-frame output into display-ready state:
- Chord label smoothing (hysteresis, onset-aware)
- Pitch stabilization (note hysteresis, ghost mode, in-tune flag)
"""

from .smoothing import SmootherConfig, SmootherState, SmoothedChord, SymbolSmoother
from .stabilizer import (
    StabilizerConfig,
    StabilizerState,
    StabilizedPitch,
    PitchStabilizer,
    IDLE_PITCH,
)

__all__ = [
    # Chord smoothing
    "SmootherConfig",
    "SmootherState",
    "SmoothedChord",
    "SymbolSmoother",
    # Pitch stabilization
    "StabilizerConfig",
    "StabilizerState",
    "StabilizedPitch",
    "PitchStabilizer",
    "IDLE_PITCH",
]
