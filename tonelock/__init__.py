"""tonelock - Stable chord and pitch tracking for real-time audio.

Architecture Layers:
    1. core/        - Note conversions, chroma helpers, constants, clock
    2. input/       - Audio loading and framing
    3. analysis/    - Per-frame features (chroma, onsets) and pitch enhancement
    4. inference/   - Chord classification, sequence consensus, ML fusion
    5. processing/  - Chord smoothing and pitch stabilization
    6. output/      - Chord timeline and JSON export
    7. pipeline     - Frame-by-frame chord and pitch trackers
"""

__version__ = "0.1.0"

# Core types
from .core import NoteInfo, PitchReading

# Input layer
from .input import AudioLoader

# Analysis layer
from .analysis import FrameAnalyzer, OnsetDetector, ChromaAccumulator, PitchEnhancer

# Inference layer
from .inference import ChordClassifier, ChordResult, SequenceConsensus, fuse_ml_result

# Processing layer
from .processing import SymbolSmoother, PitchStabilizer

# Output layer
from .output import ChordTimeline

# Configuration and pipelines
from .config import EngineConfig, load_config
from .pipeline import ChordTracker, PitchTracker, ChordFrame, PitchFrame

__all__ = [
    # Core
    "NoteInfo",
    "PitchReading",
    # Input
    "AudioLoader",
    # Analysis
    "FrameAnalyzer",
    "OnsetDetector",
    "ChromaAccumulator",
    "PitchEnhancer",
    # Inference
    "ChordClassifier",
    "ChordResult",
    "SequenceConsensus",
    "fuse_ml_result",
    # Processing
    "SymbolSmoother",
    "PitchStabilizer",
    # Output
    "ChordTimeline",
    # Configuration and pipelines
    "EngineConfig",
    "load_config",
    "ChordTracker",
    "PitchTracker",
    "ChordFrame",
    "PitchFrame",
]
