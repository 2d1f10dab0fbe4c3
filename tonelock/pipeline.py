"""Per-frame pipelines for chord tracking and tuning.

Chord path, for each analysis frame:
    gain + silence gate → chroma / bass chroma → onset detection →
    adaptive accumulation (warm-up) → template classification (transition
    prior from the displayed chord) → ML fusion → sequence consensus →
    symbol smoothing → timeline + alternatives

Pitch path, for each analysis frame:
    silence gate → raw estimate (YIN) or autocorrelation search →
    enhancement → range gate → pitch reading → stabilizer

Both trackers are single-threaded and own all of their state. Feed frames
from one thread only.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Union
import numpy as np
import librosa

from .analysis import (
    ChromaAccumulator,
    EnhancedPitchResult,
    FrameAnalyzer,
    OnsetDetector,
    PitchEnhancer,
    NO_PITCH,
    prepare_frame,
    rms,
)
from .config import EngineConfig
from .core import Clock, PitchReading, monotonic_ms, zero_chroma
from .inference import (
    ChordClassifier,
    ChordResult,
    SequenceConsensus,
    average_activations,
    chroma_from_activations,
    fuse_ml_result,
)
from .input import iter_frames
from .output import ChordTimeline
from .processing import PitchStabilizer, StabilizedPitch, SymbolSmoother, SmoothedChord

logger = logging.getLogger(__name__)

ALTERNATIVE_POOL = 5
MAX_ALTERNATIVES = 2


@dataclass
class ChordFrame:
    """Everything the chord path produced for one frame."""

    timestamp_ms: float
    rms: float
    symbol: str  # Displayed (smoothed) chord
    is_silent: bool = False
    is_warming_up: bool = False
    is_onset: bool = False
    onset_strength: float = 0.0
    raw: Optional[ChordResult] = None
    consensus: Optional[ChordResult] = None
    smoothed: Optional[SmoothedChord] = None
    alternatives: List[ChordResult] = field(default_factory=list)
    chroma: np.ndarray = field(default_factory=zero_chroma, repr=False)
    bass_chroma: np.ndarray = field(default_factory=zero_chroma, repr=False)

    @property
    def has_update(self) -> bool:
        """Whether this frame went through classification."""
        return self.smoothed is not None

    @property
    def confidence(self) -> float:
        return self.smoothed.confidence if self.smoothed is not None else 0.0


@dataclass
class PitchFrame:
    """Everything the pitch path produced for one frame."""

    timestamp_ms: float
    rms: float
    enhanced: EnhancedPitchResult
    reading: Optional[PitchReading]
    stable: StabilizedPitch

    @property
    def has_pitch(self) -> bool:
        return self.reading is not None


class ChordTracker:
    """Streaming chord recognition with stabilization."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Clock = monotonic_ms,
    ):
        """
        Initialize ChordTracker.

        Args:
            config: Optional EngineConfig; defaults are used when omitted
            clock: Monotonic millisecond clock used when ``now_ms`` is not given
        """
        self.config = config if config is not None else EngineConfig()
        self.clock = clock

        frontend = self.config.frontend
        self.analyzer = FrameAnalyzer(frontend)
        self.onset_detector = OnsetDetector(frontend)
        self.chroma_accumulator = ChromaAccumulator(frontend)
        self.bass_accumulator = ChromaAccumulator(frontend)

        self.classifier = ChordClassifier(self.config.classifier)
        self.sequence = SequenceConsensus(self.config.sequence)
        self.smoother = SymbolSmoother(self.config.smoother, clock=clock)
        self.timeline = ChordTimeline()

        self.ml_result: Optional[ChordResult] = None
        self.alternatives: List[ChordResult] = []

    @property
    def current_symbol(self) -> str:
        return self.smoother.current_symbol

    def submit_ml_result(self, result: Optional[ChordResult]) -> bool:
        """
        Offer a chord from an external model for fusion.

        Only results above the configured minimum confidence replace the
        held result, which is then fused into every following frame.

        Returns:
            True if the result was kept
        """
        if result is None or result.confidence <= self.config.fusion.min_ml_confidence:
            return False
        self.ml_result = result
        return True

    def submit_activations(
        self,
        frames: Union[Sequence[Sequence[float]], np.ndarray],
    ) -> Optional[ChordResult]:
        """
        Classify note-activation model output and offer it for fusion.

        Args:
            frames: Model output of shape [n_frames, 88] (or one 88-key frame)

        Returns:
            The classified ML chord, or None if it was too uncertain to keep
        """
        activations = average_activations(frames)
        chroma = chroma_from_activations(activations, self.config.fusion.activation_threshold)
        if not np.any(chroma):
            return None

        result = self.classifier.classify(chroma)
        return result if self.submit_ml_result(result) else None

    def process_frame(self, samples: np.ndarray, now_ms: Optional[float] = None) -> ChordFrame:
        """
        Run one analysis frame through the chord path.

        Args:
            samples: The most recent n_fft samples
            now_ms: Frame time in ms; the configured clock is read when omitted

        Returns:
            ChordFrame; silent and warm-up frames carry no chord update
        """
        cfg = self.config.frontend
        now = self.clock() if now_ms is None else now_ms

        frame = prepare_frame(samples, cfg.input_gain)
        level = rms(frame)

        if level < cfg.rms_threshold:
            self._on_silence()
            return ChordFrame(
                timestamp_ms=now, rms=level, symbol=self.current_symbol, is_silent=True
            )

        frame_chroma, frame_bass, power = self.analyzer.analyze(frame)
        is_onset, onset_strength = self.onset_detector.process(power, now)

        chroma = self.chroma_accumulator.update(frame_chroma)
        bass_chroma = self.bass_accumulator.update(frame_bass)

        if not self.chroma_accumulator.is_warm:
            return ChordFrame(
                timestamp_ms=now,
                rms=level,
                symbol=self.current_symbol,
                is_warming_up=True,
                is_onset=is_onset,
                onset_strength=onset_strength,
                chroma=chroma,
                bass_chroma=bass_chroma,
            )

        raw = self.classifier.classify(chroma, bass_chroma, self.smoother.get_current_root())
        fused = fuse_ml_result(raw, self.ml_result, self.config.fusion)
        consensus = self.sequence.process(fused, bass_chroma)
        smoothed = self.smoother.process(consensus, is_onset, onset_strength, now_ms=now)

        self.timeline.update(smoothed, now)
        self.alternatives = self._alternatives(chroma, smoothed.smoothed_chord)

        return ChordFrame(
            timestamp_ms=now,
            rms=level,
            symbol=smoothed.smoothed_chord,
            is_onset=is_onset,
            onset_strength=onset_strength,
            raw=raw,
            consensus=consensus,
            smoothed=smoothed,
            alternatives=list(self.alternatives),
            chroma=chroma,
            bass_chroma=bass_chroma,
        )

    def _alternatives(self, chroma: np.ndarray, smoothed_symbol: str) -> List[ChordResult]:
        alternatives = []
        for candidate in self.classifier.top_n(chroma, ALTERNATIVE_POOL):
            if candidate.symbol == smoothed_symbol:
                continue
            alternatives.append(candidate)
            if len(alternatives) >= MAX_ALTERNATIVES:
                break
        return alternatives

    def _on_silence(self) -> None:
        # The displayed chord survives silence; accumulated evidence does not
        if self.chroma_accumulator.frames or len(self.sequence):
            logger.debug("Silence, clearing accumulators and sequence window")
        self.chroma_accumulator.reset()
        self.bass_accumulator.reset()
        self.sequence.reset()
        self.alternatives = []

    def track(self, audio: np.ndarray, sr: int) -> Iterator[ChordFrame]:
        """
        Run a whole signal through the tracker, frame by frame.

        Frame times are derived from sample positions, so results do not
        depend on processing speed.

        Args:
            audio: Mono audio array
            sr: Sample rate of ``audio``; resampled to the analysis rate if needed

        Yields:
            One ChordFrame per hop
        """
        cfg = self.config.frontend
        if sr != cfg.sr:
            audio = librosa.resample(np.asarray(audio, dtype=float), orig_sr=sr, target_sr=cfg.sr)

        for time_ms, frame in iter_frames(audio, cfg.sr, cfg.n_fft, cfg.hop_length):
            yield self.process_frame(frame, now_ms=time_ms)

    def reset(self) -> None:
        """Clear all state, including the displayed chord and timeline."""
        self.onset_detector.reset()
        self._on_silence()
        self.smoother.reset()
        self.timeline.clear()
        self.ml_result = None


class PitchTracker:
    """Streaming monophonic pitch tracking for a tuner display."""

    ESTIMATORS = ("yin", "autocorrelation")

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Clock = monotonic_ms,
        estimator: str = "yin",
    ):
        """
        Initialize PitchTracker.

        Args:
            config: Optional EngineConfig; defaults are used when omitted
            clock: Monotonic millisecond clock used when ``now_ms`` is not given
            estimator: "yin" (librosa YIN, then enhancement) or
                "autocorrelation" (octave-corrected autocorrelation search)
        """
        if estimator not in self.ESTIMATORS:
            raise ValueError(f"Unknown estimator '{estimator}'. Use one of {self.ESTIMATORS}")
        self.config = config if config is not None else EngineConfig()
        self.clock = clock
        self.estimator = estimator
        self.enhancer = PitchEnhancer(self.config.frontend.sr, self.config.enhancer)
        self.stabilizer = PitchStabilizer(self.config.stabilizer, clock=clock)

    def estimate(self, frame: np.ndarray) -> EnhancedPitchResult:
        """Enhanced pitch estimate for one (gain-adjusted) frame."""
        if self.estimator == "autocorrelation":
            return self.enhancer.detect(frame)
        frequency = self.enhancer.raw_pitch_estimate(frame)
        return self.enhancer.enhance(frequency, frame)

    def process_frame(self, samples: np.ndarray, now_ms: Optional[float] = None) -> PitchFrame:
        """
        Run one analysis frame through the pitch path.

        Args:
            samples: The most recent n_fft samples
            now_ms: Frame time in ms; the configured clock is read when omitted

        Returns:
            PitchFrame with the stabilized tuner state
        """
        cfg = self.config.frontend
        now = self.clock() if now_ms is None else now_ms

        frame = prepare_frame(samples, cfg.input_gain)
        level = rms(frame)

        enhanced = NO_PITCH
        if level >= cfg.rms_threshold:
            enhanced = self.estimate(frame)

        reading = None
        if enhanced.has_pitch and self.enhancer.in_range(enhanced.frequency):
            reading = enhanced.to_reading(now)

        stable = self.stabilizer.process(reading, now_ms=now)
        return PitchFrame(
            timestamp_ms=now, rms=level, enhanced=enhanced, reading=reading, stable=stable
        )

    def track(self, audio: np.ndarray, sr: int) -> Iterator[PitchFrame]:
        """
        Run a whole signal through the tracker, frame by frame.

        Args:
            audio: Mono audio array
            sr: Sample rate of ``audio``; resampled to the analysis rate if needed

        Yields:
            One PitchFrame per hop
        """
        cfg = self.config.frontend
        if sr != cfg.sr:
            audio = librosa.resample(np.asarray(audio, dtype=float), orig_sr=sr, target_sr=cfg.sr)

        for time_ms, frame in iter_frames(audio, cfg.sr, cfg.n_fft, cfg.hop_length):
            yield self.process_frame(frame, now_ms=time_ms)

    def reset(self) -> None:
        self.stabilizer.reset()

