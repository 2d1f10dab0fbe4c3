"""Symbol smoothing - Hysteresis filter for per-frame chord labels.

Suppresses flicker between closely-scored chords (arpeggios, decays) while
still switching instantly on a real chord change announced by an onset.

State machine per frame:
- Incoming label equals the current one: refresh confidence, drop candidate.
- Otherwise the stored confidence decays, and the label must survive the
  minimum hold time, the hysteresis margin and the frame confirmation
  count (or take the high-confidence fast path) before it is committed.
- An onset in this frame, or within the onset window, removes the hold
  time and confirms after a single frame.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..core import NO_CHORD, Clock, monotonic_ms
from ..inference.chords import ChordResult

logger = logging.getLogger(__name__)


@dataclass
class SmootherConfig:
    """Configuration for chord symbol smoothing.

    Attributes:
        min_hold_ms: Base minimum time between changes; 1.5x applies between onsets (default: 100)
        hold_multiplier: Factor on min_hold_ms when no onset is active (default: 1.5)
        frames_to_confirm: Consecutive frames a candidate needs (default: 2)
        hysteresis_margin: Confidence lead a new label needs outside onsets (default: 0.1)
        confidence_decay: Per-frame decay of the stored confidence on disagreement (default: 0.95)
        onset_window_ms: An onset this recent still counts as active (default: 30)
        min_onset_strength: Onsets weaker than this are ignored (default: 0.0)
        fast_path_confidence: Confidence above which a label may switch at once (default: 0.7)
        fast_path_margin: Lead over the stored confidence the fast path needs (default: 0.1)
    """

    min_hold_ms: float = 100.0
    hold_multiplier: float = 1.5
    frames_to_confirm: int = 2
    hysteresis_margin: float = 0.1
    confidence_decay: float = 0.95
    onset_window_ms: float = 30.0
    min_onset_strength: float = 0.0
    fast_path_confidence: float = 0.7
    fast_path_margin: float = 0.1

    def __post_init__(self):
        if self.min_hold_ms < 0:
            raise ValueError(f"min_hold_ms must be >= 0, got {self.min_hold_ms}")
        if self.hold_multiplier < 0:
            raise ValueError(f"hold_multiplier must be >= 0, got {self.hold_multiplier}")
        if self.frames_to_confirm < 1:
            raise ValueError(f"frames_to_confirm must be >= 1, got {self.frames_to_confirm}")
        if not 0 <= self.hysteresis_margin <= 1:
            raise ValueError(f"hysteresis_margin must be in [0, 1], got {self.hysteresis_margin}")
        if not 0 < self.confidence_decay <= 1:
            raise ValueError(f"confidence_decay must be in (0, 1], got {self.confidence_decay}")
        if self.onset_window_ms < 0:
            raise ValueError(f"onset_window_ms must be >= 0, got {self.onset_window_ms}")
        if not 0 <= self.fast_path_confidence <= 1:
            raise ValueError(
                f"fast_path_confidence must be in [0, 1], got {self.fast_path_confidence}"
            )


@dataclass
class SmootherState:
    """Mutable state of one SymbolSmoother."""

    current_symbol: str = NO_CHORD
    current_root: Optional[int] = None
    current_quality: Optional[str] = None
    current_confidence: float = 0.0
    last_change_ms: Optional[float] = None
    candidate_symbol: Optional[str] = None
    candidate_frames: int = 0
    candidate_confidence_sum: float = 0.0
    last_onset_ms: Optional[float] = None

    def clear_candidate(self) -> None:
        self.candidate_symbol = None
        self.candidate_frames = 0
        self.candidate_confidence_sum = 0.0


@dataclass
class SmoothedChord(ChordResult):
    """A frame's chord result together with the stable displayed chord."""

    smoothed_chord: str = NO_CHORD
    smoothed_root: Optional[int] = None
    smoothed_quality: Optional[str] = None

    @property
    def is_idle(self) -> bool:
        return self.smoothed_chord == NO_CHORD


class SymbolSmoother:
    """Onset-aware hysteresis smoother for discrete chord labels."""

    def __init__(
        self,
        config: Optional[SmootherConfig] = None,
        clock: Clock = monotonic_ms,
    ):
        """
        Initialize SymbolSmoother.

        Args:
            config: Optional SmootherConfig; defaults are used when omitted
            clock: Monotonic millisecond clock used when ``now_ms`` is not given
        """
        self.config = config if config is not None else SmootherConfig()
        self.clock = clock
        self.state = SmootherState()

    def get_current_root(self) -> Optional[int]:
        """Root pitch class of the displayed chord, or None when idle."""
        return self.state.current_root

    @property
    def current_symbol(self) -> str:
        return self.state.current_symbol

    def process(
        self,
        result: ChordResult,
        is_onset: bool = False,
        onset_strength: float = 0.0,
        now_ms: Optional[float] = None,
    ) -> SmoothedChord:
        """
        Feed one frame's chord and get the smoothed chord.

        Args:
            result: Consensus (or raw) chord for this frame
            is_onset: Whether an onset was detected in this frame
            onset_strength: Onset detection function value
            now_ms: Frame time in ms; the configured clock is read when omitted

        Returns:
            SmoothedChord carrying the frame's chord and the displayed chord
        """
        cfg = self.config
        state = self.state
        now = self.clock() if now_ms is None else now_ms

        if is_onset and onset_strength >= cfg.min_onset_strength:
            state.last_onset_ms = now

        recent_onset = state.last_onset_ms is not None and (
            state.last_onset_ms == now or now - state.last_onset_ms < cfg.onset_window_ms
        )
        effective_hold = 0.0 if recent_onset else cfg.min_hold_ms * cfg.hold_multiplier
        effective_frames = 1 if recent_onset else cfg.frames_to_confirm

        if result.symbol == state.current_symbol:
            state.clear_candidate()
            state.current_confidence = result.confidence
            return self._output(result, result.confidence)

        # Each disagreeing frame weakens the displayed chord's hold
        state.current_confidence *= cfg.confidence_decay

        if (
            state.last_change_ms is not None
            and now - state.last_change_ms < effective_hold
        ):
            return self._output(result, state.current_confidence)

        if (
            state.current_symbol != NO_CHORD
            and not recent_onset
            and result.confidence < state.current_confidence + cfg.hysteresis_margin
        ):
            state.clear_candidate()
            return self._output(result, state.current_confidence)

        if (
            result.confidence > cfg.fast_path_confidence
            and result.confidence > state.current_confidence + cfg.fast_path_margin
        ):
            self._commit(result, result.confidence, now)
            return self._output(result, result.confidence)

        if result.symbol == state.candidate_symbol:
            state.candidate_frames += 1
            state.candidate_confidence_sum += result.confidence
        else:
            state.candidate_symbol = result.symbol
            state.candidate_frames = 1
            state.candidate_confidence_sum = result.confidence

        if state.candidate_frames >= effective_frames:
            average = state.candidate_confidence_sum / state.candidate_frames
            self._commit(result, average, now)
            return self._output(result, average)

        return self._output(result, state.current_confidence)

    def _commit(self, result: ChordResult, confidence: float, now: float) -> None:
        state = self.state
        logger.debug(
            "Chord %s -> %s (confidence %.2f)", state.current_symbol, result.symbol, confidence
        )
        state.current_symbol = result.symbol
        state.current_root = result.root
        state.current_quality = result.quality
        state.current_confidence = confidence
        state.last_change_ms = now
        state.clear_candidate()

    def _output(self, result: ChordResult, confidence: float) -> SmoothedChord:
        return SmoothedChord(
            symbol=result.symbol,
            root=result.root,
            quality=result.quality,
            confidence=confidence,
            chroma=result.chroma,
            smoothed_chord=self.state.current_symbol,
            smoothed_root=self.state.current_root,
            smoothed_quality=self.state.current_quality,
        )

    def reset(self) -> None:
        """Return to the idle "N/C" state."""
        self.state = SmootherState()
