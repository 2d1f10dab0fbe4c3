"""Pitch stabilization - Hysteresis and ghost mode for a tuner display.

Turns a stream of per-frame pitch readings into a stable note:
- The first valid reading from idle is shown at once.
- A different note must persist for several frames before it replaces the
  stable note (more frames while the note is in tune).
- Large pitch jumps drop the smoothing history and the tuned state.
- When the signal drops out, the last reading is held and faded ("ghost")
  for a short while before returning to idle.
- The in-tune flag has its own hysteresis with a dead zone between the
  tuned and untuned cent thresholds.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional, Tuple
import numpy as np

from ..core import NO_NOTE, Clock, PitchReading, monotonic_ms, semitone_distance

logger = logging.getLogger(__name__)


@dataclass
class StabilizerConfig:
    """Configuration for pitch stabilization.

    Attributes:
        frames_to_change_note: Frames a new note needs to replace the stable note (default: 4)
        frames_to_change_note_while_tuning: Same, while the note is in tune (default: 12)
        ghost_duration_ms: How long the last reading is held after signal loss (default: 2500)
        ghost_fade_start_ms: When the ghost starts fading (default: 500)
        min_confidence: Readings below this count as no signal (default: 0.7)
        high_confidence: Confidence needed to enter the tuned state (default: 0.92)
        tuned_jitter_ratio: Max jitter/frequency ratio for the tuned state (default: 0.005)
        max_semitone_jump: Jumps beyond this reset history (default: 3)
        tuned_threshold_cents: |cents| at or below this counts toward tuned (default: 3)
        untuned_threshold_cents: |cents| at or above this counts toward untuned (default: 5)
        frames_to_tune: Frames to enter the tuned state (default: 4)
        frames_to_untune: Frames to leave the tuned state (default: 8)
        history_size: Readings kept for the cents median (default: 5)
    """

    frames_to_change_note: int = 4
    frames_to_change_note_while_tuning: int = 12
    ghost_duration_ms: float = 2500.0
    ghost_fade_start_ms: float = 500.0
    min_confidence: float = 0.7
    high_confidence: float = 0.92
    tuned_jitter_ratio: float = 0.005
    max_semitone_jump: float = 3.0
    tuned_threshold_cents: float = 3.0
    untuned_threshold_cents: float = 5.0
    frames_to_tune: int = 4
    frames_to_untune: int = 8
    history_size: int = 5

    def __post_init__(self):
        for name in (
            "frames_to_change_note",
            "frames_to_change_note_while_tuning",
            "frames_to_tune",
            "frames_to_untune",
            "history_size",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if not 0 <= self.ghost_fade_start_ms < self.ghost_duration_ms:
            raise ValueError("Require 0 <= ghost_fade_start_ms < ghost_duration_ms")
        if not 0 <= self.min_confidence <= 1 or not 0 <= self.high_confidence <= 1:
            raise ValueError("Confidence thresholds must be in [0, 1]")
        if self.tuned_threshold_cents > self.untuned_threshold_cents:
            raise ValueError("tuned_threshold_cents must not exceed untuned_threshold_cents")
        if self.max_semitone_jump <= 0:
            raise ValueError(f"max_semitone_jump must be > 0, got {self.max_semitone_jump}")
        if self.tuned_jitter_ratio < 0:
            raise ValueError(f"tuned_jitter_ratio must be >= 0, got {self.tuned_jitter_ratio}")


@dataclass(frozen=True)
class StabilizedPitch:
    """Stable tuner output for one frame."""

    note_name: str
    octave: int
    cents: int
    frequency: float
    is_ghost: bool
    ghost_opacity: float
    is_tuned: bool
    confidence: float

    @property
    def is_idle(self) -> bool:
        return self.note_name == NO_NOTE

    @property
    def label(self) -> str:
        if self.is_idle:
            return NO_NOTE
        return f"{self.note_name}{self.octave}"


IDLE_PITCH = StabilizedPitch(
    note_name=NO_NOTE,
    octave=0,
    cents=0,
    frequency=0.0,
    is_ghost=False,
    ghost_opacity=0.0,
    is_tuned=False,
    confidence=0.0,
)


@dataclass
class StabilizerState:
    """Mutable state of one PitchStabilizer."""

    history_size: int = 5
    stable_note: str = NO_NOTE
    stable_octave: int = 0
    candidate_note: Optional[str] = None
    candidate_octave: int = 0
    candidate_frames: int = 0
    last_valid_reading: Optional[PitchReading] = None
    ghost_start_ms: Optional[float] = None
    is_tuned: bool = False
    tuned_frames: int = 0
    untuned_frames: int = 0
    frequency_history: Deque[float] = field(default_factory=deque)
    cents_history: Deque[float] = field(default_factory=deque)
    last_valid_frequency: float = 0.0

    def __post_init__(self):
        self.frequency_history = deque(self.frequency_history, maxlen=self.history_size)
        self.cents_history = deque(self.cents_history, maxlen=self.history_size)

    def clear_candidate(self) -> None:
        self.candidate_note = None
        self.candidate_octave = 0
        self.candidate_frames = 0

    def clear_tuning(self) -> None:
        self.is_tuned = False
        self.tuned_frames = 0
        self.untuned_frames = 0


class PitchStabilizer:
    """Hysteresis and ghost-mode filter over pitch readings."""

    def __init__(
        self,
        config: Optional[StabilizerConfig] = None,
        clock: Clock = monotonic_ms,
    ):
        """
        Initialize PitchStabilizer.

        Args:
            config: Optional StabilizerConfig; defaults are used when omitted
            clock: Monotonic millisecond clock used when ``now_ms`` is not given
        """
        self.config = config if config is not None else StabilizerConfig()
        self.clock = clock
        self.state = StabilizerState(history_size=self.config.history_size)

    def ghost_state(self, now_ms: Optional[float] = None) -> Tuple[bool, float]:
        """
        Current ghost status without changing state.

        Returns:
            (is_ghost, opacity) - opacity is 1.0 until the fade starts and
            falls linearly to 0 at the end of the ghost duration
        """
        state = self.state
        if state.last_valid_reading is None or state.ghost_start_ms is None:
            return False, 0.0

        now = self.clock() if now_ms is None else now_ms
        elapsed = now - state.ghost_start_ms
        cfg = self.config
        if elapsed >= cfg.ghost_duration_ms:
            return False, 0.0

        opacity = 1.0
        if elapsed > cfg.ghost_fade_start_ms:
            fade = (elapsed - cfg.ghost_fade_start_ms) / (
                cfg.ghost_duration_ms - cfg.ghost_fade_start_ms
            )
            opacity = 1.0 - fade
        return True, opacity

    def process(
        self,
        reading: Optional[PitchReading],
        now_ms: Optional[float] = None,
    ) -> StabilizedPitch:
        """
        Feed one frame's reading and get the stable pitch.

        Args:
            reading: This frame's PitchReading, or None when no pitch was found
            now_ms: Frame time in ms; the configured clock is read when omitted

        Returns:
            StabilizedPitch; the idle sentinel when there is nothing to show
        """
        cfg = self.config
        state = self.state
        now = self.clock() if now_ms is None else now_ms

        if reading is None or reading.confidence < cfg.min_confidence:
            return self._absent(now)

        if state.last_valid_frequency > 0:
            jump = semitone_distance(reading.frequency, state.last_valid_frequency)
            if jump > cfg.max_semitone_jump:
                logger.debug(
                    "Pitch jump of %.1f semitones, resetting history", jump
                )
                state.frequency_history.clear()
                state.cents_history.clear()
                state.clear_candidate()
                state.clear_tuning()
                # The stable note survives the jump, so a single octave glitch
                # cannot replace it; a real string change still needs
                # frames_to_change_note frames.

        if state.ghost_start_ms is not None:
            logger.debug("Signal back, leaving ghost mode")
        state.ghost_start_ms = None
        state.last_valid_reading = reading
        state.last_valid_frequency = reading.frequency

        state.frequency_history.append(reading.frequency)
        state.cents_history.append(reading.cents)
        smoothed_cents = int(round(float(np.median(state.cents_history))))

        self._update_note(reading)
        self._update_tuning(reading, smoothed_cents)

        return StabilizedPitch(
            note_name=state.stable_note,
            octave=state.stable_octave,
            cents=smoothed_cents,
            frequency=reading.frequency,
            is_ghost=False,
            ghost_opacity=1.0,
            is_tuned=state.is_tuned,
            confidence=reading.confidence,
        )

    def _absent(self, now: float) -> StabilizedPitch:
        state = self.state
        if state.last_valid_reading is not None and state.ghost_start_ms is None:
            logger.debug("Signal lost, entering ghost mode")
            state.ghost_start_ms = now

        is_ghost, opacity = self.ghost_state(now)
        if is_ghost and state.last_valid_reading is not None:
            last = state.last_valid_reading
            return StabilizedPitch(
                note_name=state.stable_note,
                octave=state.stable_octave,
                cents=last.cents,
                frequency=last.frequency,
                is_ghost=True,
                ghost_opacity=opacity,
                is_tuned=False,
                confidence=0.0,
            )
        return IDLE_PITCH

    def _update_note(self, reading: PitchReading) -> None:
        cfg = self.config
        state = self.state

        if state.stable_note == NO_NOTE:
            # Accept the first note at once so the display never starts locked
            state.stable_note = reading.note_name
            state.stable_octave = reading.octave
            state.clear_candidate()
            return

        if reading.note_name == state.stable_note and reading.octave == state.stable_octave:
            state.clear_candidate()
            return

        if reading.note_name == state.candidate_note and reading.octave == state.candidate_octave:
            state.candidate_frames += 1
        else:
            state.candidate_note = reading.note_name
            state.candidate_octave = reading.octave
            state.candidate_frames = 1

        threshold = (
            cfg.frames_to_change_note_while_tuning
            if state.is_tuned
            else cfg.frames_to_change_note
        )
        if state.candidate_frames >= threshold:
            logger.debug(
                "Note %s%d -> %s%d",
                state.stable_note, state.stable_octave, reading.note_name, reading.octave,
            )
            state.stable_note = reading.note_name
            state.stable_octave = reading.octave
            state.clear_candidate()
            state.clear_tuning()

    def _update_tuning(self, reading: PitchReading, smoothed_cents: int) -> None:
        cfg = self.config
        state = self.state
        abs_cents = abs(smoothed_cents)
        low_jitter = reading.jitter_ratio <= cfg.tuned_jitter_ratio

        # Between the two thresholds both counters and the flag are left alone
        if (
            abs_cents <= cfg.tuned_threshold_cents
            and reading.confidence >= cfg.high_confidence
            and low_jitter
        ):
            state.tuned_frames += 1
            state.untuned_frames = 0
            if state.tuned_frames >= cfg.frames_to_tune:
                state.is_tuned = True
        elif abs_cents >= cfg.untuned_threshold_cents or not low_jitter:
            state.untuned_frames += 1
            state.tuned_frames = 0
            if state.untuned_frames >= cfg.frames_to_untune:
                state.is_tuned = False

    def reset(self) -> None:
        """Return to idle and drop all history."""
        self.state = StabilizerState(history_size=self.config.history_size)
