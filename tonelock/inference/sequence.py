"""Sequence consensus - Temporal voting over recent chord classifications.

Keeps a sliding window of per-frame chord results and returns the label
with the most recency-, transition- and confidence-weighted support,
boosted when it agrees with the recent bass line.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Tuple

import numpy as np

from ..core import UNKNOWN_PITCH_CLASS, dominant_bass_pitch_class
from ..core.chroma import ChromaLike
from .chords import ChordResult, DEFAULT_TRANSITION_PLAUSIBILITY, transition_plausibility

logger = logging.getLogger(__name__)


@dataclass
class SequenceConfig:
    """Configuration for sequence consensus.

    Attributes:
        capacity: Number of frames kept in the window (default: 24)
        min_entries: Frames needed before voting starts (default: 3)
        recency_floor: Vote weight of the oldest frame; newest is 1.0 (default: 0.3)
        bass_window: Recent frames counted for bass consensus (default: 8)
        bass_min_count: Occurrences needed for a bass consensus (default: 3)
        bass_boost: Vote multiplier for labels rooted on the bass consensus (default: 1.2)
        bass_min_peak: Minimum bass peak to read a dominant bass note (default: 0.3)
        bass_mean_ratio: Bass peak must exceed this multiple of the mean (default: 2.0)
        transition_table: 12 plausibility weights indexed by root interval
    """

    capacity: int = 24
    min_entries: int = 3
    recency_floor: float = 0.3
    bass_window: int = 8
    bass_min_count: int = 3
    bass_boost: float = 1.2
    bass_min_peak: float = 0.3
    bass_mean_ratio: float = 2.0
    transition_table: Tuple[float, ...] = DEFAULT_TRANSITION_PLAUSIBILITY

    def __post_init__(self):
        self.transition_table = tuple(float(v) for v in self.transition_table)
        if self.capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {self.capacity}")
        if self.min_entries < 2:
            raise ValueError(f"min_entries must be >= 2, got {self.min_entries}")
        if not 0 <= self.recency_floor <= 1:
            raise ValueError(f"recency_floor must be in [0, 1], got {self.recency_floor}")
        if self.bass_window < 1 or self.bass_min_count < 1:
            raise ValueError("bass_window and bass_min_count must be >= 1")
        if len(self.transition_table) != 12:
            raise ValueError("transition_table must have 12 entries")


@dataclass
class _Vote:
    weight: float
    result: ChordResult


class SequenceConsensus:
    """Recency-weighted majority vote over a bounded window of chord results.

    The window is owned by this instance; call :meth:`reset` at session
    boundaries (start, stop, silence).
    """

    def __init__(self, config: Optional[SequenceConfig] = None):
        self.config = config if config is not None else SequenceConfig()
        self.window: Deque[Tuple[ChordResult, int]] = deque(maxlen=self.config.capacity)

    def __len__(self) -> int:
        return len(self.window)

    def process(self, result: ChordResult, bass_chroma: ChromaLike) -> ChordResult:
        """
        Add a frame's classification and return the consensus chord.

        Args:
            result: Classified (optionally ML-fused) chord for this frame
            bass_chroma: Normalized 12-bin bass chroma for this frame

        Returns:
            Consensus ChordResult; the input itself until the window holds
            ``min_entries`` frames
        """
        bass_note = dominant_bass_pitch_class(
            bass_chroma, self.config.bass_min_peak, self.config.bass_mean_ratio
        )
        self.window.append((result, bass_note))

        if len(self.window) < self.config.min_entries:
            return result

        votes = self._tally_votes()
        self._apply_bass_consensus(votes)

        winner: Optional[_Vote] = None
        for vote in votes.values():
            if winner is None or vote.weight > winner.weight:
                winner = vote

        total_weight = sum(v.weight for v in votes.values())
        if winner is None or total_weight <= 0:
            return result

        best = winner.result
        return ChordResult(
            symbol=best.symbol,
            root=best.root,
            quality=best.quality,
            confidence=min(1.0, winner.weight / total_weight),
            chroma=best.chroma,
        )

    def _tally_votes(self) -> Dict[str, _Vote]:
        entries: List[Tuple[ChordResult, int]] = list(self.window)
        length = len(entries)
        floor = self.config.recency_floor
        previous_root = entries[-2][0].root

        votes: Dict[str, _Vote] = {}
        for i, (entry, _) in enumerate(entries):
            recency = floor + (1.0 - floor) * (i / (length - 1))

            # Transition prior only weighs the newest frame against the one before
            transition = 1.0
            if i == length - 1:
                transition = transition_plausibility(
                    previous_root, entry.root, self.config.transition_table
                )

            weight = recency * transition * entry.confidence
            vote = votes.get(entry.symbol)
            if vote is None:
                votes[entry.symbol] = _Vote(weight=weight, result=entry)
            else:
                vote.weight += weight
        return votes

    def _apply_bass_consensus(self, votes: Dict[str, _Vote]) -> None:
        recent = list(self.window)[-min(self.config.bass_window, len(self.window)):]
        counts = np.zeros(12, dtype=int)
        for _, bass_note in recent:
            if bass_note != UNKNOWN_PITCH_CLASS:
                counts[bass_note] += 1

        if counts.max() < self.config.bass_min_count:
            return

        bass_class = int(np.argmax(counts))
        for vote in votes.values():
            if vote.result.root == bass_class:
                vote.weight *= self.config.bass_boost

    def reset(self) -> None:
        """Clear the window."""
        if self.window:
            logger.debug("Sequence window cleared (%d entries)", len(self.window))
        self.window.clear()
