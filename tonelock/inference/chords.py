"""Chord classification - Score chroma vectors against chord templates.

Implements frame-level chord recognition with:
- Cosine-similarity template matching over 12 roots x 7 qualities
- Simplicity bias for seventh chords lacking a clear seventh
- Bass-third disambiguation (major/minor vs. sus chords)
- Bass anchoring of the chord root
- Transition priors between consecutive roots
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Dict
import numpy as np

from ..core import (
    PITCH_NAMES,
    QUALITY_DISPLAY,
    UNKNOWN_PITCH_CLASS,
    as_chroma,
    zero_chroma,
    dominant_bass_pitch_class,
)
from ..core.chroma import ChromaLike


# Plausibility of root movement, indexed by ascending semitone interval
# from the previous root to the candidate root.
DEFAULT_TRANSITION_PLAUSIBILITY = (
    1.00,  # same root
    0.70,  # m2
    0.80,  # M2
    0.90,  # m3
    0.80,  # M3
    0.95,  # P4
    0.60,  # tritone
    0.95,  # P5
    0.80,  # m6
    0.85,  # M6
    0.80,  # m7
    0.65,  # M7
)


def transition_plausibility(
    previous_root: Optional[int],
    next_root: Optional[int],
    table: Tuple[float, ...] = DEFAULT_TRANSITION_PLAUSIBILITY,
) -> float:
    """
    Plausibility weight for moving from one chord root to another.

    Returns 1.0 when either root is unknown.
    """
    if previous_root is None or next_root is None:
        return 1.0
    if previous_root < 0 or next_root < 0:
        return 1.0
    return table[(next_root - previous_root) % 12]


def chord_symbol(root: int, quality: str) -> str:
    """Display name for a chord (e.g. 'Am7', 'C', 'G7')."""
    return f"{PITCH_NAMES[root % 12]}{QUALITY_DISPLAY.get(quality, quality)}"


@dataclass
class ClassifierConfig:
    """Configuration for template chord classification.

    Attributes:
        complexity_penalty: Score penalty per seventh quality when the seventh is weak
        seventh_weak: Seventh energy below this gets the full penalty (default: 0.2)
        seventh_strong: Seventh energy at or above this gets no penalty (default: 0.4)
        bass_third_boost: Multiplier when the chord's third dominates the bass (default: 1.10)
        bass_third_min: Minimum bass energy of the third (default: 0.5)
        bass_third_peak_ratio: Third must reach this share of the bass peak (default: 0.7)
        sus_third_strong: Chroma third above this gives sus chords the heavy penalty
        sus_third_moderate: Chroma third above this gives sus chords the moderate penalty
        sus_penalty_strong: Heavy sus multiplier (default: 0.5)
        sus_penalty_moderate: Moderate sus multiplier (default: 0.7)
        sus_weaker_than_third_penalty: Multiplier when the sus note is weaker than a third
        sus_weak_fifth_penalty: Multiplier when the fifth is missing under a strong root
        bass_root_boost: Multiplier when the root matches the dominant bass note (default: 1.25)
        bass_mismatch_strong: Multiplier for other roots when bass peak > 0.7 (default: 0.85)
        bass_mismatch_moderate: Multiplier for other roots when bass peak > 0.5 (default: 0.92)
        bass_min_peak: Minimum bass peak to read a dominant bass note (default: 0.3)
        bass_mean_ratio: Bass peak must exceed this multiple of the mean (default: 2.0)
        transition_table: 12 plausibility weights indexed by root interval
    """

    complexity_penalty: Dict[str, float] = field(
        default_factory=lambda: {"7": 0.08, "maj7": 0.10, "min7": 0.08}
    )
    seventh_weak: float = 0.2
    seventh_strong: float = 0.4
    bass_third_boost: float = 1.10
    bass_third_min: float = 0.5
    bass_third_peak_ratio: float = 0.7
    sus_third_strong: float = 0.3
    sus_third_moderate: float = 0.15
    sus_penalty_strong: float = 0.5
    sus_penalty_moderate: float = 0.7
    sus_weaker_than_third_penalty: float = 0.6
    sus_weak_fifth_penalty: float = 0.8
    bass_root_boost: float = 1.25
    bass_mismatch_strong: float = 0.85
    bass_mismatch_moderate: float = 0.92
    bass_min_peak: float = 0.3
    bass_mean_ratio: float = 2.0
    transition_table: Tuple[float, ...] = DEFAULT_TRANSITION_PLAUSIBILITY

    def __post_init__(self):
        self.transition_table = tuple(float(v) for v in self.transition_table)
        if len(self.transition_table) != 12:
            raise ValueError("transition_table must have 12 entries")
        if any(v < 0 for v in self.transition_table):
            raise ValueError("transition_table entries must be non-negative")
        if not 0 <= self.seventh_weak <= self.seventh_strong <= 1:
            raise ValueError("Require 0 <= seventh_weak <= seventh_strong <= 1")
        for name, value in self.complexity_penalty.items():
            if name not in ChordClassifier.SEVENTH_INTERVALS:
                raise ValueError(f"Complexity penalty given for non-seventh quality: {name}")
            if value < 0:
                raise ValueError(f"Complexity penalty must be non-negative: {name}={value}")
        if self.bass_min_peak < 0 or self.bass_mean_ratio < 0:
            raise ValueError("Bass detection thresholds must be non-negative")


@dataclass(frozen=True)
class ChordCandidate:
    """A scored (root, quality) pair for one frame."""

    root: int  # Pitch class 0-11
    quality: str
    score: float
    chroma: np.ndarray = field(default_factory=zero_chroma, compare=False, repr=False)

    @property
    def symbol(self) -> str:
        return chord_symbol(self.root, self.quality)


@dataclass
class ChordResult:
    """A classified chord with its confidence (0-1)."""

    symbol: str  # Display name (e.g. "Am7")
    root: int  # Pitch class 0-11
    quality: str
    confidence: float
    chroma: np.ndarray = field(default_factory=zero_chroma, repr=False)

    def __post_init__(self):
        self.confidence = float(min(1.0, max(0.0, self.confidence)))

    @property
    def root_name(self) -> str:
        return PITCH_NAMES[self.root % 12]

    @classmethod
    def from_candidate(cls, candidate: ChordCandidate) -> "ChordResult":
        return cls(
            symbol=candidate.symbol,
            root=candidate.root,
            quality=candidate.quality,
            confidence=min(1.0, candidate.score),
            chroma=candidate.chroma,
        )


class ChordClassifier:
    """Classify a chroma frame into one of 84 chords.

    Scores every rotation of every quality template by cosine similarity,
    then applies, in order: the seventh-chord simplicity bias, bass-third
    disambiguation, bass anchoring and the transition prior.
    """

    # Binary templates rooted at C
    CHORD_TEMPLATES = {
        "maj": [1, 0, 0, 0, 1, 0, 0, 1, 0, 0, 0, 0],
        "min": [1, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0, 0],
        "7": [1, 0, 0, 0, 1, 0, 0, 1, 0, 0, 1, 0],
        "maj7": [1, 0, 0, 0, 1, 0, 0, 1, 0, 0, 0, 1],
        "min7": [1, 0, 0, 1, 0, 0, 0, 1, 0, 0, 1, 0],
        "sus2": [1, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0],
        "sus4": [1, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0],
    }

    # Semitones from root to the seventh
    SEVENTH_INTERVALS = {"7": 10, "maj7": 11, "min7": 10}

    MAJOR_FAMILY = ("maj", "maj7", "7")
    MINOR_FAMILY = ("min", "min7")
    SUS_QUALITIES = ("sus2", "sus4")

    def __init__(self, config: Optional[ClassifierConfig] = None):
        """
        Initialize ChordClassifier.

        Args:
            config: Optional ClassifierConfig; defaults are used when omitted
        """
        self.config = config if config is not None else ClassifierConfig()
        self._rotated = {
            quality: np.array([np.roll(template, root) for root in range(12)], dtype=float)
            for quality, template in self.CHORD_TEMPLATES.items()
        }

    def classify(
        self,
        chroma: ChromaLike,
        bass_chroma: Optional[ChromaLike] = None,
        previous_root: Optional[int] = None,
    ) -> ChordResult:
        """
        Classify one frame.

        Args:
            chroma: 12-bin normalized chroma vector
            bass_chroma: Optional 12-bin bass-restricted chroma vector
            previous_root: Root pitch class of the currently displayed chord

        Returns:
            Best-scoring ChordResult. All-zero chroma yields C major at confidence 0.
        """
        candidates = self.score_candidates(chroma, bass_chroma, previous_root)

        # First strictly-greater score wins, so ties keep template order
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.score > best.score:
                best = candidate

        return ChordResult.from_candidate(best)

    def top_n(
        self,
        chroma: ChromaLike,
        n: int = 5,
        bass_chroma: Optional[ChromaLike] = None,
        previous_root: Optional[int] = None,
    ) -> List[ChordResult]:
        """
        Rank the best ``n`` chords by score, one entry per display name.

        Used to show alternative chords next to the smoothed result.
        """
        if n <= 0:
            return []

        candidates = self.score_candidates(chroma, bass_chroma, previous_root)
        # Stable sort keeps template order among equal scores
        ranked = sorted(candidates, key=lambda c: c.score, reverse=True)

        seen = set()
        results = []
        for candidate in ranked:
            if candidate.symbol in seen:
                continue
            seen.add(candidate.symbol)
            results.append(ChordResult.from_candidate(candidate))
            if len(results) >= n:
                break
        return results

    def score_candidates(
        self,
        chroma: ChromaLike,
        bass_chroma: Optional[ChromaLike] = None,
        previous_root: Optional[int] = None,
    ) -> List[ChordCandidate]:
        """
        Score all 84 chord candidates, in template order (quality, then root).
        """
        chroma = as_chroma(chroma)
        bass = as_chroma(bass_chroma) if bass_chroma is not None else None
        chroma_norm = float(np.linalg.norm(chroma))

        dominant_bass = UNKNOWN_PITCH_CLASS
        bass_peak = 0.0
        if bass is not None:
            dominant_bass = dominant_bass_pitch_class(
                bass, self.config.bass_min_peak, self.config.bass_mean_ratio
            )
            bass_peak = float(bass.max())

        candidates = []
        for quality, rotations in self._rotated.items():
            for root in range(12):
                score = self._cosine(chroma, chroma_norm, rotations[root])
                score -= self._complexity_penalty(chroma, root, quality)

                if bass is not None:
                    score *= self._bass_third_factor(bass, bass_peak, root, quality)
                score *= self._sus_factor(chroma, root, quality)
                if dominant_bass != UNKNOWN_PITCH_CLASS:
                    score *= self._bass_anchor_factor(bass, dominant_bass, root)

                score *= transition_plausibility(
                    previous_root, root, self.config.transition_table
                )

                candidates.append(ChordCandidate(
                    root=root,
                    quality=quality,
                    score=float(score),
                    chroma=chroma,
                ))

        return candidates

    @staticmethod
    def _cosine(chroma: np.ndarray, chroma_norm: float, template: np.ndarray) -> float:
        denom = chroma_norm * float(np.linalg.norm(template))
        if denom <= 0:
            return 0.0
        return float(np.dot(chroma, template) / denom)

    def _complexity_penalty(self, chroma: np.ndarray, root: int, quality: str) -> float:
        """Penalty for seventh chords whose seventh is weak or absent."""
        penalty = self.config.complexity_penalty.get(quality, 0.0)
        interval = self.SEVENTH_INTERVALS.get(quality)
        if penalty <= 0 or interval is None:
            return 0.0

        seventh_energy = chroma[(root + interval) % 12]
        if seventh_energy >= self.config.seventh_strong:
            return 0.0
        if seventh_energy >= self.config.seventh_weak:
            return penalty * 0.5
        return penalty

    def _bass_third_factor(
        self, bass: np.ndarray, bass_peak: float, root: int, quality: str
    ) -> float:
        """Boost major/minor chords whose third is the near-dominant bass note."""
        if quality in self.MINOR_FAMILY:
            third = bass[(root + 3) % 12]
        elif quality in self.MAJOR_FAMILY:
            third = bass[(root + 4) % 12]
        else:
            return 1.0

        # The third must also beat this chord's fifth, otherwise it is more
        # likely the root of the relative chord.
        fifth = bass[(root + 7) % 12]
        if (
            third > self.config.bass_third_min
            and third > bass_peak * self.config.bass_third_peak_ratio
            and third > fifth
        ):
            return self.config.bass_third_boost
        return 1.0

    def _sus_factor(self, chroma: np.ndarray, root: int, quality: str) -> float:
        """Penalize sus chords when the chroma shows a clear third."""
        if quality not in self.SUS_QUALITIES:
            return 1.0

        cfg = self.config
        minor_third = chroma[(root + 3) % 12]
        major_third = chroma[(root + 4) % 12]
        sus_note = chroma[(root + (5 if quality == "sus4" else 2)) % 12]
        fifth = chroma[(root + 7) % 12]

        factor = 1.0
        if minor_third > cfg.sus_third_strong or major_third > cfg.sus_third_strong:
            factor *= cfg.sus_penalty_strong
        elif minor_third > cfg.sus_third_moderate or major_third > cfg.sus_third_moderate:
            factor *= cfg.sus_penalty_moderate

        stronger_third = max(minor_third, major_third)
        if sus_note < stronger_third and stronger_third > 0.2:
            factor *= cfg.sus_weaker_than_third_penalty

        if fifth < 0.2 and chroma[root] > 0.5:
            factor *= cfg.sus_weak_fifth_penalty

        return factor

    def _bass_anchor_factor(self, bass: np.ndarray, dominant_bass: int, root: int) -> float:
        """Favor the root the bass is playing; penalize the others."""
        if root == dominant_bass:
            return self.config.bass_root_boost

        strength = bass[dominant_bass]
        if strength > 0.7:
            return self.config.bass_mismatch_strong
        if strength > 0.5:
            return self.config.bass_mismatch_moderate
        return 1.0
