"""Pitch enhancement - Confidence, jitter and octave correction for pitch estimates.

Two entry points:
- ``PitchEnhancer.enhance`` scores a candidate frequency from an external
  estimator (e.g. YIN) by the normalized autocorrelation at its period.
- ``PitchEnhancer.detect`` runs a standalone normalized-autocorrelation
  search with octave-error correction.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np
import librosa
from librosa.util.exceptions import ParameterError

from ..core import DEFAULT_SR, PitchReading


@dataclass
class EnhancerConfig:
    """Configuration for pitch enhancement.

    Attributes:
        min_frequency: Lowest expected pitch in Hz (default: 60, below low E)
        max_frequency: Highest expected pitch in Hz (default: 1500)
        harmonic_threshold: Sub-period peaks must reach this share of the main peak (default: 0.85)
        min_autocorr_peak: Weaker autocorrelation peaks mean no pitch (default: 0.3)
        high_confidence_peak: Peak value mapped to full confidence (default: 0.7)
        sharpness_scale: Peak sharpness mapped to the minimum jitter (default: 0.1)
        flat_jitter_ratio: Jitter as a share of frequency for a flat peak (default: 0.01)
        sharp_jitter_ratio: Jitter as a share of frequency for a sharp peak (default: 0.001)
        yin_threshold: Trough threshold for the YIN raw estimator (default: 0.15)
    """

    min_frequency: float = 60.0
    max_frequency: float = 1500.0
    harmonic_threshold: float = 0.85
    min_autocorr_peak: float = 0.3
    high_confidence_peak: float = 0.7
    sharpness_scale: float = 0.1
    flat_jitter_ratio: float = 0.01
    sharp_jitter_ratio: float = 0.001
    yin_threshold: float = 0.15

    def __post_init__(self):
        if not 0 < self.min_frequency < self.max_frequency:
            raise ValueError("Require 0 < min_frequency < max_frequency")
        if not 0 < self.harmonic_threshold <= 1:
            raise ValueError(f"harmonic_threshold must be in (0, 1], got {self.harmonic_threshold}")
        if not 0 < self.high_confidence_peak <= 1:
            raise ValueError("high_confidence_peak must be in (0, 1]")
        if self.sharpness_scale <= 0:
            raise ValueError("sharpness_scale must be > 0")
        if not 0 <= self.sharp_jitter_ratio <= self.flat_jitter_ratio:
            raise ValueError("Require 0 <= sharp_jitter_ratio <= flat_jitter_ratio")


@dataclass(frozen=True)
class EnhancedPitchResult:
    """Pitch estimate with quality metrics."""

    frequency: Optional[float]  # None when there is no pitch
    confidence: float  # 0-1
    autocorr_peak: float
    jitter: float  # Hz
    raw_frequency: Optional[float]
    octave_corrected: bool = False

    @property
    def has_pitch(self) -> bool:
        return self.frequency is not None

    def to_reading(self, timestamp_ms: float = 0.0) -> Optional[PitchReading]:
        """Convert to a PitchReading, or None when there is no pitch."""
        if self.frequency is None or self.frequency <= 0:
            return None
        return PitchReading.from_frequency(
            self.frequency,
            confidence=self.confidence,
            jitter=self.jitter,
            timestamp_ms=timestamp_ms,
        )


NO_PITCH = EnhancedPitchResult(
    frequency=None,
    confidence=0.0,
    autocorr_peak=0.0,
    jitter=0.0,
    raw_frequency=None,
)


def lag_correlation(samples: np.ndarray, lag: int) -> float:
    """
    Normalized correlation between a frame and itself shifted by ``lag``.

    Normalized by the geometric mean of the energies of both overlapping
    parts, so the value lies in [-1, 1].
    """
    n = len(samples)
    if lag <= 0 or lag >= n:
        return 0.0
    head = samples[: n - lag]
    tail = samples[lag:]
    norm = np.sqrt(np.dot(head, head) * np.dot(tail, tail))
    if norm <= 0:
        return 0.0
    return float(np.dot(head, tail) / norm)


def normalized_autocorrelation(
    samples: np.ndarray,
    sr: int,
    min_frequency: float,
    max_frequency: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Bias-corrected normalized autocorrelation over the pitch lag range.

    Each value is scaled by ``1 - 0.5 / lag`` so longer periods win near-ties,
    which favors the fundamental over its harmonics.

    Returns:
        Tuple of (lags, values); both empty for silent frames
    """
    samples = np.asarray(samples, dtype=float)
    n = len(samples)
    min_lag = max(1, int(np.floor(sr / max_frequency)))
    max_lag = min(int(np.ceil(sr / min_frequency)), n - 1)

    if n == 0 or min_lag > max_lag or not np.any(samples):
        return np.array([], dtype=int), np.array([])

    lags = np.arange(min_lag, max_lag + 1)
    values = np.array([lag_correlation(samples, int(lag)) for lag in lags])
    values *= 1.0 - 0.5 / lags
    return lags, values


class PitchEnhancer:
    """Score and correct monophonic pitch estimates."""

    def __init__(self, sr: int = DEFAULT_SR, config: Optional[EnhancerConfig] = None):
        """
        Initialize PitchEnhancer.

        Args:
            sr: Sample rate of the analysis frames
            config: Optional EnhancerConfig; defaults are used when omitted
        """
        if sr <= 0:
            raise ValueError(f"Sample rate must be positive, got {sr}")
        self.sr = sr
        self.config = config if config is not None else EnhancerConfig()

    def enhance(
        self,
        frequency: Optional[float],
        samples: np.ndarray,
    ) -> EnhancedPitchResult:
        """
        Attach confidence and jitter to an external pitch candidate.

        Confidence is the normalized autocorrelation at the candidate's
        period. Jitter comes from how sharply that value stands above the
        correlation at the neighbouring lags.

        Args:
            frequency: Candidate frequency in Hz, or None
            samples: The analysis frame the candidate was estimated from

        Returns:
            EnhancedPitchResult; NO_PITCH when there is no candidate
        """
        if frequency is None or not np.isfinite(frequency) or frequency <= 0:
            return NO_PITCH

        samples = np.asarray(samples, dtype=float)
        n = len(samples)
        lag = int(round(self.sr / frequency))

        peak = abs(lag_correlation(samples, lag))
        confidence = min(1.0, peak)

        jitter = 0.0
        if 1 < lag < n - 2:
            neighbours = (
                abs(lag_correlation(samples, lag - 1)) + abs(lag_correlation(samples, lag + 1))
            ) / 2
            sharpness = (peak - neighbours) / self.config.sharpness_scale
            jitter = self._jitter(frequency, sharpness)

        return EnhancedPitchResult(
            frequency=float(frequency),
            confidence=confidence,
            autocorr_peak=peak,
            jitter=jitter,
            raw_frequency=float(frequency),
        )

    def detect(self, samples: np.ndarray) -> EnhancedPitchResult:
        """
        Detect pitch by normalized autocorrelation with octave correction.

        Args:
            samples: Analysis frame, normalized to [-1, 1]

        Returns:
            EnhancedPitchResult; frequency is None when no peak is strong enough
        """
        cfg = self.config
        lags, values = normalized_autocorrelation(
            samples, self.sr, cfg.min_frequency, cfg.max_frequency
        )
        if len(values) == 0:
            return NO_PITCH

        peak_idx = int(np.argmax(values))
        peak = float(values[peak_idx])
        if peak < cfg.min_autocorr_peak:
            return EnhancedPitchResult(
                frequency=None,
                confidence=0.0,
                autocorr_peak=peak,
                jitter=0.0,
                raw_frequency=None,
            )

        best_lag = self._refine_lag(lags, values, peak_idx)
        raw_frequency = self.sr / best_lag

        divisor = self._period_divisor(lags, values, best_lag, peak)
        # The true period is best_lag / divisor, so the frequency goes up
        frequency = raw_frequency * divisor

        jitter = 0.0
        if 0 < peak_idx < len(values) - 1:
            neighbours = (values[peak_idx - 1] + values[peak_idx + 1]) / 2
            sharpness = (peak - neighbours) / max(peak, 1e-3)
            jitter = self._jitter(frequency, sharpness)

        return EnhancedPitchResult(
            frequency=float(frequency),
            confidence=min(1.0, peak / cfg.high_confidence_peak),
            autocorr_peak=peak,
            jitter=jitter,
            raw_frequency=float(raw_frequency),
            octave_corrected=divisor > 1,
        )

    def _period_divisor(
        self,
        lags: np.ndarray,
        values: np.ndarray,
        best_lag: float,
        peak: float,
    ) -> int:
        """
        Find how many periods the winning lag spans.

        The length-bias favors long lags, so on a clean tone the strongest
        peak often sits several periods out. Candidate periods are the
        interior local maxima reaching ``harmonic_threshold`` of the peak,
        shortest first. A candidate implies the divisor
        d = round(best_lag / candidate), which is accepted when the lags
        best_lag * h / d (h = 1..d-1) all carry a strong peak.

        The true period is best_lag / d, so callers multiply the raw
        frequency by d. Dividing it would move the estimate the wrong way.

        Returns:
            The divisor, 1 when the winning lag is already a single period
        """
        threshold = peak * self.config.harmonic_threshold
        interior = np.arange(1, len(values) - 1)
        is_peak = (values[interior] > values[interior - 1]) & (
            values[interior] >= values[interior + 1]
        )
        candidates = interior[is_peak & (values[interior] >= threshold)]

        for idx in candidates:
            divisor = int(round(best_lag / self._refine_lag(lags, values, int(idx))))
            if divisor < 2:
                break
            if self._sub_lags_strong(lags, values, best_lag, divisor, threshold):
                return divisor
        return 1

    @staticmethod
    def _sub_lags_strong(
        lags: np.ndarray,
        values: np.ndarray,
        best_lag: float,
        divisor: int,
        threshold: float,
    ) -> bool:
        for h in range(1, divisor):
            sub_lag = int(round(best_lag * h / divisor))
            nearby = np.abs(lags - sub_lag) <= 1
            if not np.any(nearby) or values[nearby].max() < threshold:
                return False
        return True

    @staticmethod
    def _refine_lag(lags: np.ndarray, values: np.ndarray, idx: int) -> float:
        """Parabolic interpolation around the peak for sub-sample accuracy."""
        if idx <= 0 or idx >= len(values) - 1:
            return float(lags[idx])
        y0, y1, y2 = values[idx - 1], values[idx], values[idx + 1]
        denom = 2 * (2 * y1 - y0 - y2)
        if denom == 0:
            return float(lags[idx])
        return float(lags[idx] + (y2 - y0) / denom)

    def _jitter(self, frequency: float, sharpness: float) -> float:
        """Map normalized peak sharpness (0 flat .. 1 sharp) to jitter in Hz."""
        cfg = self.config
        sharpness = min(1.0, max(0.0, sharpness))
        ratio = cfg.flat_jitter_ratio - (cfg.flat_jitter_ratio - cfg.sharp_jitter_ratio) * sharpness
        return float(frequency * ratio)

    def raw_pitch_estimate(self, samples: np.ndarray) -> Optional[float]:
        """
        Estimate a frame's pitch with YIN.

        Returns:
            Frequency in Hz, or None for silent or out-of-range frames
        """
        cfg = self.config
        samples = np.asarray(samples, dtype=float)
        if len(samples) == 0 or not np.any(samples):
            return None

        try:
            f0 = librosa.yin(
                samples,
                fmin=cfg.min_frequency,
                fmax=cfg.max_frequency,
                sr=self.sr,
                frame_length=len(samples),
                center=False,
                trough_threshold=cfg.yin_threshold,
            )
        except ParameterError:
            # Frame too short for the configured lowest pitch
            return None

        if len(f0) == 0 or not np.isfinite(f0[0]):
            return None
        frequency = float(f0[0])
        if not cfg.min_frequency <= frequency <= cfg.max_frequency:
            return None
        return frequency

    def in_range(self, frequency: Optional[float]) -> bool:
        """Whether a frequency lies within the configured pitch range."""
        if frequency is None:
            return False
        return self.config.min_frequency <= frequency <= self.config.max_frequency
