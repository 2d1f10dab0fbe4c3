"""Frame-level feature extraction for the chord path.

Everything here works on one analysis frame at a time so it can run inside
a streaming loop:
- Chromagram over the melodic band and over the bass band
- Spectral-flux onset detection
- Adaptive-decay chroma accumulation with warm-up
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Tuple
import numpy as np
import librosa

from ..core import DEFAULT_HOP_LENGTH, DEFAULT_N_FFT, DEFAULT_SR, normalize_chroma

logger = logging.getLogger(__name__)


@dataclass
class FrontEndConfig:
    """Configuration for the audio front end.

    Attributes:
        sr: Analysis sample rate (default: 22050)
        n_fft: Analysis frame / FFT size (default: 2048)
        hop_length: Samples between analysis frames (default: 512)
        chroma_min_freq: Lowest frequency in the full chromagram (default: 60 Hz)
        chroma_max_freq: Highest frequency in the full chromagram (default: 2000 Hz)
        bass_min_freq: Lowest frequency in the bass chromagram (default: 30 Hz)
        bass_max_freq: Highest frequency in the bass chromagram (default: 260 Hz)
        rms_threshold: Frames quieter than this are silence (default: 0.005)
        input_gain: Gain applied before clamping to [-1, 1] (default: 1.0)
        warmup_frames: Accumulated frames needed before classifying (default: 3)
        max_decay: Accumulator decay with no spectral change (default: 0.7)
        min_decay: Accumulator decay floor (default: 0.2)
        flux_sensitivity: Decay drop per unit of chroma flux (default: 0.7)
        n_mels: Mel bands used for onset strength (default: 64)
        onset_delta: Strength above the running median that counts as an onset (default: 0.5)
        onset_history: Frames in the running median (default: 16)
        onset_min_interval_ms: Minimum time between onsets (default: 50)
    """

    sr: int = DEFAULT_SR
    n_fft: int = DEFAULT_N_FFT
    hop_length: int = DEFAULT_HOP_LENGTH
    chroma_min_freq: float = 60.0
    chroma_max_freq: float = 2000.0
    bass_min_freq: float = 30.0
    bass_max_freq: float = 260.0
    rms_threshold: float = 0.005
    input_gain: float = 1.0
    warmup_frames: int = 3
    max_decay: float = 0.7
    min_decay: float = 0.2
    flux_sensitivity: float = 0.7
    n_mels: int = 64
    onset_delta: float = 0.5
    onset_history: int = 16
    onset_min_interval_ms: float = 50.0

    def __post_init__(self):
        if self.sr <= 0 or self.n_fft <= 0 or self.hop_length <= 0:
            raise ValueError("sr, n_fft and hop_length must be positive")
        if not 0 < self.chroma_min_freq < self.chroma_max_freq:
            raise ValueError("Require 0 < chroma_min_freq < chroma_max_freq")
        if not 0 < self.bass_min_freq < self.bass_max_freq:
            raise ValueError("Require 0 < bass_min_freq < bass_max_freq")
        if self.rms_threshold < 0:
            raise ValueError(f"rms_threshold must be >= 0, got {self.rms_threshold}")
        if self.input_gain <= 0:
            raise ValueError(f"input_gain must be > 0, got {self.input_gain}")
        if self.warmup_frames < 1:
            raise ValueError(f"warmup_frames must be >= 1, got {self.warmup_frames}")
        if not 0 <= self.min_decay <= self.max_decay < 1:
            raise ValueError("Require 0 <= min_decay <= max_decay < 1")
        if self.onset_history < 1:
            raise ValueError(f"onset_history must be >= 1, got {self.onset_history}")

    @property
    def hop_ms(self) -> float:
        return 1000.0 * self.hop_length / self.sr


def prepare_frame(samples: np.ndarray, gain: float = 1.0) -> np.ndarray:
    """Apply gain and clamp a frame to [-1, 1]; NaNs become silence."""
    frame = np.nan_to_num(np.asarray(samples, dtype=float), nan=0.0) * gain
    return np.clip(frame, -1.0, 1.0)


def rms(samples: np.ndarray) -> float:
    """Root-mean-square level of a frame; 0 for an empty frame."""
    samples = np.asarray(samples, dtype=float)
    if len(samples) == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples ** 2)))


class FrameAnalyzer:
    """Computes per-frame spectra and chromagrams."""

    def __init__(self, config: Optional[FrontEndConfig] = None):
        """
        Initialize FrameAnalyzer.

        Args:
            config: Optional FrontEndConfig; defaults are used when omitted
        """
        self.config = config if config is not None else FrontEndConfig()
        cfg = self.config

        self.window = librosa.filters.get_window("hann", cfg.n_fft, fftbins=True)
        freqs = librosa.fft_frequencies(sr=cfg.sr, n_fft=cfg.n_fft)

        # Pitch class of each FFT bin, rounded to the nearest semitone
        pitch_classes = np.zeros(len(freqs), dtype=int)
        audible = freqs > 0
        midi = librosa.hz_to_midi(freqs[audible])
        pitch_classes[audible] = np.round(midi).astype(int) % 12
        self._pitch_classes = pitch_classes

        self._chroma_mask = (freqs >= cfg.chroma_min_freq) & (freqs <= cfg.chroma_max_freq)
        self._bass_mask = (freqs >= cfg.bass_min_freq) & (freqs <= cfg.bass_max_freq)

    def power_spectrum(self, samples: np.ndarray) -> np.ndarray:
        """
        Windowed power spectrum of one frame.

        Frames shorter than n_fft are zero-padded; longer ones use the most
        recent n_fft samples.
        """
        n_fft = self.config.n_fft
        frame = np.asarray(samples, dtype=float)[-n_fft:]
        frame = librosa.util.fix_length(frame, size=n_fft)
        spectrum = np.fft.rfft(frame * self.window)
        return (np.abs(spectrum) ** 2) / n_fft

    def chroma_from_spectrum(self, power: np.ndarray, bass: bool = False) -> np.ndarray:
        """
        Fold a power spectrum into 12 pitch classes, normalized to max 1.

        Args:
            power: Output of ``power_spectrum``
            bass: Restrict to the bass band instead of the melodic band
        """
        mask = self._bass_mask if bass else self._chroma_mask
        chroma = np.bincount(
            self._pitch_classes[mask], weights=power[mask], minlength=12
        )[:12]
        return normalize_chroma(chroma)

    def analyze(self, samples: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Compute full and bass chromagrams for a frame.

        Returns:
            Tuple of (chroma, bass_chroma, power_spectrum)
        """
        power = self.power_spectrum(samples)
        return (
            self.chroma_from_spectrum(power),
            self.chroma_from_spectrum(power, bass=True),
            power,
        )

    def chroma(self, samples: np.ndarray) -> np.ndarray:
        """Full-band chromagram of one frame."""
        return self.chroma_from_spectrum(self.power_spectrum(samples))

    def bass_chroma(self, samples: np.ndarray) -> np.ndarray:
        """Bass-band chromagram of one frame."""
        return self.chroma_from_spectrum(self.power_spectrum(samples), bass=True)


class OnsetDetector:
    """
    Streaming spectral-flux onset detector.

    Onset strength is the mean positive change of the log-mel spectrum
    between consecutive frames, as in ``librosa.onset.onset_strength``.
    A frame is an onset when its strength exceeds the running median by
    ``onset_delta`` and the previous onset is old enough.
    """

    def __init__(self, config: Optional[FrontEndConfig] = None):
        self.config = config if config is not None else FrontEndConfig()
        cfg = self.config
        self.mel_basis = librosa.filters.mel(sr=cfg.sr, n_fft=cfg.n_fft, n_mels=cfg.n_mels)
        self._previous: Optional[np.ndarray] = None
        self._history: Deque[float] = deque(maxlen=cfg.onset_history)
        self._last_onset_ms: Optional[float] = None

    def strength(self, power: np.ndarray) -> float:
        """Onset strength of a frame given its power spectrum."""
        mel = self.mel_basis @ power
        log_mel = librosa.power_to_db(mel, ref=1.0, top_db=None)

        if self._previous is None:
            self._previous = log_mel
            return 0.0

        flux = np.maximum(0.0, log_mel - self._previous)
        self._previous = log_mel
        return float(np.mean(flux))

    def process(self, power: np.ndarray, now_ms: float) -> Tuple[bool, float]:
        """
        Feed one frame's power spectrum.

        Args:
            power: Output of ``FrameAnalyzer.power_spectrum``
            now_ms: Frame time in ms

        Returns:
            Tuple of (is_onset, onset_strength)
        """
        cfg = self.config
        strength = self.strength(power)

        baseline = float(np.median(self._history)) if self._history else 0.0
        self._history.append(strength)

        is_onset = strength > baseline + cfg.onset_delta
        if is_onset and self._last_onset_ms is not None:
            is_onset = now_ms - self._last_onset_ms >= cfg.onset_min_interval_ms
        if is_onset:
            self._last_onset_ms = now_ms
        return is_onset, strength

    def reset(self) -> None:
        self._previous = None
        self._history.clear()
        self._last_onset_ms = None


class ChromaAccumulator:
    """
    Exponential chroma average whose decay follows spectral change.

    Positive flux ``f`` (the summed rise of each pitch class over the
    running average) sets the decay to ``max(min_decay, max_decay -
    flux_sensitivity * f)``, so a new chord takes over quickly while a
    sustained or arpeggiated one builds up.
    """

    def __init__(self, config: Optional[FrontEndConfig] = None):
        self.config = config if config is not None else FrontEndConfig()
        self._value: Optional[np.ndarray] = None
        self.frames = 0

    @property
    def is_warm(self) -> bool:
        return self.frames >= self.config.warmup_frames

    def decay_for(self, frame_chroma: np.ndarray) -> float:
        """Decay factor for the next frame."""
        cfg = self.config
        if self._value is None:
            return 0.0
        flux = float(np.sum(np.maximum(0.0, frame_chroma - self._value)))
        return max(cfg.min_decay, cfg.max_decay - cfg.flux_sensitivity * flux)

    def update(self, frame_chroma: np.ndarray) -> np.ndarray:
        """
        Add a frame and return the accumulated chroma normalized to max 1.

        Args:
            frame_chroma: 12-element chroma of the newest frame
        """
        frame_chroma = np.asarray(frame_chroma, dtype=float)
        if self._value is None:
            self._value = frame_chroma.copy()
        else:
            decay = self.decay_for(frame_chroma)
            self._value = self._value * decay + frame_chroma * (1.0 - decay)
        self.frames += 1
        return normalize_chroma(self._value)

    def reset(self) -> None:
        if self.frames:
            logger.debug("Chroma accumulator reset after %d frames", self.frames)
        self._value = None
        self.frames = 0
