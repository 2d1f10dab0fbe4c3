"""Audio file input and streaming-style framing."""

from pathlib import Path
from typing import Iterator, Optional, Tuple
import numpy as np
import librosa

from ..core import DEFAULT_HOP_LENGTH, DEFAULT_N_FFT, DEFAULT_SR


class AudioLoader:
    """Loads audio files as mono float signals at the analysis rate."""

    SUPPORTED_FORMATS = {".wav", ".mp3", ".flac", ".ogg", ".m4a"}

    def __init__(self, target_sr: int = DEFAULT_SR, normalize: bool = True):
        """
        Initialize AudioLoader.

        Args:
            target_sr: Sample rate the trackers analyze at
            normalize: Peak-normalize the loaded signal if True
        """
        if target_sr <= 0:
            raise ValueError(f"Sample rate must be positive, got {target_sr}")
        self.target_sr = target_sr
        self.normalize = normalize

    def load(
        self,
        path: str,
        offset: float = 0.0,
        duration: Optional[float] = None,
    ) -> Tuple[np.ndarray, int]:
        """
        Load part or all of an audio file.

        Args:
            path: Path to audio file
            offset: Start reading this many seconds into the file
            duration: Read at most this many seconds (None reads to the end)

        Returns:
            Tuple of (mono float64 audio, sample rate)

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the format is unsupported, the time range is
                invalid, or nothing could be read
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        if path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {path.suffix}. "
                f"Supported: {sorted(self.SUPPORTED_FORMATS)}"
            )

        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        if duration is not None and duration <= 0:
            raise ValueError(f"duration must be > 0, got {duration}")

        audio, sr = librosa.load(
            str(path),
            sr=self.target_sr,
            mono=True,
            offset=offset,
            duration=duration,
        )
        if len(audio) == 0:
            raise ValueError(f"No audio read from {path} at offset {offset:.2f}s")

        audio = audio.astype(np.float64)
        if self.normalize:
            audio = self._normalize(audio)
        return audio, sr

    @staticmethod
    def _normalize(audio: np.ndarray) -> np.ndarray:
        """Peak-normalize to [-1, 1]; silence is returned unchanged."""
        peak = np.abs(audio).max()
        if peak > 0:
            audio = audio / peak
        return audio

    def get_duration(self, audio: np.ndarray, sr: Optional[int] = None) -> float:
        """Get duration in seconds."""
        return len(audio) / (sr or self.target_sr)


def iter_frames(
    audio: np.ndarray,
    sr: int = DEFAULT_SR,
    frame_length: int = DEFAULT_N_FFT,
    hop_length: int = DEFAULT_HOP_LENGTH,
) -> Iterator[Tuple[float, np.ndarray]]:
    """
    Slice audio into overlapping analysis frames, as a live input would.

    Each frame ends at a hop boundary and holds the most recent
    ``frame_length`` samples; the first frames are zero-padded on the left
    until enough audio has arrived.

    Args:
        audio: Mono audio array
        sr: Sample rate
        frame_length: Samples per frame
        hop_length: Samples between frame ends

    Yields:
        Tuples of (time of the frame end in ms, frame samples)
    """
    if sr <= 0 or frame_length <= 0 or hop_length <= 0:
        raise ValueError("sr, frame_length and hop_length must be positive")

    audio = np.asarray(audio, dtype=float)
    padded = np.concatenate([np.zeros(frame_length), audio])

    for end in range(hop_length, len(audio) + 1, hop_length):
        # padded[end:end + frame_length] is audio[end - frame_length:end]
        frame = padded[end:end + frame_length]
        yield 1000.0 * end / sr, frame
