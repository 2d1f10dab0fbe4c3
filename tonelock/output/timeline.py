"""Chord timeline - Collapses a stream of smoothed chords into entries."""

import json
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Deque, Dict, List, Optional

from ..core import NO_CHORD
from ..processing.smoothing import SmoothedChord

MAX_TIMELINE_ENTRIES = 100


@dataclass
class TimelineEntry:
    """One run of the same smoothed chord."""

    symbol: str
    root: Optional[int]
    quality: Optional[str]
    start_ms: float
    end_ms: float
    confidence: float  # Peak confidence over the run
    frames: int = 1

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["duration_ms"] = self.duration_ms
        return data


class ChordTimeline:
    """
    Bounded history of chord changes.

    Consecutive frames with the same smoothed label extend the latest
    entry. "N/C" frames never open an entry, so a chord interrupted by a
    silent gap continues when it comes back. Only the newest
    ``max_entries`` entries are kept.
    """

    def __init__(self, max_entries: int = MAX_TIMELINE_ENTRIES):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.max_entries = max_entries
        self._entries: Deque[TimelineEntry] = deque(maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[TimelineEntry]:
        """Entries in chronological order."""
        return list(self._entries)

    @property
    def latest(self) -> Optional[TimelineEntry]:
        return self._entries[-1] if self._entries else None

    def update(self, chord: SmoothedChord, now_ms: float) -> bool:
        """
        Record one smoothed frame.

        Args:
            chord: Output of the symbol smoother
            now_ms: Frame time in ms

        Returns:
            True if a new entry was opened
        """
        latest = self.latest
        if latest is not None and latest.symbol == chord.smoothed_chord:
            latest.end_ms = now_ms
            latest.frames += 1
            latest.confidence = max(latest.confidence, chord.confidence)
            return False

        if chord.smoothed_chord == NO_CHORD:
            return False

        self._entries.append(
            TimelineEntry(
                symbol=chord.smoothed_chord,
                root=chord.smoothed_root,
                quality=chord.smoothed_quality,
                start_ms=now_ms,
                end_ms=now_ms,
                confidence=chord.confidence,
            )
        )
        return True

    def clear(self) -> None:
        self._entries.clear()

    def to_dict(self) -> List[Dict]:
        return [entry.to_dict() for entry in self._entries]

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def export(self, output_path: str) -> None:
        """
        Write the timeline as JSON.

        Args:
            output_path: Path to output JSON file
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json())
