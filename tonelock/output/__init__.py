"""Output layer - Chord timeline and JSON export."""

from .timeline import ChordTimeline, TimelineEntry, MAX_TIMELINE_ENTRIES

__all__ = [
    "ChordTimeline",
    "TimelineEntry",
    "MAX_TIMELINE_ENTRIES",
]
