"""Tests for the chord timeline."""

import json
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from tonelock.output import ChordTimeline, MAX_TIMELINE_ENTRIES
from tonelock.processing import SmoothedChord

ROOTS = {"C": 0, "D": 2, "F": 5, "G": 7, "Am": 9}


def smoothed(symbol: str, confidence: float = 0.8) -> SmoothedChord:
    if symbol == "N/C":
        return SmoothedChord(symbol="C", root=0, quality="maj", confidence=0.0)
    root = ROOTS[symbol]
    quality = "min" if symbol.endswith("m") else "maj"
    return SmoothedChord(
        symbol=symbol,
        root=root,
        quality=quality,
        confidence=confidence,
        smoothed_chord=symbol,
        smoothed_root=root,
        smoothed_quality=quality,
    )


@pytest.fixture
def timeline():
    return ChordTimeline()


class TestTimelineUpdates:
    """Test how frames collapse into entries."""

    def test_first_chord_opens_entry(self, timeline):
        assert timeline.update(smoothed("C"), now_ms=0.0)
        entry = timeline.latest
        assert entry.symbol == "C"
        assert entry.root == 0
        assert entry.quality == "maj"
        assert entry.start_ms == entry.end_ms == 0.0

    def test_same_chord_extends_entry(self, timeline):
        timeline.update(smoothed("C", 0.6), now_ms=0.0)
        assert not timeline.update(smoothed("C", 0.9), now_ms=23.0)
        assert not timeline.update(smoothed("C", 0.7), now_ms=46.0)

        assert len(timeline) == 1
        entry = timeline.latest
        assert entry.frames == 3
        assert entry.end_ms == 46.0
        assert entry.duration_ms == 46.0
        assert entry.confidence == 0.9

    def test_change_opens_new_entry(self, timeline):
        timeline.update(smoothed("C"), now_ms=0.0)
        assert timeline.update(smoothed("G"), now_ms=500.0)
        assert [e.symbol for e in timeline.entries] == ["C", "G"]

    def test_no_chord_never_opens_entry(self, timeline):
        assert not timeline.update(smoothed("N/C"), now_ms=0.0)
        assert len(timeline) == 0

    def test_root_zero_is_kept(self, timeline):
        """C has root 0, which must not be lost as a falsy value."""
        timeline.update(smoothed("C"), now_ms=0.0)
        assert timeline.latest.root == 0
        assert timeline.to_dict()[0]["root"] == 0

    def test_bounded(self):
        timeline = ChordTimeline(max_entries=3)
        for i, symbol in enumerate(["C", "G", "Am", "F", "C"]):
            timeline.update(smoothed(symbol), now_ms=i * 100.0)
        assert [e.symbol for e in timeline.entries] == ["Am", "F", "C"]

    def test_default_capacity(self, timeline):
        for i in range(MAX_TIMELINE_ENTRIES + 10):
            timeline.update(smoothed("C" if i % 2 else "G"), now_ms=float(i))
        assert len(timeline) == MAX_TIMELINE_ENTRIES

    def test_clear(self, timeline):
        timeline.update(smoothed("C"), now_ms=0.0)
        timeline.clear()
        assert len(timeline) == 0
        assert timeline.latest is None

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            ChordTimeline(max_entries=0)


class TestTimelineExport:
    """Test serialization."""

    def test_to_dict(self, timeline):
        timeline.update(smoothed("Am", 0.75), now_ms=100.0)
        timeline.update(smoothed("Am", 0.75), now_ms=200.0)
        data = timeline.to_dict()
        assert data == [{
            "symbol": "Am",
            "root": 9,
            "quality": "min",
            "start_ms": 100.0,
            "end_ms": 200.0,
            "confidence": 0.75,
            "frames": 2,
            "duration_ms": 100.0,
        }]

    def test_export_json(self, timeline, tmp_path):
        timeline.update(smoothed("C"), now_ms=0.0)
        timeline.update(smoothed("G"), now_ms=500.0)
        output = tmp_path / "nested" / "timeline.json"
        timeline.export(str(output))

        data = json.loads(output.read_text())
        assert [entry["symbol"] for entry in data] == ["C", "G"]
