"""Tests for engine configuration loading."""

import json
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from tonelock.config import EngineConfig, load_config


def write_config(tmp_path, data) -> Path:
    path = tmp_path / "engine.json"
    path.write_text(json.dumps(data))
    return path


class TestEngineConfig:
    """Test building configs from dictionaries."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.frontend.sr == 22050
        assert config.smoother.min_hold_ms == 100
        assert config.stabilizer.ghost_duration_ms == 2500
        assert config.fusion.agreement_boost == 1.15

    def test_partial_override(self):
        config = EngineConfig.from_dict({"smoother": {"min_hold_ms": 80}})
        assert config.smoother.min_hold_ms == 80
        # Other fields and sections keep their defaults
        assert config.smoother.frames_to_confirm == 2
        assert config.stabilizer.frames_to_change_note == 4

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown config sections"):
            EngineConfig.from_dict({"tempo": {}})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown keys"):
            EngineConfig.from_dict({"smoother": {"hold": 80}})

    def test_section_must_be_object(self):
        with pytest.raises(ValueError):
            EngineConfig.from_dict({"smoother": 80})

    def test_invalid_value_rejected(self):
        """Section validation still runs."""
        with pytest.raises(ValueError):
            EngineConfig.from_dict({"stabilizer": {"ghost_fade_start_ms": 5000}})

    def test_round_trip_through_dict(self):
        config = EngineConfig.from_dict({"frontend": {"warmup_frames": 5}})
        assert EngineConfig.from_dict(config.to_dict()) == config


class TestLoadConfig:
    """Test loading configs from JSON files."""

    def test_no_path_gives_defaults(self):
        assert load_config() == EngineConfig()

    def test_load_file(self, tmp_path):
        path = write_config(tmp_path, {"stabilizer": {"ghost_duration_ms": 3000}})
        config = load_config(str(path))
        assert config.stabilizer.ghost_duration_ms == 3000

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_config(str(path))

    def test_top_level_must_be_object(self, tmp_path):
        path = write_config(tmp_path, [1, 2, 3])
        with pytest.raises(ValueError):
            load_config(str(path))
