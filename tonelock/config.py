"""Engine configuration - One object holding every component's settings.

Configs can be loaded from a JSON file whose top-level keys name sections:

    {
        "smoother": {"min_hold_ms": 80},
        "stabilizer": {"ghost_duration_ms": 3000}
    }

Missing sections and fields keep their defaults.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .analysis.features import FrontEndConfig
from .analysis.pitch import EnhancerConfig
from .inference.chords import ClassifierConfig
from .inference.fusion import FusionConfig
from .inference.sequence import SequenceConfig
from .processing.smoothing import SmootherConfig
from .processing.stabilizer import StabilizerConfig


@dataclass
class EngineConfig:
    """Configuration for the whole engine.

    Attributes:
        frontend: Framing, chroma bands, silence gate and accumulator
        classifier: Template classifier penalties and priors
        sequence: Sequence consensus window and bass voting
        fusion: ML note-activation fusion
        smoother: Chord label hysteresis
        enhancer: Pitch range, octave correction and jitter
        stabilizer: Tuner note hysteresis and ghost mode
    """

    frontend: FrontEndConfig = field(default_factory=FrontEndConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    sequence: SequenceConfig = field(default_factory=SequenceConfig)
    fusion: FusionConfig = field(default_factory=FusionConfig)
    smoother: SmootherConfig = field(default_factory=SmootherConfig)
    enhancer: EnhancerConfig = field(default_factory=EnhancerConfig)
    stabilizer: StabilizerConfig = field(default_factory=StabilizerConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """
        Build a config from nested dictionaries.

        Raises:
            ValueError: On unknown sections or fields, or invalid values
        """
        if not isinstance(data, dict):
            raise ValueError("Config must be a JSON object of sections")

        section_types = {f.name: f.default_factory for f in fields(cls)}
        unknown = set(data) - set(section_types)
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")

        sections = {}
        for name, section_cls in section_types.items():
            values = data.get(name, {})
            if not isinstance(values, dict):
                raise ValueError(f"Config section '{name}' must be an object")
            sections[name] = _build_section(section_cls, name, values)
        return cls(**sections)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _build_section(section_cls, name: str, values: Dict[str, Any]):
    allowed = {f.name for f in fields(section_cls)}
    unknown = set(values) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in config section '{name}': {sorted(unknown)}")
    try:
        return section_cls(**values)
    except TypeError as e:
        raise ValueError(f"Invalid config section '{name}': {e}") from e


def load_config(path: Optional[str] = None) -> EngineConfig:
    """
    Load engine configuration from a JSON file.

    Args:
        path: Path to a JSON config file, or None for defaults

    Returns:
        EngineConfig

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not valid JSON or has unknown keys
    """
    if path is None:
        return EngineConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        data = json.loads(config_path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {config_path}: {e}") from e

    return EngineConfig.from_dict(data)
