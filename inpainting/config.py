"""
Configuration management for the inpainting graph driver.

Settings come from three layers, lowest precedence first:
- dataclass defaults (the values the desktop demo always used)
- an optional YAML settings file
- command line flags
"""

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

_PATH_FIELDS = (
    "calculator_graph_config_file",
    "input_video_path",
    "output_video_path",
    "debug_dir",
    "report_path",
)


@dataclass
class Config:
    """Run settings for the inpainting graph driver."""

    # Inputs and outputs
    calculator_graph_config_file: Optional[Path] = None
    input_video_path: Optional[Path] = None
    output_video_path: Optional[Path] = None

    # Graph stream names
    input_stream: str = "input_video"
    output_video_stream: str = "output_video"
    output_corpus_mask_stream: str = "output_corpus_mask"
    output_face_mask_stream: str = "output_face_mask"
    output_selfie_mask_stream: str = "output_selfie_mask"

    # Interactive display
    window_name: str = "Inpainting"
    camera_index: int = 0
    display_width: int = 640
    display_height: int = 480
    display_fps: int = 30
    key_poll_ms: int = 5
    no_key_sentinel: int = 255

    # Recording
    max_recorded_frames: int = 100
    writer_fourcc: str = "avc1"  # .mp4

    # Mask arithmetic
    selfie_threshold: int = 192

    # Debug output
    debug_dir: Optional[Path] = None
    debug_every_n_frames: int = 0  # 0 disables mask dumps
    report_path: Optional[Path] = None

    def __post_init__(self):
        """Normalize path fields and validate."""
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is None or value == "":
                setattr(self, name, None)
            elif isinstance(value, str):
                setattr(self, name, Path(value))

        self.validate()

    def validate(self):
        """Validate configuration parameters."""
        if self.display_width <= 0 or self.display_height <= 0:
            raise ConfigError("Display dimensions must be positive",
                              details=f"{self.display_width}x{self.display_height}")
        if self.display_fps <= 0:
            raise ConfigError("Display fps must be positive", details=str(self.display_fps))
        if self.max_recorded_frames < 1:
            raise ConfigError("max_recorded_frames must be at least 1",
                              details=str(self.max_recorded_frames))
        if not 0 <= self.selfie_threshold <= 255:
            raise ConfigError("selfie_threshold must be within [0, 255]",
                              details=str(self.selfie_threshold))
        if len(self.writer_fourcc) != 4:
            raise ConfigError("writer_fourcc must be exactly 4 characters",
                              details=repr(self.writer_fourcc))
        if self.key_poll_ms < 1:
            raise ConfigError("key_poll_ms must be at least 1", details=str(self.key_poll_ms))
        if len(set(self.output_streams())) != 4:
            raise ConfigError("Output stream names must be distinct",
                              details=", ".join(self.output_streams()))
        if self.debug_every_n_frames < 0:
            raise ConfigError("debug_every_n_frames cannot be negative",
                              details=str(self.debug_every_n_frames))

    @property
    def load_video(self) -> bool:
        """True when frames come from a file rather than the camera."""
        return self.input_video_path is not None

    @property
    def save_video(self) -> bool:
        """True when results are recorded rather than shown in a window."""
        return self.output_video_path is not None

    def output_streams(self) -> Tuple[str, str, str, str]:
        """Output stream names in retrieval order."""
        return (
            self.output_video_stream,
            self.output_corpus_mask_stream,
            self.output_face_mask_stream,
            self.output_selfie_mask_stream,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = str(value) if isinstance(value, Path) else value
        return result


def apply_overrides(config: Config, **overrides) -> Config:
    """Return a copy of ``config`` with every non-None override applied."""
    changes = {key: value for key, value in overrides.items() if value is not None}
    unknown = set(changes) - {f.name for f in fields(Config)}
    if unknown:
        raise ConfigError("Unknown configuration keys", details=", ".join(sorted(unknown)))
    return replace(config, **changes)


def load_config(config_path) -> Config:
    """Load configuration from a YAML settings file."""
    config_file = Path(config_path)

    if not config_file.exists():
        logger.warning(f"Settings file not found: {config_file}, using defaults")
        return Config()

    with open(config_file, 'r') as f:
        try:
            config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse settings file {config_file}", details=str(e))

    if not isinstance(config_dict, dict):
        raise ConfigError(f"Settings file {config_file} must contain a mapping")

    known = {f.name for f in fields(Config)}
    unknown = set(config_dict) - known
    if unknown:
        raise ConfigError(f"Unknown keys in {config_file}", details=", ".join(sorted(unknown)))

    logger.info(f"Configuration loaded from: {config_file}")
    return Config(**config_dict)


def save_config(config: Config, config_path):
    """Save configuration to YAML file."""
    with open(config_path, 'w') as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, indent=2)


def create_example_config() -> str:
    """Create an example configuration file."""
    example_config = """# Inpainting graph driver settings
# Command line flags override anything set here.

# Text-format graph description (required)
calculator_graph_config_file: "graphs/inpainting_desktop_live.pbtxt"

# Leave empty to use the camera
input_video_path: null
# Leave empty to show results in a window
output_video_path: null

# Stream names exposed by the graph
input_stream: "input_video"
output_video_stream: "output_video"
output_corpus_mask_stream: "output_corpus_mask"
output_face_mask_stream: "output_face_mask"
output_selfie_mask_stream: "output_selfie_mask"

# Interactive display
window_name: "Inpainting"
camera_index: 0
display_width: 640
display_height: 480
display_fps: 30
key_poll_ms: 5

# Recording
max_recorded_frames: 100
writer_fourcc: "avc1"

# Selfie mask binarization cutoff (0-255)
selfie_threshold: 192

# Debug output
debug_dir: null
debug_every_n_frames: 0   # dump masks every N frames, 0 disables
report_path: null         # JSON run report
"""

    return example_config
