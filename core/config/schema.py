"""Typed config schema blocks shared by loader/validator/runtime."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


class ConfigError(Exception):
    pass


@dataclass
class RuntimeConfig:
    save_dir: str = "data"
    max_runtime_s: float = 0.0
    status_interval_ms: float = 50.0
    log_level: str = "info"


@dataclass
class SensorConfigBlock:
    type: str = "synthetic"
    poll_ms: float = 5.0
    realtime: bool = False
    # images
    image_dir: str = ""
    pixel_x: int = 0
    pixel_y: int = 0
    frame_interval_ms: float = 20.0
    order: str = "name_asc"
    end_mode: str = "stop"
    # replay
    path: str = ""
    # synthetic
    text: str = "SOS"
    sample_period_ms: float = 10.0
    noise_std: float = 0.0
    seed: int = 0
    lead_in_ms: float = 0.0
    repeat: int = 1


@dataclass
class DecoderConfigBlock:
    on_color: List[int] = field(default_factory=lambda: [255, 255, 255])
    off_color: List[int] = field(default_factory=lambda: [0, 0, 0])
    threshold: float = 0.5
    adaptive: bool = False
    adaptive_alpha: float = 0.02
    adaptive_min_contrast: float = 0.2
    dit_ms: float = 100.0
    dah_ms: float = 300.0
    letter_gap_ms: float = 300.0
    word_gap_ms: float = 700.0
    tolerance: float = 0.5
    unknown_placeholder: str = "#"


@dataclass
class CommHttpConfigBlock:
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class CommConfigBlock:
    http: CommHttpConfigBlock = field(default_factory=CommHttpConfigBlock)


@dataclass
class OutputHmiConfigBlock:
    enabled: bool = False
    history_size: int = 128


@dataclass
class OutputConfigBlock:
    hmi: OutputHmiConfigBlock = field(default_factory=OutputHmiConfigBlock)
    write_csv: bool = False


@dataclass
class LoadedConfig:
    runtime: RuntimeConfig
    sensor: SensorConfigBlock
    decoder: DecoderConfigBlock
    comm: CommConfigBlock
    output: OutputConfigBlock
    paths: Dict[str, str] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ConfigError",
    "RuntimeConfig",
    "SensorConfigBlock",
    "DecoderConfigBlock",
    "CommConfigBlock",
    "CommHttpConfigBlock",
    "OutputHmiConfigBlock",
    "OutputConfigBlock",
    "LoadedConfig",
]
