"""Config package facade."""

from .loader import load_config
from .schema import (
    CommConfigBlock,
    ConfigError,
    DecoderConfigBlock,
    LoadedConfig,
    OutputConfigBlock,
    RuntimeConfig,
    SensorConfigBlock,
)
from .validate import validate_config

__all__ = [
    "ConfigError",
    "LoadedConfig",
    "RuntimeConfig",
    "SensorConfigBlock",
    "DecoderConfigBlock",
    "CommConfigBlock",
    "OutputConfigBlock",
    "load_config",
    "validate_config",
]
