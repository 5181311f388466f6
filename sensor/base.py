# -- coding: utf-8 --

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Type

from core.contracts import ColorSample
from core.registry import NamedRegistry
from decode.settings import ThresholdConfig

_registry: NamedRegistry[Type["BaseSensor"]] = NamedRegistry(
    package=__package__ or "sensor", label="sensor type"
)


@dataclass
class SensorConfig:
    poll_ms: float = 5.0
    realtime: bool = False
    image_dir: str = ""
    pixel_x: int = 0
    pixel_y: int = 0
    frame_interval_ms: float = 20.0
    order: str = "name_asc"
    end_mode: str = "stop"
    path: str = ""
    text: str = "SOS"
    sample_period_ms: float = 10.0
    noise_std: float = 0.0
    seed: int = 0
    lead_in_ms: float = 0.0
    repeat: int = 1
    decoder: ThresholdConfig | None = None


def build_sensor_config(cfg_block, *, decoder: ThresholdConfig | None = None) -> SensorConfig:
    return SensorConfig(
        poll_ms=float(cfg_block.poll_ms),
        realtime=bool(cfg_block.realtime),
        image_dir=str(cfg_block.image_dir or ""),
        pixel_x=int(cfg_block.pixel_x),
        pixel_y=int(cfg_block.pixel_y),
        frame_interval_ms=float(cfg_block.frame_interval_ms),
        order=str(cfg_block.order or "name_asc").strip().lower(),
        end_mode=str(cfg_block.end_mode or "stop").strip().lower(),
        path=str(cfg_block.path or ""),
        text=str(cfg_block.text or ""),
        sample_period_ms=float(cfg_block.sample_period_ms),
        noise_std=float(cfg_block.noise_std),
        seed=int(cfg_block.seed),
        lead_in_ms=float(cfg_block.lead_in_ms),
        repeat=int(cfg_block.repeat),
        decoder=decoder,
    )


class BaseSensor(ABC):
    """A single sensor pixel observed over time."""

    name = "base"

    def __init__(self, cfg: SensorConfig):
        self.cfg = cfg
        self.lock = threading.Lock()

    @abstractmethod
    def read_sample(self) -> ColorSample | None:
        """Return the next sample, or None once the source is exhausted."""

    @contextmanager
    @abstractmethod
    def session(self):
        """Manage sensor lifecycle."""
        yield


def register_sensor(name: str):
    return _registry.register(name)


def create_sensor(name: str, cfg: SensorConfig) -> BaseSensor:
    cls = _registry.resolve(name)
    return cls(cfg)


def create_sensor_from_loaded_config(cfg, *, decoder: ThresholdConfig | None = None) -> BaseSensor:
    sensor_cfg = build_sensor_config(cfg.sensor, decoder=decoder)
    return create_sensor(cfg.sensor.type, sensor_cfg)


__all__ = [
    "SensorConfig",
    "build_sensor_config",
    "BaseSensor",
    "register_sensor",
    "create_sensor",
    "create_sensor_from_loaded_config",
]
