# -- coding: utf-8 --

import logging
import os
from contextlib import contextmanager

import numpy as np

from core.contracts import ColorSample
from sensor.base import BaseSensor, SensorConfig, register_sensor

L = logging.getLogger("morse_runtime.sensor.replay")


def load_samples(path: str) -> np.ndarray:
    """Load `timestamp_ms,r,g,b` rows; a leading header line is skipped."""
    with open(path, "r", encoding="utf-8") as f:
        first = f.readline()
    skip = 1 if any(ch.isalpha() for ch in first) else 0
    data = np.loadtxt(path, delimiter=",", skiprows=skip, comments="#", ndmin=2)
    if data.size and data.shape[1] != 4:
        raise RuntimeError(
            f"replay file {path} must have 4 columns (timestamp_ms,r,g,b), got {data.shape[1]}"
        )
    return data.reshape(-1, 4)


def write_samples(path: str, samples) -> int:
    rows = np.array(
        [(s.timestamp_ms, s.rgb[0], s.rgb[1], s.rgb[2]) for s in samples],
        dtype=np.float64,
    ).reshape(-1, 4)
    np.savetxt(
        path,
        rows,
        delimiter=",",
        fmt=["%.3f", "%d", "%d", "%d"],
        header="timestamp_ms,r,g,b",
        comments="",
    )
    return int(rows.shape[0])


@register_sensor("replay")
class ReplaySensor(BaseSensor):
    """Replays samples recorded by an external capture tool."""

    name = "replay"

    def __init__(self, cfg: SensorConfig):
        super().__init__(cfg)
        self._rows: np.ndarray = np.empty((0, 4))
        self._pos = 0

    def read_sample(self) -> ColorSample | None:
        with self.lock:
            if self._pos >= len(self._rows):
                return None
            ts, r, g, b = self._rows[self._pos]
            self._pos += 1
        rgb = tuple(int(np.clip(round(c), 0, 255)) for c in (r, g, b))
        return ColorSample(timestamp_ms=float(ts), rgb=rgb)

    @contextmanager
    def session(self):
        path = str(self.cfg.path or "").strip()
        if not path:
            raise RuntimeError("replay sensor path is required")
        if not os.path.isfile(path):
            raise RuntimeError(f"replay file not found: {path}")
        self._rows = load_samples(path)
        self._pos = 0
        L.info("replay sensor: %d samples from %s", len(self._rows), path)
        yield self


__all__ = ["ReplaySensor", "load_samples", "write_samples"]
