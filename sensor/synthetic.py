# -- coding: utf-8 --

import logging
from contextlib import contextmanager
from typing import Iterator

import numpy as np

from core.contracts import ColorSample, Interval, SignalState
from decode.morse import encode_text
from decode.settings import ThresholdConfig
from sensor.base import BaseSensor, SensorConfig, register_sensor

L = logging.getLogger("morse_runtime.sensor.synthetic")


def build_intervals(
    text: str, cfg: ThresholdConfig, *, lead_in_ms: float = 0.0, repeat: int = 1
) -> list[Interval]:
    """Intervals for `text` repeated `repeat` times, words apart, after a lead-in gap."""
    intervals: list[Interval] = []
    t = 0.0
    if lead_in_ms > 0:
        intervals.append(Interval(SignalState.GAP, 0.0, float(lead_in_ms)))
        t = float(lead_in_ms)
    for i in range(max(1, int(repeat))):
        if i:
            intervals.append(Interval(SignalState.GAP, t, cfg.word_gap_ms))
            t += cfg.word_gap_ms
        chunk = encode_text(text, cfg, start_ms=t, trailing_gap=False)
        intervals.extend(chunk)
        if chunk:
            t = chunk[-1].end_ms
    # Tail of silence so the last mark closes inside the stream.
    intervals.append(Interval(SignalState.GAP, t, cfg.letter_gap_ms))
    return intervals


def render_samples(
    intervals: list[Interval],
    cfg: ThresholdConfig,
    *,
    period_ms: float,
    noise_std: float = 0.0,
    rng: np.random.Generator | None = None,
) -> Iterator[ColorSample]:
    if not intervals:
        return
    on = np.array(cfg.on_color, dtype=np.float64)
    off = np.array(cfg.off_color, dtype=np.float64)
    end_ms = intervals[-1].end_ms
    idx = 0
    k = 0
    while True:
        t = k * period_ms
        if t >= end_ms:
            return
        while idx < len(intervals) - 1 and t >= intervals[idx].end_ms:
            idx += 1
        base = on if intervals[idx].state is SignalState.MARK else off
        if noise_std > 0 and rng is not None:
            base = base + rng.normal(0.0, noise_std, size=3)
        rgb = np.clip(np.rint(base), 0, 255).astype(int)
        yield ColorSample(timestamp_ms=t, rgb=(int(rgb[0]), int(rgb[1]), int(rgb[2])))
        k += 1


@register_sensor("synthetic")
class SyntheticSensor(BaseSensor):
    """Keys configured text as a flashing light, sampled at a fixed period."""

    name = "synthetic"

    def __init__(self, cfg: SensorConfig):
        super().__init__(cfg)
        self._samples: Iterator[ColorSample] | None = None

    def read_sample(self) -> ColorSample | None:
        with self.lock:
            if self._samples is None:
                return None
            return next(self._samples, None)

    @contextmanager
    def session(self):
        decoder = self.cfg.decoder or ThresholdConfig()
        intervals = build_intervals(
            self.cfg.text,
            decoder,
            lead_in_ms=self.cfg.lead_in_ms,
            repeat=self.cfg.repeat,
        )
        rng = np.random.default_rng(self.cfg.seed)
        self._samples = render_samples(
            intervals,
            decoder,
            period_ms=self.cfg.sample_period_ms,
            noise_std=self.cfg.noise_std,
            rng=rng,
        )
        L.info(
            "synthetic sensor: text=%r repeat=%d period=%.1fms noise=%.1f",
            self.cfg.text,
            self.cfg.repeat,
            self.cfg.sample_period_ms,
            self.cfg.noise_std,
        )
        try:
            yield self
        finally:
            self._samples = None


__all__ = ["SyntheticSensor", "build_intervals", "render_samples"]
