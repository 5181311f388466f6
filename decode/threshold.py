"""Threshold strategies for the mark/gap classifier.

Both strategies are pure: `step(state, intensity)` returns a new
`ThresholdState` and never mutates the one it was given, so a classifier can
replay history deterministically.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from core.registry import NamedRegistry

from .settings import ThresholdConfig


@dataclass(frozen=True, slots=True)
class ThresholdState:
    threshold: float
    low: float | None = None
    high: float | None = None
    samples: int = 0


class ThresholdStrategy(Protocol):
    name: str

    def initial(self) -> ThresholdState: ...

    def step(self, state: ThresholdState, intensity: float) -> ThresholdState: ...


_registry: NamedRegistry[Callable[[ThresholdConfig], ThresholdStrategy]] = (
    NamedRegistry(package=__package__ or "decode", label="threshold strategy")
)


def register_threshold(name: str):
    return _registry.register(name)


@register_threshold("static")
class StaticThreshold:
    name = "static"

    def __init__(self, value: float = 0.5):
        self.value = float(value)

    @classmethod
    def from_config(cls, cfg: ThresholdConfig) -> "StaticThreshold":
        return cls(cfg.threshold)

    def initial(self) -> ThresholdState:
        return ThresholdState(threshold=self.value)

    def step(self, state: ThresholdState, intensity: float) -> ThresholdState:
        return ThresholdState(threshold=self.value, samples=state.samples + 1)


@register_threshold("adaptive")
class AdaptiveThreshold:
    """
    Exponentially weighted min/max tracking.

    A new extreme is adopted at once (fast attack); otherwise each tracker
    decays toward the sample by `alpha`. The threshold sits halfway between the
    trackers, but only once they are at least `min_contrast` apart, so a long
    steady mark or gap does not collapse the threshold onto the signal.
    """

    name = "adaptive"

    def __init__(self, initial: float = 0.5, alpha: float = 0.02, min_contrast: float = 0.2):
        self.initial_threshold = float(initial)
        self.alpha = float(alpha)
        self.min_contrast = float(min_contrast)

    @classmethod
    def from_config(cls, cfg: ThresholdConfig) -> "AdaptiveThreshold":
        return cls(cfg.threshold, cfg.adaptive_alpha, cfg.adaptive_min_contrast)

    def initial(self) -> ThresholdState:
        return ThresholdState(threshold=self.initial_threshold)

    def step(self, state: ThresholdState, intensity: float) -> ThresholdState:
        x = float(intensity)
        if state.low is None or state.high is None:
            return ThresholdState(
                threshold=state.threshold, low=x, high=x, samples=state.samples + 1
            )
        high = x if x >= state.high else state.high + self.alpha * (x - state.high)
        low = x if x <= state.low else state.low + self.alpha * (x - state.low)
        threshold = state.threshold
        if (high - low) >= self.min_contrast:
            threshold = (high + low) / 2.0
        return ThresholdState(
            threshold=threshold, low=low, high=high, samples=state.samples + 1
        )


def create_threshold_strategy(cfg: ThresholdConfig) -> ThresholdStrategy:
    name = "adaptive" if cfg.adaptive else "static"
    factory = _registry.resolve(name)
    return factory.from_config(cfg)


__all__ = [
    "ThresholdState",
    "ThresholdStrategy",
    "StaticThreshold",
    "AdaptiveThreshold",
    "register_threshold",
    "create_threshold_strategy",
]
