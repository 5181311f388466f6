import logging
from typing import Iterable, Iterator, Tuple

from core.contracts import Interval, SignalState

from .threshold import StaticThreshold, ThresholdState, ThresholdStrategy

L = logging.getLogger("morse_runtime.decode.classifier")


class MarkGapClassifier:
    """
    Turn an intensity stream into closed mark/gap intervals.

    The first sample only fixes the initial state; every later state change
    closes the running interval and starts a new one at the change timestamp.
    The interval still running when the stream stops is never emitted.
    """

    def __init__(self, strategy: ThresholdStrategy | None = None):
        self.strategy = strategy or StaticThreshold()
        self.reset()

    def reset(self):
        self._threshold_state: ThresholdState = self.strategy.initial()
        self._state: SignalState | None = None
        self._last_transition_ms: float | None = None
        self._last_ts: float | None = None
        self._intensity: float | None = None

    @property
    def state(self) -> SignalState | None:
        return self._state

    @property
    def threshold(self) -> float:
        return self._threshold_state.threshold

    @property
    def intensity(self) -> float | None:
        return self._intensity

    @property
    def last_transition_ms(self) -> float | None:
        return self._last_transition_ms

    def push(self, timestamp_ms: float, intensity: float) -> Interval | None:
        ts = float(timestamp_ms)
        if self._last_ts is not None and ts < self._last_ts:
            L.debug(
                "sample out of order ignored: ts=%.3f last=%.3f", ts, self._last_ts
            )
            return None
        self._last_ts = ts
        self._intensity = float(intensity)
        self._threshold_state = self.strategy.step(self._threshold_state, intensity)
        state = (
            SignalState.MARK
            if self._intensity >= self._threshold_state.threshold
            else SignalState.GAP
        )

        if self._state is None:
            self._state = state
            self._last_transition_ms = ts
            return None
        if state is self._state:
            return None

        start = self._last_transition_ms if self._last_transition_ms is not None else ts
        closed = Interval(state=self._state, start_ms=start, duration_ms=ts - start)
        self._state = state
        self._last_transition_ms = ts
        return closed

    def feed(self, samples: Iterable[Tuple[float, float]]) -> Iterator[Interval]:
        for ts, intensity in samples:
            interval = self.push(ts, intensity)
            if interval is not None:
                yield interval


__all__ = ["MarkGapClassifier"]
