"""DecodeSession: one sample in, everything downstream updated synchronously."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable

from core.contracts import (
    ColorSample,
    Interval,
    Label,
    LabeledInterval,
    NoiseInterval,
    UnknownSymbol,
)

from .classifier import MarkGapClassifier
from .diagnostics import DEFAULT_MAX_ROWS, DiagnosticsTable
from .morse import MorseDecoder
from .normalize import normalize, threshold_color
from .settings import ThresholdConfig
from .threshold import ThresholdStrategy, create_threshold_strategy
from .timing import classify

L = logging.getLogger("morse_runtime.decode.session")

# Samples closer together than this fraction of a dit are needed for stable timing.
MIN_SAMPLES_PER_DIT = 3.0
_RATE_WINDOW = 32


@dataclass
class StepResult:
    intensity: float
    threshold: float
    labeled: LabeledInterval | None = None
    decoded: list[str] = field(default_factory=list)
    reports: list[Any] = field(default_factory=list)


class DecodeSession:
    """
    Owns the classifier, decoder, and diagnostics for one decoding run.

    The ThresholdConfig is validated on construction (ConfigError on failure)
    and stays fixed for the session's lifetime; a config change means a new
    session. Stopping simply means no more `push()` calls: the running
    interval and any pending symbols are dropped unless `flush()` is called.
    """

    def __init__(
        self,
        config: ThresholdConfig,
        *,
        strategy: ThresholdStrategy | None = None,
        max_diagnostic_rows: int | None = DEFAULT_MAX_ROWS,
    ):
        self.config = config.validate()
        self.refs = config.refs
        self.classifier = MarkGapClassifier(strategy or create_threshold_strategy(config))
        self.diagnostics = DiagnosticsTable(max_rows=max_diagnostic_rows)
        self._pending_reports: list[Any] = []
        self.decoder = MorseDecoder(
            placeholder=config.unknown_placeholder,
            report_sink=self._on_unknown,
        )
        self.sample_count = 0
        self._sample_times: deque[float] = deque(maxlen=_RATE_WINDOW)
        self._rate_warned = False
        L.debug(
            "session start: strategy=%s dit=%g dah=%g letter=%g word=%g tol=%g",
            self.classifier.strategy.name,
            config.dit_ms,
            config.dah_ms,
            config.letter_gap_ms,
            config.word_gap_ms,
            config.tolerance,
        )

    # ---- read API ----
    @property
    def output(self):
        return self.decoder.output

    @property
    def text(self) -> str:
        return self.decoder.output.text

    @property
    def code(self) -> str:
        return self.decoder.code

    @property
    def intensity(self) -> float | None:
        return self.classifier.intensity

    @property
    def threshold(self) -> float:
        return self.classifier.threshold

    def threshold_color(self):
        return threshold_color(self.refs, self.threshold)

    @property
    def sample_rate_hz(self) -> float | None:
        times = self._sample_times
        if len(times) < 2:
            return None
        span = times[-1] - times[0]
        if span <= 0:
            return None
        return (len(times) - 1) * 1000.0 / span

    # ---- pipeline ----
    def push(self, sample: ColorSample) -> StepResult:
        intensity = normalize(sample, self.refs)
        self.sample_count += 1
        self._track_rate(sample.timestamp_ms)
        interval = self.classifier.push(sample.timestamp_ms, intensity)
        result = StepResult(intensity=intensity, threshold=self.classifier.threshold)
        if interval is not None:
            self.push_interval(interval, result)
        return result

    def push_interval(self, interval: Interval, result: StepResult | None = None) -> StepResult:
        """Label and decode one closed interval (skips the sampling stage)."""
        if result is None:
            result = StepResult(
                intensity=self.classifier.intensity or 0.0,
                threshold=self.classifier.threshold,
            )
        labeled = classify(interval, self.config)
        result.labeled = labeled
        self.diagnostics.record(labeled)
        if labeled.label is Label.NOISE:
            report = NoiseInterval(interval=interval)
            self.diagnostics.record_noise(report)
            result.reports.append(report)
            L.debug(
                "noise %s interval %.1fms @ %.1f",
                interval.state.value,
                interval.duration_ms,
                interval.start_ms,
            )
            return result

        result.decoded = self.decoder.push(labeled)
        result.reports.extend(self._take_reports())
        return result

    def flush(self) -> StepResult:
        """End of stream: commit a pending character, if any."""
        result = StepResult(
            intensity=self.classifier.intensity or 0.0,
            threshold=self.classifier.threshold,
        )
        result.decoded = self.decoder.flush(self.classifier.last_transition_ms)
        result.reports.extend(self._take_reports())
        return result

    def _on_unknown(self, report: UnknownSymbol):
        self.diagnostics.record_unknown(report)
        self._pending_reports.append(report)

    def _take_reports(self) -> list[Any]:
        reports = self._pending_reports
        self._pending_reports = []
        return reports

    def _track_rate(self, ts: float):
        self._sample_times.append(float(ts))
        if self._rate_warned or len(self._sample_times) < self._sample_times.maxlen:
            return
        rate = self.sample_rate_hz
        if rate is None:
            return
        period_ms = 1000.0 / rate
        if period_ms * MIN_SAMPLES_PER_DIT > self.config.dit_ms:
            self._rate_warned = True
            L.warning(
                "sample period %.1fms is too coarse for dit=%gms (want <= %.1fms)",
                period_ms,
                self.config.dit_ms,
                self.config.dit_ms / MIN_SAMPLES_PER_DIT,
            )


def decode_intervals(intervals: Iterable[Interval], config: ThresholdConfig) -> DecodeSession:
    session = DecodeSession(config)
    for interval in intervals:
        session.push_interval(interval)
    return session


__all__ = ["DecodeSession", "StepResult", "decode_intervals", "MIN_SAMPLES_PER_DIT"]
