from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any

import numpy as np

from core.contracts import Label, LabeledInterval, NoiseInterval, SignalState, UnknownSymbol

DEFAULT_MAX_ROWS = 128


@dataclass(frozen=True, slots=True)
class DiagnosticsRow:
    label: Label
    state: SignalState
    duration_ms: float


class DiagnosticsTable:
    """
    Observed interval durations for calibration feedback.

    Read-only with respect to the pipeline: recording never touches classifier
    or decoder state. Rows are bounded (oldest dropped) unless `max_rows` is None.
    """

    def __init__(self, max_rows: int | None = DEFAULT_MAX_ROWS):
        self._rows: deque[DiagnosticsRow] = deque(maxlen=max_rows)
        self.noise_count = 0
        self.unknown_count = 0
        self.unknown_symbols: deque[str] = deque(maxlen=16)

    def record(self, labeled: LabeledInterval):
        self._rows.append(
            DiagnosticsRow(
                label=labeled.label,
                state=labeled.interval.state,
                duration_ms=float(labeled.interval.duration_ms),
            )
        )

    def record_noise(self, report: NoiseInterval):
        self.noise_count += 1

    def record_unknown(self, report: UnknownSymbol):
        self.unknown_count += 1
        self.unknown_symbols.append(report.symbols)

    @property
    def rows(self) -> list[DiagnosticsRow]:
        return list(self._rows)

    def durations(self, label: Label) -> np.ndarray:
        return np.array(
            [r.duration_ms for r in self._rows if r.label is label], dtype=np.float64
        )

    def summary(self) -> dict[str, Any]:
        labels: dict[str, dict[str, float | int]] = {}
        for label in Label:
            values = self.durations(label)
            if values.size == 0:
                continue
            labels[label.value] = {
                "count": int(values.size),
                "min_ms": float(values.min()),
                "max_ms": float(values.max()),
                "mean_ms": float(values.mean()),
            }
        return {
            "rows": len(self._rows),
            "labels": labels,
            "noise": self.noise_count,
            "unknown": self.unknown_count,
            "unknown_symbols": list(self.unknown_symbols),
        }

    def render(self) -> str:
        """Two-column text table of mark and gap durations, longest first."""
        marks = sorted(
            (int(round(r.duration_ms)) for r in self._rows if r.state is SignalState.MARK),
            reverse=True,
        )
        gaps = sorted(
            (int(round(r.duration_ms)) for r in self._rows if r.state is SignalState.GAP),
            reverse=True,
        )
        lines = ["Durations (ms)", "Marks Gaps", "----- -----"]
        for i in range(max(len(marks), len(gaps))):
            mark = f"{marks[i]:05d}" if i < len(marks) else "     "
            gap = f" {gaps[i]:05d}" if i < len(gaps) else ""
            lines.append(f"{mark}{gap}".rstrip())
        return "\n".join(lines)

    def clear(self):
        self._rows.clear()
        self.noise_count = 0
        self.unknown_count = 0
        self.unknown_symbols.clear()


__all__ = ["DiagnosticsRow", "DiagnosticsTable", "DEFAULT_MAX_ROWS"]
