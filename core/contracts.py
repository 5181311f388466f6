"""Data contracts shared by sensor, decode, and output channels."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

RGB = tuple[int, int, int]


class SignalState(Enum):
    MARK = "mark"
    GAP = "gap"


class Label(Enum):
    DIT = "dit"
    DAH = "dah"
    INTRA_GAP = "intra_gap"
    LETTER_GAP = "letter_gap"
    WORD_GAP = "word_gap"
    NOISE = "noise"

    @property
    def is_mark(self) -> bool:
        return self in (Label.DIT, Label.DAH)


@dataclass(frozen=True, slots=True)
class ColorSample:
    timestamp_ms: float
    rgb: RGB


@dataclass(frozen=True, slots=True)
class ReferenceColors:
    on_color: RGB
    off_color: RGB


@dataclass(frozen=True, slots=True)
class Interval:
    state: SignalState
    start_ms: float
    duration_ms: float

    @property
    def end_ms(self) -> float:
        return self.start_ms + self.duration_ms


@dataclass(frozen=True, slots=True)
class LabeledInterval:
    interval: Interval
    label: Label

    @property
    def duration_ms(self) -> float:
        return self.interval.duration_ms


@dataclass(frozen=True, slots=True)
class NoiseInterval:
    """Interval outside every acceptance band; excluded from decoding."""

    interval: Interval


@dataclass(frozen=True, slots=True)
class UnknownSymbol:
    """Completed dit/dah sequence with no table entry."""

    symbols: str
    at_ms: float | None = None
    placeholder: str = "#"


# Explicit marker appended to decoded output between words.
WORD_BREAK = " "


@dataclass(frozen=True, slots=True)
class SessionUpdate:
    """Immutable per-sample snapshot handed from the sensor thread to outputs."""

    seq: int = 0
    session_id: int = 0
    timestamp_ms: float = 0.0
    intensity: float = 0.0
    threshold: float = 0.0
    threshold_rgb: RGB | None = None
    state: str = ""
    decoded: tuple[str, ...] = ()
    labeled: tuple[LabeledInterval, ...] = ()
    reports: tuple[Any, ...] = ()
    text: str = ""
    code: str = ""
    sample_rate_hz: float | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)
    diagnostics_table: str = ""
    end_of_stream: bool = False

    @property
    def has_content(self) -> bool:
        return bool(self.decoded or self.labeled or self.reports or self.end_of_stream)


__all__ = [
    "RGB",
    "SignalState",
    "Label",
    "ColorSample",
    "ReferenceColors",
    "Interval",
    "LabeledInterval",
    "NoiseInterval",
    "UnknownSymbol",
    "WORD_BREAK",
    "SessionUpdate",
]
