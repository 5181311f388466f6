"""Morse table, push-driven decoder state machine, and the matching encoder."""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping

from core.contracts import (
    WORD_BREAK,
    Interval,
    Label,
    LabeledInterval,
    SignalState,
    UnknownSymbol,
)

from .settings import ThresholdConfig

L = logging.getLogger("morse_runtime.decode.morse")

# International Morse Code (ITU-R M.1677-1): letters, digits, punctuation.
MORSE_TABLE: Mapping[str, str] = MappingProxyType(
    {
        ".-": "A",
        "-...": "B",
        "-.-.": "C",
        "-..": "D",
        ".": "E",
        "..-.": "F",
        "--.": "G",
        "....": "H",
        "..": "I",
        ".---": "J",
        "-.-": "K",
        ".-..": "L",
        "--": "M",
        "-.": "N",
        "---": "O",
        ".--.": "P",
        "--.-": "Q",
        ".-.": "R",
        "...": "S",
        "-": "T",
        "..-": "U",
        "...-": "V",
        ".--": "W",
        "-..-": "X",
        "-.--": "Y",
        "--..": "Z",
        "-----": "0",
        ".----": "1",
        "..---": "2",
        "...--": "3",
        "....-": "4",
        ".....": "5",
        "-....": "6",
        "--...": "7",
        "---..": "8",
        "----.": "9",
        ".-.-.-": ".",
        "--..--": ",",
        "..--..": "?",
        ".----.": "'",
        "-.-.--": "!",
        "-..-.": "/",
        "-.--.": "(",
        "-.--.-": ")",
        ".-...": "&",
        "---...": ":",
        "-.-.-.": ";",
        "-...-": "=",
        ".-.-.": "+",
        "-....-": "-",
        "..--.-": "_",
        ".-..-.": '"',
        "...-..-": "$",
        ".--.-.": "@",
    }
)

CHAR_TO_CODE: Mapping[str, str] = MappingProxyType(
    {char: code for code, char in MORSE_TABLE.items()}
)

_SYMBOL_CHARS = {Label.DIT: ".", Label.DAH: "-"}


class DecoderState(Enum):
    IDLE = "idle"
    IN_SYMBOL = "in_symbol"
    AWAITING_FLUSH = "awaiting_flush"


class DecodedOutput:
    """Append-only decoded characters and explicit word breaks."""

    def __init__(self):
        self._items: List[str] = []

    def append(self, item: str):
        self._items.append(item)

    @property
    def items(self) -> tuple[str, ...]:
        return tuple(self._items)

    @property
    def text(self) -> str:
        return "".join(self._items)

    def __len__(self) -> int:
        return len(self._items)


class MorseDecoder:
    """
    Push-driven decoder: every labeled interval is already timed, so the
    decoder holds no clock. Marks accumulate into the symbol buffer, letter
    and word gaps flush it. Gaps arriving on an empty buffer do nothing, which
    keeps leading silence and repeated long gaps out of the output.
    """

    def __init__(
        self,
        table: Mapping[str, str] = MORSE_TABLE,
        placeholder: str = "#",
        report_sink: Callable[[UnknownSymbol], None] | None = None,
    ):
        self.table = table
        self.placeholder = placeholder
        self.report_sink = report_sink
        self.output = DecodedOutput()
        self._buffer: List[str] = []
        self._code_tokens: List[str] = []
        self._state = DecoderState.IDLE
        self.unknown_count = 0

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    @property
    def code(self) -> str:
        tokens = list(self._code_tokens)
        if self._buffer:
            tokens.append(self.buffer)
        return " ".join(tokens)

    def push(self, labeled: LabeledInterval) -> list[str]:
        """Apply one labeled interval; return the items appended to the output."""
        label = labeled.label
        if label in _SYMBOL_CHARS:
            self._buffer.append(_SYMBOL_CHARS[label])
            self._state = DecoderState.IN_SYMBOL
            return []
        if label is Label.INTRA_GAP:
            if self._buffer:
                self._state = DecoderState.AWAITING_FLUSH
            return []
        if label is Label.LETTER_GAP:
            return self._flush_letter(labeled.interval.start_ms)
        if label is Label.WORD_GAP:
            emitted = self._flush_letter(labeled.interval.start_ms)
            if emitted:
                self.output.append(WORD_BREAK)
                self._code_tokens.append("/")
                emitted.append(WORD_BREAK)
            return emitted
        # NOISE never reaches the buffer.
        return []

    def feed(self, labeled: Iterable[LabeledInterval]) -> list[str]:
        emitted: list[str] = []
        for item in labeled:
            emitted.extend(self.push(item))
        return emitted

    def flush(self, at_ms: float | None = None) -> list[str]:
        """Commit a pending character at end of stream."""
        return self._flush_letter(at_ms)

    def _flush_letter(self, at_ms: float | None) -> list[str]:
        if not self._buffer:
            return []
        symbols = "".join(self._buffer)
        self._buffer.clear()
        self._state = DecoderState.IDLE
        char = self.table.get(symbols)
        if char is None:
            char = self.placeholder
            self.unknown_count += 1
            report = UnknownSymbol(symbols=symbols, at_ms=at_ms, placeholder=char)
            L.info("unknown symbol %r decoded as %r", symbols, char)
            if self.report_sink is not None:
                self.report_sink(report)
        self.output.append(char)
        self._code_tokens.append(symbols)
        return [char]


def encode_text(
    text: str,
    cfg: ThresholdConfig,
    *,
    start_ms: float = 0.0,
    trailing_gap: bool = True,
) -> list[Interval]:
    """
    Render text as exact mark/gap intervals using the configured durations.

    Runs of whitespace become one word gap. With `trailing_gap` the sequence
    ends in a letter gap so a decoder fed these intervals flushes the last
    character.
    """
    words = str(text).upper().split()
    intervals: list[Interval] = []
    t = float(start_ms)

    def _add(state: SignalState, duration: float):
        nonlocal t
        intervals.append(Interval(state=state, start_ms=t, duration_ms=duration))
        t += duration

    for wi, word in enumerate(words):
        if wi:
            _add(SignalState.GAP, cfg.word_gap_ms)
        for ci, char in enumerate(word):
            code = CHAR_TO_CODE.get(char)
            if code is None:
                raise ValueError(f"character {char!r} has no Morse encoding")
            if ci:
                _add(SignalState.GAP, cfg.letter_gap_ms)
            for si, symbol in enumerate(code):
                if si:
                    _add(SignalState.GAP, cfg.intra_gap_ms)
                _add(SignalState.MARK, cfg.dit_ms if symbol == "." else cfg.dah_ms)
    if intervals and trailing_gap:
        _add(SignalState.GAP, cfg.letter_gap_ms)
    return intervals


__all__ = [
    "MORSE_TABLE",
    "CHAR_TO_CODE",
    "DecoderState",
    "DecodedOutput",
    "MorseDecoder",
    "encode_text",
]
