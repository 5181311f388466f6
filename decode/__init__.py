from .classifier import MarkGapClassifier
from .diagnostics import DiagnosticsTable
from .morse import MORSE_TABLE, DecodedOutput, DecoderState, MorseDecoder, encode_text
from .normalize import normalize, threshold_color
from .session import DecodeSession, StepResult, decode_intervals
from .settings import ThresholdConfig, build_threshold_config
from .threshold import (
    AdaptiveThreshold,
    StaticThreshold,
    ThresholdState,
    create_threshold_strategy,
)
from .timing import classify

__all__ = [
    "MarkGapClassifier",
    "DiagnosticsTable",
    "MORSE_TABLE",
    "DecodedOutput",
    "DecoderState",
    "MorseDecoder",
    "encode_text",
    "normalize",
    "threshold_color",
    "DecodeSession",
    "StepResult",
    "decode_intervals",
    "ThresholdConfig",
    "build_threshold_config",
    "AdaptiveThreshold",
    "StaticThreshold",
    "ThresholdState",
    "create_threshold_strategy",
    "classify",
]
