"""Immutable per-session decoder settings and their validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.config.schema import ConfigError
from core.contracts import RGB, ReferenceColors


@dataclass(frozen=True, slots=True)
class ThresholdConfig:
    on_color: RGB = (255, 255, 255)
    off_color: RGB = (0, 0, 0)
    threshold: float = 0.5
    adaptive: bool = False
    dit_ms: float = 100.0
    dah_ms: float = 300.0
    letter_gap_ms: float = 300.0
    word_gap_ms: float = 700.0
    tolerance: float = 0.5
    adaptive_alpha: float = 0.02
    adaptive_min_contrast: float = 0.2
    unknown_placeholder: str = "#"

    @property
    def refs(self) -> ReferenceColors:
        return ReferenceColors(on_color=self.on_color, off_color=self.off_color)

    @property
    def intra_gap_ms(self) -> float:
        # The gap between elements of one character lasts one dit.
        return self.dit_ms

    def validate(self) -> "ThresholdConfig":
        for name in ("dit_ms", "dah_ms", "letter_gap_ms", "word_gap_ms"):
            if not float(getattr(self, name)) > 0.0:
                raise ConfigError(f"decoder.{name} must be > 0")
        if not self.dit_ms < self.dah_ms:
            raise ConfigError(
                f"decoder.dit_ms ({self.dit_ms:g}) must be < decoder.dah_ms ({self.dah_ms:g})"
            )
        if not self.letter_gap_ms < self.word_gap_ms:
            raise ConfigError(
                f"decoder.letter_gap_ms ({self.letter_gap_ms:g}) must be < "
                f"decoder.word_gap_ms ({self.word_gap_ms:g})"
            )
        if self.intra_gap_ms > self.letter_gap_ms:
            raise ConfigError(
                f"decoder.letter_gap_ms ({self.letter_gap_ms:g}) must be >= "
                f"decoder.dit_ms ({self.dit_ms:g})"
            )
        if not (0.0 <= self.threshold <= 1.0):
            raise ConfigError("decoder.threshold must be in [0, 1]")
        if not (0.0 <= self.tolerance < 1.0):
            raise ConfigError("decoder.tolerance must be in [0, 1)")
        if not (0.0 < self.adaptive_alpha <= 1.0):
            raise ConfigError("decoder.adaptive_alpha must be in (0, 1]")
        if not (0.0 < self.adaptive_min_contrast <= 1.0):
            raise ConfigError("decoder.adaptive_min_contrast must be in (0, 1]")
        if all(on == off for on, off in zip(self.on_color, self.off_color)):
            raise ConfigError(
                "decoder.on_color and decoder.off_color must differ on at least one channel"
            )
        if len(self.unknown_placeholder) != 1:
            raise ConfigError("decoder.unknown_placeholder must be a single character")
        return self


def build_threshold_config(block: Any) -> ThresholdConfig:
    """Convert a `decoder` config block (dataclass or namespace) into a validated snapshot."""
    try:
        cfg = ThresholdConfig(
            on_color=_rgb("decoder.on_color", block.on_color),
            off_color=_rgb("decoder.off_color", block.off_color),
            threshold=float(block.threshold),
            adaptive=bool(block.adaptive),
            dit_ms=float(block.dit_ms),
            dah_ms=float(block.dah_ms),
            letter_gap_ms=float(block.letter_gap_ms),
            word_gap_ms=float(block.word_gap_ms),
            tolerance=float(block.tolerance),
            adaptive_alpha=float(block.adaptive_alpha),
            adaptive_min_contrast=float(block.adaptive_min_contrast),
            unknown_placeholder=str(block.unknown_placeholder),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"decoder settings invalid: {e}") from e
    return cfg.validate()


def _rgb(name: str, value: Any) -> RGB:
    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if len(text) != 6:
            raise ConfigError(f"{name} must be an [r, g, b] list or '#rrggbb'")
        try:
            return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
        except ValueError as e:
            raise ConfigError(f"{name} is not a valid hex colour: {value!r}") from e
    try:
        channels = [int(c) for c in value]
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an [r, g, b] list") from e
    if len(channels) != 3:
        raise ConfigError(f"{name} must have exactly 3 channels")
    for c in channels:
        if not (0 <= c <= 255):
            raise ConfigError(f"{name} channels must be 0..255")
    return (channels[0], channels[1], channels[2])


__all__ = ["ThresholdConfig", "build_threshold_config"]
