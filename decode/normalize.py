from core.contracts import RGB, ColorSample, ReferenceColors


def _channel(value: float, off: float, on: float) -> float:
    if on == off:
        # Degenerate channel carries no information.
        return 0.5
    t = (float(value) - off) / (on - off)
    if t <= 0.0:
        return 0.0
    if t >= 1.0:
        return 1.0
    return t


def normalize(sample: ColorSample, refs: ReferenceColors) -> float:
    """
    Map a sensor colour onto [0, 1]: 0 at the off colour, 1 at the on colour.
    Each channel is inverse-lerped and clamped independently, then averaged.
    """
    r, g, b = sample.rgb
    on, off = refs.on_color, refs.off_color
    total = (
        _channel(r, off[0], on[0])
        + _channel(g, off[1], on[1])
        + _channel(b, off[2], on[2])
    )
    return total / 3.0


def threshold_color(refs: ReferenceColors, threshold: float) -> RGB:
    """Colour sitting at `threshold` on the off -> on line (for status swatches)."""
    x = min(1.0, max(0.0, float(threshold)))
    on, off = refs.on_color, refs.off_color
    return (
        int(round(off[0] + (on[0] - off[0]) * x)),
        int(round(off[1] + (on[1] - off[1]) * x)),
        int(round(off[2] + (on[2] - off[2]) * x)),
    )


__all__ = ["normalize", "threshold_color"]
