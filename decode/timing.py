from typing import Tuple

from core.contracts import Interval, Label, LabeledInterval, SignalState

from .settings import ThresholdConfig


def references(state: SignalState, cfg: ThresholdConfig) -> Tuple[Tuple[Label, float], ...]:
    """Duration references for a state, shortest first."""
    if state is SignalState.MARK:
        return ((Label.DIT, cfg.dit_ms), (Label.DAH, cfg.dah_ms))
    return (
        (Label.INTRA_GAP, cfg.intra_gap_ms),
        (Label.LETTER_GAP, cfg.letter_gap_ms),
        (Label.WORD_GAP, cfg.word_gap_ms),
    )


def acceptance_window(state: SignalState, cfg: ThresholdConfig) -> Tuple[float, float]:
    refs = references(state, cfg)
    lo = refs[0][1] * (1.0 - cfg.tolerance)
    hi = refs[-1][1] * (1.0 + cfg.tolerance)
    return lo, hi


def classify(interval: Interval, cfg: ThresholdConfig) -> LabeledInterval:
    """
    Label an interval by its nearest duration reference.

    Durations outside the tolerance-widened window around the state's
    references are NOISE. A mark exactly halfway between dit and dah is a
    dah. A gap exactly halfway takes the shorter reference, so equal gap
    references (letter gap == dit) resolve to the earlier label.
    """
    duration = float(interval.duration_ms)
    lo, hi = acceptance_window(interval.state, cfg)
    if duration < lo or duration > hi:
        return LabeledInterval(interval=interval, label=Label.NOISE)

    longer_wins_ties = interval.state is SignalState.MARK
    best_label = None
    best_dist = 0.0
    for label, ref in references(interval.state, cfg):
        dist = abs(duration - ref)
        if (
            best_label is None
            or dist < best_dist
            or (longer_wins_ties and dist == best_dist)
        ):
            best_label, best_dist = label, dist
    return LabeledInterval(interval=interval, label=best_label)


__all__ = ["classify", "references", "acceptance_window"]
