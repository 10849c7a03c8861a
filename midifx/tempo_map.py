from __future__ import annotations

import math


def samples_per_beat(sample_rate: float, bpm: float) -> int:
    """Samples in one quarter note, truncated. Tempo is clamped to >= 1 BPM."""
    b = max(1.0, float(bpm))
    return max(0, int(float(sample_rate) * 60.0 / b))


def grid_samples(sample_rate: float, bpm: float, divisions: float) -> int:
    """Size of one 1/divisions-of-a-bar cell in samples (4/4 assumed).

    Multiply first, then integer-divide: spb * 4 // divisions. The divisor is
    truncated and clamped to >= 1, and the result is clamped to >= 1 so
    callers can divide by it.
    """
    div = max(1, int(divisions))
    return max(1, samples_per_beat(sample_rate, bpm) * 4 // div)


def ms_to_samples(ms: float, sample_rate: float) -> int:
    return int(float(ms) / 1000.0 * float(sample_rate))


def round_half_away(x: float) -> int:
    """Round to nearest integer, ties away from zero (not banker's rounding)."""
    if x >= 0:
        return int(math.floor(x + 0.5))
    return -int(math.floor(-x + 0.5))
