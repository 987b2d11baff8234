"""Majority-vote smoothing of per-frame speech flags."""

from collections.abc import Sequence

import numpy as np

# Detectors always run on 10 ms frames; a coarser 20/30 ms "feel" is
# emulated by voting over 2/3 neighbouring frames.
_WINDOW_FOR_FRAME_MS = {10: 1, 20: 2, 30: 3}


def smoothing_window_for_frame_ms(frame_ms: int) -> int:
    """Map an external frame length (10/20/30 ms) to a smoothing window."""
    return _WINDOW_FOR_FRAME_MS.get(frame_ms, 1)


def smooth_flags(flags: Sequence[bool], window_size: int) -> list[bool]:
    """Replace each flag by the majority vote of its neighbourhood.

    The window for index i is [i - half, i + half] with
    half = window_size // 2, truncated at both ends of the sequence.
    A frame is speech when at least ceil(window_total / 2) frames in its
    window are speech, so ties resolve to speech.

    Args:
        flags: Per-frame speech decisions.
        window_size: Window length in frames. Values <= 1 disable smoothing.

    Returns:
        A new list of the same length.
    """
    if window_size <= 1 or len(flags) == 0:
        return list(flags)

    values = np.asarray(flags, dtype=np.int64)
    n = len(values)
    half = window_size // 2

    prefix = np.concatenate(([0], np.cumsum(values)))
    index = np.arange(n)
    lo = np.maximum(0, index - half)
    hi = np.minimum(n - 1, index + half)

    counts = prefix[hi + 1] - prefix[lo]
    totals = hi - lo + 1
    return [bool(v) for v in counts >= (totals + 1) // 2]
