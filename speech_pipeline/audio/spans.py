"""Speech span construction from per-frame flags.

Runs of speech frames become time spans. Runs shorter than the minimum
speech length are dropped, long runs are split into pieces of at most
max_chunk_sec, and every piece is padded on both sides. Padding may
push a span past the end of the recording; whoever cuts the audio
truncates it there.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class Span:
    """A padded interval of the source recording, in seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


def extract_raw_spans(
    flags: Sequence[bool],
    frame_duration: float,
    min_speech_sec: float,
) -> list[tuple[float, float]]:
    """Find runs of speech frames that last at least min_speech_sec.

    A run ending before a non-speech frame at index i ends at
    i * frame_duration. A run that reaches the last frame ends at
    (last_index + 1) * frame_duration, covering that frame in full.
    """
    raw: list[tuple[float, float]] = []
    run_start: float | None = None
    last_index = len(flags) - 1

    for i, is_speech in enumerate(flags):
        if is_speech and run_start is None:
            run_start = i * frame_duration
        if run_start is None:
            continue
        if is_speech and i == last_index:
            end = (i + 1) * frame_duration
        elif not is_speech:
            end = i * frame_duration
        else:
            continue
        if end - run_start >= min_speech_sec:
            raw.append((run_start, end))
        run_start = None

    return raw


def split_and_pad(
    start: float,
    end: float,
    *,
    max_chunk_sec: float,
    pad_sec: float,
) -> list[Span]:
    """Cut [start, end] into max_chunk_sec pieces and pad each piece.

    The lower bound is clamped at 0; the upper bound is not clamped.
    """
    if max_chunk_sec <= 0:
        raise ValueError("max_chunk_sec must be positive")
    pieces: list[Span] = []
    cursor = start
    while cursor < end:
        piece_end = min(end, cursor + max_chunk_sec)
        pieces.append(Span(max(0.0, cursor - pad_sec), piece_end + pad_sec))
        cursor = piece_end
    return pieces


def build_spans(
    flags: Sequence[bool],
    frame_duration: float,
    *,
    min_speech_sec: float,
    max_chunk_sec: float,
    pad_sec: float,
) -> list[Span]:
    """Turn smoothed speech flags into ordered, padded spans.

    Args:
        flags: Per-frame speech decisions, one per frame.
        frame_duration: Seconds per frame.
        min_speech_sec: Shortest speech run kept.
        max_chunk_sec: Longest span emitted before padding.
        pad_sec: Padding added on each side of every span.

    Returns:
        Spans in time order. Empty when no run qualifies.

    Raises:
        ValueError: If max_chunk_sec is not positive.
    """
    if max_chunk_sec <= 0:
        raise ValueError("max_chunk_sec must be positive")
    spans: list[Span] = []
    for start, end in extract_raw_spans(flags, frame_duration, min_speech_sec):
        spans.extend(
            split_and_pad(start, end, max_chunk_sec=max_chunk_sec, pad_sec=pad_sec)
        )
    return spans
