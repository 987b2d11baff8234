"""Consolidation of per-span recognition Units into transcript Chunks.

The merge is a reducer: merge_step(state, unit) returns the next state
and, when the open chunk had to be closed, the finished Chunk.
merge_flush(state) closes whatever is still open. merge_units() drives
both over a whole sequence.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from speech_pipeline.asr.interface import Chunk, Unit
from speech_pipeline.utils.errors import MalformedUnitError

logger = logging.getLogger(__name__)

DEFAULT_MAX_GAP_SEC = 0.5
DEFAULT_MAX_DURATION_SEC = 30.0

_WHITESPACE = re.compile(r"\s+")
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([,.!?;:])")


def collapse_spaces(text: str) -> str:
    """Collapse whitespace runs and drop whitespace before , . ! ? ; :"""
    text = _WHITESPACE.sub(" ", text)
    return _SPACE_BEFORE_PUNCT.sub(r"\1", text).strip()


def _join_text(left: str, right: str) -> str:
    if not left:
        return right
    if not right:
        return left
    return f"{left} {right}"


@dataclass(frozen=True)
class MergeState:
    """Reducer state: the chunk being accumulated, if any."""

    open_chunk: Chunk | None = None


def _open(unit: Unit) -> MergeState:
    return MergeState(
        Chunk(start=unit.start, end=unit.end, text=unit.text, words=list(unit.words))
    )


def _finalize(chunk: Chunk) -> Chunk:
    end = chunk.words[-1].end if chunk.words else chunk.end
    return Chunk(
        start=chunk.start,
        end=end,
        text=collapse_spaces(chunk.text),
        words=list(chunk.words),
    )


def merge_step(
    state: MergeState,
    unit: Unit,
    *,
    max_gap_sec: float = DEFAULT_MAX_GAP_SEC,
    max_duration_sec: float = DEFAULT_MAX_DURATION_SEC,
) -> tuple[MergeState, Chunk | None]:
    """Feed one unit to the merger.

    Units without words leave the state untouched. The unit joins the
    open chunk when the gap from the chunk's last word end to the unit's
    start is at most max_gap_sec and the chunk would last at most
    max_duration_sec; otherwise the open chunk is emitted and the unit
    starts a new one.

    Returns:
        (next state, emitted chunk or None)
    """
    if not unit.words:
        return state, None

    current = state.open_chunk
    if current is None:
        return _open(unit), None

    gap = unit.start - current.words[-1].end
    prospective = unit.end - current.start
    if gap <= max_gap_sec and prospective <= max_duration_sec:
        merged = Chunk(
            start=current.start,
            end=unit.end,
            text=_join_text(current.text, unit.text),
            words=current.words + list(unit.words),
        )
        return MergeState(merged), None

    return _open(unit), _finalize(current)


def merge_flush(state: MergeState) -> tuple[MergeState, Chunk | None]:
    """Close the open chunk, if there is one."""
    if state.open_chunk is None:
        return state, None
    return MergeState(), _finalize(state.open_chunk)


def merge_units(
    units: Iterable[Unit],
    max_gap_sec: float = DEFAULT_MAX_GAP_SEC,
    max_duration_sec: float = DEFAULT_MAX_DURATION_SEC,
    source: str | None = None,
) -> list[Chunk]:
    """Merge start-ordered units into chunks in a single pass.

    Malformed units are logged and skipped; the rest still merge.

    Args:
        units: Units ordered by start time. Not re-sorted here.
        max_gap_sec: Largest silence bridged inside one chunk.
        max_duration_sec: Longest chunk allowed.
        source: Recording name for log context.

    Returns:
        Finalized chunks in input order.
    """
    state = MergeState()
    chunks: list[Chunk] = []
    for unit in units:
        try:
            unit.validate()
        except MalformedUnitError as exc:
            exc.source = exc.source or source
            logger.warning(
                "Skipping malformed unit: %s",
                exc,
                extra={"source": source, "stage": "merge", "error": str(exc)},
            )
            continue
        state, emitted = merge_step(
            state, unit, max_gap_sec=max_gap_sec, max_duration_sec=max_duration_sec
        )
        if emitted is not None:
            chunks.append(emitted)

    _, last = merge_flush(state)
    if last is not None:
        chunks.append(last)
    return chunks
