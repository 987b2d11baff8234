"""Chunk manifest records: one JSON object per line.

Each record names the source recording, the chunk WAV cut from it and
the chunk's position in the source. Readers group records by source and
re-sort them by start time, so writers may emit them in any order.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "chunks_manifest.jsonl"


@dataclass(frozen=True)
class ManifestRecord:
    """One chunk of one source recording."""

    src: str
    chunk: str
    start: float
    end: float
    duration: float

    @classmethod
    def from_span(cls, src: str, chunk: str, start: float, end: float) -> ManifestRecord:
        """Build a record with times rounded to centiseconds."""
        return cls(
            src=src,
            chunk=chunk,
            start=round(start, 2),
            end=round(end, 2),
            duration=round(end - start, 2),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ManifestRecord:
        """Deserialize a manifest line.

        Raises:
            ValueError: If src or chunk is missing or times are not numbers.
        """
        src = data.get("src") or data.get("source")
        chunk = data.get("chunk")
        if not src or not isinstance(src, str):
            raise ValueError("Missing or invalid 'src' in manifest record")
        if not chunk or not isinstance(chunk, str):
            raise ValueError("Missing or invalid 'chunk' in manifest record")
        try:
            start = float(data.get("start", 0.0))
            end = float(data.get("end", 0.0))
            duration = float(data.get("duration", end - start))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid times in manifest record: {exc}") from exc
        return cls(src=src, chunk=chunk, start=start, end=end, duration=duration)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def source_base(self) -> str:
        """Source filename without directory or extension."""
        return Path(self.src).stem


def write_manifest(path: str, records: Iterable[ManifestRecord]) -> int:
    """Write records as JSON lines, replacing any existing file.

    Returns:
        Number of records written.
    """
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
            count += 1
    return count


def iter_manifest(path: str) -> Iterator[ManifestRecord]:
    """Yield records from a JSONL manifest, skipping malformed lines."""
    with open(path, encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            text = line.strip()
            if not text:
                continue
            try:
                yield ManifestRecord.from_dict(json.loads(text))
            except (json.JSONDecodeError, ValueError, AttributeError) as exc:
                logger.warning(
                    "Skipping bad manifest line %d: %s (%s)",
                    line_number,
                    text[:120],
                    exc,
                )


def group_by_source(records: Iterable[ManifestRecord]) -> dict[str, list[ManifestRecord]]:
    """Group records by source base name, each group sorted by start time."""
    groups: dict[str, list[ManifestRecord]] = {}
    for record in records:
        groups.setdefault(record.source_base, []).append(record)
    for rows in groups.values():
        rows.sort(key=lambda r: r.start)
    return groups
