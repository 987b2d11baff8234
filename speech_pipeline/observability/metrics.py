"""Processing metrics collection and reporting.

Provides FileMetrics dataclass for per-recording observability data,
StageTimer context manager for measuring pipeline stage durations,
and log_file_metrics() for emitting metrics as structured JSON to stdout.
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime


@dataclass
class FileMetrics:
    """All metrics collected for a single recording."""

    source: str
    status: str
    audio_duration_seconds: float = 0.0
    speech_duration_seconds: float = 0.0
    speech_ratio: float = 0.0
    frame_count: int = 0
    span_count: int = 0
    unit_count: int = 0
    chunk_count: int = 0
    failed_span_count: int = 0
    processing_wall_time_seconds: float = 0.0
    stage_timings: dict[str, float] = field(default_factory=dict)
    error_stage: str | None = None
    error_message: str | None = None


class StageTimer:
    """Context manager that records wall-clock duration of a pipeline stage.

    Captures stage_name, start_time, end_time (as UTC datetimes),
    and duration_seconds (as a monotonic float). When a timings dict is
    given, the duration is stored under the stage name on success, or
    under ``_<stage>_failed`` when the block raised.

    Usage:
        timer = StageTimer("vad")
        with timer:
            do_work()
        print(timer.duration_seconds)
    """

    def __init__(
        self, stage_name: str, timings: dict[str, float] | None = None
    ) -> None:
        self.stage_name = stage_name
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None
        self.duration_seconds: float = 0.0
        self._timings = timings
        self._mono_start: float = 0.0

    def __enter__(self) -> StageTimer:
        self.start_time = datetime.now(UTC)
        self._mono_start = time.monotonic()
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        elapsed = time.monotonic() - self._mono_start
        self.end_time = datetime.now(UTC)
        self.duration_seconds = elapsed
        if self._timings is None:
            return
        if exc_type is not None:
            self._timings[f"_{self.stage_name}_failed"] = elapsed
        else:
            self._timings[self.stage_name] = elapsed


def log_file_metrics(metrics: FileMetrics) -> None:
    """Emit file metrics as a single structured JSON line to stdout.

    Args:
        metrics: Populated FileMetrics dataclass.
    """
    entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "severity": "INFO",
        "metric_type": "file_completion",
        **asdict(metrics),
    }
    print(json.dumps(entry))
