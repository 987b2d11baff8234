"""Recognition driver: manifest chunks -> Units -> merged transcripts.

For every source recording in a chunk manifest, each chunk WAV is
transcribed (with retry), its Unit written to
``<out>/json/<src>/<chunk>.json``, and the Units merged into
``<out>/<src>.transcript.json``. A run summary lands in
``<out>/asr_summary.json``.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from speech_pipeline.asr.interface import ASREngine, Chunk, Unit
from speech_pipeline.asr.merge import merge_units
from speech_pipeline.config import PipelineConfig
from speech_pipeline.manifest import ManifestRecord, group_by_source, iter_manifest
from speech_pipeline.observability.metrics import (
    FileMetrics,
    StageTimer,
    log_file_metrics,
)
from speech_pipeline.utils.errors import ASRError, PipelineError
from speech_pipeline.utils.retry import call_with_backoff

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "asr_summary.json"
TRANSCRIPT_SUFFIX = ".transcript.json"
RETRYABLE_EXCEPTIONS = (ASRError, httpx.RequestError)


@dataclass
class SourceTranscript:
    """Recognition outcome for one source recording."""

    source: str
    chunks: list[Chunk]
    span_count: int
    unit_count: int
    failed_spans: int
    transcript_path: str | None = None

    @property
    def all_failed(self) -> bool:
        return self.span_count > 0 and self.failed_spans == self.span_count


@dataclass
class TranscriptionSummary:
    """Aggregate outcome of a recognition run."""

    provider: str
    files: int = 0
    chunks: int = 0
    failed: int = 0
    failed_sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": self.files,
            "chunks": self.chunks,
            "failed": self.failed,
            "provider": self.provider,
        }


def _write_json(path: str, payload: Any) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)


def write_transcript(path: str, chunks: Sequence[Chunk]) -> None:
    """Persist merged chunks as {"chunks": [...]}."""
    _write_json(path, {"chunks": [c.to_dict() for c in chunks]})


def _remove_if_exists(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)


def _resolve_chunk_path(chunk: str, chunk_dir: str) -> str:
    return chunk if os.path.isabs(chunk) else os.path.join(chunk_dir, chunk)


async def transcribe_records(
    records: Sequence[ManifestRecord],
    engine: ASREngine,
    config: PipelineConfig,
    *,
    chunk_dir: str,
    json_dir: str | None = None,
) -> tuple[list[Unit], int]:
    """Transcribe the chunks of one source, in the order given.

    A chunk whose recognition still fails after retries is counted and
    skipped; the other chunks carry on.

    Args:
        records: Manifest records of one source, sorted by start.
        engine: Recognizer to call.
        config: Supplies retry limits.
        chunk_dir: Directory relative chunk names are resolved against.
        json_dir: If given, each Unit is written there as <chunk>.json.

    Returns:
        (units in record order, number of failed chunks)
    """
    units: list[Unit] = []
    failed = 0
    for record in records:
        chunk_path = _resolve_chunk_path(record.chunk, chunk_dir)
        try:
            unit = await call_with_backoff(
                engine.transcribe,
                chunk_path,
                record.start,
                max_retries=config.asr_max_retries,
                base_delay=config.asr_retry_base_delay,
                retryable_exceptions=RETRYABLE_EXCEPTIONS,
                label=f"transcribe {record.chunk}",
            )
            if unit is not None and json_dir is not None:
                _write_json(
                    os.path.join(json_dir, f"{Path(record.chunk).stem}.json"),
                    unit.to_dict(),
                )
        except Exception as exc:
            failed += 1
            logger.error(
                "Recognition failed for %s: %s",
                record.chunk,
                exc,
                exc_info=True,
                extra={"source": record.src, "stage": "asr", "error": str(exc)},
            )
            continue

        if unit is not None:
            units.append(unit)
    return units, failed


async def transcribe_source(
    source: str,
    records: Sequence[ManifestRecord],
    engine: ASREngine,
    config: PipelineConfig,
    *,
    chunk_dir: str,
    output_dir: str,
) -> SourceTranscript:
    """Transcribe, merge and persist one source recording.

    No transcript file is written when every chunk failed.
    """
    wall_start = time.monotonic()
    timings: dict[str, float] = {}

    with StageTimer("asr", timings):
        units, failed = await transcribe_records(
            records,
            engine,
            config,
            chunk_dir=chunk_dir,
            json_dir=os.path.join(output_dir, "json", source),
        )

    with StageTimer("merge", timings):
        chunks = merge_units(
            units,
            max_gap_sec=config.max_merge_gap_sec,
            max_duration_sec=config.max_merge_duration_sec,
            source=source,
        )

    result = SourceTranscript(
        source=source,
        chunks=chunks,
        span_count=len(records),
        unit_count=len(units),
        failed_spans=failed,
    )

    if result.all_failed:
        logger.error(
            "All %d chunks failed for %s, no transcript written",
            failed,
            source,
            extra={"source": source, "stage": "asr"},
        )
    else:
        path = os.path.join(output_dir, f"{source}{TRANSCRIPT_SUFFIX}")
        with StageTimer("store", timings):
            write_transcript(path, chunks)
        result.transcript_path = path
        logger.info(
            "%s: %d chunk(s) -> %d merged chunk(s)",
            source,
            len(records) - failed,
            len(chunks),
            extra={"source": source, "stage": "merge"},
        )

    log_file_metrics(
        FileMetrics(
            source=source,
            status="failed" if result.all_failed else "completed",
            span_count=result.span_count,
            unit_count=result.unit_count,
            chunk_count=len(chunks),
            failed_span_count=failed,
            processing_wall_time_seconds=time.monotonic() - wall_start,
            stage_timings=timings,
            error_stage="asr" if result.all_failed else None,
        )
    )
    return result


async def transcribe_manifest(
    manifest_path: str,
    output_dir: str,
    engine: ASREngine,
    config: PipelineConfig,
) -> TranscriptionSummary:
    """Run recognition over every source named in a chunk manifest.

    Relative chunk names are resolved against output_dir.

    Raises:
        PipelineError: If the manifest does not exist.
    """
    if not os.path.exists(manifest_path):
        raise PipelineError(f"Manifest not found: {manifest_path}")

    os.makedirs(output_dir, exist_ok=True)
    groups = group_by_source(iter_manifest(manifest_path))
    summary = TranscriptionSummary(provider=engine.name)

    for source, records in groups.items():
        try:
            result = await transcribe_source(
                source,
                records,
                engine,
                config,
                chunk_dir=output_dir,
                output_dir=output_dir,
            )
        except Exception as exc:
            logger.error(
                "Recognition failed for %s: %s",
                source,
                exc,
                exc_info=True,
                extra={"source": source, "stage": "asr", "error": str(exc)},
            )
            _remove_if_exists(os.path.join(output_dir, f"{source}{TRANSCRIPT_SUFFIX}"))
            summary.failed += len(records)
            summary.failed_sources.append(source)
            continue
        summary.failed += result.failed_spans
        if result.all_failed:
            summary.failed_sources.append(source)
            continue
        summary.files += 1
        summary.chunks += len(result.chunks)

    _write_json(os.path.join(output_dir, SUMMARY_FILENAME), summary.to_dict())
    logger.info(
        "Recognition summary: %d file(s), %d chunk(s), %d failed",
        summary.files,
        summary.chunks,
        summary.failed,
    )
    return summary
