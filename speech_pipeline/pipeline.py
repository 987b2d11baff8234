"""End-to-end processing of recordings into merged transcripts.

Contains data models for processing results and metrics.
Orchestrates: prepare -> vad (chunk) -> asr -> merge -> store.

Output layout under output_dir:
    prepared/<stem>.wav                 normalized 16kHz mono recording
    chunks/<stem>_chunk_NNN.wav         voice-activity chunks
    json/<stem>/<stem>_chunk_NNN.json   per-chunk recognition Units
    <stem>.transcript.json              merged transcript
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from speech_pipeline.asr.interface import ASREngine
from speech_pipeline.asr.merge import merge_units
from speech_pipeline.asr.runner import (
    TRANSCRIPT_SUFFIX,
    transcribe_records,
    write_transcript,
)
from speech_pipeline.audio.chunker import chunk_file
from speech_pipeline.audio.transcode import prepare_audio
from speech_pipeline.config import PipelineConfig
from speech_pipeline.observability.metrics import (
    FileMetrics,
    StageTimer,
    log_file_metrics,
)
from speech_pipeline.utils.errors import ASRError, PipelineError

logger = logging.getLogger(__name__)

STAGES = ("prepare", "vad", "asr", "merge", "store")


@dataclass
class ProcessingError:
    """Details about a processing failure."""

    stage: str
    message: str
    exception_type: str


@dataclass
class ProcessingMetrics:
    """Metrics collected while processing one recording."""

    audio_duration_seconds: float = 0.0
    speech_duration_seconds: float = 0.0
    speech_ratio: float = 0.0
    gain_db: float = 0.0
    span_count: int = 0
    unit_count: int = 0
    chunk_count: int = 0
    failed_span_count: int = 0
    processing_wall_time_seconds: float = 0.0
    stage_timings: dict[str, float] = field(default_factory=dict)


@dataclass
class ProcessingResult:
    """Result of processing a single recording."""

    status: Literal["completed", "failed"]
    source: str
    artifact_paths: dict[str, str]
    metrics: ProcessingMetrics
    error: ProcessingError | None = None


@dataclass
class BatchSummary:
    """Outcome of process_batch()."""

    results: list[ProcessingResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.status == "completed")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == "failed")


async def process_file(
    input_path: str,
    output_dir: str,
    config: PipelineConfig,
    engine: ASREngine,
) -> ProcessingResult:
    """Run the whole pipeline for one recording.

    Pipeline failures never propagate: they come back as a failed
    ProcessingResult naming the stage, and every file this run wrote
    for the recording is removed. A recording with no detected speech
    completes with an empty transcript.

    Args:
        input_path: Any ffmpeg-readable audio file.
        output_dir: Root of the output layout.
        config: Pipeline configuration.
        engine: Recognizer used for every chunk.

    Returns:
        ProcessingResult with status, artifacts, and metrics.
    """
    source = Path(input_path).stem
    wall_start = time.monotonic()
    metrics = ProcessingMetrics()
    artifact_paths: dict[str, str] = {}
    written: list[str] = []

    try:
        await _run_pipeline(
            input_path,
            output_dir,
            config,
            engine,
            source=source,
            metrics=metrics,
            artifact_paths=artifact_paths,
            written=written,
        )
    except Exception as exc:
        metrics.processing_wall_time_seconds = time.monotonic() - wall_start
        stage = _determine_error_stage(exc, metrics.stage_timings)
        logger.error(
            "Pipeline failed at stage '%s' for %s: %s",
            stage,
            source,
            exc,
            exc_info=True,
            extra={"source": source, "stage": stage, "error": str(exc)},
        )
        _remove_files(written)
        log_file_metrics(_file_metrics(source, "failed", metrics, stage, str(exc)))
        return ProcessingResult(
            status="failed",
            source=source,
            artifact_paths={},
            metrics=metrics,
            error=ProcessingError(
                stage=stage,
                message=str(exc),
                exception_type=type(exc).__name__,
            ),
        )

    metrics.processing_wall_time_seconds = time.monotonic() - wall_start
    log_file_metrics(_file_metrics(source, "completed", metrics))
    return ProcessingResult(
        status="completed",
        source=source,
        artifact_paths=artifact_paths,
        metrics=metrics,
    )


async def _run_pipeline(
    input_path: str,
    output_dir: str,
    config: PipelineConfig,
    engine: ASREngine,
    *,
    source: str,
    metrics: ProcessingMetrics,
    artifact_paths: dict[str, str],
    written: list[str],
) -> None:
    """Execute the pipeline stages. Raises on failure."""
    timings = metrics.stage_timings
    chunk_dir = os.path.join(output_dir, "chunks")
    json_dir = os.path.join(output_dir, "json", source)

    # Stage 1: ffmpeg -> normalized 16kHz mono WAV
    with StageTimer("prepare", timings):
        prepared = await asyncio.to_thread(
            prepare_audio,
            input_path,
            os.path.join(output_dir, "prepared"),
            sample_rate=config.target_sample_rate,
            target_dbfs=config.normalize_dbfs,
        )
    written.append(prepared.output_path)
    artifact_paths["prepared_audio"] = prepared.output_path
    metrics.gain_db = prepared.gain_db

    # Stage 2: voice activity chunking
    with StageTimer("vad", timings):
        chunks = await asyncio.to_thread(
            chunk_file, prepared.output_path, chunk_dir, config
        )
    written.extend(os.path.join(chunk_dir, r.chunk) for r in chunks.records)
    metrics.audio_duration_seconds = chunks.metrics.audio_duration_seconds
    metrics.speech_duration_seconds = chunks.metrics.speech_duration_seconds
    metrics.speech_ratio = chunks.metrics.speech_ratio
    metrics.span_count = len(chunks.records)
    artifact_paths["chunk_dir"] = chunk_dir

    # Stage 3: recognition per chunk
    with StageTimer("asr", timings):
        units, failed = await transcribe_records(
            chunks.records,
            engine,
            config,
            chunk_dir=chunk_dir,
            json_dir=json_dir,
        )
        written.extend(
            os.path.join(json_dir, f"{Path(r.chunk).stem}.json")
            for r in chunks.records
        )
        metrics.unit_count = len(units)
        metrics.failed_span_count = failed
        if chunks.records and failed == len(chunks.records):
            raise ASRError(
                f"All {failed} chunks failed recognition",
                source=source,
                provider=engine.name,
            )

    # Stage 4: consolidate units into chunks
    with StageTimer("merge", timings):
        merged = merge_units(
            units,
            max_gap_sec=config.max_merge_gap_sec,
            max_duration_sec=config.max_merge_duration_sec,
            source=source,
        )
    metrics.chunk_count = len(merged)

    # Stage 5: persist transcript
    with StageTimer("store", timings):
        transcript_path = os.path.join(output_dir, f"{source}{TRANSCRIPT_SUFFIX}")
        written.append(transcript_path)
        write_transcript(transcript_path, merged)
    artifact_paths["transcript"] = transcript_path

    if not chunks.records:
        logger.info(
            "No speech detected in %s, wrote empty transcript",
            source,
            extra={"source": source, "stage": "vad"},
        )


async def process_batch(
    input_paths: Sequence[str],
    output_dir: str,
    config: PipelineConfig,
    engine: ASREngine,
) -> BatchSummary:
    """Process several recordings, at most config.workers at a time.

    Results come back in input order; one failure does not affect the
    other files.

    Raises:
        PipelineError: If two inputs share a file stem.
    """
    _check_unique_sources(input_paths)
    semaphore = asyncio.Semaphore(config.workers)

    async def _bounded(path: str) -> ProcessingResult:
        async with semaphore:
            return await process_file(path, output_dir, config, engine)

    results = await asyncio.gather(*(_bounded(p) for p in input_paths))
    summary = BatchSummary(results=list(results))
    logger.info(
        "Batch finished: %d completed, %d failed",
        summary.succeeded,
        summary.failed,
    )
    return summary


def _check_unique_sources(input_paths: Sequence[str]) -> None:
    seen: dict[str, str] = {}
    for path in input_paths:
        stem = Path(path).stem
        if stem in seen:
            raise PipelineError(
                f"Inputs {seen[stem]} and {path} would both write outputs named '{stem}'"
            )
        seen[stem] = path


def _determine_error_stage(
    exc: Exception, stage_timings: dict[str, float]
) -> str:
    """Determine which pipeline stage failed based on recorded timings.

    A stage marked ``_<stage>_failed`` wins; otherwise the first stage
    without a timing is blamed.
    """
    for stage in STAGES:
        if f"_{stage}_failed" in stage_timings:
            return stage

    for stage in STAGES:
        if stage not in stage_timings:
            return stage

    if isinstance(exc, PipelineError):
        return type(exc).__name__.lower().replace("error", "")

    return "unknown"


def _remove_files(paths: Sequence[str]) -> None:
    for path in paths:
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError:
                logger.warning("Could not remove %s", path, exc_info=True)


def _file_metrics(
    source: str,
    status: str,
    metrics: ProcessingMetrics,
    error_stage: str | None = None,
    error_message: str | None = None,
) -> FileMetrics:
    return FileMetrics(
        source=source,
        status=status,
        audio_duration_seconds=metrics.audio_duration_seconds,
        speech_duration_seconds=metrics.speech_duration_seconds,
        speech_ratio=metrics.speech_ratio,
        span_count=metrics.span_count,
        unit_count=metrics.unit_count,
        chunk_count=metrics.chunk_count,
        failed_span_count=metrics.failed_span_count,
        processing_wall_time_seconds=metrics.processing_wall_time_seconds,
        stage_timings=metrics.stage_timings,
        error_stage=error_stage,
        error_message=error_message,
    )
