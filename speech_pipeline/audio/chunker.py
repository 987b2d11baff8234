"""Voice-activity chunking of prepared recordings.

Orchestrates: read WAV -> classify frames -> smooth flags -> build spans
-> cut chunk WAVs -> manifest records. Each file gets its own frame
classifier; files may be processed on worker threads.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from speech_pipeline.audio.smoothing import smooth_flags, smoothing_window_for_frame_ms
from speech_pipeline.audio.spans import Span, build_spans
from speech_pipeline.audio.vad import classify_samples, get_frame_classifier
from speech_pipeline.audio.wav_utils import read_wav_samples, write_wav_samples
from speech_pipeline.config import PipelineConfig
from speech_pipeline.manifest import MANIFEST_FILENAME, ManifestRecord, write_manifest
from speech_pipeline.observability.metrics import (
    FileMetrics,
    StageTimer,
    log_file_metrics,
)
from speech_pipeline.utils.errors import PipelineError

logger = logging.getLogger(__name__)


@dataclass
class SegmentationResult:
    """Spans found in one recording plus the numbers behind them."""

    spans: list[Span]
    frame_count: int
    frame_duration: float
    audio_duration_seconds: float
    speech_duration_seconds: float

    @property
    def speech_ratio(self) -> float:
        if self.audio_duration_seconds <= 0:
            return 0.0
        return self.speech_duration_seconds / self.audio_duration_seconds


@dataclass
class FileChunks:
    """Chunk files and manifest records produced for one recording."""

    source: str
    records: list[ManifestRecord]
    metrics: FileMetrics


@dataclass
class ChunkingSummary:
    """Aggregate outcome of chunking a directory."""

    files: int = 0
    succeeded: int = 0
    failed: int = 0
    chunks: int = 0
    failed_files: list[str] = field(default_factory=list)
    manifest_path: str | None = None


def segment_samples(
    samples: list[int], config: PipelineConfig
) -> SegmentationResult:
    """Run VAD, smoothing and span building over a sample buffer.

    Raises:
        DetectorInitError: If the configured detector cannot be created.
        VADError: If the detector fails while classifying.
    """
    with get_frame_classifier(config.vad_provider, **config.vad_kwargs()) as classifier:
        flags = classify_samples(classifier, samples)
        frame_duration = classifier.frame_duration
        sample_rate = classifier.sample_rate

    smoothed = smooth_flags(flags, smoothing_window_for_frame_ms(config.vad_frame_ms))
    spans = build_spans(
        smoothed,
        frame_duration,
        min_speech_sec=config.min_speech_sec,
        max_chunk_sec=config.max_chunk_sec,
        pad_sec=config.pad_sec,
    )

    audio_duration = len(samples) / sample_rate
    speech_duration = min(audio_duration, sum(smoothed) * frame_duration)
    return SegmentationResult(
        spans=spans,
        frame_count=len(flags),
        frame_duration=frame_duration,
        audio_duration_seconds=audio_duration,
        speech_duration_seconds=speech_duration,
    )


def chunk_filename(stem: str, index: int) -> str:
    return f"{stem}_chunk_{index:03d}.wav"


def write_span_chunks(
    samples: list[int],
    spans: list[Span],
    *,
    sample_rate: int,
    output_dir: str,
    src: str,
) -> list[ManifestRecord]:
    """Cut each span out of the samples into its own WAV file.

    Spans running past the end of the audio are truncated there. If
    writing fails midway, the chunk files already written are removed.
    """
    os.makedirs(output_dir, exist_ok=True)
    stem = Path(src).stem
    records: list[ManifestRecord] = []
    written: list[str] = []
    try:
        for index, span in enumerate(spans, start=1):
            first = min(len(samples), max(0, round(span.start * sample_rate)))
            last = min(len(samples), round(span.end * sample_rate))
            name = chunk_filename(stem, index)
            path = os.path.join(output_dir, name)
            write_wav_samples(path, samples[first:last], sample_rate)
            written.append(path)
            records.append(ManifestRecord.from_span(src, name, span.start, span.end))
    except Exception:
        for path in written:
            if os.path.exists(path):
                os.remove(path)
        raise
    return records


def chunk_file(wav_path: str, output_dir: str, config: PipelineConfig) -> FileChunks:
    """Segment one prepared WAV file and write its chunks.

    Args:
        wav_path: 16-bit mono WAV at the configured sample rate.
        output_dir: Directory receiving chunk WAVs.
        config: Pipeline configuration.

    Returns:
        FileChunks with manifest records and metrics.

    Raises:
        ValueError: If the WAV is unreadable or has the wrong format.
        PipelineError: On detector or write failures.
    """
    src = os.path.basename(wav_path)
    wall_start = time.monotonic()
    timings: dict[str, float] = {}

    with StageTimer("read", timings):
        samples = read_wav_samples(wav_path, expected_rate=config.target_sample_rate)

    with StageTimer("vad", timings):
        segmentation = segment_samples(samples, config)

    with StageTimer("cut", timings):
        records = write_span_chunks(
            samples,
            segmentation.spans,
            sample_rate=config.target_sample_rate,
            output_dir=output_dir,
            src=src,
        )

    metrics = FileMetrics(
        source=src,
        status="completed",
        audio_duration_seconds=segmentation.audio_duration_seconds,
        speech_duration_seconds=segmentation.speech_duration_seconds,
        speech_ratio=segmentation.speech_ratio,
        frame_count=segmentation.frame_count,
        span_count=len(segmentation.spans),
        processing_wall_time_seconds=time.monotonic() - wall_start,
        stage_timings=timings,
    )
    return FileChunks(source=src, records=records, metrics=metrics)


def _chunk_one(
    wav_path: str, output_dir: str, config: PipelineConfig
) -> FileChunks | None:
    """chunk_file() with per-file failure isolation."""
    src = os.path.basename(wav_path)
    try:
        result = chunk_file(wav_path, output_dir, config)
    except Exception as exc:
        logger.error(
            "Chunking failed for %s: %s",
            src,
            exc,
            exc_info=True,
            extra={"source": src, "stage": "chunk", "error": str(exc)},
        )
        log_file_metrics(
            FileMetrics(
                source=src,
                status="failed",
                error_stage="chunk",
                error_message=str(exc),
            )
        )
        return None

    logger.info(
        "%s: %d chunks",
        src,
        len(result.records),
        extra={"source": src, "stage": "chunk"},
    )
    log_file_metrics(result.metrics)
    return result


def chunk_directory(
    input_dir: str, output_dir: str, config: PipelineConfig
) -> ChunkingSummary:
    """Chunk every WAV file in a directory and write the manifest.

    Files run on config.workers threads, each with its own detector.
    A failed file contributes no chunks and no manifest records.

    Raises:
        PipelineError: If the directory holds no WAV files.
    """
    wav_paths = [
        os.path.join(input_dir, name)
        for name in sorted(os.listdir(input_dir))
        if name.lower().endswith(".wav")
    ]
    if not wav_paths:
        raise PipelineError(f"No WAV files found in {input_dir}")

    os.makedirs(output_dir, exist_ok=True)
    with ThreadPoolExecutor(max_workers=config.workers) as executor:
        outcomes = list(
            executor.map(lambda p: _chunk_one(p, output_dir, config), wav_paths)
        )

    summary = ChunkingSummary(files=len(wav_paths))
    records: list[ManifestRecord] = []
    for path, outcome in zip(wav_paths, outcomes):
        if outcome is None:
            summary.failed += 1
            summary.failed_files.append(path)
            continue
        summary.succeeded += 1
        summary.chunks += len(outcome.records)
        records.extend(outcome.records)

    manifest_path = os.path.join(output_dir, MANIFEST_FILENAME)
    write_manifest(manifest_path, records)
    summary.manifest_path = manifest_path
    logger.info(
        "Wrote manifest %s (%d chunks, %d/%d files ok)",
        manifest_path,
        summary.chunks,
        summary.succeeded,
        summary.files,
    )
    return summary
