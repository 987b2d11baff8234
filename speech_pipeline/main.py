"""Command line entry point for the speech pipeline.

Subcommands:
    prep        normalize recordings to 16kHz mono WAV
    chunk       split prepared WAVs into voice-activity chunks + manifest
    transcribe  recognize manifest chunks and merge into transcripts
    wer         score transcripts against reference text
    run         prepare, chunk, transcribe and merge recordings end to end

Tunables come from environment variables (see PipelineConfig).
"""

import argparse
import asyncio
import logging
import os
import sys

from speech_pipeline.asr.registry import engine_for_config
from speech_pipeline.asr.runner import transcribe_manifest
from speech_pipeline.audio.chunker import chunk_directory
from speech_pipeline.audio.transcode import (
    list_audio_inputs,
    prepare_audio,
    prepare_directory,
)
from speech_pipeline.config import PipelineConfig
from speech_pipeline.manifest import MANIFEST_FILENAME
from speech_pipeline.observability.logger import setup_logging
from speech_pipeline.pipeline import process_batch
from speech_pipeline.scoring.report import score_directory, score_pair
from speech_pipeline.utils.errors import PipelineError

logger = logging.getLogger(__name__)

DEFAULT_TRANSCRIPTS_DIR = os.path.join("data", "chunks")
DEFAULT_REFS_DIR = os.path.join("data", "refs")


def _cmd_prep(args: argparse.Namespace, config: PipelineConfig) -> int:
    if os.path.isdir(args.input):
        results, failed = prepare_directory(
            args.input,
            args.output,
            sample_rate=config.target_sample_rate,
            target_dbfs=config.normalize_dbfs,
        )
        logger.info("Prepared %d file(s), %d failed", len(results), len(failed))
        return 0
    result = prepare_audio(
        args.input,
        args.output,
        sample_rate=config.target_sample_rate,
        target_dbfs=config.normalize_dbfs,
    )
    logger.info("Prepared %s (gain %.1f dB)", result.output_path, result.gain_db)
    return 0


def _cmd_chunk(args: argparse.Namespace, config: PipelineConfig) -> int:
    summary = chunk_directory(args.input, args.output, config)
    return 0 if summary.succeeded or not summary.files else 1


def _cmd_transcribe(args: argparse.Namespace, config: PipelineConfig) -> int:
    manifest = args.manifest or os.path.join(args.output, MANIFEST_FILENAME)
    engine = engine_for_config(config)
    asyncio.run(transcribe_manifest(manifest, args.output, engine, config))
    return 0


def _cmd_wer(args: argparse.Namespace, config: PipelineConfig) -> int:
    if args.all:
        summary = score_directory(args.transcripts, args.refs)
        if summary.scores:
            logger.info(
                "Average (weighted by N): %.2f%% over %d file(s)",
                summary.weighted_wer * 100,
                len(summary.scores),
            )
        return 0

    if not args.hyp or not args.ref:
        args.parser.print_usage()
        return 0

    score = score_pair(args.hyp, args.ref)
    logger.info(score.describe())
    return 0


def _cmd_run(args: argparse.Namespace, config: PipelineConfig) -> int:
    inputs: list[str] = []
    for path in args.inputs:
        inputs.extend(list_audio_inputs(path) if os.path.isdir(path) else [path])
    if not inputs:
        logger.error("No audio inputs found")
        return 1

    engine = engine_for_config(config)
    summary = asyncio.run(process_batch(inputs, args.output, config, engine))
    for result in summary.results:
        if result.error is not None:
            logger.error(
                "%s failed at %s: %s",
                result.source,
                result.error.stage,
                result.error.message,
            )
    return 0 if summary.succeeded else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="speech-pipeline",
        description="Voice-activity chunking, recognition and WER scoring.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    prep = sub.add_parser("prep", help="normalize recordings to 16kHz mono WAV")
    prep.add_argument("input", help="audio file or directory")
    prep.add_argument("-o", "--output", default=os.path.join("data", "prepared"))
    prep.set_defaults(handler=_cmd_prep)

    chunk = sub.add_parser("chunk", help="split prepared WAVs into speech chunks")
    chunk.add_argument("input", help="directory of prepared WAV files")
    chunk.add_argument("-o", "--output", default=DEFAULT_TRANSCRIPTS_DIR)
    chunk.set_defaults(handler=_cmd_chunk)

    transcribe = sub.add_parser("transcribe", help="recognize and merge chunks")
    transcribe.add_argument(
        "-m", "--manifest", help=f"manifest path (default: <output>/{MANIFEST_FILENAME})"
    )
    transcribe.add_argument("-o", "--output", default=DEFAULT_TRANSCRIPTS_DIR)
    transcribe.set_defaults(handler=_cmd_transcribe)

    wer = sub.add_parser("wer", help="score transcripts against references")
    wer.add_argument("--hyp", help="<base>.transcript.json to score")
    wer.add_argument("--ref", help="reference text file")
    wer.add_argument("--all", action="store_true", help="score a whole directory")
    wer.add_argument("--transcripts", default=DEFAULT_TRANSCRIPTS_DIR)
    wer.add_argument("--refs", default=DEFAULT_REFS_DIR)
    wer.set_defaults(handler=_cmd_wer, parser=wer)

    run = sub.add_parser("run", help="process recordings end to end")
    run.add_argument("inputs", nargs="+", help="audio files or directories")
    run.add_argument("-o", "--output", default=os.path.join("data", "out"))
    run.set_defaults(handler=_cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run one subcommand and return its exit status."""
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = PipelineConfig.from_env()
        return args.handler(args, config)
    except (PipelineError, ValueError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc, extra={"error": str(exc)})
        return 1


if __name__ == "__main__":
    sys.exit(main())
