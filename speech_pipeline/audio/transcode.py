"""Audio preparation with ffmpeg: 16kHz mono PCM WAV at a target loudness.

Converts any ffmpeg-readable input to mono 16-bit PCM at the target
sample rate, measures its mean volume with the volumedetect filter and
applies the gain needed to reach the target dBFS. When no mean volume
can be measured the converted file is used as is.
"""

import logging
import os
import re
import shutil
import subprocess
import wave
from dataclasses import dataclass
from pathlib import Path

from speech_pipeline.utils.errors import PipelineError, TranscodeError

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16000
TARGET_CHANNELS = 1
TARGET_SAMPLE_WIDTH = 2  # 16-bit = 2 bytes
DEFAULT_TARGET_DBFS = -20.0

SUPPORTED_EXTENSIONS = (".mp3", ".wav", ".m4a", ".flac")

FFPROBE_TIMEOUT_SECONDS = 10
FFMPEG_TIMEOUT_SECONDS = 120

_MEAN_VOLUME_PATTERN = re.compile(r"mean_volume:\s*([-\d.]+)\s*dB")


@dataclass
class TranscodeResult:
    """Result of a successful preparation run."""

    input_path: str
    output_path: str
    input_size_bytes: int
    output_size_bytes: int
    duration_seconds: float
    mean_volume_db: float | None = None
    gain_db: float = 0.0


def _check_ffmpeg_available() -> str:
    """Verify ffmpeg is available on the system.

    Returns:
        Path to the ffmpeg binary.

    Raises:
        TranscodeError: If ffmpeg is not found.
    """
    ffmpeg_path = shutil.which("ffmpeg")
    if ffmpeg_path is None:
        raise TranscodeError("ffmpeg binary not found on PATH")
    return ffmpeg_path


def _check_audio_valid(input_path: str) -> None:
    """Pre-validate an audio file with ffprobe.

    Raises:
        TranscodeError: If ffprobe fails or the file is corrupt.
    """
    ffprobe_path = shutil.which("ffprobe")
    if ffprobe_path is None:
        # ffprobe not available; let ffmpeg report problems
        return

    cmd = [ffprobe_path, "-v", "error", "-show_format", input_path]

    try:
        subprocess.run(
            cmd,
            check=True,
            capture_output=True,
            text=True,
            timeout=FFPROBE_TIMEOUT_SECONDS,
        )
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.strip() if exc.stderr else "unknown error"
        raise TranscodeError(
            f"Audio file is corrupt or unreadable (ffprobe): {stderr}",
            input_path=input_path,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise TranscodeError(
            f"ffprobe timed out after {FFPROBE_TIMEOUT_SECONDS}s, file may be corrupt",
            input_path=input_path,
        ) from exc


def _run_ffmpeg(args: list[str], input_path: str) -> str:
    """Run ffmpeg and return its stderr, which carries filter reports."""
    try:
        proc = subprocess.run(
            args,
            check=True,
            capture_output=True,
            text=True,
            timeout=FFMPEG_TIMEOUT_SECONDS,
        )
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.strip() if exc.stderr else "unknown error"
        raise TranscodeError(
            f"ffmpeg failed: {stderr}", input_path=input_path
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise TranscodeError(
            f"ffmpeg timed out after {FFMPEG_TIMEOUT_SECONDS} seconds",
            input_path=input_path,
        ) from exc
    return proc.stderr or ""


def _read_wav_duration(wav_path: str) -> float:
    """Read duration in seconds from a WAV file header."""
    with wave.open(wav_path, "rb") as wf:
        return wf.getnframes() / wf.getframerate()


def parse_mean_volume(ffmpeg_stderr: str) -> float | None:
    """Extract mean_volume (dB) from volumedetect output, if present."""
    match = _MEAN_VOLUME_PATTERN.search(ffmpeg_stderr)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def measure_mean_volume(ffmpeg_path: str, wav_path: str) -> float | None:
    """Measure the mean volume of a file with ffmpeg's volumedetect filter."""
    stderr = _run_ffmpeg(
        [
            ffmpeg_path,
            "-hide_banner",
            "-nostats",
            "-i",
            wav_path,
            "-filter:a",
            "volumedetect",
            "-f",
            "null",
            "-",
        ],
        wav_path,
    )
    return parse_mean_volume(stderr)


def prepare_audio(
    input_path: str,
    output_dir: str,
    output_filename: str | None = None,
    sample_rate: int = TARGET_SAMPLE_RATE,
    target_dbfs: float = DEFAULT_TARGET_DBFS,
) -> TranscodeResult:
    """Convert a recording to loudness-normalized mono 16-bit PCM WAV.

    Args:
        input_path: Path to the input audio file.
        output_dir: Directory to write the output WAV file.
        output_filename: Optional output filename. Defaults to input stem + .wav.
        sample_rate: Output sample rate in Hz.
        target_dbfs: Target mean volume in dBFS.

    Returns:
        TranscodeResult with paths, sizes, duration and applied gain.

    Raises:
        TranscodeError: If the input is missing or corrupt, or ffmpeg fails.
    """
    input_file = Path(input_path)

    if not input_file.exists():
        raise TranscodeError(
            f"Input file does not exist: {input_path}",
            input_path=input_path,
        )

    ffmpeg_path = _check_ffmpeg_available()
    _check_audio_valid(input_path)

    if output_filename is None:
        output_filename = f"{input_file.stem}.wav"

    os.makedirs(output_dir, exist_ok=True)
    output_path = os.path.join(output_dir, output_filename)
    tmp_path = os.path.join(output_dir, f"{Path(output_filename).stem}.tmp.wav")

    _run_ffmpeg(
        [
            ffmpeg_path,
            "-hide_banner",
            "-nostats",
            "-y",
            "-i",
            input_path,
            "-ac",
            str(TARGET_CHANNELS),
            "-ar",
            str(sample_rate),
            "-sample_fmt",
            "s16",
            tmp_path,
        ],
        input_path,
    )

    gain_db = 0.0
    mean_volume: float | None = None
    try:
        mean_volume = measure_mean_volume(ffmpeg_path, tmp_path)
        if mean_volume is None:
            os.replace(tmp_path, output_path)
        else:
            gain_db = target_dbfs - mean_volume
            _run_ffmpeg(
                [
                    ffmpeg_path,
                    "-hide_banner",
                    "-nostats",
                    "-y",
                    "-i",
                    tmp_path,
                    "-filter:a",
                    f"volume={gain_db}dB",
                    output_path,
                ],
                input_path,
            )
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)

    if not os.path.exists(output_path):
        raise TranscodeError(
            f"ffmpeg produced no output file: {output_path}",
            input_path=input_path,
        )

    return TranscodeResult(
        input_path=input_path,
        output_path=output_path,
        input_size_bytes=input_file.stat().st_size,
        output_size_bytes=os.path.getsize(output_path),
        duration_seconds=_read_wav_duration(output_path),
        mean_volume_db=mean_volume,
        gain_db=gain_db,
    )


def list_audio_inputs(input_dir: str) -> list[str]:
    """List supported audio files in a directory, sorted by name."""
    return [
        os.path.join(input_dir, name)
        for name in sorted(os.listdir(input_dir))
        if name.lower().endswith(SUPPORTED_EXTENSIONS)
    ]


def prepare_directory(
    input_dir: str,
    output_dir: str,
    sample_rate: int = TARGET_SAMPLE_RATE,
    target_dbfs: float = DEFAULT_TARGET_DBFS,
) -> tuple[list[TranscodeResult], list[str]]:
    """Prepare every supported audio file in a directory.

    One file's failure does not stop the others.

    Returns:
        (results for prepared files, paths of files that failed).

    Raises:
        PipelineError: If the directory holds no supported audio.
    """
    inputs = list_audio_inputs(input_dir)
    if not inputs:
        raise PipelineError(f"No audio in {input_dir}")

    results: list[TranscodeResult] = []
    failed: list[str] = []
    for path in inputs:
        try:
            result = prepare_audio(
                path, output_dir, sample_rate=sample_rate, target_dbfs=target_dbfs
            )
        except TranscodeError as exc:
            logger.error(
                "Preparation failed for %s: %s",
                path,
                exc,
                extra={"source": os.path.basename(path), "stage": "prepare"},
            )
            failed.append(path)
            continue
        logger.info(
            "Prepared %s -> %s (gain %.1f dB)",
            os.path.basename(path),
            result.output_path,
            result.gain_db,
            extra={"source": os.path.basename(path), "stage": "prepare"},
        )
        results.append(result)
    return results, failed
