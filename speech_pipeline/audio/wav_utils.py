"""WAV file I/O and framing helpers for 16kHz mono 16-bit PCM audio."""

import struct
import wave
from collections.abc import Iterator, Sequence

SAMPLE_RATE = 16000
SAMPLE_WIDTH = 2  # 16-bit = 2 bytes
NUM_CHANNELS = 1


def read_wav_samples(wav_path: str, expected_rate: int | None = None) -> list[int]:
    """Read all samples from a mono 16-bit WAV file.

    Args:
        wav_path: Path to the WAV file.
        expected_rate: If given, the file's sample rate must match it.

    Returns:
        List of int16 sample values.

    Raises:
        ValueError: If the WAV file cannot be read or is not mono 16-bit
            PCM at the expected rate.
    """
    try:
        with wave.open(wav_path, "rb") as wf:
            channels = wf.getnchannels()
            width = wf.getsampwidth()
            rate = wf.getframerate()
            raw_data = wf.readframes(wf.getnframes())
    except Exception as exc:
        raise ValueError(f"Failed to read WAV file: {wav_path}") from exc

    if channels != NUM_CHANNELS or width != SAMPLE_WIDTH:
        raise ValueError(
            f"Expected mono 16-bit WAV, got {channels} channel(s) "
            f"at {width * 8}-bit: {wav_path}"
        )
    if expected_rate is not None and rate != expected_rate:
        raise ValueError(
            f"Expected {expected_rate} Hz WAV, got {rate} Hz: {wav_path}"
        )

    num_samples = len(raw_data) // SAMPLE_WIDTH
    return list(struct.unpack(f"<{num_samples}h", raw_data))


def write_wav_samples(
    output_path: str, samples: Sequence[int], sample_rate: int = SAMPLE_RATE
) -> None:
    """Write int16 samples to a mono 16-bit WAV file.

    Args:
        output_path: Path for the output WAV file.
        samples: int16 sample values.
        sample_rate: Sample rate in Hz (default 16000).
    """
    raw_data = struct.pack(f"<{len(samples)}h", *samples)
    with wave.open(output_path, "wb") as wf:
        wf.setnchannels(NUM_CHANNELS)
        wf.setsampwidth(SAMPLE_WIDTH)
        wf.setframerate(sample_rate)
        wf.writeframes(raw_data)


def iter_frames(samples: Sequence[int], frame_samples: int) -> Iterator[tuple[int, ...]]:
    """Slice samples into fixed-length frames, zero-padding the last one.

    Args:
        samples: int16 sample values.
        frame_samples: Samples per frame.

    Yields:
        Immutable frames of exactly frame_samples values.
    """
    if frame_samples <= 0:
        raise ValueError("frame_samples must be positive")
    offset = 0
    total = len(samples)
    while offset + frame_samples <= total:
        yield tuple(samples[offset : offset + frame_samples])
        offset += frame_samples

    remaining = total - offset
    if remaining > 0:
        yield tuple(samples[offset:]) + (0,) * (frame_samples - remaining)


def pcm16_bytes(frame: Sequence[int]) -> bytes:
    """Pack int16 samples as little-endian PCM bytes."""
    return struct.pack(f"<{len(frame)}h", *frame)
