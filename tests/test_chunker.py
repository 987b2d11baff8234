"""Tests for voice-activity chunking of prepared WAV files."""

import json
import os
from unittest.mock import patch

import pytest

from speech_pipeline.audio.chunker import (
    chunk_directory,
    chunk_file,
    segment_samples,
    write_span_chunks,
)
from speech_pipeline.audio.spans import Span
from speech_pipeline.audio.vad.interface import FrameClassifier
from speech_pipeline.audio.wav_utils import read_wav_samples, write_wav_samples
from speech_pipeline.config import PipelineConfig
from speech_pipeline.manifest import MANIFEST_FILENAME
from speech_pipeline.utils.errors import DetectorInitError, PipelineError

SR = 16000


class _AmplitudeClassifier(FrameClassifier):
    """Speech when any sample in the 10 ms frame exceeds 100."""

    instances: list["_AmplitudeClassifier"] = []

    def __init__(self, **kwargs: object) -> None:
        self.sample_rate = SR
        self.frame_samples = 160
        self.released = False
        _AmplitudeClassifier.instances.append(self)

    def _is_speech(self, frame) -> bool:
        return max(abs(s) for s in frame) > 100

    def reset(self) -> None:
        pass

    def _release(self) -> None:
        self.released = True


def _speech_wav(path: str, silence_sec: float = 0.5, speech_sec: float = 1.0) -> None:
    silence = [0] * int(silence_sec * SR)
    speech = [1000, -1000] * int(speech_sec * SR / 2)
    write_wav_samples(path, silence + speech + silence, SR)


@pytest.fixture
def amplitude_vad():
    _AmplitudeClassifier.instances = []
    with patch(
        "speech_pipeline.audio.chunker.get_frame_classifier",
        side_effect=lambda provider, **kw: _AmplitudeClassifier(**kw),
    ):
        yield _AmplitudeClassifier


class TestSegmentSamples:
    """Tests for segment_samples()."""

    def test_null_classifier_covers_whole_audio(self) -> None:
        config = PipelineConfig(vad_provider="null", pad_sec=0.0, max_chunk_sec=30.0)
        result = segment_samples([0] * SR, config)
        assert len(result.spans) == 1
        assert result.spans[0].start == 0.0
        assert result.spans[0].end == pytest.approx(1.0)
        assert result.frame_count == 100
        assert result.speech_ratio == pytest.approx(1.0)

    def test_null_classifier_split_by_max_chunk(self) -> None:
        config = PipelineConfig(vad_provider="null", pad_sec=0.0, max_chunk_sec=0.4)
        result = segment_samples([0] * SR, config)
        assert len(result.spans) == 3

    def test_empty_audio(self) -> None:
        result = segment_samples([], PipelineConfig(vad_provider="null"))
        assert result.spans == []
        assert result.speech_ratio == 0.0

    def test_detector_released(self, amplitude_vad) -> None:
        segment_samples([0] * 320, PipelineConfig())
        assert amplitude_vad.instances[0].released

    def test_speech_region_found(self, amplitude_vad) -> None:
        samples = [0] * 8000 + [1000] * 16000 + [0] * 8000
        config = PipelineConfig(pad_sec=0.0)
        result = segment_samples(samples, config)
        (span,) = result.spans
        assert span.start == pytest.approx(0.5)
        assert span.end == pytest.approx(1.5)
        assert result.speech_duration_seconds == pytest.approx(1.0)

    def test_detector_init_failure_propagates(self) -> None:
        with patch(
            "speech_pipeline.audio.chunker.get_frame_classifier",
            side_effect=DetectorInitError("no detector"),
        ):
            with pytest.raises(DetectorInitError):
                segment_samples([0] * 160, PipelineConfig())


class TestWriteSpanChunks:
    """Tests for cutting spans into WAV files."""

    def test_slices_truncated_at_audio_end(self, tmp_path) -> None:
        samples = list(range(100)) * 160  # 1 s
        records = write_span_chunks(
            samples,
            [Span(0.0, 0.5), Span(0.75, 2.0)],
            sample_rate=SR,
            output_dir=str(tmp_path),
            src="talk.wav",
        )
        assert [r.chunk for r in records] == ["talk_chunk_001.wav", "talk_chunk_002.wav"]
        assert len(read_wav_samples(os.path.join(str(tmp_path), "talk_chunk_001.wav"))) == 8000
        assert len(read_wav_samples(os.path.join(str(tmp_path), "talk_chunk_002.wav"))) == 4000
        assert records[1].end == 2.0

    def test_partial_failure_removes_written_chunks(self, tmp_path) -> None:
        calls = 0
        real_write = write_wav_samples

        def failing_write(path, samples, rate):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise OSError("disk full")
            real_write(path, samples, rate)

        with patch("speech_pipeline.audio.chunker.write_wav_samples", side_effect=failing_write):
            with pytest.raises(OSError):
                write_span_chunks(
                    [0] * SR,
                    [Span(0.0, 0.25), Span(0.5, 0.75)],
                    sample_rate=SR,
                    output_dir=str(tmp_path),
                    src="talk.wav",
                )
        assert not any(n.endswith(".wav") for n in os.listdir(str(tmp_path)))


class TestChunkFile:
    """Tests for chunk_file()."""

    def test_writes_padded_chunk_and_record(self, tmp_path, amplitude_vad) -> None:
        wav = os.path.join(str(tmp_path), "talk.wav")
        _speech_wav(wav)
        out = os.path.join(str(tmp_path), "out")

        result = chunk_file(wav, out, PipelineConfig(pad_sec=0.15))

        (record,) = result.records
        assert record.src == "talk.wav"
        assert record.chunk == "talk_chunk_001.wav"
        assert record.start == pytest.approx(0.35)
        assert record.end == pytest.approx(1.65)
        assert record.duration == pytest.approx(1.3)
        chunk_samples = read_wav_samples(os.path.join(out, record.chunk))
        assert len(chunk_samples) == pytest.approx(1.3 * SR, abs=2)
        assert result.metrics.status == "completed"
        assert result.metrics.span_count == 1
        assert set(result.metrics.stage_timings) == {"read", "vad", "cut"}

    def test_silence_gives_no_chunks(self, tmp_path, amplitude_vad) -> None:
        wav = os.path.join(str(tmp_path), "quiet.wav")
        write_wav_samples(wav, [0] * SR, SR)
        result = chunk_file(wav, str(tmp_path / "out"), PipelineConfig())
        assert result.records == []

    def test_wrong_rate_rejected(self, tmp_path) -> None:
        wav = os.path.join(str(tmp_path), "talk.wav")
        write_wav_samples(wav, [0] * 800, 8000)
        with pytest.raises(ValueError, match="16000 Hz"):
            chunk_file(wav, str(tmp_path), PipelineConfig(vad_provider="null"))


class TestChunkDirectory:
    """Tests for chunk_directory()."""

    def test_isolates_failures_and_writes_manifest(self, tmp_path, amplitude_vad) -> None:
        inp = os.path.join(str(tmp_path), "in")
        out = os.path.join(str(tmp_path), "out")
        os.makedirs(inp)
        _speech_wav(os.path.join(inp, "a.wav"))
        _speech_wav(os.path.join(inp, "b.wav"))
        write_wav_samples(os.path.join(inp, "bad.wav"), [0] * 80, 8000)
        with open(os.path.join(inp, "notes.txt"), "w") as f:
            f.write("skip me")

        summary = chunk_directory(inp, out, PipelineConfig(workers=2))

        assert summary.files == 3
        assert summary.succeeded == 2
        assert summary.failed == 1
        assert summary.chunks == 2
        assert summary.failed_files == [os.path.join(inp, "bad.wav")]
        with open(os.path.join(out, MANIFEST_FILENAME), encoding="utf-8") as f:
            rows = [json.loads(line) for line in f]
        assert sorted(r["src"] for r in rows) == ["a.wav", "b.wav"]
        assert not any(n.startswith("bad_") for n in os.listdir(out))
        assert len(amplitude_vad.instances) == 2

    def test_no_wav_files_raises(self, tmp_path) -> None:
        with pytest.raises(PipelineError, match="No WAV files"):
            chunk_directory(str(tmp_path), str(tmp_path / "out"), PipelineConfig())
