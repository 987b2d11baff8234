"""Tests for the manifest-driven recognition runner."""

import json
import os
from unittest.mock import patch

import pytest

from speech_pipeline.asr.interface import ASREngine, Unit, Word
from speech_pipeline.asr.merge import merge_units
from speech_pipeline.asr.runner import (
    SUMMARY_FILENAME,
    transcribe_manifest,
    transcribe_records,
    transcribe_source,
)
from speech_pipeline.config import PipelineConfig
from speech_pipeline.manifest import ManifestRecord, write_manifest
from speech_pipeline.utils.errors import ASRError, PipelineError

FAST_RETRY = PipelineConfig(asr_max_retries=1, asr_retry_base_delay=0.0)


class FakeEngine(ASREngine):
    """Answers from a table keyed by chunk file name."""

    name = "fake"

    def __init__(self, answers: dict[str, object]) -> None:
        self.answers = answers
        self.calls: list[tuple[str, float]] = []

    async def transcribe(self, audio_path: str, base_start: float = 0.0) -> Unit | None:
        name = os.path.basename(audio_path)
        self.calls.append((name, base_start))
        answer = self.answers.get(name)
        if isinstance(answer, Exception):
            raise answer
        return answer


def _unit(start: float, *words: tuple[str, float, float]) -> Unit:
    word_list = [Word(w, s, e) for w, s, e in words]
    return Unit(
        start=start,
        end=word_list[-1].end if word_list else start,
        text=" ".join(w for w, _, _ in words),
        words=word_list,
    )


def _record(src: str, index: int, start: float, end: float) -> ManifestRecord:
    stem = os.path.splitext(src)[0]
    return ManifestRecord.from_span(src, f"{stem}_chunk_{index:03d}.wav", start, end)


class TestTranscribeRecords:
    """Tests for transcribe_records()."""

    async def test_passes_offsets_and_keeps_order(self, tmp_path) -> None:
        engine = FakeEngine(
            {
                "talk_chunk_001.wav": _unit(0.0, ("hi", 0.1, 0.3)),
                "talk_chunk_002.wav": _unit(2.0, ("there", 2.1, 2.4)),
            }
        )
        records = [_record("talk.wav", 1, 0.0, 1.0), _record("talk.wav", 2, 2.0, 3.0)]

        units, failed = await transcribe_records(
            records, engine, FAST_RETRY, chunk_dir=str(tmp_path)
        )

        assert failed == 0
        assert [u.text for u in units] == ["hi", "there"]
        assert engine.calls == [("talk_chunk_001.wav", 0.0), ("talk_chunk_002.wav", 2.0)]

    async def test_failure_retried_then_counted(self, tmp_path) -> None:
        engine = FakeEngine({"talk_chunk_001.wav": ASRError("boom")})
        records = [_record("talk.wav", 1, 0.0, 1.0)]

        units, failed = await transcribe_records(
            records, engine, FAST_RETRY, chunk_dir=str(tmp_path)
        )

        assert units == []
        assert failed == 1
        assert len(engine.calls) == 2

    async def test_unexpected_error_counted_without_retry(self, tmp_path) -> None:
        engine = FakeEngine(
            {
                "talk_chunk_001.wav": TypeError("float() argument must be a number"),
                "talk_chunk_002.wav": _unit(2.0, ("there", 2.1, 2.4)),
            }
        )
        records = [_record("talk.wav", 1, 0.0, 1.0), _record("talk.wav", 2, 2.0, 3.0)]

        units, failed = await transcribe_records(
            records, engine, FAST_RETRY, chunk_dir=str(tmp_path)
        )

        assert failed == 1
        assert [u.text for u in units] == ["there"]
        assert [name for name, _ in engine.calls] == ["talk_chunk_001.wav", "talk_chunk_002.wav"]

    async def test_json_written_only_for_units(self, tmp_path) -> None:
        engine = FakeEngine(
            {
                "talk_chunk_001.wav": _unit(0.0, ("hi", 0.1, 0.3)),
                "talk_chunk_002.wav": None,
            }
        )
        records = [_record("talk.wav", 1, 0.0, 1.0), _record("talk.wav", 2, 2.0, 3.0)]
        json_dir = os.path.join(str(tmp_path), "json", "talk")

        units, failed = await transcribe_records(
            records, engine, FAST_RETRY, chunk_dir=str(tmp_path), json_dir=json_dir
        )

        assert (len(units), failed) == (1, 0)
        assert os.listdir(json_dir) == ["talk_chunk_001.json"]
        with open(os.path.join(json_dir, "talk_chunk_001.json"), encoding="utf-8") as f:
            data = json.load(f)
        assert data["words"] == [{"w": "hi", "s": 0.1, "e": 0.3}]


class TestTranscribeSource:
    """Tests for transcribe_source()."""

    async def test_merges_close_units(self, tmp_path) -> None:
        engine = FakeEngine(
            {
                "talk_chunk_001.wav": _unit(0.0, ("hello", 0.1, 0.4), ("there", 0.5, 0.9)),
                "talk_chunk_002.wav": _unit(1.0, ("general", 1.1, 1.5)),
            }
        )
        records = [_record("talk.wav", 1, 0.0, 1.0), _record("talk.wav", 2, 1.0, 2.0)]

        result = await transcribe_source(
            "talk",
            records,
            engine,
            FAST_RETRY,
            chunk_dir=str(tmp_path),
            output_dir=str(tmp_path),
        )

        assert result.unit_count == 2
        (chunk,) = result.chunks
        assert chunk.text == "hello there general"
        assert chunk.end == 1.5
        with open(result.transcript_path, encoding="utf-8") as f:
            assert json.load(f)["chunks"][0]["text"] == "hello there general"

    async def test_all_failed_writes_no_transcript(self, tmp_path) -> None:
        engine = FakeEngine({"talk_chunk_001.wav": ASRError("down")})

        result = await transcribe_source(
            "talk",
            [_record("talk.wav", 1, 0.0, 1.0)],
            engine,
            FAST_RETRY,
            chunk_dir=str(tmp_path),
            output_dir=str(tmp_path),
        )

        assert result.all_failed
        assert result.transcript_path is None
        assert not os.path.exists(os.path.join(str(tmp_path), "talk.transcript.json"))


class TestTranscribeManifest:
    """Tests for transcribe_manifest()."""

    async def test_summary_counts(self, tmp_path) -> None:
        out = str(tmp_path)
        manifest = os.path.join(out, "chunks_manifest.jsonl")
        write_manifest(
            manifest,
            [
                _record("talk.wav", 2, 1.0, 2.0),
                _record("talk.wav", 1, 0.0, 1.0),
                _record("talk.wav", 3, 5.0, 6.0),
                _record("other.wav", 1, 0.0, 1.0),
            ],
        )
        engine = FakeEngine(
            {
                "talk_chunk_001.wav": _unit(0.0, ("hello", 0.1, 0.4)),
                "talk_chunk_002.wav": ASRError("flaky"),
                "talk_chunk_003.wav": None,
                "other_chunk_001.wav": ASRError("down"),
            }
        )

        summary = await transcribe_manifest(manifest, out, engine, FAST_RETRY)

        assert (summary.files, summary.chunks, summary.failed) == (1, 1, 2)
        assert summary.failed_sources == ["other"]
        with open(os.path.join(out, SUMMARY_FILENAME), encoding="utf-8") as f:
            assert json.load(f) == {"files": 1, "chunks": 1, "failed": 2, "provider": "fake"}
        assert os.path.exists(os.path.join(out, "talk.transcript.json"))
        assert not os.path.exists(os.path.join(out, "other.transcript.json"))
        assert sorted(os.listdir(os.path.join(out, "json", "talk"))) == ["talk_chunk_001.json"]

    async def test_one_bad_source_does_not_stop_the_run(self, tmp_path) -> None:
        out = str(tmp_path)
        manifest = os.path.join(out, "chunks_manifest.jsonl")
        write_manifest(
            manifest,
            [
                _record("bad.wav", 1, 0.0, 1.0),
                _record("good.wav", 1, 0.0, 1.0),
                _record("worse.wav", 1, 0.0, 1.0),
            ],
        )
        engine = FakeEngine(
            {
                "bad_chunk_001.wav": json.JSONDecodeError("Expecting value", "<html>", 0),
                "good_chunk_001.wav": _unit(0.0, ("fine", 0.1, 0.4)),
                "worse_chunk_001.wav": _unit(0.0, ("boom", 0.1, 0.4)),
            }
        )

        def crash_on_worse(units, *, source, **kwargs):
            if source == "worse":
                raise KeyError("start")
            return merge_units(units, source=source, **kwargs)

        with patch("speech_pipeline.asr.runner.merge_units", side_effect=crash_on_worse):
            summary = await transcribe_manifest(manifest, out, engine, FAST_RETRY)

        assert (summary.files, summary.chunks, summary.failed) == (1, 1, 2)
        assert sorted(summary.failed_sources) == ["bad", "worse"]
        assert os.path.exists(os.path.join(out, "good.transcript.json"))
        assert not os.path.exists(os.path.join(out, "worse.transcript.json"))
        assert os.path.exists(os.path.join(out, SUMMARY_FILENAME))

    async def test_missing_manifest_raises(self, tmp_path) -> None:
        engine = FakeEngine({})
        with pytest.raises(PipelineError, match="Manifest not found"):
            await transcribe_manifest(
                os.path.join(str(tmp_path), "nope.jsonl"), str(tmp_path), engine, FAST_RETRY
            )
