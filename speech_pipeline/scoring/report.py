"""Scoring transcripts against plain-text references."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from speech_pipeline.asr.runner import TRANSCRIPT_SUFFIX
from speech_pipeline.scoring.wer import ErrorReport, word_error_rate
from speech_pipeline.utils.errors import ScoringError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class FileScore:
    """Score for one transcript/reference pair."""

    base: str
    report: ErrorReport

    @property
    def wer(self) -> float:
        return self.report.wer

    def describe(self) -> str:
        r = self.report
        return (
            f"{self.base}  WER={self.wer * 100:.2f}%   "
            f"(S={r.substitutions}, D={r.deletions}, I={r.insertions}, "
            f"N={r.reference_length})"
        )


@dataclass
class ScoreSummary:
    """Scores for a directory of transcripts."""

    scores: list[FileScore] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def weighted_wer(self) -> float:
        """Average WER weighted by reference length (0.0 if nothing scored)."""
        total_n = sum(s.report.reference_length for s in self.scores)
        if total_n == 0:
            return 0.0
        return sum(s.report.errors for s in self.scores) / total_n


def transcript_base(path: str) -> str:
    """'<dir>/talk.transcript.json' -> 'talk'."""
    name = Path(path).name
    if name.endswith(TRANSCRIPT_SUFFIX):
        return name[: -len(TRANSCRIPT_SUFFIX)]
    return Path(path).stem


def load_hypothesis_text(transcript_path: str) -> str:
    """Assemble hypothesis text from a transcript JSON.

    Chunk texts are joined with spaces; a chunk with blank text falls
    back to its joined word texts.

    Raises:
        ScoringError: If the file cannot be read or parsed.
    """
    try:
        with open(transcript_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ScoringError(
            f"Cannot read transcript: {exc}", path=transcript_path
        ) from exc

    chunks = data.get("chunks") if isinstance(data, dict) else None
    if not chunks:
        return ""

    texts = []
    for chunk in chunks:
        text = (chunk.get("text") or "").strip()
        if not text:
            text = " ".join(w.get("w", "") for w in chunk.get("words") or [])
        texts.append(text)
    return _WHITESPACE.sub(" ", " ".join(texts)).strip()


def load_reference_text(reference_path: str) -> str:
    try:
        with open(reference_path, encoding="utf-8") as f:
            return f.read()
    except OSError as exc:
        raise ScoringError(
            f"Cannot read reference: {exc}", path=reference_path
        ) from exc


def score_pair(transcript_path: str, reference_path: str) -> FileScore:
    """Score one transcript against one reference file.

    Raises:
        ScoringError: If either file is missing or unreadable.
    """
    for path, kind in ((transcript_path, "hypothesis"), (reference_path, "reference")):
        if not os.path.exists(path):
            raise ScoringError(f"Missing {kind}: {path}", path=path)

    report = word_error_rate(
        load_reference_text(reference_path),
        load_hypothesis_text(transcript_path),
    )
    return FileScore(base=transcript_base(transcript_path), report=report)


def score_directory(transcripts_dir: str, refs_dir: str) -> ScoreSummary:
    """Score every ``<base>.transcript.json`` against ``<refs_dir>/<base>.txt``.

    Pairs with a missing or unreadable file are logged and skipped.

    Raises:
        ScoringError: If the directory holds no transcripts.
    """
    names = sorted(
        n for n in os.listdir(transcripts_dir) if n.endswith(TRANSCRIPT_SUFFIX)
    )
    if not names:
        raise ScoringError(
            f"No transcript files found in {transcripts_dir}", path=transcripts_dir
        )

    summary = ScoreSummary()
    for name in names:
        base = transcript_base(name)
        try:
            score = score_pair(
                os.path.join(transcripts_dir, name),
                os.path.join(refs_dir, f"{base}.txt"),
            )
        except ScoringError as exc:
            logger.warning("Skipping %s: %s", base, exc, extra={"source": base})
            summary.skipped.append(base)
            continue
        logger.info(score.describe(), extra={"source": base, "stage": "score"})
        summary.scores.append(score)
    return summary
