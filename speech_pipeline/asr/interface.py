"""Abstract ASR engine interface and transcript data models.

An ASREngine turns one chunk WAV into a Unit whose times are absolute
offsets into the source recording. Units are consolidated into Chunks
by speech_pipeline.asr.merge.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from speech_pipeline.utils.errors import MalformedUnitError


@dataclass
class Word:
    """A single recognized word with absolute timing in seconds."""

    text: str
    start: float
    end: float

    def to_dict(self) -> dict[str, Any]:
        return {"w": self.text, "s": self.start, "e": self.end}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Word:
        """Read the compact {w, s, e} form (long field names also accepted)."""
        try:
            text = data.get("w", data.get("text", ""))
            start = float(data.get("s", data.get("start")))
            end = float(data.get("e", data.get("end")))
        except (TypeError, ValueError, AttributeError) as exc:
            raise MalformedUnitError(f"Invalid word record: {data!r}") from exc
        return cls(text=str(text), start=start, end=end)


@dataclass
class Unit:
    """Recognition result for one span."""

    start: float
    end: float
    text: str = ""
    words: list[Word] = field(default_factory=list)

    def validate(self) -> None:
        """Check timing fields and word order.

        Raises:
            MalformedUnitError: If start/end is missing, a word ends before
                it starts, or a word starts before the previous one ends.
        """
        if self.start is None or self.end is None:
            raise MalformedUnitError(
                "Unit is missing start or end", unit_start=self.start
            )
        previous_end: float | None = None
        for word in self.words:
            if word.end < word.start:
                raise MalformedUnitError(
                    f"Word '{word.text}' ends before it starts "
                    f"({word.start} > {word.end})",
                    unit_start=self.start,
                )
            if previous_end is not None and word.start < previous_end:
                raise MalformedUnitError(
                    f"Word '{word.text}' at {word.start} overlaps previous "
                    f"word ending at {previous_end}",
                    unit_start=self.start,
                )
            previous_end = word.end

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "words": [w.to_dict() for w in self.words],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Unit:
        """Deserialize a unit record.

        Raises:
            MalformedUnitError: If start/end is missing or not a number.
        """
        start = data.get("start")
        end = data.get("end")
        if start is None or end is None:
            raise MalformedUnitError("Unit is missing start or end")
        try:
            start_f, end_f = float(start), float(end)
        except (TypeError, ValueError) as exc:
            raise MalformedUnitError(f"Invalid unit times: {exc}") from exc
        words = [Word.from_dict(w) for w in data.get("words") or []]
        return cls(start=start_f, end=end_f, text=data.get("text") or "", words=words)


@dataclass
class Chunk:
    """A finalized transcript segment built from one or more Units."""

    start: float
    end: float
    text: str = ""
    words: list[Word] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "words": [w.to_dict() for w in self.words],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Chunk:
        unit = Unit.from_dict(data)
        return cls(start=unit.start, end=unit.end, text=unit.text, words=unit.words)


class ASREngine(ABC):
    """Abstract base class for ASR engine implementations.

    Subclasses must implement the transcribe() method.
    """

    name: str = "unknown"

    @abstractmethod
    async def transcribe(self, audio_path: str, base_start: float = 0.0) -> Unit | None:
        """Transcribe one chunk WAV.

        Args:
            audio_path: Path to the chunk (16kHz mono 16-bit PCM WAV).
            base_start: Offset of the chunk in the source recording, added
                to every timestamp the engine produces.

        Returns:
            A Unit with absolute times, or None when no speech was found.
        """
