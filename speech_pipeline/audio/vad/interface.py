"""Abstract per-frame speech classifier interface.

A FrameClassifier owns one external detector instance. The detector
keeps memory of previous frames, so an instance must only ever see the
frames of one recording, in order, from one thread. Construct a new
classifier per file (or per worker) and release it with close() or by
using the classifier as a context manager.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from speech_pipeline.audio.wav_utils import iter_frames
from speech_pipeline.utils.errors import InvalidFrameLengthError, VADError


class FrameClassifier(ABC):
    """Abstract base class for per-frame speech/non-speech detectors.

    Subclasses set ``frame_samples`` and ``sample_rate`` during
    construction and implement _is_speech(), reset() and _release().
    """

    frame_samples: int
    sample_rate: int

    _closed: bool = False

    @property
    def frame_duration(self) -> float:
        """Seconds covered by one frame."""
        return self.frame_samples / self.sample_rate

    def classify(self, frame: Sequence[int]) -> bool:
        """Decide whether a single frame contains speech.

        Args:
            frame: Exactly frame_samples int16 values.

        Returns:
            True if the detector reports speech.

        Raises:
            VADError: If the classifier has been closed.
            InvalidFrameLengthError: If the frame has the wrong length.
        """
        if self._closed:
            raise VADError("Frame classifier is closed")
        if len(frame) != self.frame_samples:
            raise InvalidFrameLengthError(self.frame_samples, len(frame))
        return self._is_speech(frame)

    @abstractmethod
    def _is_speech(self, frame: Sequence[int]) -> bool:
        """Run the detector on a frame of the correct length."""

    @abstractmethod
    def reset(self) -> None:
        """Clear detector memory, keeping mode and sample rate."""

    def _release(self) -> None:
        """Free the underlying detector. Default: nothing to free."""

    def close(self) -> None:
        """Release the detector. Calling close() twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        self._release()

    def __enter__(self) -> FrameClassifier:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()


def classify_frames(
    classifier: FrameClassifier, frames: Iterable[Sequence[int]]
) -> list[bool]:
    """Classify frames in order, one flag per frame."""
    return [classifier.classify(frame) for frame in frames]


def classify_samples(classifier: FrameClassifier, samples: Sequence[int]) -> list[bool]:
    """Classify a whole sample buffer, zero-padding the last partial frame.

    Returns an empty list for empty input.
    """
    return classify_frames(classifier, iter_frames(samples, classifier.frame_samples))
