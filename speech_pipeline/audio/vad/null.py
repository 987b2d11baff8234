"""Null frame classifier that marks every frame as speech.

Used when VAD is disabled or for testing. Spans then cover the whole
recording, split at the configured maximum chunk length.
"""

from collections.abc import Sequence

from speech_pipeline.audio.vad.interface import FrameClassifier
from speech_pipeline.audio.wav_utils import SAMPLE_RATE


class NullFrameClassifier(FrameClassifier):
    """Passthrough classifier that treats every frame as speech.

    Args:
        frame_ms: Frame length in milliseconds (default 10).
        sample_rate: Sample rate in Hz (default 16000).
    """

    def __init__(self, frame_ms: int = 10, sample_rate: int = SAMPLE_RATE) -> None:
        self.sample_rate = sample_rate
        self.frame_samples = sample_rate * frame_ms // 1000

    def _is_speech(self, frame: Sequence[int]) -> bool:
        return True

    def reset(self) -> None:
        """Nothing to clear."""
