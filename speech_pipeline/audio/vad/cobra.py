"""Picovoice Cobra frame classifier.

Cobra reports a voice probability per frame; frame length and sample
rate are dictated by the engine (512 samples at 16 kHz). Requires a
Picovoice access key.
"""

from collections.abc import Sequence

import pvcobra

from speech_pipeline.audio.vad.interface import FrameClassifier
from speech_pipeline.utils.errors import DetectorInitError, VADError

DEFAULT_THRESHOLD = 0.5


class CobraFrameClassifier(FrameClassifier):
    """Per-frame speech decisions from Picovoice Cobra.

    Args:
        access_key: Picovoice access key for Cobra initialization.
        threshold: Voice probability threshold (default 0.5).

    Raises:
        DetectorInitError: If the key is missing or Cobra cannot start.
    """

    def __init__(self, access_key: str, threshold: float = DEFAULT_THRESHOLD) -> None:
        if not access_key:
            raise DetectorInitError("Cobra requires a Picovoice access key")
        self._access_key = access_key
        self.threshold = threshold
        self._cobra: "pvcobra.Cobra | None" = self._create()
        self.frame_samples = self._cobra.frame_length
        self.sample_rate = self._cobra.sample_rate

    def _create(self) -> "pvcobra.Cobra":
        try:
            return pvcobra.create(access_key=self._access_key)
        except Exception as exc:
            raise DetectorInitError(
                f"Failed to initialize Cobra: {exc}", detail=str(exc)
            ) from exc

    def _is_speech(self, frame: Sequence[int]) -> bool:
        try:
            voice_probability = self._cobra.process(list(frame))
        except Exception as exc:
            raise VADError("Cobra failed to process frame", detail=str(exc)) from exc
        return voice_probability >= self.threshold

    def reset(self) -> None:
        """Recreate the engine; Cobra exposes no in-place reset."""
        self._release()
        self._cobra = self._create()

    def _release(self) -> None:
        if self._cobra is not None:
            self._cobra.delete()
            self._cobra = None
