"""Silero VAD v6 frame classifier using ONNX runtime inference.

Classifies 16kHz mono PCM in 512-sample frames with the silero_vad.onnx
model. The model is recurrent: its state tensor carries over from frame
to frame and is zeroed by reset().
"""

from collections.abc import Sequence
from pathlib import Path

import numpy as np
import onnxruntime as ort

from speech_pipeline.audio.vad.interface import FrameClassifier
from speech_pipeline.audio.wav_utils import SAMPLE_RATE
from speech_pipeline.utils.errors import DetectorInitError, VADError

FRAME_SIZE = 512
DEFAULT_THRESHOLD = 0.5
STATE_SHAPE = (2, 1, 128)

_MODEL_PATH = Path(__file__).parent / "models" / "silero_vad.onnx"


class SileroFrameClassifier(FrameClassifier):
    """Silero VAD v6 with ONNX runtime inference.

    Args:
        threshold: Speech probability threshold (default 0.5).
        model_path: Path to the ONNX model file. Defaults to the packaged model.

    Raises:
        DetectorInitError: If the model cannot be loaded.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        model_path: str | None = None,
    ) -> None:
        self.threshold = threshold
        self.sample_rate = SAMPLE_RATE
        self.frame_samples = FRAME_SIZE
        resolved_path = model_path or str(_MODEL_PATH)
        try:
            self._session = ort.InferenceSession(resolved_path)
        except Exception as exc:
            raise DetectorInitError(
                f"Failed to load Silero VAD model: {resolved_path}",
                detail=str(exc),
            ) from exc
        self._sr = np.array(SAMPLE_RATE, dtype=np.int64)
        self._state = np.zeros(STATE_SHAPE, dtype=np.float32)

    def speech_probability(self, frame: Sequence[int]) -> float:
        """Run one inference step and return the speech probability."""
        chunk = (np.asarray(frame, dtype=np.float32) / 32768.0).reshape(1, -1)
        try:
            output, self._state = self._session.run(
                ["output", "stateN"],
                {"input": chunk, "state": self._state, "sr": self._sr},
            )
        except Exception as exc:
            raise VADError("ONNX inference failed", detail=str(exc)) from exc
        return float(output[0][0])

    def _is_speech(self, frame: Sequence[int]) -> bool:
        return self.speech_probability(frame) >= self.threshold

    def reset(self) -> None:
        """Zero the recurrent state."""
        self._state = np.zeros(STATE_SHAPE, dtype=np.float32)

    def _release(self) -> None:
        self._session = None
