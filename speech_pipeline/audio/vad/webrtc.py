"""WebRTC voice activity detection via the webrtcvad bindings.

Frames are 10, 20 or 30 ms of 16-bit mono PCM at 8, 16, 32 or 48 kHz.
The aggressiveness mode (0-3, 3 = most aggressive at rejecting
non-speech) is fixed for the life of the classifier.
"""

from collections.abc import Sequence

import webrtcvad

from speech_pipeline.audio.vad.interface import FrameClassifier
from speech_pipeline.audio.wav_utils import SAMPLE_RATE, pcm16_bytes
from speech_pipeline.utils.errors import DetectorInitError, VADError

DEFAULT_MODE = 2
DEFAULT_FRAME_MS = 10
SUPPORTED_FRAME_MS = (10, 20, 30)
SUPPORTED_SAMPLE_RATES = (8000, 16000, 32000, 48000)


class WebRTCFrameClassifier(FrameClassifier):
    """Per-frame speech decisions from the WebRTC GMM detector.

    Args:
        mode: Aggressiveness 0-3 (default 2).
        sample_rate: Sample rate in Hz (default 16000).
        frame_ms: Frame length in ms, 10/20/30 (default 10).

    Raises:
        DetectorInitError: On an unsupported configuration or if the
            detector cannot be created.
    """

    def __init__(
        self,
        mode: int = DEFAULT_MODE,
        sample_rate: int = SAMPLE_RATE,
        frame_ms: int = DEFAULT_FRAME_MS,
    ) -> None:
        if not 0 <= mode <= 3:
            raise DetectorInitError(f"WebRTC VAD mode must be 0..3, got {mode}")
        if sample_rate not in SUPPORTED_SAMPLE_RATES:
            raise DetectorInitError(
                f"WebRTC VAD does not support {sample_rate} Hz audio"
            )
        if frame_ms not in SUPPORTED_FRAME_MS:
            raise DetectorInitError(
                f"WebRTC VAD frame size must be 10, 20, or 30 ms, got {frame_ms}"
            )
        self.mode = mode
        self.sample_rate = sample_rate
        self.frame_samples = sample_rate * frame_ms // 1000
        self._vad = self._create()

    def _create(self) -> "webrtcvad.Vad":
        try:
            return webrtcvad.Vad(self.mode)
        except Exception as exc:
            raise DetectorInitError(
                "Failed to initialize WebRTC VAD", detail=str(exc)
            ) from exc

    def _is_speech(self, frame: Sequence[int]) -> bool:
        try:
            return bool(self._vad.is_speech(pcm16_bytes(frame), self.sample_rate))
        except Exception as exc:
            raise VADError("WebRTC VAD failed to process frame", detail=str(exc)) from exc

    def reset(self) -> None:
        """Rebuild the detector with the same mode, dropping its history."""
        self._vad = self._create()

    def _release(self) -> None:
        self._vad = None
