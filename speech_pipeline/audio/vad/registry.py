"""Frame classifier registry with configuration-driven provider selection.

Maps provider name strings to classifier classes. Use
get_frame_classifier() to instantiate a classifier by name with
provider-specific configuration. Every call builds a fresh detector.
"""

from speech_pipeline.audio.vad.cobra import CobraFrameClassifier
from speech_pipeline.audio.vad.interface import FrameClassifier
from speech_pipeline.audio.vad.null import NullFrameClassifier
from speech_pipeline.audio.vad.silero import SileroFrameClassifier
from speech_pipeline.audio.vad.webrtc import WebRTCFrameClassifier
from speech_pipeline.utils.errors import VADError

FRAME_CLASSIFIERS: dict[str, type[FrameClassifier]] = {
    "webrtc": WebRTCFrameClassifier,
    "silero": SileroFrameClassifier,
    "cobra": CobraFrameClassifier,
    "null": NullFrameClassifier,
}


def get_frame_classifier(provider: str, **kwargs: object) -> FrameClassifier:
    """Create a frame classifier instance by provider name.

    Args:
        provider: Provider name (e.g., "webrtc", "silero", "null").
        **kwargs: Provider-specific configuration passed to the constructor.

    Returns:
        A newly initialized FrameClassifier.

    Raises:
        VADError: If the provider name is not registered.
        DetectorInitError: If the detector cannot be created.
    """
    classifier_cls = FRAME_CLASSIFIERS.get(provider)
    if not classifier_cls:
        available = ", ".join(sorted(FRAME_CLASSIFIERS.keys()))
        raise VADError(
            f"Unknown VAD provider: '{provider}'. Available: {available}"
        )
    return classifier_cls(**kwargs)
