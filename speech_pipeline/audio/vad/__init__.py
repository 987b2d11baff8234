"""Pluggable per-frame voice activity classifiers.

Public API:
    FrameClassifier        Abstract base class for frame classifiers.
    WebRTCFrameClassifier  WebRTC VAD (webrtcvad), 10/20/30 ms frames.
    SileroFrameClassifier  Silero VAD v6 using ONNX runtime.
    CobraFrameClassifier   Picovoice Cobra.
    NullFrameClassifier    Marks every frame as speech.
    classify_samples       Classify a sample buffer frame by frame.
    get_frame_classifier   Factory to create classifiers by provider name.
"""

from speech_pipeline.audio.vad.cobra import CobraFrameClassifier
from speech_pipeline.audio.vad.interface import (
    FrameClassifier,
    classify_frames,
    classify_samples,
)
from speech_pipeline.audio.vad.null import NullFrameClassifier
from speech_pipeline.audio.vad.registry import get_frame_classifier
from speech_pipeline.audio.vad.silero import SileroFrameClassifier
from speech_pipeline.audio.vad.webrtc import WebRTCFrameClassifier

__all__ = [
    "FrameClassifier",
    "WebRTCFrameClassifier",
    "SileroFrameClassifier",
    "CobraFrameClassifier",
    "NullFrameClassifier",
    "classify_frames",
    "classify_samples",
    "get_frame_classifier",
]
