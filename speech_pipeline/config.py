"""Environment-driven pipeline configuration.

Every tunable is read from an environment variable with a default
matching the reference tool configuration. Construct once per run with
PipelineConfig.from_env() and pass it down; no module reads os.environ
on its own after that.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got '{raw}'") from exc


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from exc


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


@dataclass(frozen=True)
class PipelineConfig:
    """Tunables for preparation, segmentation, recognition and merging."""

    target_sample_rate: int = 16000
    normalize_dbfs: float = -20.0

    vad_provider: str = "webrtc"
    vad_mode: int = 2
    vad_threshold: float = 0.5
    vad_frame_ms: int = 10
    pad_sec: float = 0.15
    max_chunk_sec: float = 30.0
    min_speech_sec: float = 0.30
    silero_model_path: str = ""
    picovoice_access_key: str = ""

    asr_provider: str = "speechmatics"
    asr_language: str = "en"
    speechmatics_api_key: str = ""
    asr_max_retries: int = 3
    asr_retry_base_delay: float = 1.0

    max_merge_gap_sec: float = 0.5
    max_merge_duration_sec: float = 30.0

    workers: int = 1

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> PipelineConfig:
        """Build a config from environment variables.

        Args:
            env: Mapping to read from. Defaults to os.environ.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            target_sample_rate=_env_int(
                env, "AUDIO_TARGET_SAMPLE_RATE", defaults.target_sample_rate
            ),
            normalize_dbfs=_env_float(
                env, "AUDIO_NORMALIZE_DBFS", defaults.normalize_dbfs
            ),
            vad_provider=_env_str(env, "VAD_PROVIDER", defaults.vad_provider),
            vad_mode=_env_int(env, "VAD_MODE", defaults.vad_mode),
            vad_threshold=_env_float(env, "VAD_THRESHOLD", defaults.vad_threshold),
            vad_frame_ms=_env_int(env, "VAD_FRAME_MS", defaults.vad_frame_ms),
            pad_sec=_env_float(env, "VAD_PAD_SEC", defaults.pad_sec),
            max_chunk_sec=_env_float(env, "VAD_MAX_CHUNK_SEC", defaults.max_chunk_sec),
            min_speech_sec=_env_float(
                env, "VAD_MIN_SPEECH_SEC", defaults.min_speech_sec
            ),
            silero_model_path=_env_str(
                env, "SILERO_MODEL_PATH", defaults.silero_model_path
            ),
            picovoice_access_key=_env_str(
                env, "PICOVOICE_ACCESS_KEY", defaults.picovoice_access_key
            ),
            asr_provider=_env_str(env, "ASR_PROVIDER", defaults.asr_provider),
            asr_language=_env_str(env, "ASR_LANGUAGE", defaults.asr_language),
            speechmatics_api_key=_env_str(
                env, "SPEECHMATICS_API_KEY", defaults.speechmatics_api_key
            ),
            asr_max_retries=_env_int(env, "ASR_MAX_RETRIES", defaults.asr_max_retries),
            asr_retry_base_delay=_env_float(
                env, "ASR_RETRY_BASE_DELAY", defaults.asr_retry_base_delay
            ),
            max_merge_gap_sec=_env_float(
                env, "ASR_MAX_MERGE_GAP_SEC", defaults.max_merge_gap_sec
            ),
            max_merge_duration_sec=_env_float(
                env, "ASR_MAX_MERGE_DURATION_SEC", defaults.max_merge_duration_sec
            ),
            workers=max(1, _env_int(env, "PIPELINE_WORKERS", defaults.workers)),
        )

    def vad_kwargs(self) -> dict[str, object]:
        """Constructor arguments for the configured frame classifier."""
        if self.vad_provider == "webrtc":
            return {"mode": self.vad_mode, "sample_rate": self.target_sample_rate}
        if self.vad_provider == "silero":
            kwargs: dict[str, object] = {"threshold": self.vad_threshold}
            if self.silero_model_path:
                kwargs["model_path"] = self.silero_model_path
            return kwargs
        if self.vad_provider == "cobra":
            return {
                "access_key": self.picovoice_access_key,
                "threshold": self.vad_threshold,
            }
        return {}

    def asr_kwargs(self) -> dict[str, object]:
        """Constructor arguments for the configured recognizer."""
        if self.asr_provider == "speechmatics":
            return {
                "api_key": self.speechmatics_api_key,
                "language": self.asr_language,
            }
        return {}
