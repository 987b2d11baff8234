"""Recognizer lookup by provider name.

The CLI and the end-to-end pipeline build their recognizer through
engine_for_config(); get_asr_engine() is the lower-level lookup.
"""

from speech_pipeline.asr.interface import ASREngine
from speech_pipeline.asr.speechmatics import SpeechmaticsEngine
from speech_pipeline.config import PipelineConfig
from speech_pipeline.utils.errors import ASRError

ASR_ENGINES: dict[str, type[ASREngine]] = {
    SpeechmaticsEngine.name: SpeechmaticsEngine,
}


def get_asr_engine(provider: str, **kwargs: object) -> ASREngine:
    """Instantiate the recognizer registered under ``provider``.

    Raises:
        ASRError: If no recognizer is registered under that name.
    """
    try:
        engine_cls = ASR_ENGINES[provider]
    except KeyError:
        raise ASRError(
            f"Unknown ASR provider: '{provider}'. "
            f"Available: {', '.join(sorted(ASR_ENGINES))}",
            provider=provider,
        ) from None
    return engine_cls(**kwargs)


def engine_for_config(config: PipelineConfig) -> ASREngine:
    """Build the configured recognizer.

    Raises:
        ASRError: If the provider is unknown or rejects its settings
            (for example a missing API key).
    """
    try:
        return get_asr_engine(config.asr_provider, **config.asr_kwargs())
    except ValueError as exc:
        raise ASRError(
            f"Cannot configure {config.asr_provider}: {exc}",
            provider=config.asr_provider,
        ) from exc
