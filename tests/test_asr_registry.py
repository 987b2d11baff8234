"""Tests for the ASR engine registry."""

import pytest

from speech_pipeline.asr.registry import ASR_ENGINES, engine_for_config, get_asr_engine
from speech_pipeline.asr.speechmatics import SpeechmaticsEngine
from speech_pipeline.config import PipelineConfig
from speech_pipeline.utils.errors import ASRError


class TestASRRegistry:
    """Tests for get_asr_engine()."""

    def test_speechmatics_registered(self) -> None:
        assert ASR_ENGINES["speechmatics"] is SpeechmaticsEngine

    def test_creates_engine_with_kwargs(self) -> None:
        engine = get_asr_engine("speechmatics", api_key="k", language="fr")
        assert isinstance(engine, SpeechmaticsEngine)
        assert engine._language == "fr"

    def test_creates_engine_from_config(self) -> None:
        config = PipelineConfig(speechmatics_api_key="k", asr_language="es")
        engine = engine_for_config(config)
        assert engine._language == "es"

    def test_unknown_provider(self) -> None:
        with pytest.raises(ASRError, match="Unknown ASR provider: 'whisper'") as exc_info:
            get_asr_engine("whisper")
        assert exc_info.value.provider == "whisper"
        assert "speechmatics" in str(exc_info.value)

    def test_missing_api_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            get_asr_engine("speechmatics", api_key="")

    def test_config_without_key_is_asr_error(self) -> None:
        with pytest.raises(ASRError, match="Cannot configure speechmatics") as exc_info:
            engine_for_config(PipelineConfig())
        assert exc_info.value.provider == "speechmatics"

