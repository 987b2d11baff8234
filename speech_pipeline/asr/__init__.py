"""Automatic speech recognition and transcript consolidation."""

from speech_pipeline.asr.interface import ASREngine, Chunk, Unit, Word
from speech_pipeline.asr.merge import merge_units
from speech_pipeline.asr.registry import get_asr_engine

__all__ = ["ASREngine", "Chunk", "Unit", "Word", "get_asr_engine", "merge_units"]
