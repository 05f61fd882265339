"""Configuration and stream item types shared by the STT and TTS providers."""

from .stt import (
    Segment,
    StreamEvent,
    StreamEventType,
    TranscriptionConfig,
    TranscriptionResult,
    Word,
)
from .tts import StreamChunk, SynthesisConfig, SynthesisResult, Voice

__all__ = [
    "Segment",
    "StreamChunk",
    "StreamEvent",
    "StreamEventType",
    "SynthesisConfig",
    "SynthesisResult",
    "TranscriptionConfig",
    "TranscriptionResult",
    "Voice",
    "Word",
]
