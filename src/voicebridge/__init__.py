"""Deepgram speech-to-text and text-to-speech behind a provider-neutral interface.

Both providers stream over Deepgram's websocket API and also expose the
one-shot REST calls:

    from voicebridge import DeepgramSTTProvider, TranscriptionConfig

    provider = DeepgramSTTProvider(api_key)
    writer, events = await provider.transcribe_stream(
        TranscriptionConfig(encoding="mulaw", sample_rate=8000)
    )
"""

from .errors import (
    ProviderError,
    StreamClosedError,
    TransportWriteError,
    VoiceConnectionError,
    VoiceNotFoundError,
    VoiceProviderError,
)
from .schemas import (
    Segment,
    StreamChunk,
    StreamEvent,
    StreamEventType,
    SynthesisConfig,
    SynthesisResult,
    TranscriptionConfig,
    TranscriptionResult,
    Voice,
    Word,
)
from .logging_settings import setup_logging
from .sdk import PROVIDER_NAME, VERSION, init_sdk
from .services.stt_service import AudioStreamWriter, DeepgramSTTProvider
from .services.text_segmenter import SentenceBuffer, split_sentences
from .services.tts_service import DeepgramTTSProvider
from .services.voices import get_voice, list_voices

__version__ = VERSION

__all__ = [
    "AudioStreamWriter",
    "DeepgramSTTProvider",
    "DeepgramTTSProvider",
    "PROVIDER_NAME",
    "ProviderError",
    "Segment",
    "SentenceBuffer",
    "StreamChunk",
    "StreamClosedError",
    "StreamEvent",
    "StreamEventType",
    "SynthesisConfig",
    "SynthesisResult",
    "TranscriptionConfig",
    "TranscriptionResult",
    "TransportWriteError",
    "Voice",
    "VoiceConnectionError",
    "VoiceNotFoundError",
    "VoiceProviderError",
    "Word",
    "get_voice",
    "init_sdk",
    "list_voices",
    "setup_logging",
    "split_sentences",
]
