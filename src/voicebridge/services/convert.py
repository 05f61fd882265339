"""Translation between provider-neutral configs/results and Deepgram's shapes.

Deepgram messages are read with ``getattr`` so both the SDK's response
models and plain objects decoded from JSON work.
"""

from typing import Any, Optional

from voicebridge.schemas.stt import (
    Segment,
    StreamEvent,
    StreamEventType,
    TranscriptionConfig,
    TranscriptionResult,
    Word,
)
from voicebridge.schemas.tts import SynthesisConfig

# Telephony-biased defaults for live transcription
DEFAULT_STT_SAMPLE_RATE = 8000
DEFAULT_STT_CHANNELS = 1
DEFAULT_STT_MODEL = "nova-2"
DEFAULT_STT_LANGUAGE = "en-US"

DEFAULT_TTS_MODEL = "aura-asteria-en"
DEFAULT_TTS_FORMAT = "linear16"
DEFAULT_TTS_SAMPLE_RATE = 24000

_STT_ENCODINGS = {
    "mulaw": "mulaw",
    "ulaw": "mulaw",
    "g711u": "mulaw",
    "pcm_mulaw": "mulaw",
    "alaw": "alaw",
    "g711a": "alaw",
    "pcm_alaw": "alaw",
    "linear16": "linear16",
    "pcm": "linear16",
    "pcm_s16le": "linear16",
    "flac": "flac",
    "opus": "opus",
    "speex": "speex",
    "mp3": "mp3",
    "webm": "webm",
}

_TTS_ENCODINGS = {
    "mp3": "mp3",
    "linear16": "linear16",
    "pcm": "linear16",
    "pcm_s16le": "linear16",
    "wav": "linear16",
    "mulaw": "mulaw",
    "ulaw": "mulaw",
    "g711u": "mulaw",
    "pcm_mulaw": "mulaw",
    "alaw": "alaw",
    "g711a": "alaw",
    "pcm_alaw": "alaw",
    "opus": "opus",
    "flac": "flac",
    "aac": "aac",
}


def map_encoding(encoding: Optional[str]) -> str:
    """Map an STT encoding alias to Deepgram's name; unknown names pass through."""
    if not encoding:
        return "linear16"
    return _STT_ENCODINGS.get(encoding, encoding)


def map_tts_encoding(output_format: Optional[str]) -> str:
    if not output_format:
        return DEFAULT_TTS_FORMAT
    return _TTS_ENCODINGS.get(output_format, output_format)


def _flag(value: bool) -> str:
    return "true" if value else "false"


def config_to_live_options(config: TranscriptionConfig, utterance_end_ms: int = 1000) -> dict[str, Any]:
    """Build Deepgram live (websocket) transcription parameters."""
    params: dict[str, Any] = {
        "model": config.model or DEFAULT_STT_MODEL,
        "language": config.language or DEFAULT_STT_LANGUAGE,
        "encoding": map_encoding(config.encoding),
        "sample_rate": str(config.sample_rate or DEFAULT_STT_SAMPLE_RATE),
        "channels": str(config.channels or DEFAULT_STT_CHANNELS),
        "punctuate": _flag(config.enable_punctuation),
        "smart_format": "true",
        # Streaming callers want partials and natural turn boundaries
        "interim_results": "true",
        "utterance_end_ms": str(utterance_end_ms),
    }

    if config.enable_speaker_diarization:
        params["diarize"] = "true"
        if config.max_speakers:
            params["diarize_version"] = "latest"

    if config.keywords:
        params["keywords"] = list(config.keywords)

    return params


def config_to_prerecorded_options(config: TranscriptionConfig) -> dict[str, Any]:
    """Build Deepgram pre-recorded (REST) transcription query parameters."""
    params: dict[str, Any] = {
        "model": config.model or DEFAULT_STT_MODEL,
        "punctuate": _flag(config.enable_punctuation),
        "smart_format": "true",
    }
    if config.language:
        params["language"] = config.language
    else:
        params["detect_language"] = "true"
    # Raw audio needs its format spelled out; containers are self-describing
    if config.encoding:
        params["encoding"] = map_encoding(config.encoding)
        params["sample_rate"] = str(config.sample_rate or DEFAULT_STT_SAMPLE_RATE)
        params["channels"] = str(config.channels or DEFAULT_STT_CHANNELS)
    if config.enable_speaker_diarization:
        params["diarize"] = "true"
    if config.keywords:
        params["keywords"] = list(config.keywords)
    return params


def config_to_speak_options(config: SynthesisConfig) -> dict[str, Any]:
    """Build Deepgram speak parameters (shared by the REST and websocket paths)."""
    params: dict[str, Any] = {
        "model": config.model or config.voice_id or DEFAULT_TTS_MODEL,
        "encoding": map_tts_encoding(config.output_format),
    }
    if config.sample_rate:
        params["sample_rate"] = str(config.sample_rate)
    return params


def format_speaker(speaker: int) -> str:
    return f"speaker_{speaker}"


def _convert_words(raw_words: Any) -> tuple[Word, ...]:
    words = []
    for w in raw_words or ():
        speaker = getattr(w, "speaker", None)
        words.append(
            Word(
                text=getattr(w, "word", "") or "",
                start=float(getattr(w, "start", 0.0) or 0.0),
                end=float(getattr(w, "end", 0.0) or 0.0),
                confidence=float(getattr(w, "confidence", 0.0) or 0.0),
                speaker=format_speaker(int(speaker)) if speaker is not None else None,
            )
        )
    return tuple(words)


def _segment_from_alternative(alternative: Any) -> Optional[Segment]:
    words = _convert_words(getattr(alternative, "words", None))
    if not words:
        return None
    return Segment(
        text=getattr(alternative, "transcript", "") or "",
        start=words[0].start,
        end=words[-1].end,
        confidence=float(getattr(alternative, "confidence", 0.0) or 0.0),
        words=words,
    )


def message_to_stream_event(message: Any) -> StreamEvent:
    """Convert a live ``Results`` message into a transcript event."""
    channel = getattr(message, "channel", None)
    alternatives = getattr(channel, "alternatives", None) or []
    if not alternatives:
        return StreamEvent(type=StreamEventType.TRANSCRIPT)

    alternative = alternatives[0]
    return StreamEvent(
        type=StreamEventType.TRANSCRIPT,
        transcript=getattr(alternative, "transcript", "") or "",
        is_final=bool(getattr(message, "is_final", False)),
        segment=_segment_from_alternative(alternative),
    )


def prerecorded_response_to_result(response: Any) -> TranscriptionResult:
    """Convert a decoded pre-recorded response into a TranscriptionResult."""
    results = getattr(response, "results", None)
    metadata = getattr(response, "metadata", None)
    channels = getattr(results, "channels", None) or []

    result = TranscriptionResult(
        text="",
        duration=float(getattr(metadata, "duration", 0.0) or 0.0),
    )
    if not channels:
        return result

    channel = channels[0]
    result.language = getattr(channel, "detected_language", None) or ""
    alternatives = getattr(channel, "alternatives", None) or []
    if not alternatives:
        return result

    alternative = alternatives[0]
    result.text = getattr(alternative, "transcript", "") or ""
    result.confidence = float(getattr(alternative, "confidence", 0.0) or 0.0)
    segment = _segment_from_alternative(alternative)
    if segment is not None:
        result.segments.append(segment)
    return result


__all__ = [
    "DEFAULT_TTS_FORMAT",
    "DEFAULT_TTS_MODEL",
    "DEFAULT_TTS_SAMPLE_RATE",
    "config_to_live_options",
    "config_to_prerecorded_options",
    "config_to_speak_options",
    "format_speaker",
    "map_encoding",
    "map_tts_encoding",
    "message_to_stream_event",
    "prerecorded_response_to_result",
]
