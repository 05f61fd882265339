"""Speech-to-text configuration and result types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TranscriptionConfig(BaseModel):
    """Provider-neutral transcription options.

    Unset fields fall back to telephony-friendly defaults when mapped to
    Deepgram options (8 kHz mono, nova-2, en-US).
    """

    model: Optional[str] = Field(default=None, description="Recognition model name.")
    language: Optional[str] = Field(default=None, description="BCP-47 language code.")
    sample_rate: Optional[int] = Field(default=None, gt=0, description="Audio sample rate in Hz.")
    channels: Optional[int] = Field(default=None, gt=0, description="Number of audio channels.")
    encoding: Optional[str] = Field(
        default=None,
        description="Audio encoding name, e.g. 'mulaw', 'pcm_s16le', 'opus'.",
    )
    enable_punctuation: bool = Field(default=False)
    enable_speaker_diarization: bool = Field(default=False)
    max_speakers: Optional[int] = Field(default=None, ge=0)
    keywords: list[str] = Field(
        default_factory=list,
        description="Words/phrases to boost recognition.",
    )


class StreamEventType(str, Enum):
    TRANSCRIPT = "transcript"
    SPEECH_START = "speech_start"
    SPEECH_END = "speech_end"
    ERROR = "error"


@dataclass(frozen=True)
class Word:
    text: str
    start: float = 0.0  # seconds from stream start
    end: float = 0.0
    confidence: float = 0.0
    speaker: Optional[str] = None


@dataclass(frozen=True)
class Segment:
    text: str
    start: float = 0.0
    end: float = 0.0
    confidence: float = 0.0
    words: tuple[Word, ...] = ()


@dataclass(frozen=True)
class StreamEvent:
    """One recognition event delivered on a transcription stream."""

    type: StreamEventType
    transcript: str = ""
    is_final: bool = False
    segment: Optional[Segment] = None
    error: Optional[Exception] = None

    @classmethod
    def failure(cls, error: Exception) -> "StreamEvent":
        return cls(type=StreamEventType.ERROR, error=error)

    @property
    def is_error(self) -> bool:
        return self.type is StreamEventType.ERROR


@dataclass
class TranscriptionResult:
    """Result of a batch transcription."""

    text: str
    language: str = ""
    duration: float = 0.0
    confidence: float = 0.0
    segments: list[Segment] = field(default_factory=list)


__all__ = [
    "Segment",
    "StreamEvent",
    "StreamEventType",
    "TranscriptionConfig",
    "TranscriptionResult",
    "Word",
]
