"""Text-to-speech configuration and result types."""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field


class SynthesisConfig(BaseModel):
    """Provider-neutral synthesis options."""

    voice_id: Optional[str] = Field(
        default=None,
        description="Voice id; used as the Deepgram model when `model` is unset.",
    )
    model: Optional[str] = Field(default=None, description="Deepgram Aura model name.")
    output_format: Optional[str] = Field(
        default=None,
        description="Output audio format, e.g. 'mp3', 'pcm', 'mulaw'.",
    )
    sample_rate: Optional[int] = Field(default=None, gt=0, description="Output sample rate in Hz.")


@dataclass(frozen=True)
class StreamChunk:
    """One item delivered on a synthesis stream: audio, final marker, or error."""

    audio: bytes = b""
    is_final: bool = False
    error: Optional[Exception] = None

    @classmethod
    def final(cls) -> "StreamChunk":
        return cls(is_final=True)

    @classmethod
    def failure(cls, error: Exception) -> "StreamChunk":
        return cls(error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass
class SynthesisResult:
    audio: bytes
    format: str
    sample_rate: int
    character_count: int = 0


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    language: str
    gender: str
    provider: str = "deepgram"


__all__ = ["StreamChunk", "SynthesisConfig", "SynthesisResult", "Voice"]
