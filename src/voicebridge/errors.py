"""Error types raised by the Deepgram voice providers."""

from __future__ import annotations


class VoiceProviderError(Exception):
    """Base class for every error raised by this package."""


class VoiceConnectionError(VoiceProviderError, ConnectionError):
    """Opening a streaming session failed.

    Raised synchronously from the streaming call; nothing is ever delivered
    on the stream's channel when this is raised.
    """


class TransportWriteError(VoiceProviderError):
    """Sending audio or text to an open session failed mid-stream."""


class ProviderError(VoiceProviderError):
    """The provider reported an error, or a batch request failed."""


class StreamClosedError(VoiceProviderError):
    """Write attempted on a stream that has already been closed."""


class VoiceNotFoundError(VoiceProviderError, LookupError):
    """No voice with the requested id exists in the catalog."""

    def __init__(self, voice_id: str) -> None:
        super().__init__(f"voice not found: {voice_id}")
        self.voice_id = voice_id


__all__ = [
    "ProviderError",
    "StreamClosedError",
    "TransportWriteError",
    "VoiceConnectionError",
    "VoiceNotFoundError",
    "VoiceProviderError",
]
