"""Transport capability consumed by the streaming adapters.

A transport is one websocket session with the provider. It is driven from
the event loop through blocking calls (run in the default executor) and
reports everything the provider sends back through a single callback sink,
invoked on the transport's own listener thread.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping


class TransportEventType(str, Enum):
    OPEN = "open"
    MESSAGE = "message"
    BINARY = "binary"
    METADATA = "metadata"
    SPEECH_STARTED = "speech_started"
    UTTERANCE_END = "utterance_end"
    FLUSHED = "flushed"
    CLEARED = "cleared"
    WARNING = "warning"
    ERROR = "error"
    CLOSE = "close"
    UNHANDLED = "unhandled"


@dataclass(frozen=True)
class TransportEvent:
    type: TransportEventType
    payload: Any = None


EventSink = Callable[[TransportEvent], None]


class Transport(ABC):
    """Abstract websocket session."""

    @abstractmethod
    def connect(self) -> None:
        """Open the socket and start listening. Raises on failure."""
        ...

    def send_media(self, data: bytes) -> None:
        raise NotImplementedError(f"{type(self).__name__} does not accept audio")

    def send_text(self, text: str) -> None:
        raise NotImplementedError(f"{type(self).__name__} does not accept text")

    @abstractmethod
    def finish(self) -> None:
        """Tell the provider no more input is coming.

        Listen sockets close the audio stream; speak sockets flush. Either
        way the provider answers with a completion message (close or
        flushed) once everything already sent has been processed.
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """Tear the socket down. Must tolerate repeated calls."""
        ...


# (api_key, provider options, callback sink) -> unconnected transport
TransportFactory = Callable[[str, Mapping[str, Any], EventSink], Transport]


__all__ = [
    "EventSink",
    "Transport",
    "TransportEvent",
    "TransportEventType",
    "TransportFactory",
]
