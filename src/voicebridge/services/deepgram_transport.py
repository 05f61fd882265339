"""
Deepgram websocket transports built on the synchronous SDK v5 pattern.

Each transport enters the SDK's connection context manager, registers
handlers, and runs ``start_listening()`` on a daemon thread. Every message
the SDK hands back is re-emitted as a `TransportEvent` on the caller's sink,
still on that listener thread.
"""
import logging
import threading
from typing import Any, Mapping, Optional

from deepgram import DeepgramClient
from deepgram.core.events import EventType

from voicebridge.services.transport import (
    EventSink,
    Transport,
    TransportEvent,
    TransportEventType,
)

logger = logging.getLogger(__name__)

# Default wait for the socket's OPEN event; providers pass Settings.ready_timeout
READY_TIMEOUT = 10.0

_LISTEN_MESSAGE_TYPES = {
    "Results": TransportEventType.MESSAGE,
    "Metadata": TransportEventType.METADATA,
    "SpeechStarted": TransportEventType.SPEECH_STARTED,
    "UtteranceEnd": TransportEventType.UTTERANCE_END,
}

_SPEAK_MESSAGE_TYPES = {
    "Metadata": TransportEventType.METADATA,
    "Flushed": TransportEventType.FLUSHED,
    "Cleared": TransportEventType.CLEARED,
    "Warning": TransportEventType.WARNING,
}


class _DeepgramSocketTransport(Transport):
    """Shared connect/listen/close plumbing for listen and speak sockets."""

    kind = "socket"
    message_types: Mapping[str, TransportEventType] = {}

    def __init__(
        self,
        api_key: str,
        options: Mapping[str, Any],
        sink: EventSink,
        *,
        ready_timeout: float = READY_TIMEOUT,
    ):
        self._client = DeepgramClient(api_key=api_key)
        self._options = dict(options)
        self._sink = sink
        self._context_manager = None
        self._socket = None
        self._ready = threading.Event()
        self._running = False
        self._listening_thread: Optional[threading.Thread] = None
        self._ready_timeout = ready_timeout
        self._stopped = False
        self._lock = threading.Lock()

    def _open_context(self):
        raise NotImplementedError

    def _emit(self, event_type: TransportEventType, payload: Any = None) -> None:
        self._sink(TransportEvent(event_type, payload))

    def _on_open(self, _):
        logger.info(f"Deepgram {self.kind} socket connected")
        self._ready.set()
        self._emit(TransportEventType.OPEN)

    def _on_message(self, message):
        if isinstance(message, (bytes, bytearray)):
            self._emit(TransportEventType.BINARY, bytes(message))
            return
        message_type = getattr(message, "type", None)
        event_type = self.message_types.get(message_type)
        if event_type is None:
            logger.debug(f"Unhandled Deepgram {self.kind} message type: {message_type}")
            self._emit(TransportEventType.UNHANDLED, message)
            return
        self._emit(event_type, message)

    def _on_close(self, _):
        logger.info(f"Deepgram {self.kind} socket disconnected")
        self._ready.clear()
        self._emit(TransportEventType.CLOSE)

    def _on_error(self, error):
        logger.error(f"Deepgram {self.kind} socket error: {error}")
        description = getattr(error, "description", None) or str(error)
        self._emit(TransportEventType.ERROR, description)

    def connect(self) -> None:
        context_manager = self._open_context()
        socket = context_manager.__enter__()

        # stop() may already have run from a caller that gave up waiting
        with self._lock:
            abandoned = self._stopped
            if not abandoned:
                self._context_manager = context_manager
                self._socket = socket
                self._running = True
        if abandoned:
            context_manager.__exit__(None, None, None)
            raise RuntimeError(f"Deepgram {self.kind} socket was stopped while connecting")

        socket.on(EventType.OPEN, self._on_open)
        socket.on(EventType.MESSAGE, self._on_message)
        socket.on(EventType.ERROR, self._on_error)
        socket.on(EventType.CLOSE, self._on_close)

        def listen_loop():
            try:
                socket.start_listening()
            except Exception as e:
                if self._running:
                    logger.error(f"Deepgram {self.kind} listen error: {e}")
                    self._emit(TransportEventType.ERROR, str(e))

        self._listening_thread = threading.Thread(
            target=listen_loop, name=f"deepgram-{self.kind}", daemon=True
        )
        self._listening_thread.start()

        if not self._ready.wait(timeout=self._ready_timeout):
            self.stop()
            raise RuntimeError(f"Deepgram {self.kind} socket did not open within {self._ready_timeout}s")

    def _send_control(self, message) -> None:
        if self._socket is None:
            raise RuntimeError(f"Deepgram {self.kind} socket is not connected")
        self._socket.send_control(message)

    def stop(self) -> None:
        with self._lock:
            context_manager = self._context_manager
            self._context_manager = None
            self._socket = None
            self._running = False
            self._stopped = True
        self._ready.clear()
        if context_manager is None:
            return
        try:
            context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning(f"Error closing Deepgram {self.kind} socket: {e}")


class DeepgramListenTransport(_DeepgramSocketTransport):
    """Live transcription socket (``/v1/listen``)."""

    kind = "listen"
    message_types = _LISTEN_MESSAGE_TYPES

    def _open_context(self):
        return self._client.listen.v1.connect(**self._options)

    def send_media(self, data: bytes) -> None:
        if self._socket is None:
            raise RuntimeError("Deepgram listen socket is not connected")
        self._socket.send_media(data)

    def finish(self) -> None:
        from deepgram.extensions.types.sockets import ListenV1ControlMessage

        self._send_control(ListenV1ControlMessage(type="CloseStream"))


class DeepgramSpeakTransport(_DeepgramSocketTransport):
    """Streaming synthesis socket (``/v1/speak``)."""

    kind = "speak"
    message_types = _SPEAK_MESSAGE_TYPES

    def _open_context(self):
        return self._client.speak.v1.connect(**self._options)

    def send_text(self, text: str) -> None:
        from deepgram.extensions.types.sockets import SpeakV1TextMessage

        if self._socket is None:
            raise RuntimeError("Deepgram speak socket is not connected")
        self._socket.send_text(SpeakV1TextMessage(type="Speak", text=text))

    def finish(self) -> None:
        from deepgram.extensions.types.sockets import SpeakV1ControlMessage

        self._send_control(SpeakV1ControlMessage(type="Flush"))

    def stop(self) -> None:
        if self._socket is not None:
            from deepgram.extensions.types.sockets import SpeakV1ControlMessage

            try:
                self._socket.send_control(SpeakV1ControlMessage(type="Close"))
            except Exception as e:
                logger.debug(f"Deepgram speak Close not delivered: {e}")
        super().stop()


def listen_transport_factory(
    api_key: str, options: Mapping[str, Any], sink: EventSink, *, ready_timeout: float = READY_TIMEOUT
) -> Transport:
    return DeepgramListenTransport(api_key, options, sink, ready_timeout=ready_timeout)


def speak_transport_factory(
    api_key: str, options: Mapping[str, Any], sink: EventSink, *, ready_timeout: float = READY_TIMEOUT
) -> Transport:
    return DeepgramSpeakTransport(api_key, options, sink, ready_timeout=ready_timeout)


__all__ = [
    "DeepgramListenTransport",
    "DeepgramSpeakTransport",
    "listen_transport_factory",
    "speak_transport_factory",
]
