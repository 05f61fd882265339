import pathlib
import sys
import threading
from types import SimpleNamespace
from typing import Any, Callable, Mapping, Optional

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from voicebridge.config import Settings  # noqa: E402
from voicebridge.services.transport import (  # noqa: E402
    EventSink,
    Transport,
    TransportEvent,
    TransportEventType,
)


class FakeTransport(Transport):
    """In-memory transport whose callbacks fire from a separate thread, like the SDK's."""

    def __init__(
        self,
        api_key: str,
        options: Mapping[str, Any],
        sink: EventSink,
        *,
        fail_connect: bool = False,
        fail_send: bool = False,
        on_finish: Optional[Callable[["FakeTransport"], None]] = None,
    ):
        self.api_key = api_key
        self.options = dict(options)
        self.sink = sink
        self.fail_connect = fail_connect
        self.fail_send = fail_send
        self.on_finish = on_finish
        self.connected = False
        self.media: list[bytes] = []
        self.texts: list[str] = []
        self.finish_calls = 0
        self.stop_calls = 0
        self._lock = threading.Lock()

    def emit(self, event_type: TransportEventType, payload: Any = None) -> None:
        thread = threading.Thread(target=self.sink, args=(TransportEvent(event_type, payload),))
        thread.start()
        thread.join()

    def connect(self) -> None:
        if self.fail_connect:
            raise RuntimeError("connection refused")
        self.connected = True
        self.emit(TransportEventType.OPEN)

    def send_media(self, data: bytes) -> None:
        if self.fail_send:
            raise OSError("broken pipe")
        self.media.append(data)

    def send_text(self, text: str) -> None:
        if self.fail_send:
            raise OSError("broken pipe")
        self.texts.append(text)

    def finish(self) -> None:
        with self._lock:
            self.finish_calls += 1
        if self.on_finish is not None:
            self.on_finish(self)

    def stop(self) -> None:
        with self._lock:
            self.stop_calls += 1
        self.connected = False


class FakeTransportFactory:
    def __init__(self, **kwargs: Any):
        self.kwargs = kwargs
        self.created: list[FakeTransport] = []

    def __call__(self, api_key: str, options: Mapping[str, Any], sink: EventSink) -> FakeTransport:
        transport = FakeTransport(api_key, options, sink, **self.kwargs)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


def results_message(transcript: str, is_final: bool = True, words: Optional[list] = None) -> SimpleNamespace:
    alternative = SimpleNamespace(transcript=transcript, confidence=0.9, words=words or [])
    return SimpleNamespace(
        type="Results",
        is_final=is_final,
        channel=SimpleNamespace(alternatives=[alternative]),
    )


def listen_finish(transport: FakeTransport) -> None:
    """Deepgram answers CloseStream with the last results and then hangs up."""
    transport.emit(TransportEventType.MESSAGE, results_message("final words"))
    transport.emit(TransportEventType.CLOSE)


def speak_finish(transport: FakeTransport) -> None:
    """Deepgram answers Flush with audio for everything sent, then Flushed."""
    for text in transport.texts:
        transport.emit(TransportEventType.BINARY, text.encode("utf-8"))
    transport.emit(TransportEventType.FLUSHED, SimpleNamespace(type="Flushed", sequence_id=0))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        deepgram_api_key="test-key",
        connect_timeout=2.0,
        drain_timeout=2.0,
        channel_capacity=100,
    )
