"""Tests for the Deepgram SDK socket transports against a fake client."""

import threading
from types import SimpleNamespace

import pytest
from deepgram.core.events import EventType

from conftest import FakeTransportFactory
from voicebridge.config import Settings
from voicebridge.services import deepgram_transport
from voicebridge.services.deepgram_transport import DeepgramListenTransport, DeepgramSpeakTransport
from voicebridge.services.stt_service import DeepgramSTTProvider
from voicebridge.services.transport import TransportEventType
from voicebridge.services.tts_service import DeepgramTTSProvider


class FakeSocket:
    def __init__(self, log, *, opens=True, listen_error=None):
        self.log = log
        self.opens = opens
        self.listen_error = listen_error
        self.handlers = {}
        self.media = []
        self.texts = []
        self.released = threading.Event()

    def on(self, event, handler):
        self.handlers[event] = handler

    def start_listening(self):
        self.log.append("listen")
        if self.opens:
            self.handlers[EventType.OPEN](None)
        if self.listen_error is not None:
            raise self.listen_error
        self.released.wait(timeout=5)

    def send_media(self, data):
        self.media.append(data)

    def send_text(self, message):
        self.texts.append(message.text)

    def send_control(self, message):
        self.log.append(("control", message.type))


class FakeConnection:
    def __init__(self, socket, log):
        self.socket = socket
        self.log = log

    def __enter__(self):
        self.log.append("enter")
        return self.socket

    def __exit__(self, *exc_info):
        self.log.append("exit")
        self.socket.released.set()
        return False


class FakeDeepgram:
    """Stands in for DeepgramClient; every connect() hands out ``socket``."""

    def __init__(self, **socket_kwargs):
        self.log = []
        self.socket = FakeSocket(self.log, **socket_kwargs)
        self.params = None
        endpoint = SimpleNamespace(v1=SimpleNamespace(connect=self._connect))
        self.listen = endpoint
        self.speak = endpoint

    def _connect(self, **params):
        self.params = params
        return FakeConnection(self.socket, self.log)


@pytest.fixture
def fake_deepgram(monkeypatch):
    def install(**socket_kwargs):
        client = FakeDeepgram(**socket_kwargs)
        monkeypatch.setattr(deepgram_transport, "DeepgramClient", lambda api_key: client)
        return client

    return install


def make_listen(events, **kwargs):
    return DeepgramListenTransport("test-key", {"model": "nova-2"}, events.append, **kwargs)


def make_speak(events, **kwargs):
    return DeepgramSpeakTransport("test-key", {"model": "aura-asteria-en"}, events.append, **kwargs)


@pytest.mark.parametrize(
    "message_type, expected",
    [
        ("Results", TransportEventType.MESSAGE),
        ("Metadata", TransportEventType.METADATA),
        ("SpeechStarted", TransportEventType.SPEECH_STARTED),
        ("UtteranceEnd", TransportEventType.UTTERANCE_END),
        ("Flushed", TransportEventType.UNHANDLED),
    ],
)
def test_listen_message_types(fake_deepgram, message_type, expected):
    fake_deepgram()
    events = []
    message = SimpleNamespace(type=message_type)

    make_listen(events)._on_message(message)

    assert [(e.type, e.payload) for e in events] == [(expected, message)]


@pytest.mark.parametrize(
    "message_type, expected",
    [
        ("Flushed", TransportEventType.FLUSHED),
        ("Cleared", TransportEventType.CLEARED),
        ("Warning", TransportEventType.WARNING),
        ("Metadata", TransportEventType.METADATA),
        ("Results", TransportEventType.UNHANDLED),
    ],
)
def test_speak_message_types(fake_deepgram, message_type, expected):
    fake_deepgram()
    events = []

    make_speak(events)._on_message(SimpleNamespace(type=message_type))

    assert [e.type for e in events] == [expected]


def test_binary_messages_become_audio(fake_deepgram):
    fake_deepgram()
    events = []

    make_speak(events)._on_message(bytearray(b"\x01\x02"))

    assert events[0].type is TransportEventType.BINARY
    assert events[0].payload == b"\x01\x02"


def test_error_and_close_callbacks(fake_deepgram):
    fake_deepgram()
    events = []
    transport = make_listen(events)

    transport._on_error(SimpleNamespace(description="Invalid model"))
    transport._on_error(ValueError("socket reset"))
    transport._on_close(None)

    assert [(e.type, e.payload) for e in events] == [
        (TransportEventType.ERROR, "Invalid model"),
        (TransportEventType.ERROR, "socket reset"),
        (TransportEventType.CLOSE, None),
    ]


def test_listen_connect_send_finish_and_stop(fake_deepgram):
    client = fake_deepgram()
    events = []
    transport = make_listen(events, ready_timeout=2)

    transport.connect()
    transport.send_media(b"\x00\x01")
    transport.finish()
    transport.stop()
    transport.stop()

    assert client.params == {"model": "nova-2"}
    assert [e.type for e in events] == [TransportEventType.OPEN]
    assert client.socket.media == [b"\x00\x01"]
    assert client.log == ["enter", "listen", ("control", "CloseStream"), "exit"]
    with pytest.raises(RuntimeError):
        transport.send_media(b"\x02")


def test_speak_sends_text_and_closes_before_exit(fake_deepgram):
    client = fake_deepgram()
    transport = make_speak([], ready_timeout=2)

    transport.connect()
    transport.send_text("Hello.")
    transport.finish()
    transport.stop()
    transport.stop()

    assert client.socket.texts == ["Hello."]
    assert client.log == ["enter", "listen", ("control", "Flush"), ("control", "Close"), "exit"]


def test_connect_times_out_when_socket_never_opens(fake_deepgram):
    client = fake_deepgram(opens=False)
    transport = make_listen([], ready_timeout=0.05)

    with pytest.raises(RuntimeError, match="did not open"):
        transport.connect()

    assert client.log.count("exit") == 1


def test_stop_during_connect_releases_late_socket(fake_deepgram):
    """A socket that finishes opening after stop() is closed instead of leaked."""
    client = fake_deepgram()
    transport = make_listen([], ready_timeout=2)

    transport.stop()
    with pytest.raises(RuntimeError, match="stopped while connecting"):
        transport.connect()

    assert client.log == ["enter", "exit"]


def test_listen_failure_after_open_is_reported(fake_deepgram):
    fake_deepgram(listen_error=ConnectionResetError("reset by peer"))
    events = []
    transport = make_listen(events, ready_timeout=2)

    transport.connect()
    transport._listening_thread.join(timeout=2)

    assert [e.type for e in events] == [TransportEventType.OPEN, TransportEventType.ERROR]
    assert "reset by peer" in events[-1].payload
    transport.stop()


def test_ready_timeout_stays_below_connect_timeout():
    settings = Settings(deepgram_api_key="k", connect_timeout=5.0)
    assert 0 < settings.ready_timeout < settings.connect_timeout


def test_providers_pass_ready_timeout_to_default_transports(fake_deepgram, settings):
    fake_deepgram()
    stt = DeepgramSTTProvider(settings=settings)
    tts = DeepgramTTSProvider(settings=settings)

    listen = stt._transport_factory("test-key", {}, lambda event: None)
    speak = tts._transport_factory("test-key", {}, lambda event: None)

    assert isinstance(listen, DeepgramListenTransport)
    assert isinstance(speak, DeepgramSpeakTransport)
    assert listen._ready_timeout == speak._ready_timeout == settings.ready_timeout

    injected = FakeTransportFactory()
    assert DeepgramSTTProvider(settings=settings, transport_factory=injected)._transport_factory is injected
