"""Tests for live transcription streams over a fake listen transport."""

import asyncio
from types import SimpleNamespace

import pytest

from conftest import FakeTransportFactory, listen_finish, results_message
from voicebridge.errors import ProviderError, StreamClosedError, TransportWriteError, VoiceConnectionError
from voicebridge.schemas.stt import StreamEventType, TranscriptionConfig
from voicebridge.services.stt_service import DeepgramSTTProvider
from voicebridge.services.transport import TransportEventType


def make_provider(settings, **factory_kwargs):
    factory = FakeTransportFactory(**factory_kwargs)
    return DeepgramSTTProvider(settings=settings, transport_factory=factory), factory


@pytest.mark.asyncio
async def test_stream_relays_transcripts_and_closes_after_drain(settings):
    provider, factory = make_provider(settings, on_finish=listen_finish)
    writer, events = await provider.transcribe_stream(TranscriptionConfig())
    transport = factory.last

    assert await writer.write(b"\x00\x01") == 2
    transport.emit(TransportEventType.MESSAGE, results_message("hello", is_final=False))
    await writer.close()

    received = await asyncio.wait_for(events.collect(), timeout=2)

    assert [e.transcript for e in received] == ["hello", "final words"]
    assert [e.is_final for e in received] == [False, True]
    assert transport.media == [b"\x00\x01"]
    assert transport.finish_calls == 1
    assert transport.stop_calls == 1
    assert writer.closed


@pytest.mark.asyncio
async def test_stream_passes_live_options_to_transport(settings):
    provider, factory = make_provider(settings)
    config = TranscriptionConfig(encoding="ulaw", keywords=["deepgram"])
    writer, _ = await provider.transcribe_stream(config)

    options = factory.last.options
    assert options["model"] == "nova-2"
    assert options["language"] == "en-US"
    assert options["encoding"] == "mulaw"
    assert options["sample_rate"] == "8000"
    assert options["channels"] == "1"
    assert options["interim_results"] == "true"
    assert options["utterance_end_ms"] == str(settings.utterance_end_ms)
    assert options["keywords"] == ["deepgram"]
    assert factory.last.api_key == "test-key"

    await writer.close()


@pytest.mark.asyncio
async def test_speech_markers_are_relayed(settings):
    provider, factory = make_provider(settings)
    writer, events = await provider.transcribe_stream()

    factory.last.emit(TransportEventType.SPEECH_STARTED, SimpleNamespace(type="SpeechStarted"))
    factory.last.emit(TransportEventType.UNHANDLED, SimpleNamespace(type="Mystery"))
    factory.last.emit(TransportEventType.UTTERANCE_END, SimpleNamespace(type="UtteranceEnd"))
    factory.last.emit(TransportEventType.CLOSE)

    received = await asyncio.wait_for(events.collect(), timeout=2)
    assert [e.type for e in received] == [StreamEventType.SPEECH_START, StreamEventType.SPEECH_END]
    await writer.close()


@pytest.mark.asyncio
async def test_write_after_close_fails(settings):
    provider, _ = make_provider(settings, on_finish=listen_finish)
    writer, events = await provider.transcribe_stream()

    async with writer:
        await writer.write(b"\x00")

    with pytest.raises(StreamClosedError):
        await writer.write(b"\x01")
    assert events.closed


@pytest.mark.asyncio
async def test_connection_failure_is_raised_synchronously(settings):
    provider, factory = make_provider(settings, fail_connect=True)

    with pytest.raises(VoiceConnectionError):
        await provider.transcribe_stream()

    assert factory.last.stop_calls == 1


@pytest.mark.asyncio
async def test_stop_event_closes_the_stream(settings):
    provider, factory = make_provider(settings, on_finish=listen_finish)
    stop_event = asyncio.Event()
    writer, events = await provider.transcribe_stream(stop_event=stop_event)

    await writer.write(b"\x00")
    stop_event.set()

    assert await asyncio.wait_for(events.collect(), timeout=2) == []
    assert writer.closed
    # Cancellation skips the drain
    assert factory.last.finish_calls == 0
    assert factory.last.stop_calls == 1

    with pytest.raises(StreamClosedError):
        await writer.write(b"\x01")


@pytest.mark.asyncio
async def test_provider_error_is_terminal(settings):
    provider, factory = make_provider(settings)
    writer, events = await provider.transcribe_stream()
    transport = factory.last

    transport.emit(TransportEventType.MESSAGE, results_message("partial", is_final=False))
    transport.emit(TransportEventType.ERROR, "rate limited")
    transport.emit(TransportEventType.MESSAGE, results_message("ignored"))

    received = await asyncio.wait_for(events.collect(), timeout=2)

    assert [e.type for e in received] == [StreamEventType.TRANSCRIPT, StreamEventType.ERROR]
    assert isinstance(received[-1].error, ProviderError)
    assert "rate limited" in str(received[-1].error)
    assert transport.stop_calls == 1
    await writer.close()


@pytest.mark.asyncio
async def test_write_failure_surfaces_once_and_closes(settings):
    provider, factory = make_provider(settings, fail_send=True)
    writer, events = await provider.transcribe_stream()

    with pytest.raises(TransportWriteError):
        await writer.write(b"\x00")

    received = await asyncio.wait_for(events.collect(), timeout=2)
    assert len(received) == 1
    assert received[0].is_error
    assert isinstance(received[0].error, TransportWriteError)
    assert writer.closed
    assert factory.last.stop_calls == 1


@pytest.mark.asyncio
async def test_close_races_with_stop_event(settings):
    """Closing the writer and cancelling at once still closes everything exactly once."""
    provider, factory = make_provider(settings, on_finish=listen_finish)

    for _ in range(25):
        stop_event = asyncio.Event()
        writer, events = await provider.transcribe_stream(stop_event=stop_event)
        await writer.write(b"\x00")

        async def cancel():
            stop_event.set()

        await asyncio.gather(writer.close(), cancel(), writer.close())
        await asyncio.wait_for(events.collect(), timeout=2)

        assert events.closed
        assert factory.last.stop_calls == 1
        assert events.close() is False

    assert len(factory.created) == 25


@pytest.mark.asyncio
async def test_missing_api_key_is_rejected(settings):
    no_key = settings.model_copy(update={"deepgram_api_key": None})
    with pytest.raises(ValueError):
        DeepgramSTTProvider(settings=no_key, transport_factory=FakeTransportFactory())
