"""
Deepgram text-to-speech provider.

Batch synthesis uses the REST ``/speak`` endpoint. Streaming synthesis opens
one speak socket per call and returns a channel of audio chunks:

    chunks = await provider.synthesize_from_reader(llm_text, config, stop_event)
    async for chunk in chunks:
        if chunk.is_error: ...
        elif chunk.is_final: ...
        else: play(chunk.audio)

Incremental input is cut into sentences (see `text_segmenter`) and each
complete sentence is sent as soon as it is recognised. Once input ends the
socket is flushed and the stream ends with the provider's flush
acknowledgement, delivered as the final-marker chunk.
"""
import asyncio
import functools
import logging
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Optional, Union

import httpx

from voicebridge.config import Settings
from voicebridge.errors import ProviderError, TransportWriteError, VoiceConnectionError, VoiceProviderError
from voicebridge.schemas.tts import StreamChunk, SynthesisConfig, SynthesisResult, Voice
from voicebridge.services import voices
from voicebridge.services.convert import (
    DEFAULT_TTS_FORMAT,
    DEFAULT_TTS_SAMPLE_RATE,
    config_to_speak_options,
)
from voicebridge.services.deepgram_transport import speak_transport_factory
from voicebridge.services.provider_base import DeepgramProviderBase
from voicebridge.services.stream_channel import StreamChannel
from voicebridge.services.stream_session import StreamSession
from voicebridge.services.text_segmenter import SentenceBuffer
from voicebridge.services.transport import TransportEvent, TransportEventType, TransportFactory

logger = logging.getLogger(__name__)

# Flush acknowledgement is the normal end; close/error end it abnormally
SPEAK_COMPLETION_EVENTS = frozenset(
    {TransportEventType.FLUSHED, TransportEventType.CLOSE, TransportEventType.ERROR}
)

TextSource = Union[str, AsyncIterable[str], Iterable[str], Any]

_EXHAUSTED = object()
_STOPPED = object()
_ENDED = object()


class _SpeakCallbackHandler:
    """Translates speak-socket events into audio chunks on the channel."""

    def __init__(self, channel: StreamChannel[StreamChunk]):
        self._channel = channel
        self._final_sent = False

    def __call__(self, event: TransportEvent) -> None:
        if event.type is TransportEventType.BINARY:
            self._channel.send(StreamChunk(audio=bytes(event.payload)))
        elif event.type is TransportEventType.FLUSHED:
            if not self._final_sent:
                self._final_sent = True
                self._channel.send_terminal(StreamChunk.final())
        elif event.type is TransportEventType.ERROR:
            error = ProviderError(f"deepgram TTS error: {event.payload}")
            self._channel.send_terminal(StreamChunk.failure(error))
        elif event.type is TransportEventType.WARNING:
            logger.warning(f"Deepgram TTS warning: {getattr(event.payload, 'description', event.payload)}")


async def _iter_text(source: TextSource) -> AsyncIterator[str]:
    """Yield text fragments from an async iterable, a file-like, or an iterable."""
    if isinstance(source, str):
        yield source
        return

    if hasattr(source, "__aiter__"):
        async for fragment in source:
            yield fragment
        return

    loop = asyncio.get_running_loop()
    if hasattr(source, "readline"):
        while True:
            line = await loop.run_in_executor(None, source.readline)
            if not line:
                return
            yield line.decode("utf-8") if isinstance(line, bytes) else line

    iterator = iter(source)
    while True:
        fragment = await loop.run_in_executor(None, next, iterator, _EXHAUSTED)
        if fragment is _EXHAUSTED:
            return
        yield fragment


async def _pull(fragments: AsyncIterator[str]) -> Any:
    try:
        return await fragments.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


async def _next_fragment(
    fragments: AsyncIterator[str],
    stop_event: Optional[asyncio.Event],
    ended: asyncio.Event,
) -> Any:
    """
    Next fragment, `_EXHAUSTED` at end of input, `_STOPPED` on cancellation,
    or `_ENDED` once the provider has finished with the session.
    """
    if ended.is_set():
        return _ENDED
    if stop_event is not None and stop_event.is_set():
        return _STOPPED

    next_task = asyncio.ensure_future(_pull(fragments))
    watchers = [asyncio.ensure_future(ended.wait())]
    if stop_event is not None:
        watchers.append(asyncio.ensure_future(stop_event.wait()))
    try:
        done, _ = await asyncio.wait({next_task, *watchers}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for watcher in watchers:
            watcher.cancel()
    if next_task in done:
        return next_task.result()
    next_task.cancel()
    # The source must be idle before it can be closed
    await asyncio.wait({next_task})
    return _ENDED if ended.is_set() else _STOPPED


class DeepgramTTSProvider(DeepgramProviderBase):
    """Deepgram Aura text-to-speech behind the provider-neutral interface."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        transport_factory: Optional[TransportFactory] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(api_key, http_client=http_client, settings=settings)
        self._transport_factory = transport_factory or functools.partial(
            speak_transport_factory, ready_timeout=self._settings.ready_timeout
        )

    # -- catalog ---------------------------------------------------------------

    async def list_voices(self) -> list[Voice]:
        return voices.list_voices()

    async def get_voice(self, voice_id: str) -> Voice:
        return voices.get_voice(voice_id)

    # -- batch -----------------------------------------------------------------

    async def synthesize(self, text: str, config: Optional[SynthesisConfig] = None) -> SynthesisResult:
        """Synthesize the whole text and return the audio in one piece."""
        config = config or SynthesisConfig()
        params = config_to_speak_options(config)
        response = await self._post(
            self._settings.speak_url,
            what="TTS",
            params=params,
            headers=self._auth_headers("application/json"),
            json={"text": text},
        )
        try:
            characters = int(response.headers.get("dg-char-count", len(text)))
        except ValueError:
            characters = len(text)

        audio = response.content
        logger.info(f"Deepgram TTS synthesized {len(audio)} bytes for text: {text[:50]}...")
        return SynthesisResult(
            audio=audio,
            format=config.output_format or DEFAULT_TTS_FORMAT,
            sample_rate=config.sample_rate or DEFAULT_TTS_SAMPLE_RATE,
            character_count=characters,
        )

    # -- streaming -------------------------------------------------------------

    async def synthesize_stream(
        self,
        text: str,
        config: Optional[SynthesisConfig] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> StreamChannel[StreamChunk]:
        """Send ``text`` in one message, flush, and stream the audio back."""
        channel, session = await self._open_stream(config)
        self._spawn(self._speak_text(session, channel, text, stop_event))
        return channel

    async def synthesize_from_reader(
        self,
        reader: TextSource,
        config: Optional[SynthesisConfig] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> StreamChannel[StreamChunk]:
        """
        Stream audio for text that is still being produced.

        ``reader`` may be an async iterable of text, a file-like object with
        ``readline()``, or any iterable of strings. Blocking sources are read
        in the default executor.
        """
        channel, session = await self._open_stream(config)
        self._spawn(self._speak_reader(session, channel, reader, stop_event))
        return channel

    async def _open_stream(self, config: Optional[SynthesisConfig]):
        options = config_to_speak_options(config or SynthesisConfig())
        channel: StreamChannel[StreamChunk] = StreamChannel(self._settings.channel_capacity, name="speak")
        session = StreamSession(
            self._transport_factory,
            self.api_key,
            options,
            _SpeakCallbackHandler(channel),
            completion_events=SPEAK_COMPLETION_EVENTS,
            name="speak",
            connect_timeout=self._settings.connect_timeout,
        )
        try:
            await session.open()
        except VoiceConnectionError:
            channel.close()
            raise
        logger.info(f"Synthesis stream started: model={options['model']} encoding={options['encoding']}")
        return channel, session

    async def _finish(self, session: StreamSession, stop_event: Optional[asyncio.Event]) -> None:
        """Flush and wait for the acknowledgement or cancellation."""
        acknowledged = await session.drain(stop_event)
        if not acknowledged:
            logger.info("Synthesis stream ended before the flush was acknowledged")

    async def _speak_text(
        self,
        session: StreamSession,
        channel: StreamChannel[StreamChunk],
        text: str,
        stop_event: Optional[asyncio.Event],
    ) -> None:
        try:
            text = text.strip()
            if not text:
                # Nothing to synthesize, so no flush acknowledgement will come
                channel.send_terminal(StreamChunk.final())
                return
            await session.send_text(text)
            await self._finish(session, stop_event)
        except TransportWriteError as e:
            logger.error(f"Synthesis stream failed: {e}")
            channel.send_terminal(StreamChunk.failure(e))
        finally:
            await session.close()
            channel.close()

    async def _speak_reader(
        self,
        session: StreamSession,
        channel: StreamChannel[StreamChunk],
        reader: TextSource,
        stop_event: Optional[asyncio.Event],
    ) -> None:
        buffer = SentenceBuffer()
        fragments = _iter_text(reader)
        sent = 0
        try:
            while True:
                fragment = await _next_fragment(fragments, stop_event, session.completed)

                if fragment is _ENDED:
                    # Provider closed or failed; nothing more can be sent
                    logger.info("Synthesis stream ended by the provider before input was exhausted")
                    return

                if fragment is _STOPPED or fragment is _EXHAUSTED:
                    # Partial text is still spoken on cancellation
                    remainder = buffer.flush()
                    if remainder:
                        await session.send_text(remainder)
                        sent += 1
                    if sent == 0 and fragment is _EXHAUSTED:
                        channel.send_terminal(StreamChunk.final())
                        return
                    await self._finish(session, stop_event)
                    return

                for sentence in buffer.consume(fragment):
                    if session.completed.is_set():
                        break
                    await session.send_text(sentence)
                    sent += 1
        except TransportWriteError as e:
            logger.error(f"Synthesis stream failed: {e}")
            channel.send_terminal(StreamChunk.failure(e))
        except VoiceProviderError as e:
            channel.send_terminal(StreamChunk.failure(e))
        except Exception as e:
            logger.error(f"Failed to read text for synthesis: {e}", exc_info=True)
            channel.send_terminal(StreamChunk.failure(VoiceProviderError(f"failed to read text: {e}")))
        finally:
            try:
                await session.close()
                channel.close()
            finally:
                await fragments.aclose()
            logger.debug(
                f"Synthesis stream finished after {sent} text message(s), "
                f"{buffer.total_emitted_chars} character(s)"
            )


__all__ = ["DeepgramTTSProvider", "SPEAK_COMPLETION_EVENTS"]
