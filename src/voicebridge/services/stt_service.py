"""
Deepgram speech-to-text provider.

Batch transcription goes through the REST API. Streaming transcription
opens one live socket per call and returns a writer for audio plus a channel
of recognition events:

    writer, events = await provider.transcribe_stream(config, stop_event)

    async with writer:
        await writer.write(chunk)
        ...

    async for event in events:
        ...

The event channel closes exactly once: after the writer is closed and the
session has drained, when ``stop_event`` is set, or when the provider reports
an error or hangs up.
"""
import asyncio
import functools
import json
import logging
from pathlib import Path
from types import SimpleNamespace
from typing import Optional, Tuple, Union

import httpx

from voicebridge.config import Settings
from voicebridge.errors import (
    ProviderError,
    StreamClosedError,
    TransportWriteError,
    VoiceConnectionError,
)
from voicebridge.schemas.stt import (
    StreamEvent,
    StreamEventType,
    TranscriptionConfig,
    TranscriptionResult,
)
from voicebridge.services.convert import (
    config_to_live_options,
    config_to_prerecorded_options,
    message_to_stream_event,
    prerecorded_response_to_result,
)
from voicebridge.services.deepgram_transport import listen_transport_factory
from voicebridge.services.provider_base import DeepgramProviderBase
from voicebridge.services.stream_channel import StreamChannel
from voicebridge.services.stream_session import GuardedClose, StreamSession, wait_first
from voicebridge.services.transport import TransportEvent, TransportEventType, TransportFactory

logger = logging.getLogger(__name__)

# The listen socket is done once the provider hangs up or fails
LISTEN_COMPLETION_EVENTS = frozenset({TransportEventType.CLOSE, TransportEventType.ERROR})


class _ListenCallbackHandler:
    """Translates listen-socket events into recognition events on the channel."""

    def __init__(self, channel: StreamChannel[StreamEvent]):
        self._channel = channel

    def __call__(self, event: TransportEvent) -> None:
        if event.type is TransportEventType.MESSAGE:
            self._channel.send(message_to_stream_event(event.payload))
        elif event.type is TransportEventType.SPEECH_STARTED:
            self._channel.send(StreamEvent(type=StreamEventType.SPEECH_START))
        elif event.type is TransportEventType.UTTERANCE_END:
            self._channel.send(StreamEvent(type=StreamEventType.SPEECH_END))
        elif event.type is TransportEventType.ERROR:
            error = ProviderError(f"deepgram error: {event.payload}")
            self._channel.send_terminal(StreamEvent.failure(error))
        elif event.type is TransportEventType.UNHANDLED:
            logger.debug(f"Ignoring unhandled listen event: {event.payload!r}")


class AudioStreamWriter:
    """
    Write side of a live transcription stream.

    `close()` drains the session (final transcripts still arrive), stops the
    socket and closes the event channel. The background watcher runs the same
    shutdown, without draining, when ``stop_event`` is set or the provider
    ends the session. Whichever path gets there first does the work.
    """

    def __init__(
        self,
        session: StreamSession,
        channel: StreamChannel[StreamEvent],
        *,
        stop_event: Optional[asyncio.Event] = None,
        drain_timeout: Optional[float] = None,
    ):
        self._session = session
        self._channel = channel
        self._stop_event = stop_event
        self._drain_timeout = drain_timeout
        self._closer = GuardedClose(self._shutdown)
        self._watcher: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closer.closed

    async def write(self, data: bytes) -> int:
        """Send raw audio. Raises StreamClosedError once the writer is closed."""
        if self._closer.closed:
            raise StreamClosedError("audio stream is closed")
        try:
            await self._session.send_media(data)
        except TransportWriteError as e:
            logger.error(f"Audio write failed, closing stream: {e}")
            self._channel.send_terminal(StreamEvent.failure(e))
            await self._closer.close(False)
            raise
        return len(data)

    async def close(self) -> None:
        await self._closer.close(True)

    async def __aenter__(self) -> "AudioStreamWriter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _watch(self) -> None:
        await wait_first(self._stop_event, self._session.completed, self._closer.finished)
        if not self._closer.closed:
            reason = "stop requested" if self._stop_event is not None and self._stop_event.is_set() else "provider ended session"
            logger.info(f"Closing transcription stream: {reason}")
        await self._closer.close(False)

    async def _shutdown(self, graceful: bool) -> None:
        try:
            stopping = self._stop_event is not None and self._stop_event.is_set()
            if graceful and not stopping and not self._session.completed.is_set():
                try:
                    drained = await self._session.drain(self._stop_event, timeout=self._drain_timeout)
                    if not drained:
                        logger.info("Transcription stream closed before the provider finished")
                except TransportWriteError as e:
                    logger.warning(f"Could not drain transcription stream: {e}")
        finally:
            await self._session.close()
            self._channel.close()


class DeepgramSTTProvider(DeepgramProviderBase):
    """Deepgram speech-to-text behind the provider-neutral interface."""

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
            listen_transport_factory, ready_timeout=self._settings.ready_timeout
        )

    # -- batch ---------------------------------------------------------------

    async def transcribe(
        self, audio: bytes, config: Optional[TranscriptionConfig] = None
    ) -> TranscriptionResult:
        """Transcribe a complete audio buffer."""
        config = config or TranscriptionConfig()
        response = await self._post(
            self._settings.listen_url,
            what="transcription",
            params=config_to_prerecorded_options(config),
            headers=self._auth_headers("application/octet-stream"),
            content=audio,
        )
        result = _parse_prerecorded(response)
        logger.info(f"Deepgram transcribed {len(audio)} bytes: '{result.text[:50]}'")
        return result

    async def transcribe_file(
        self, path: Union[str, Path], config: Optional[TranscriptionConfig] = None
    ) -> TranscriptionResult:
        loop = asyncio.get_running_loop()
        audio = await loop.run_in_executor(None, Path(path).read_bytes)
        return await self.transcribe(audio, config)

    async def transcribe_url(
        self, url: str, config: Optional[TranscriptionConfig] = None
    ) -> TranscriptionResult:
        """Have Deepgram fetch and transcribe hosted audio."""
        config = config or TranscriptionConfig()
        response = await self._post(
            self._settings.listen_url,
            what="URL transcription",
            params=config_to_prerecorded_options(config),
            headers=self._auth_headers("application/json"),
            json={"url": url},
        )
        return _parse_prerecorded(response)

    # -- streaming -------------------------------------------------------------

    async def transcribe_stream(
        self,
        config: Optional[TranscriptionConfig] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> Tuple[AudioStreamWriter, StreamChannel[StreamEvent]]:
        """
        Start a live transcription session.

        Raises VoiceConnectionError if the socket cannot be opened; in that
        case no channel is handed out.
        """
        config = config or TranscriptionConfig()
        options = config_to_live_options(config, utterance_end_ms=self._settings.utterance_end_ms)

        channel: StreamChannel[StreamEvent] = StreamChannel(self._settings.channel_capacity, name="listen")
        session = StreamSession(
            self._transport_factory,
            self.api_key,
            options,
            _ListenCallbackHandler(channel),
            completion_events=LISTEN_COMPLETION_EVENTS,
            name="listen",
            connect_timeout=self._settings.connect_timeout,
        )
        try:
            await session.open()
        except VoiceConnectionError:
            channel.close()
            raise

        writer = AudioStreamWriter(
            session,
            channel,
            stop_event=stop_event,
            drain_timeout=self._settings.drain_timeout,
        )
        writer._watcher = self._spawn(writer._watch())
        logger.info(
            f"Transcription stream started: model={options['model']} "
            f"encoding={options['encoding']} sample_rate={options['sample_rate']}"
        )
        return writer, channel


def _parse_prerecorded(response: httpx.Response) -> TranscriptionResult:
    try:
        body = json.loads(response.text, object_hook=lambda d: SimpleNamespace(**d))
    except ValueError as e:
        raise ProviderError(f"deepgram returned invalid JSON: {e}") from e
    return prerecorded_response_to_result(body)


__all__ = ["AudioStreamWriter", "DeepgramSTTProvider", "LISTEN_COMPLETION_EVENTS"]
