"""
Session lifecycle for one streaming call.

A `StreamSession` owns exactly one transport for exactly one call:

    IDLE → CONNECTING → OPEN → DRAINING → CLOSED
              │           │
              └──→ CLOSED ←┘   (connect failure / cancellation)

Nothing leaves CLOSED and a session is never reopened. Shutdown from the
normal completion path and from the cancellation path converge on
`GuardedClose`, so the transport is stopped once no matter who gets there
first.
"""

import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, Collection, Mapping, Optional

from voicebridge.errors import StreamClosedError, TransportWriteError, VoiceConnectionError
from voicebridge.services.stream_channel import set_event_threadsafe
from voicebridge.services.transport import (
    EventSink,
    Transport,
    TransportEvent,
    TransportEventType,
    TransportFactory,
)

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    DRAINING = "draining"
    CLOSED = "closed"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.CONNECTING, SessionState.CLOSED}),
    SessionState.CONNECTING: frozenset({SessionState.OPEN, SessionState.CLOSED}),
    SessionState.OPEN: frozenset({SessionState.DRAINING, SessionState.CLOSED}),
    SessionState.DRAINING: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}


class GuardedClose:
    """
    Run a cleanup action at most once.

    The first caller claims the close under a lock and runs ``action``
    outside it. Later callers do not run the action again; they wait for the
    first run to finish and return False.
    """

    def __init__(self, action: Callable[..., Awaitable[None]]):
        self._action = action
        self._lock = threading.Lock()
        self._claimed = False
        self._finished = asyncio.Event()

    def claim(self) -> bool:
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._claimed

    @property
    def finished(self) -> asyncio.Event:
        return self._finished

    async def close(self, *args: Any, **kwargs: Any) -> bool:
        if not self.claim():
            await self._finished.wait()
            return False
        try:
            await self._action(*args, **kwargs)
        finally:
            self._finished.set()
        return True


async def wait_first(*events: Optional[asyncio.Event], timeout: Optional[float] = None) -> None:
    """Return as soon as any of ``events`` is set, or after ``timeout`` seconds."""
    pending = [e for e in events if e is not None]
    if any(e.is_set() for e in pending):
        return
    waiters = [asyncio.ensure_future(e.wait()) for e in pending]
    if not waiters:
        if timeout is not None:
            await asyncio.sleep(timeout)
        return
    try:
        await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()


class StreamSession:
    """
    One provider socket plus its lifecycle state.

    ``completion_events`` names the transport events that mean the provider
    has finished with everything sent so far; the session records the first
    of them so `drain()` and the adapters can wait on it.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        api_key: str,
        options: Mapping[str, Any],
        sink: EventSink,
        *,
        completion_events: Collection[TransportEventType],
        name: str = "stream",
        connect_timeout: float = 10.0,
    ):
        self.name = name
        self._factory = transport_factory
        self._api_key = api_key
        self._options = dict(options)
        self._sink = sink
        self._completion_events = frozenset(completion_events)
        self._connect_timeout = connect_timeout

        self._state = SessionState.IDLE
        self._state_lock = threading.Lock()
        self._transport: Optional[Transport] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._completed = asyncio.Event()
        self._completion: Optional[TransportEvent] = None
        self._closer = GuardedClose(self._shutdown)

    # -- state -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def completed(self) -> asyncio.Event:
        """Set once the provider signalled completion or the session closed."""
        return self._completed

    @property
    def completion(self) -> Optional[TransportEvent]:
        return self._completion

    def _transition(self, target: SessionState) -> bool:
        with self._state_lock:
            current = self._state
            if target not in _TRANSITIONS[current]:
                allowed = False
            else:
                self._state = target
                allowed = True
        if allowed:
            logger.debug(f"Session {self.name}: {current.value} -> {target.value}")
        else:
            logger.debug(f"Session {self.name}: ignored {current.value} -> {target.value}")
        return allowed

    # -- transport callbacks (transport thread) --------------------------

    def _dispatch(self, event: TransportEvent) -> None:
        try:
            self._sink(event)
        except Exception as e:
            logger.error(f"Session {self.name}: callback failed for {event.type.value}: {e}", exc_info=True)
        if event.type in self._completion_events and self._completion is None:
            self._completion = event
            if self._loop is not None:
                set_event_threadsafe(self._loop, self._completed)

    # -- lifecycle ---------------------------------------------------------

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def open(self) -> None:
        """Connect the transport. Raises VoiceConnectionError on any failure."""
        if not self._transition(SessionState.CONNECTING):
            raise RuntimeError(f"session {self.name} cannot be opened from state {self.state.value}")

        self._loop = asyncio.get_running_loop()
        try:
            self._transport = self._factory(self._api_key, self._options, self._dispatch)
            await asyncio.wait_for(self._run(self._transport.connect), timeout=self._connect_timeout)
        except asyncio.CancelledError:
            await self._abort_connect()
            raise
        except Exception as e:
            await self._abort_connect()
            logger.error(f"Failed to connect {self.name} session: {e}")
            raise VoiceConnectionError(f"failed to connect to Deepgram {self.name}: {e}") from e

        self._transition(SessionState.OPEN)
        logger.info(f"Deepgram {self.name} session open")

    async def _abort_connect(self) -> None:
        self._closer.claim()
        self._transition(SessionState.CLOSED)
        self._completed.set()
        if self._transport is not None:
            try:
                await self._run(self._transport.stop)
            except Exception as e:
                logger.warning(f"Error releasing {self.name} transport after failed connect: {e}")
        self._closer.finished.set()

    def _require_open(self) -> Transport:
        if self.state not in (SessionState.OPEN, SessionState.DRAINING) or self._transport is None:
            raise StreamClosedError(f"{self.name} session is {self.state.value}")
        return self._transport

    async def send_media(self, data: bytes) -> None:
        transport = self._require_open()
        try:
            await self._run(transport.send_media, data)
        except Exception as e:
            raise TransportWriteError(f"failed to send audio: {e}") from e

    async def send_text(self, text: str) -> None:
        transport = self._require_open()
        try:
            await self._run(transport.send_text, text)
        except Exception as e:
            raise TransportWriteError(f"failed to send text: {e}") from e

    async def drain(
        self,
        stop_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Signal end of input and wait for the provider to finish.

        Returns True when the provider's completion message arrived, False
        when the wait ended through ``stop_event``, ``timeout`` or closure.
        """
        if not self._transition(SessionState.DRAINING):
            return self._completion is not None
        transport = self._transport
        assert transport is not None
        try:
            await self._run(transport.finish)
        except Exception as e:
            raise TransportWriteError(f"failed to finish {self.name} input: {e}") from e
        await wait_first(self._completed, stop_event, timeout=timeout)
        return self._completion is not None

    async def close(self) -> bool:
        """Stop the transport. Safe to call any number of times from any path."""
        return await self._closer.close()

    async def _shutdown(self) -> None:
        self._transition(SessionState.CLOSED)
        self._completed.set()
        if self._transport is None:
            return
        try:
            await self._run(self._transport.stop)
        except Exception as e:
            logger.warning(f"Error closing Deepgram {self.name} session: {e}")
        logger.info(f"Deepgram {self.name} session closed")


__all__ = ["GuardedClose", "SessionState", "StreamSession", "wait_first"]
