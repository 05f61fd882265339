"""Shared setup for the Deepgram STT and TTS providers."""

import asyncio
import logging
from typing import Any, Optional, Set

import httpx

from voicebridge.config import Settings, get_settings
from voicebridge.errors import ProviderError
from voicebridge.sdk import PROVIDER_NAME, init_sdk

logger = logging.getLogger(__name__)


class DeepgramProviderBase:
    """
    API key resolution, SDK init, the REST client, and background task
    bookkeeping common to both providers.

    The httpx client is created lazily and shared by every batch request the
    provider makes; pass ``http_client`` to supply your own (it is then not
    closed by `aclose()`).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        if api_key is None and self._settings.deepgram_api_key is not None:
            api_key = self._settings.deepgram_api_key.get_secret_value()
        if not api_key:
            raise ValueError("DEEPGRAM_API_KEY is not set")

        # Process-wide, runs once no matter how many providers exist
        init_sdk()

        self.api_key = api_key
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._settings.request_timeout)
            logger.debug("Created httpx.AsyncClient for Deepgram REST calls")
        return self._http_client

    def _auth_headers(self, content_type: str) -> dict[str, str]:
        return {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": content_type,
        }

    async def _post(self, url: str, *, what: str, **kwargs: Any) -> httpx.Response:
        """POST to the Deepgram REST API, raising ProviderError on any failure."""
        client = self.get_http_client()
        try:
            response = await client.post(url, timeout=self._settings.request_timeout, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Deepgram {what} failed with status {e.response.status_code}: {e.response.text[:200]}")
            raise ProviderError(f"deepgram {what} failed: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Deepgram {what} request error: {e}")
            raise ProviderError(f"deepgram {what} failed: {e}") from e
        return response

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def aclose(self) -> None:
        """Close the REST client if this provider created it."""
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug("Closed Deepgram REST client")


__all__ = ["DeepgramProviderBase"]
