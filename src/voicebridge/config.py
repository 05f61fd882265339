"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    deepgram_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("DEEPGRAM_API_KEY", "deepgram_api_key"),
    )
    deepgram_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.deepgram.com/v1"),
        validation_alias=AliasChoices("DEEPGRAM_BASE_URL", "deepgram_base_url"),
    )
    request_timeout: float = Field(
        default=30.0,
        ge=1,
        validation_alias=AliasChoices("DEEPGRAM_REQUEST_TIMEOUT", "request_timeout"),
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        validation_alias=AliasChoices("DEEPGRAM_CONNECT_TIMEOUT", "connect_timeout"),
    )
    # Upper bound on waiting for final transcripts after the audio writer closes
    drain_timeout: float = Field(
        default=5.0,
        ge=0,
        validation_alias=AliasChoices("DEEPGRAM_DRAIN_TIMEOUT", "drain_timeout"),
    )
    channel_capacity: int = Field(
        default=100,
        ge=1,
        validation_alias=AliasChoices("VOICE_CHANNEL_CAPACITY", "channel_capacity"),
    )
    utterance_end_ms: int = Field(
        default=1000,
        ge=1000,
        validation_alias=AliasChoices("DEEPGRAM_UTTERANCE_END_MS", "utterance_end_ms"),
    )
    sdk_log_level: str = Field(
        default="warning",
        validation_alias=AliasChoices("DEEPGRAM_SDK_LOG_LEVEL", "sdk_log_level"),
    )
    logging_settings_path: Path = Field(
        default_factory=lambda: Path("logging_settings.conf"),
        validation_alias=AliasChoices("LOGGING_SETTINGS_PATH", "logging_settings_path"),
    )

    @property
    def ready_timeout(self) -> float:
        """Socket ready wait, kept below `connect_timeout` so the transport gives up first."""
        return self.connect_timeout * 0.8

    @property
    def speak_url(self) -> str:
        return f"{str(self.deepgram_base_url).rstrip('/')}/speak"

    @property
    def listen_url(self) -> str:
        return f"{str(self.deepgram_base_url).rstrip('/')}/listen"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
