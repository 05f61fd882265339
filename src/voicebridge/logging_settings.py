"""Helpers for parsing the simple logging settings file and applying it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from voicebridge.config import get_settings

_LEVEL_MAP: dict[str, int | None] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": None,
}

_DEFAULT_KEYS = ("terminal", "streams", "sdk")
_DEFAULT_LEVEL = "info"

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class LoggingSettings:
    terminal_level: int | None
    streams_level: int | None
    sdk_level: int | None


def _normalize_level(value: str) -> str:
    return value.strip().lower()


def resolve_level(value: str) -> int | None:
    """Map a level name to a logging level; ``None`` means disabled."""

    return _LEVEL_MAP.get(_normalize_level(value), _LEVEL_MAP[_DEFAULT_LEVEL])


def parse_logging_settings(path: Path) -> LoggingSettings:
    """Parse the human-readable logging settings file.

    Lines look like ``streams = debug``. Blank lines and ``#`` comments are
    skipped; unknown keys are ignored and unknown levels fall back to info.
    """

    levels: dict[str, int | None] = {
        key: _LEVEL_MAP[_DEFAULT_LEVEL] for key in _DEFAULT_KEYS
    }

    if path.exists():
        for raw_line in path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, value = (part.strip() for part in line.split("=", 1))
            normalized_key = key.lower()
            if normalized_key in _DEFAULT_KEYS:
                levels[normalized_key] = resolve_level(value)

    return LoggingSettings(
        terminal_level=levels["terminal"],
        streams_level=levels["streams"],
        sdk_level=levels["sdk"],
    )


def configure_logging(settings: LoggingSettings) -> logging.Handler | None:
    """Install a console handler for the package and apply per-area levels.

    Returns the installed handler, or ``None`` when terminal output is off.
    """

    root = logging.getLogger("voicebridge")
    for existing in list(root.handlers):
        if getattr(existing, "_voicebridge_console", False):
            root.removeHandler(existing)

    handler: logging.Handler | None = None
    if settings.terminal_level is not None:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.setLevel(settings.terminal_level)
        handler._voicebridge_console = True  # type: ignore[attr-defined]
        root.addHandler(handler)
        root.setLevel(settings.terminal_level)

    streams = logging.getLogger("voicebridge.services")
    if settings.streams_level is None:
        streams.disabled = True
    else:
        streams.disabled = False
        streams.setLevel(settings.streams_level)

    sdk = logging.getLogger("deepgram")
    if settings.sdk_level is None:
        sdk.disabled = True
    else:
        sdk.disabled = False
        sdk.setLevel(settings.sdk_level)

    return handler


def setup_logging(path: Path | None = None) -> LoggingSettings:
    """Load the logging settings file (``LOGGING_SETTINGS_PATH`` by default) and apply it."""

    settings = parse_logging_settings(path or get_settings().logging_settings_path)
    configure_logging(settings)
    return settings


__all__ = [
    "LoggingSettings",
    "configure_logging",
    "parse_logging_settings",
    "resolve_level",
    "setup_logging",
]
