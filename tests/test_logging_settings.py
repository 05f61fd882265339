"""Tests for logging settings parsing and application."""

import logging
from pathlib import Path

from voicebridge.logging_settings import (
    LoggingSettings,
    configure_logging,
    parse_logging_settings,
    resolve_level,
    setup_logging,
)


def test_parse_logging_settings(tmp_path: Path) -> None:
    """Test parsing every known key."""
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text(
        """
# Test config
terminal = debug
streams = warning
sdk = error
"""
    )

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level == 10  # DEBUG
    assert settings.streams_level == 30  # WARNING
    assert settings.sdk_level == 40  # ERROR


def test_parse_logging_settings_defaults(tmp_path: Path) -> None:
    """Test default values when config file doesn't exist."""
    settings = parse_logging_settings(tmp_path / "nonexistent.conf")

    assert settings.terminal_level == 20  # Default INFO
    assert settings.streams_level == 20
    assert settings.sdk_level == 20


def test_parse_logging_settings_partial_and_unknown(tmp_path: Path) -> None:
    """Test that unknown keys, malformed lines and levels are tolerated."""
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text(
        """
Terminal = DEBUG
retention_hours = 24
streams = loud
not a setting
"""
    )

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level == 10  # DEBUG
    assert settings.streams_level == 20  # Unknown level falls back to INFO
    assert settings.sdk_level == 20


def test_parse_logging_settings_off_level(tmp_path: Path) -> None:
    """Test parsing with 'off' level."""
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text("terminal = off\nsdk = off\n")

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level is None
    assert settings.streams_level == 20
    assert settings.sdk_level is None


def test_resolve_level() -> None:
    assert resolve_level(" Warning ") == logging.WARNING
    assert resolve_level("off") is None
    assert resolve_level("verbose") == logging.INFO


def test_configure_logging_replaces_console_handler() -> None:
    package_logger = logging.getLogger("voicebridge")
    sdk_logger = logging.getLogger("deepgram")
    try:
        first = configure_logging(LoggingSettings(logging.DEBUG, logging.INFO, None))
        second = configure_logging(LoggingSettings(logging.INFO, logging.WARNING, logging.ERROR))

        consoles = [h for h in package_logger.handlers if getattr(h, "_voicebridge_console", False)]
        assert consoles == [second]
        assert first not in package_logger.handlers
        assert second.level == logging.INFO
        assert logging.getLogger("voicebridge.services").level == logging.WARNING
        assert not sdk_logger.disabled
        assert sdk_logger.level == logging.ERROR

        assert configure_logging(LoggingSettings(None, None, None)) is None
        assert not [h for h in package_logger.handlers if getattr(h, "_voicebridge_console", False)]
        assert logging.getLogger("voicebridge.services").disabled
        assert sdk_logger.disabled
    finally:
        configure_logging(LoggingSettings(None, logging.INFO, logging.WARNING))


def test_setup_logging_reads_given_file(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text("terminal = off\nstreams = debug\nsdk = warning\n")

    try:
        settings = setup_logging(config_file)

        assert settings.streams_level == logging.DEBUG
        assert logging.getLogger("voicebridge.services").level == logging.DEBUG
        assert logging.getLogger("deepgram").level == logging.WARNING
    finally:
        configure_logging(LoggingSettings(None, logging.INFO, logging.WARNING))
