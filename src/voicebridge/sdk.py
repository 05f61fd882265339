"""Provider identity and process-wide Deepgram SDK initialisation."""

import logging
import threading

from voicebridge.config import get_settings
from voicebridge.logging_settings import resolve_level

logger = logging.getLogger(__name__)

PROVIDER_NAME = "deepgram"
VERSION = "0.1.0"

_init_lock = threading.Lock()
_initialized = False


def init_sdk() -> bool:
    """Initialise the Deepgram SDK once per process.

    Every provider constructor calls this. Returns True only for the call that
    actually performed the initialisation.
    """
    global _initialized
    with _init_lock:
        if _initialized:
            return False
        level = resolve_level(get_settings().sdk_log_level)
        sdk_logger = logging.getLogger("deepgram")
        if level is None:
            sdk_logger.disabled = True
        else:
            sdk_logger.setLevel(level)
        _initialized = True
    logger.debug(f"Deepgram SDK initialised (log level={get_settings().sdk_log_level})")
    return True


__all__ = ["PROVIDER_NAME", "VERSION", "init_sdk"]
