"""Static catalog of Deepgram Aura voices.

Deepgram has no voices endpoint, so the catalog is a fixed table.
"""

from voicebridge.errors import VoiceNotFoundError
from voicebridge.schemas.tts import Voice
from voicebridge.sdk import PROVIDER_NAME

DEEPGRAM_VOICES: tuple[Voice, ...] = (
    # Aura 1 - female
    Voice("aura-asteria-en", "Asteria", "en-US", "female", PROVIDER_NAME),
    Voice("aura-luna-en", "Luna", "en-US", "female", PROVIDER_NAME),
    Voice("aura-stella-en", "Stella", "en-US", "female", PROVIDER_NAME),
    Voice("aura-athena-en", "Athena", "en-US", "female", PROVIDER_NAME),
    Voice("aura-hera-en", "Hera", "en-US", "female", PROVIDER_NAME),
    # Aura 1 - male
    Voice("aura-orion-en", "Orion", "en-US", "male", PROVIDER_NAME),
    Voice("aura-arcas-en", "Arcas", "en-US", "male", PROVIDER_NAME),
    Voice("aura-perseus-en", "Perseus", "en-US", "male", PROVIDER_NAME),
    Voice("aura-angus-en", "Angus", "en-IE", "male", PROVIDER_NAME),
    Voice("aura-orpheus-en", "Orpheus", "en-US", "male", PROVIDER_NAME),
    Voice("aura-helios-en", "Helios", "en-GB", "male", PROVIDER_NAME),
    Voice("aura-zeus-en", "Zeus", "en-US", "male", PROVIDER_NAME),
    # Aura 2
    Voice("aura-2-thalia-en", "Thalia (Aura 2)", "en-US", "female", PROVIDER_NAME),
    Voice("aura-2-andromeda-en", "Andromeda (Aura 2)", "en-US", "female", PROVIDER_NAME),
    Voice("aura-2-helena-en", "Helena (Aura 2)", "en-US", "female", PROVIDER_NAME),
    Voice("aura-2-apollo-en", "Apollo (Aura 2)", "en-US", "male", PROVIDER_NAME),
    Voice("aura-2-aries-en", "Aries (Aura 2)", "en-US", "male", PROVIDER_NAME),
)

_BY_ID = {voice.id: voice for voice in DEEPGRAM_VOICES}


def list_voices() -> list[Voice]:
    return list(DEEPGRAM_VOICES)


def get_voice(voice_id: str) -> Voice:
    """Look up a voice by id. Raises VoiceNotFoundError on a miss."""
    try:
        return _BY_ID[voice_id]
    except KeyError:
        raise VoiceNotFoundError(voice_id) from None


__all__ = ["DEEPGRAM_VOICES", "get_voice", "list_voices"]
