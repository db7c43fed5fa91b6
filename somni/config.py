"""Configuration constants, provider defaults, and .env loading.

WHY: Centralizes every configurable value (API endpoints, models, the
default narrator voice, and the karaoke sync tuning constants) so they
are easy to find, update, and override without touching logic.

HOW: python-dotenv loads the .env file on import. Constants are
module-level values read from the environment with hard-coded fallbacks.
The load_*_api_key() functions give a clear error when a key is missing.

RULES:
- API keys come from .env / the environment, never from source code
- Every default can be overridden via an environment variable
- Sync tuning values are plain floats; SyncTuning.from_env() reads them
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the app is started from)
load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back on bad values."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Story generation (OpenAI chat completions)
# ---------------------------------------------------------------------------

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
STORY_TEMPERATURE = _env_float("STORY_TEMPERATURE", 0.8)
STORY_MAX_TOKENS = int(_env_float("STORY_MAX_TOKENS", 2000))
DEFAULT_AGE_GROUP = os.getenv("DEFAULT_AGE_GROUP", "PRESCHOOL")

# ---------------------------------------------------------------------------
# Narration and voice cloning (ElevenLabs)
# ---------------------------------------------------------------------------

ELEVENLABS_BASE_URL = os.getenv("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io/v1")
ELEVENLABS_MODEL = os.getenv("ELEVENLABS_MODEL", "eleven_multilingual_v2")

DEFAULT_VOICE_ID = os.getenv("DEFAULT_VOICE_ID", "21m00Tcm4TlvDq8ikWAM")
"""Rachel: warm, friendly stock voice used when no cloned voice is ready."""

# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------

API_HOST = os.getenv("SOMNI_HOST", "0.0.0.0")
API_PORT = int(_env_float("SOMNI_PORT", 8000))

# ---------------------------------------------------------------------------
# Karaoke word-sync tuning
# ---------------------------------------------------------------------------

SYNC_SPEECH_START_OFFSET_S = _env_float("SYNC_SPEECH_START_OFFSET_S", 0.5)
SYNC_CHARS_PER_UNIT = _env_float("SYNC_CHARS_PER_UNIT", 5.0)
SYNC_MIN_WORD_WEIGHT = _env_float("SYNC_MIN_WORD_WEIGHT", 0.5)
SYNC_SENTENCE_PAUSE_BONUS = _env_float("SYNC_SENTENCE_PAUSE_BONUS", 0.8)
SYNC_CLAUSE_PAUSE_BONUS = _env_float("SYNC_CLAUSE_PAUSE_BONUS", 0.3)
SYNC_QUOTE_DASH_BONUS = _env_float("SYNC_QUOTE_DASH_BONUS", 0.1)


def load_openai_api_key() -> str:
    """Load the OpenAI API key from the environment.

    RULES:
    - Raises ValueError if OPENAI_API_KEY is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("OPENAI_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "OpenAI API key not configured. "
            "Add OPENAI_API_KEY to the .env file in the app folder."
        )
    return key


def load_elevenlabs_api_key() -> str:
    """Load the ElevenLabs API key from the environment.

    RULES:
    - Raises ValueError if ELEVENLABS_API_KEY is missing or empty
    """
    key = os.getenv("ELEVENLABS_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "ElevenLabs API key not configured. "
            "Add ELEVENLABS_API_KEY to the .env file in the app folder."
        )
    return key
