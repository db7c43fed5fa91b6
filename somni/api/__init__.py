"""Provider client package — async HTTP access to the story and voice APIs.

WHY: Somni depends on two SaaS providers: a text-generation API for the
story and a speech API for narration and voice cloning. This package
keeps all provider HTTP behind two small async client classes.

HOW: Both clients use httpx.AsyncClient as async context managers.
Provider payloads are parsed into dataclasses from models.py.

RULES:
- All provider HTTP goes through StoryClient / VoiceClient
- API keys come from config (never passed around in plain dicts)
"""

from somni.api.models import AgeGroup, ClonedVoice, GeneratedStory, VoiceSettings
from somni.api.story_client import StoryClient
from somni.api.voice_client import VoiceClient

__all__ = [
    "AgeGroup",
    "ClonedVoice",
    "GeneratedStory",
    "StoryClient",
    "VoiceClient",
    "VoiceSettings",
]
