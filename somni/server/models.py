"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. Pydantic
models enforce field types at runtime and generate the JSON Schema
shown in the /docs UI.

HOW: One model per request body or response shape. Enums represent
closed sets (age groups). All models include Field descriptions for
rich OpenAPI docs.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Response models never expose internal implementation details
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from somni.api.models import AgeGroup


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CreateStoryRequest(BaseModel):
    """Body of POST /stories.

    RULES:
    - prompt must be at least 10 characters
    - age_group defaults to PRESCHOOL
    - voice_id refers to a voice record id (optional)
    """

    prompt: str = Field(
        min_length=10,
        description="The story idea. Please describe it in a sentence or two.",
    )
    child_name: Optional[str] = Field(
        default=None,
        description="Name to give the hero or a friend in the story.",
    )
    age_group: AgeGroup = Field(
        default=AgeGroup.PRESCHOOL,
        description="Audience the story is written for.",
    )
    voice_id: Optional[str] = Field(
        default=None,
        description="Voice record id to narrate with. Defaults to the stock voice.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "prompt": "A sleepy owl who is afraid of the dark learns to love the stars",
                "child_name": "Mia",
                "age_group": "PRESCHOOL",
            }
        ]
    }}


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class StoryResponse(BaseModel):
    """A story record."""

    id: str = Field(description="Unique story identifier.")
    status: str = Field(description="draft, generating, or ready.")
    prompt: str = Field(description="The story idea as submitted.")
    age_group: str = Field(description="Audience the story was written for.")
    child_name: Optional[str] = Field(default=None, description="Hero name, if given.")
    voice_id: Optional[str] = Field(default=None, description="Voice record used for narration.")
    title: str = Field(description="Story title.")
    content: str = Field(description="Story text (empty until ready).")
    duration_s: Optional[int] = Field(
        default=None,
        description="Estimated read-aloud length in seconds (120 words per minute).",
    )
    created_at: float = Field(description="Creation timestamp (Unix epoch seconds).")
    error: Optional[str] = Field(default=None, description="Last generation error, if any.")


class StoryListResponse(BaseModel):
    stories: List[StoryResponse] = Field(description="Stories, newest first.")


class VoiceResponse(BaseModel):
    """A cloned-voice record."""

    id: str = Field(description="Unique voice identifier.")
    name: str = Field(description="Display name.")
    status: str = Field(description="processing, ready, or failed.")
    provider_voice_id: Optional[str] = Field(
        default=None,
        description="Voice id at the speech provider, once ready.",
    )
    created_at: float = Field(description="Creation timestamp (Unix epoch seconds).")
    error: Optional[str] = Field(default=None, description="Cloning error, if failed.")


class VoiceListResponse(BaseModel):
    voices: List[VoiceResponse] = Field(description="Voices, newest first.")


class TimelineWord(BaseModel):
    """One word of a story timeline."""

    index: int = Field(description="Position of the word in the story.")
    text: str = Field(description="Word with attached punctuation.")
    weight: float = Field(description="Relative speaking time.")
    cumulative_weight: float = Field(description="Sum of weights up to and including this word.")
    start_s: Optional[float] = Field(
        default=None,
        description="Estimated start time; only when a duration was given.",
    )
    end_s: Optional[float] = Field(
        default=None,
        description="Estimated end time; only when a duration was given.",
    )


class TimelineResponse(BaseModel):
    """Weighted word timeline for a story."""

    story_id: str = Field(description="The story this timeline belongs to.")
    total_weight: float = Field(description="Sum of all word weights.")
    speech_start_offset_s: float = Field(description="Silence assumed before speech starts.")
    duration_s: Optional[float] = Field(default=None, description="Track duration used for times.")
    words: List[TimelineWord] = Field(description="Words in story order.")


class HighlightResponse(BaseModel):
    """Word to highlight at a playback position."""

    story_id: str = Field(description="The story being played.")
    current_time: float = Field(description="Playback position in seconds.")
    duration: float = Field(description="Track duration in seconds.")
    index: int = Field(description="Word index to highlight, or -1 for none.")
    word: Optional[str] = Field(default=None, description="The highlighted word.")
    states: Optional[List[str]] = Field(
        default=None,
        description="spoken / current / unspoken for every word (include_states=true).",
    )


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
