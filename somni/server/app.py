"""FastAPI application: stories, narration, karaoke timelines, voices.

WHY: The Somni web and mobile players need an HTTP API to create a
story from an idea, narrate it, clone a parent's voice, and get the
word timeline that drives the karaoke highlight. FastAPI provides
request validation, OpenAPI docs, and multipart upload handling.

HOW: One FastAPI app with endpoints grouped by tag. Story and voice
records live in module-level in-memory stores. Provider calls go
through _story_client() / _voice_client() factories so tests can swap
them. Timeline and highlight endpoints are thin wrappers around the
pure word-sync core.

RULES:
- Error responses use the ErrorResponse schema ({"detail": ...})
- Provider failures roll the record back (story → draft, voice → failed)
  and return 502
- Narration uses the story's ready cloned voice, else DEFAULT_VOICE_ID
- Highlight and timeline endpoints never fail on degenerate durations
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import logging
import re
from typing import Annotated, Optional

import httpx
from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response

from somni import __version__
from somni.api.models import STORYTELLING_SETTINGS
from somni.api.story_client import (
    StoryAPIError,
    StoryClient,
    StoryGenerationError,
    estimate_reading_duration_s,
)
from somni.api.voice_client import VoiceAPIError, VoiceClient
from somni.config import API_HOST, API_PORT, DEFAULT_VOICE_ID
from somni.core.ir import SyncTuning
from somni.core.sync import (
    NO_HIGHLIGHT,
    classify_words,
    estimate_word_times,
    map_time_to_word_index,
)
from somni.core.weights import build_timeline
from somni.server.models import (
    CreateStoryRequest,
    ErrorResponse,
    HealthResponse,
    HighlightResponse,
    StoryListResponse,
    StoryResponse,
    TimelineResponse,
    TimelineWord,
    VoiceListResponse,
    VoiceResponse,
)
from somni.server.stores import (
    StoryRecord,
    StoryStatus,
    StoryStore,
    VoiceRecord,
    VoiceStatus,
    VoiceStore,
)

logger = logging.getLogger(__name__)

# Provider failures that map to 502 Bad Gateway
_PROVIDER_ERRORS = (StoryAPIError, StoryGenerationError, VoiceAPIError, httpx.HTTPError)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

story_store = StoryStore()
voice_store = VoiceStore()
sync_tuning = SyncTuning.from_env()

app = FastAPI(
    title="Somni Bedtime Stories API",
    description=(
        "Generate children's bedtime stories, narrate them in a stock or "
        "cloned voice, and fetch word timelines for karaoke-style "
        "highlighting during playback."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _story_client() -> StoryClient:
    return StoryClient()


def _voice_client() -> VoiceClient:
    return VoiceClient()


def _story_to_response(story: StoryRecord) -> StoryResponse:
    return StoryResponse(
        id=story.id,
        status=story.status.value,
        prompt=story.prompt,
        age_group=story.age_group,
        child_name=story.child_name,
        voice_id=story.voice_id,
        title=story.title,
        content=story.content,
        duration_s=story.duration_s,
        created_at=story.created_at,
        error=story.error,
    )


def _voice_to_response(voice: VoiceRecord) -> VoiceResponse:
    return VoiceResponse(
        id=voice.id,
        name=voice.name,
        status=voice.status.value,
        provider_voice_id=voice.provider_voice_id,
        created_at=voice.created_at,
        error=voice.error,
    )


def _get_story_or_404(story_id: str) -> StoryRecord:
    story = story_store.get(story_id)
    if story is None:
        raise HTTPException(status_code=404, detail="Story not found: {}".format(story_id))
    return story


def _narration_voice_id(story: StoryRecord) -> str:
    """Provider voice for a story: its ready cloned voice, else the stock voice."""
    if story.voice_id:
        voice = voice_store.get(story.voice_id)
        if voice is not None and voice.status == VoiceStatus.READY and voice.provider_voice_id:
            return voice.provider_voice_id
        logger.info("Voice %s not ready for story %s, using default voice", story.voice_id, story.id)
    return DEFAULT_VOICE_ID


def _audio_filename(title: str) -> str:
    """Download filename: non-alphanumerics replaced with underscores."""
    return "{}.mp3".format(re.sub(r"[^a-z0-9]", "_", title, flags=re.IGNORECASE))


# ---------------------------------------------------------------------------
# Endpoints: Stories
# ---------------------------------------------------------------------------


@app.post(
    "/stories",
    response_model=StoryResponse,
    status_code=201,
    tags=["stories"],
    summary="Generate a new story",
    description=(
        "Create a story record and generate its title and text from the "
        "idea. The record is returned with status 'ready' on success."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Unknown voice or store full"},
        502: {"model": ErrorResponse, "description": "Story provider failed"},
    },
)
async def create_story(request: CreateStoryRequest) -> StoryResponse:
    if request.voice_id and voice_store.get(request.voice_id) is None:
        raise HTTPException(status_code=400, detail="Unknown voice: {}".format(request.voice_id))

    try:
        story = story_store.create(
            prompt=request.prompt,
            age_group=request.age_group.value,
            child_name=request.child_name or None,
            voice_id=request.voice_id,
            status=StoryStatus.GENERATING,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        async with _story_client() as client:
            generated = await client.generate_story(
                request.prompt,
                child_name=request.child_name or None,
                age_group=request.age_group,
            )
    except (*_PROVIDER_ERRORS, ValueError) as exc:
        logger.exception("Story generation failed for story %s", story.id)
        story_store.update(story.id, status=StoryStatus.DRAFT, error=str(exc))
        raise HTTPException(status_code=502, detail="Failed to create story: {}".format(exc))

    story_store.update(
        story.id,
        title=generated.title,
        content=generated.content,
        duration_s=estimate_reading_duration_s(generated.content),
        status=StoryStatus.READY,
    )
    logger.info("Story %s ready: %r", story.id, generated.title)
    return _story_to_response(story)


@app.get(
    "/stories",
    response_model=StoryListResponse,
    tags=["stories"],
    summary="List stories",
)
async def list_stories() -> StoryListResponse:
    return StoryListResponse(stories=[_story_to_response(s) for s in story_store.list_all()])


@app.get(
    "/stories/{story_id}",
    response_model=StoryResponse,
    tags=["stories"],
    summary="Get a story",
    responses={404: {"model": ErrorResponse, "description": "Story not found"}},
)
async def get_story(story_id: str) -> StoryResponse:
    return _story_to_response(_get_story_or_404(story_id))


@app.delete(
    "/stories/{story_id}",
    status_code=204,
    tags=["stories"],
    summary="Delete a story",
    responses={404: {"model": ErrorResponse, "description": "Story not found"}},
)
async def delete_story(story_id: str) -> Response:
    if not story_store.delete(story_id):
        raise HTTPException(status_code=404, detail="Story not found: {}".format(story_id))
    return Response(status_code=204)


@app.post(
    "/stories/{story_id}/audio",
    tags=["stories"],
    summary="Narrate a story",
    description=(
        "Synthesize the story text with the story's cloned voice (when "
        "ready) or the stock narrator, and return the MP3."
    ),
    responses={
        200: {"content": {"audio/mpeg": {}}, "description": "Narration MP3"},
        400: {"model": ErrorResponse, "description": "Story has no content"},
        404: {"model": ErrorResponse, "description": "Story not found"},
        502: {"model": ErrorResponse, "description": "Voice provider failed"},
    },
)
async def narrate_story(story_id: str) -> Response:
    story = _get_story_or_404(story_id)
    if not story.content:
        raise HTTPException(status_code=400, detail="Story has no content to narrate")

    voice_id = _narration_voice_id(story)
    try:
        async with _voice_client() as client:
            audio = await client.text_to_speech(
                story.content,
                voice_id,
                base_settings=STORYTELLING_SETTINGS,
            )
    except (*_PROVIDER_ERRORS, ValueError) as exc:
        logger.exception("Narration failed for story %s", story.id)
        raise HTTPException(status_code=502, detail="Failed to generate audio: {}".format(exc))

    return Response(
        content=audio,
        media_type="audio/mpeg",
        headers={
            "Content-Disposition": 'attachment; filename="{}"'.format(_audio_filename(story.title)),
        },
    )


# ---------------------------------------------------------------------------
# Endpoints: Karaoke sync
# ---------------------------------------------------------------------------


@app.get(
    "/stories/{story_id}/timeline",
    response_model=TimelineResponse,
    tags=["sync"],
    summary="Get the weighted word timeline",
    description=(
        "Returns every word with its relative weight. When the narration "
        "duration is given, each word also gets an estimated start and end."
    ),
    responses={404: {"model": ErrorResponse, "description": "Story not found"}},
)
async def get_timeline(
    story_id: str,
    duration: Annotated[
        Optional[float],
        Query(description="Narration track duration in seconds."),
    ] = None,
) -> TimelineResponse:
    story = _get_story_or_404(story_id)
    timeline = build_timeline(story.content, sync_tuning)

    words = [
        TimelineWord(
            index=i,
            text=token.text,
            weight=token.weight,
            cumulative_weight=token.cumulative_weight,
        )
        for i, token in enumerate(timeline.tokens)
    ]
    if duration is not None:
        for word, timing in zip(words, estimate_word_times(timeline, duration, sync_tuning)):
            word.start_s = round(timing.start_s, 3)
            word.end_s = round(timing.end_s, 3)

    return TimelineResponse(
        story_id=story.id,
        total_weight=timeline.total_weight,
        speech_start_offset_s=sync_tuning.speech_start_offset_s,
        duration_s=duration,
        words=words,
    )


@app.get(
    "/stories/{story_id}/highlight",
    response_model=HighlightResponse,
    tags=["sync"],
    summary="Word to highlight at a playback position",
    description=(
        "Maps a playback position to the word being spoken. Stateless: "
        "seeking backwards simply returns an earlier word."
    ),
    responses={404: {"model": ErrorResponse, "description": "Story not found"}},
)
async def get_highlight(
    story_id: str,
    current_time: Annotated[float, Query(description="Playback position in seconds.")],
    duration: Annotated[float, Query(description="Track duration in seconds.")],
    include_states: Annotated[
        bool,
        Query(description="Also return spoken/current/unspoken for every word."),
    ] = False,
) -> HighlightResponse:
    story = _get_story_or_404(story_id)
    timeline = build_timeline(story.content, sync_tuning)
    index = map_time_to_word_index(current_time, duration, timeline, sync_tuning)

    return HighlightResponse(
        story_id=story.id,
        current_time=current_time,
        duration=duration,
        index=index,
        word=timeline.tokens[index].text if index != NO_HIGHLIGHT else None,
        states=classify_words(len(timeline), index) if include_states else None,
    )


# ---------------------------------------------------------------------------
# Endpoints: Voices
# ---------------------------------------------------------------------------


@app.post(
    "/voices",
    response_model=VoiceResponse,
    status_code=201,
    tags=["voices"],
    summary="Clone a voice",
    description="Upload a voice sample; the voice is cloned at the speech provider.",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid name or missing audio"},
        502: {"model": ErrorResponse, "description": "Voice provider failed"},
    },
)
async def create_voice(
    name: Annotated[str, Form(description="Display name (at least 2 characters).")],
    audio: Annotated[UploadFile, File(description="Voice sample recording.")],
) -> VoiceResponse:
    name = name.strip()
    if len(name) < 2:
        raise HTTPException(status_code=400, detail="Voice name must be at least 2 characters")

    content = await audio.read()
    if not content:
        raise HTTPException(status_code=400, detail="Audio file is required")

    try:
        voice = voice_store.create(name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    sample = (audio.filename or "sample.mp3", content, audio.content_type or "audio/mpeg")
    try:
        async with _voice_client() as client:
            cloned = await client.clone_voice(
                "{} - Somni".format(name),
                [sample],
                description="Voice cloned for Somni bedtime stories",
            )
    except (*_PROVIDER_ERRORS, ValueError) as exc:
        logger.exception("Voice cloning failed for voice %s", voice.id)
        voice_store.update(voice.id, status=VoiceStatus.FAILED, error=str(exc))
        raise HTTPException(status_code=502, detail="Failed to clone voice: {}".format(exc))

    voice_store.update(voice.id, provider_voice_id=cloned.voice_id, status=VoiceStatus.READY)
    logger.info("Voice %s cloned as %s", voice.id, cloned.voice_id)
    return _voice_to_response(voice)


@app.get(
    "/voices",
    response_model=VoiceListResponse,
    tags=["voices"],
    summary="List voices",
)
async def list_voices() -> VoiceListResponse:
    return VoiceListResponse(voices=[_voice_to_response(v) for v in voice_store.list_all()])


@app.delete(
    "/voices/{voice_id}",
    status_code=204,
    tags=["voices"],
    summary="Delete a voice",
    description="Delete the voice record and, best-effort, the provider's copy.",
    responses={404: {"model": ErrorResponse, "description": "Voice not found"}},
)
async def delete_voice(voice_id: str) -> Response:
    voice = voice_store.get(voice_id)
    if voice is None:
        raise HTTPException(status_code=404, detail="Voice not found: {}".format(voice_id))

    if voice.provider_voice_id:
        try:
            async with _voice_client() as client:
                await client.delete_voice(voice.provider_voice_id)
        except (VoiceAPIError, httpx.HTTPError, ValueError) as exc:
            logger.warning("Provider delete failed for voice %s: %s", voice_id, exc)

    voice_store.delete(voice_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api():
    """Entry point for the somni-api console script and ``python -m somni serve``.

    RULES:
    - Host and port come from SOMNI_HOST / SOMNI_PORT (default 0.0.0.0:8000)
    - Blocks until uvicorn exits
    """
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    logger.info("Starting Somni API on %s:%d", API_HOST, API_PORT)
    logger.info("Speech start offset: %.2fs", sync_tuning.speech_start_offset_s)
    uvicorn.run(app, host=API_HOST, port=API_PORT)
