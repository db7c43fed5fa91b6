"""Tests for the FastAPI bedtime-story API.

WHY: Validates every endpoint: happy paths, error cases, and the
rollback behavior when a provider fails. The karaoke endpoints are
checked against the same hand-computed numbers as the sync tests.

HOW: Each test function exercises one endpoint behavior. The story and
voice provider factories (_story_client / _voice_client) are patched
with in-memory fakes, so no network or API key is needed. Tests create
records through the API or directly in the stores, then verify status
codes, bodies, and headers.

RULES:
- All tests use the FastAPI TestClient (synchronous)
- Providers are never called (factories are patched)
- Stores are cleared before and after each test
- Tests cover: happy paths, 404 not found, 400/422 bad request, 502 provider failure
"""

from __future__ import annotations

import io
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from somni import __version__
from somni.api.models import AgeGroup, ClonedVoice, GeneratedStory, STORYTELLING_SETTINGS
from somni.api.story_client import StoryAPIError
from somni.api.voice_client import VoiceAPIError
from somni.config import DEFAULT_VOICE_ID
from somni.server.app import app, story_store, voice_store
from somni.server.stores import StoryStatus, VoiceStatus

STORY_TEXT = "The cat sat. The dog ran!"


# ---------------------------------------------------------------------------
# Fakes and fixtures
# ---------------------------------------------------------------------------


class FakeStoryClient:
    """Stands in for StoryClient inside ``async with``."""

    def __init__(self, result=None, error=None):
        self.result = result or GeneratedStory(title="Pip and the Stars", content=STORY_TEXT)
        self.error = error
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def generate_story(self, prompt, child_name=None, age_group=AgeGroup.PRESCHOOL, on_status=None):
        self.calls.append({"prompt": prompt, "child_name": child_name, "age_group": age_group})
        if self.error:
            raise self.error
        return self.result


class FakeVoiceClient:
    """Stands in for VoiceClient inside ``async with``."""

    def __init__(self, error=None):
        self.error = error
        self.tts_calls = []
        self.clone_calls = []
        self.deleted = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def text_to_speech(self, text, voice_id, settings=None, base_settings=None, on_status=None):
        self.tts_calls.append({"text": text, "voice_id": voice_id, "base_settings": base_settings})
        if self.error:
            raise self.error
        return b"ID3fake-mp3-bytes"

    async def clone_voice(self, name, samples, description=None, on_status=None):
        self.clone_calls.append({"name": name, "samples": list(samples)})
        if self.error:
            raise self.error
        return ClonedVoice(voice_id="provider-voice-1", name=name)

    async def delete_voice(self, voice_id):
        if self.error:
            raise self.error
        self.deleted.append(voice_id)


@pytest.fixture(autouse=True)
def _reset_stores():
    """Clear all records before and after each test to ensure isolation."""
    story_store.clear()
    voice_store.clear()
    yield
    story_store.clear()
    voice_store.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def story_client():
    fake = FakeStoryClient()
    with patch("somni.server.app._story_client", return_value=fake):
        yield fake


@pytest.fixture
def voice_client():
    fake = FakeVoiceClient()
    with patch("somni.server.app._voice_client", return_value=fake):
        yield fake


def _ready_story(content=STORY_TEXT, title="Pip and the Stars", voice_id=None):
    story = story_store.create(prompt="A cat and a dog at bedtime", age_group="PRESCHOOL", voice_id=voice_id)
    story_store.update(story.id, title=title, content=content, status=StoryStatus.READY)
    return story


def _ready_voice(provider_voice_id="provider-voice-9"):
    voice = voice_store.create("Mom")
    voice_store.update(voice.id, provider_voice_id=provider_voice_id, status=VoiceStatus.READY)
    return voice


def _audio_upload(content=b"fake voice sample", name="mom.mp3"):
    return [("audio", (name, io.BytesIO(content), "audio/mpeg"))]


# ---------------------------------------------------------------------------
# POST /stories
# ---------------------------------------------------------------------------


class TestCreateStory:

    def test_generates_story(self, client, story_client):
        resp = client.post("/stories", json={
            "prompt": "A cat and a dog share a bed",
            "child_name": "Mia",
            "age_group": "TODDLER",
        })
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "ready"
        assert body["title"] == "Pip and the Stars"
        assert body["content"] == STORY_TEXT
        assert body["age_group"] == "TODDLER"
        assert body["child_name"] == "Mia"
        assert body["duration_s"] == 3
        assert body["error"] is None

    def test_passes_options_to_provider(self, client, story_client):
        client.post("/stories", json={"prompt": "A cat and a dog share a bed", "child_name": "Mia"})
        assert story_client.calls == [{
            "prompt": "A cat and a dog share a bed",
            "child_name": "Mia",
            "age_group": AgeGroup.PRESCHOOL,
        }]

    def test_story_is_stored(self, client, story_client):
        story_id = client.post("/stories", json={"prompt": "A cat and a dog share a bed"}).json()["id"]
        story = story_store.get(story_id)
        assert story is not None
        assert story.status == StoryStatus.READY

    def test_short_prompt_rejected(self, client, story_client):
        resp = client.post("/stories", json={"prompt": "Too short"})
        assert resp.status_code == 422
        assert story_client.calls == []

    def test_unknown_age_group_rejected(self, client, story_client):
        resp = client.post("/stories", json={"prompt": "A cat and a dog share a bed", "age_group": "TEEN"})
        assert resp.status_code == 422

    def test_unknown_voice_rejected(self, client, story_client):
        resp = client.post("/stories", json={"prompt": "A cat and a dog share a bed", "voice_id": "nope"})
        assert resp.status_code == 400
        assert "Unknown voice" in resp.json()["detail"]

    def test_known_voice_recorded(self, client, story_client):
        voice = _ready_voice()
        resp = client.post("/stories", json={"prompt": "A cat and a dog share a bed", "voice_id": voice.id})
        assert resp.status_code == 201
        assert resp.json()["voice_id"] == voice.id

    def test_provider_failure_rolls_back_to_draft(self, client):
        fake = FakeStoryClient(error=StoryAPIError(500, "model overloaded"))
        with patch("somni.server.app._story_client", return_value=fake):
            resp = client.post("/stories", json={"prompt": "A cat and a dog share a bed"})

        assert resp.status_code == 502
        assert "model overloaded" in resp.json()["detail"]
        stories = story_store.list_all()
        assert len(stories) == 1
        assert stories[0].status == StoryStatus.DRAFT
        assert "model overloaded" in stories[0].error

    def test_missing_api_key_is_502(self, client):
        with patch("somni.server.app._story_client", side_effect=ValueError("OpenAI API key not configured.")):
            resp = client.post("/stories", json={"prompt": "A cat and a dog share a bed"})
        assert resp.status_code == 502
        assert "API key" in resp.json()["detail"]


# ---------------------------------------------------------------------------
# GET / DELETE /stories
# ---------------------------------------------------------------------------


class TestStoryRecords:

    def test_list_stories(self, client):
        first = _ready_story(title="One")
        second = _ready_story(title="Two")
        resp = client.get("/stories")
        assert resp.status_code == 200
        ids = {s["id"] for s in resp.json()["stories"]}
        assert ids == {first.id, second.id}

    def test_list_empty(self, client):
        assert client.get("/stories").json() == {"stories": []}

    def test_get_story(self, client):
        story = _ready_story()
        resp = client.get("/stories/{}".format(story.id))
        assert resp.status_code == 200
        assert resp.json()["title"] == "Pip and the Stars"

    def test_get_unknown_story(self, client):
        resp = client.get("/stories/nope")
        assert resp.status_code == 404
        assert "not found" in resp.json()["detail"]

    def test_delete_story(self, client):
        story = _ready_story()
        assert client.delete("/stories/{}".format(story.id)).status_code == 204
        assert story_store.get(story.id) is None
        assert client.delete("/stories/{}".format(story.id)).status_code == 404


# ---------------------------------------------------------------------------
# POST /stories/{id}/audio
# ---------------------------------------------------------------------------


class TestNarrateStory:

    def test_returns_mp3(self, client, voice_client):
        story = _ready_story()
        resp = client.post("/stories/{}/audio".format(story.id))
        assert resp.status_code == 200
        assert resp.content == b"ID3fake-mp3-bytes"
        assert resp.headers["content-type"] == "audio/mpeg"
        assert resp.headers["content-disposition"] == 'attachment; filename="Pip_and_the_Stars.mp3"'

    def test_uses_stock_voice_and_storytelling_settings(self, client, voice_client):
        story = _ready_story()
        client.post("/stories/{}/audio".format(story.id))
        call = voice_client.tts_calls[0]
        assert call["text"] == STORY_TEXT
        assert call["voice_id"] == DEFAULT_VOICE_ID
        assert call["base_settings"] == STORYTELLING_SETTINGS

    def test_uses_ready_cloned_voice(self, client, voice_client):
        voice = _ready_voice(provider_voice_id="mom-at-provider")
        story = _ready_story(voice_id=voice.id)
        client.post("/stories/{}/audio".format(story.id))
        assert voice_client.tts_calls[0]["voice_id"] == "mom-at-provider"

    def test_falls_back_when_voice_not_ready(self, client, voice_client):
        voice = voice_store.create("Dad")
        story = _ready_story(voice_id=voice.id)
        client.post("/stories/{}/audio".format(story.id))
        assert voice_client.tts_calls[0]["voice_id"] == DEFAULT_VOICE_ID

    def test_story_without_content(self, client, voice_client):
        story = story_store.create(prompt="A cat and a dog at bedtime", age_group="PRESCHOOL")
        resp = client.post("/stories/{}/audio".format(story.id))
        assert resp.status_code == 400
        assert voice_client.tts_calls == []

    def test_unknown_story(self, client, voice_client):
        assert client.post("/stories/nope/audio").status_code == 404

    def test_provider_failure(self, client):
        story = _ready_story()
        fake = FakeVoiceClient(error=VoiceAPIError(429, "quota exceeded"))
        with patch("somni.server.app._voice_client", return_value=fake):
            resp = client.post("/stories/{}/audio".format(story.id))
        assert resp.status_code == 502
        assert "quota exceeded" in resp.json()["detail"]


# ---------------------------------------------------------------------------
# GET /stories/{id}/timeline and /highlight
# ---------------------------------------------------------------------------


class TestTimeline:

    def test_weights_without_duration(self, client):
        story = _ready_story()
        body = client.get("/stories/{}/timeline".format(story.id)).json()
        assert body["story_id"] == story.id
        assert body["total_weight"] == pytest.approx(4.6)
        assert body["speech_start_offset_s"] == 0.5
        assert body["duration_s"] is None
        assert [w["text"] for w in body["words"]] == ["The", "cat", "sat.", "The", "dog", "ran!"]
        assert [w["weight"] for w in body["words"]] == pytest.approx([0.5, 0.5, 1.3, 0.5, 0.5, 1.3])
        assert all(w["start_s"] is None for w in body["words"])

    def test_times_with_duration(self, client):
        story = _ready_story()
        body = client.get("/stories/{}/timeline".format(story.id), params={"duration": 10.5}).json()
        words = body["words"]
        assert body["duration_s"] == 10.5
        assert words[0]["start_s"] == 0.5
        assert words[2]["end_s"] == 5.5
        assert words[-1]["end_s"] == 10.5

    def test_empty_story(self, client):
        story = story_store.create(prompt="A cat and a dog at bedtime", age_group="PRESCHOOL")
        body = client.get("/stories/{}/timeline".format(story.id)).json()
        assert body["words"] == []
        assert body["total_weight"] == 0.0

    def test_unknown_story(self, client):
        assert client.get("/stories/nope/timeline").status_code == 404


class TestHighlight:

    def _highlight(self, client, story_id, **params):
        return client.get("/stories/{}/highlight".format(story_id), params=params)

    def test_word_at_position(self, client):
        story = _ready_story()
        body = self._highlight(client, story.id, current_time=6.0, duration=10.5).json()
        assert body["index"] == 3
        assert body["word"] == "The"
        assert body["states"] is None

    def test_start_and_end(self, client):
        story = _ready_story()
        assert self._highlight(client, story.id, current_time=0.0, duration=10.5).json()["index"] == 0
        assert self._highlight(client, story.id, current_time=10.5, duration=10.5).json()["index"] == 5

    def test_include_states(self, client):
        story = _ready_story()
        body = self._highlight(client, story.id, current_time=4.0, duration=10.5, include_states="true").json()
        assert body["states"] == ["spoken", "spoken", "current", "unspoken", "unspoken", "unspoken"]

    def test_short_track_highlights_last_word(self, client):
        story = _ready_story()
        body = self._highlight(client, story.id, current_time=0.1, duration=0.3).json()
        assert body["index"] == 5
        assert body["word"] == "ran!"

    def test_empty_story_has_no_highlight(self, client):
        story = story_store.create(prompt="A cat and a dog at bedtime", age_group="PRESCHOOL")
        body = self._highlight(client, story.id, current_time=1.0, duration=10.0).json()
        assert body["index"] == -1
        assert body["word"] is None

    def test_missing_query(self, client):
        story = _ready_story()
        assert self._highlight(client, story.id, current_time=1.0).status_code == 422

    def test_unknown_story(self, client):
        assert self._highlight(client, "nope", current_time=1.0, duration=2.0).status_code == 404


# ---------------------------------------------------------------------------
# /voices
# ---------------------------------------------------------------------------


class TestCreateVoice:

    def test_clones_voice(self, client, voice_client):
        resp = client.post("/voices", data={"name": "Mom"}, files=_audio_upload())
        assert resp.status_code == 201
        body = resp.json()
        assert body["name"] == "Mom"
        assert body["status"] == "ready"
        assert body["provider_voice_id"] == "provider-voice-1"

    def test_sends_sample_to_provider(self, client, voice_client):
        client.post("/voices", data={"name": "Mom"}, files=_audio_upload(content=b"abc"))
        call = voice_client.clone_calls[0]
        assert call["name"] == "Mom - Somni"
        assert call["samples"] == [("mom.mp3", b"abc", "audio/mpeg")]

    def test_short_name_rejected(self, client, voice_client):
        resp = client.post("/voices", data={"name": " M "}, files=_audio_upload())
        assert resp.status_code == 400
        assert voice_client.clone_calls == []

    def test_empty_audio_rejected(self, client, voice_client):
        resp = client.post("/voices", data={"name": "Mom"}, files=_audio_upload(content=b""))
        assert resp.status_code == 400
        assert voice_store.list_all() == []

    def test_missing_audio_rejected(self, client, voice_client):
        assert client.post("/voices", data={"name": "Mom"}).status_code == 422

    def test_provider_failure_marks_failed(self, client):
        fake = FakeVoiceClient(error=VoiceAPIError(400, "Sample too short"))
        with patch("somni.server.app._voice_client", return_value=fake):
            resp = client.post("/voices", data={"name": "Mom"}, files=_audio_upload())
        assert resp.status_code == 502
        voices = voice_store.list_all()
        assert len(voices) == 1
        assert voices[0].status == VoiceStatus.FAILED
        assert "Sample too short" in voices[0].error


class TestVoiceRecords:

    def test_list_voices(self, client):
        voice = _ready_voice()
        body = client.get("/voices").json()
        assert [v["id"] for v in body["voices"]] == [voice.id]

    def test_delete_removes_provider_copy(self, client, voice_client):
        voice = _ready_voice(provider_voice_id="mom-at-provider")
        assert client.delete("/voices/{}".format(voice.id)).status_code == 204
        assert voice_client.deleted == ["mom-at-provider"]
        assert voice_store.get(voice.id) is None

    def test_delete_without_provider_copy(self, client, voice_client):
        voice = voice_store.create("Dad")
        assert client.delete("/voices/{}".format(voice.id)).status_code == 204
        assert voice_client.deleted == []

    def test_delete_survives_provider_failure(self, client):
        voice = _ready_voice()
        fake = FakeVoiceClient(error=VoiceAPIError(500, "oops"))
        with patch("somni.server.app._voice_client", return_value=fake):
            resp = client.delete("/voices/{}".format(voice.id))
        assert resp.status_code == 204
        assert voice_store.get(voice.id) is None

    def test_delete_unknown(self, client):
        assert client.delete("/voices/nope").status_code == 404


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__}
