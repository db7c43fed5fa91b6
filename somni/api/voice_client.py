"""Async HTTP client for the ElevenLabs voice-cloning and TTS API.

WHY: Somni narrates stories either in a stock voice or in a parent's
cloned voice. This module wraps the four provider calls Somni needs
(clone, synthesize, list, delete) so callers never deal with HTTP.

HOW: Uses httpx.AsyncClient with the ``xi-api-key`` header. VoiceClient
is an async context manager. Voice samples go up as repeated ``files``
multipart fields; synthesis returns the MP3 body as bytes.

RULES:
- Always use the async context manager (async with VoiceClient() as client:)
- Synthesis model defaults to ELEVENLABS_MODEL (eleven_multilingual_v2)
- Voice settings: defaults merged with caller overrides
- Non-2xx responses raise VoiceAPIError carrying detail.message when present
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from somni.api.models import ClonedVoice, VoiceSettings
from somni.config import ELEVENLABS_BASE_URL, ELEVENLABS_MODEL, load_elevenlabs_api_key

VoiceSample = Tuple[str, bytes, str]
"""(filename, content, content_type) of one uploaded voice sample."""


class VoiceAPIError(Exception):
    """Raised when the voice provider returns an error response.

    RULES:
    - Always include status_code and message
    - message is detail.message from the JSON body, or the raw body text
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Voice API error {status_code}: {message}")


class VoiceClient:
    """Async client for voice cloning and text-to-speech.

    RULES:
    - Use as: async with VoiceClient() as client: ...
    - api_key defaults to load_elevenlabs_api_key() from .env
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_elevenlabs_api_key()
        self._base_url = (base_url or ELEVENLABS_BASE_URL).rstrip("/")
        self._model = model or ELEVENLABS_MODEL
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> VoiceClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"xi-api-key": self._api_key},
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "VoiceClient must be used as an async context manager: "
                "async with VoiceClient() as client: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Voice cloning
    # ------------------------------------------------------------------

    async def clone_voice(
        self,
        name: str,
        samples: Sequence[VoiceSample],
        description: Optional[str] = None,
        on_status: Callable[[str], None] | None = None,
    ) -> ClonedVoice:
        """Create an instant voice clone from one or more audio samples.

        Args:
            name: Display name of the new voice at the provider.
            samples: (filename, bytes, content_type) tuples.
            description: Optional free-text description.
            on_status: Optional callback for status updates.

        Returns:
            ClonedVoice with the provider's voice_id.
        """
        if not samples:
            raise ValueError("At least one voice sample is required")

        client = self._ensure_client()
        if on_status:
            on_status("Cloning voice '{}' from {} sample(s)...".format(name, len(samples)))

        data: Dict[str, str] = {"name": name}
        if description:
            data["description"] = description
        files = [("files", sample) for sample in samples]

        resp = await client.post("/voices/add", data=data, files=files)
        if resp.status_code not in (200, 201):
            raise VoiceAPIError(resp.status_code, _error_message(resp))

        payload = resp.json()
        return ClonedVoice(voice_id=payload["voice_id"], name=payload.get("name", name))

    # ------------------------------------------------------------------
    # Text to speech
    # ------------------------------------------------------------------

    async def text_to_speech(
        self,
        text: str,
        voice_id: str,
        settings: Optional[Dict[str, Any]] = None,
        base_settings: VoiceSettings = VoiceSettings(),
        on_status: Callable[[str], None] | None = None,
    ) -> bytes:
        """Synthesize text with a voice and return the MP3 body.

        Args:
            text: Text to narrate.
            voice_id: Provider voice id (cloned or stock).
            settings: Optional overrides, e.g. {"stability": 0.6}.
            base_settings: Settings the overrides are layered on.
            on_status: Optional callback for status updates.
        """
        client = self._ensure_client()
        if on_status:
            on_status("Narrating {} characters...".format(len(text)))

        body = {
            "text": text,
            "model_id": self._model,
            "voice_settings": base_settings.merged(settings).to_dict(),
        }
        resp = await client.post(
            f"/text-to-speech/{voice_id}",
            json=body,
            headers={"Accept": "audio/mpeg"},
        )
        if resp.status_code != 200:
            raise VoiceAPIError(resp.status_code, _error_message(resp))

        return resp.content

    # ------------------------------------------------------------------
    # Voice library
    # ------------------------------------------------------------------

    async def list_voices(self) -> List[ClonedVoice]:
        client = self._ensure_client()
        resp = await client.get("/voices")
        if resp.status_code != 200:
            raise VoiceAPIError(resp.status_code, _error_message(resp))
        return [ClonedVoice.from_dict(v) for v in resp.json().get("voices", [])]

    async def delete_voice(self, voice_id: str) -> None:
        client = self._ensure_client()
        resp = await client.delete(f"/voices/{voice_id}")
        if resp.status_code not in (200, 204):
            raise VoiceAPIError(resp.status_code, _error_message(resp))


def _error_message(resp: httpx.Response) -> str:
    """Extract detail.message (or a string detail) from an error body."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    detail = data.get("detail") if isinstance(data, dict) else None
    if isinstance(detail, dict) and detail.get("message"):
        return detail["message"]
    if isinstance(detail, str):
        return detail
    return resp.text
