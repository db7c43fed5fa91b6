"""Async HTTP client for story generation via OpenAI chat completions.

WHY: Somni's stories come from a large language model. This module owns
the prompt (age-group guidelines, child's name), the HTTP call, and the
parsing of the model's "TITLE: ... --- story" reply, so the server and
CLI only ever see a GeneratedStory.

HOW: Uses httpx.AsyncClient against POST /chat/completions with Bearer
auth. StoryClient is an async context manager — enter it to get an
authenticated client, exit to close the connection pool. Prompt building
and response parsing are module-level pure functions.

RULES:
- Always use the async context manager (async with StoryClient() as client:)
- Model defaults to OPENAI_MODEL (gpt-4o), temperature 0.8, 2000 max tokens
- Reply format: "TITLE: <title>" then "---" then the story text
- Missing title falls back to "A Magical Story"
- Non-2xx responses raise StoryAPIError; an empty reply raises
  StoryGenerationError
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable

import httpx

from somni.api.models import AgeGroup, GeneratedStory
from somni.config import (
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    STORY_MAX_TOKENS,
    STORY_TEMPERATURE,
    load_openai_api_key,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_TITLE = "A Magical Story"

BEDTIME_WORDS_PER_MINUTE = 120

_TITLE_RE = re.compile(r"TITLE:\s*(.+?)(?:\n|---)")
_TITLE_LINE_RE = re.compile(r"TITLE:.*\n?")

AGE_GROUP_GUIDELINES: dict[AgeGroup, str] = {
    AgeGroup.TODDLER: """
    - Use very simple words (1-2 syllables)
    - Short sentences (5-7 words max)
    - Lots of repetition and rhythm
    - Focus on familiar objects, animals, and daily routines
    - Story length: 200-300 words
    - Include onomatopoeia and sound words
  """,
    AgeGroup.PRESCHOOL: """
    - Simple vocabulary with some new words
    - Sentences of 8-12 words
    - Clear cause and effect
    - Include fantasy elements, talking animals, simple adventures
    - Story length: 400-600 words
    - Gentle conflict with happy resolution
  """,
    AgeGroup.EARLY_READER: """
    - Varied vocabulary with context clues for new words
    - Mix of short and medium sentences
    - Character development and emotions
    - Can include mild suspense and humor
    - Story length: 600-900 words
    - Clear beginning, middle, and end
  """,
    AgeGroup.CHAPTER_BOOK: """
    - Rich vocabulary appropriate for 7-10 year olds
    - Complex sentences with varied structure
    - Multi-dimensional characters
    - Can handle more complex emotions and themes
    - Story length: 900-1200 words
    - Can include subplots and twists
  """,
}


class StoryAPIError(Exception):
    """Raised when the text-generation API returns an error response.

    RULES:
    - Always include status_code and message
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Story API error {status_code}: {message}")


class StoryGenerationError(Exception):
    """Raised when the model answers without any story text."""


# ---------------------------------------------------------------------------
# Prompt and parsing helpers
# ---------------------------------------------------------------------------


def build_system_prompt(age_group: AgeGroup, child_name: str | None) -> str:
    """System message describing the author persona and output format."""
    if child_name:
        name_instruction = f'The main character or a friend should be named "{child_name}".'
    else:
        name_instruction = "Create a relatable main character with a friendly name."

    return (
        "You are a beloved children's story author known for creating magical, "
        "heartwarming tales that captivate young minds. Your stories are filled "
        "with wonder, gentle lessons, and characters children love.\n\n"
        f"Guidelines for this age group ({age_group.label}):\n"
        f"{AGE_GROUP_GUIDELINES[age_group]}\n\n"
        "Important rules:\n"
        "- Create content that is 100% appropriate for children\n"
        "- Include sensory details and vivid imagery\n"
        "- End with a positive, satisfying conclusion\n"
        "- Make it feel like a warm bedtime story\n"
        f"- {name_instruction}\n\n"
        "Format your response as:\n"
        "TITLE: [Your creative story title]\n"
        "---\n"
        "[The full story text]"
    )


def build_messages(prompt: str, age_group: AgeGroup, child_name: str | None) -> list[dict]:
    return [
        {"role": "system", "content": build_system_prompt(age_group, child_name)},
        {
            "role": "user",
            "content": f"Please write a children's story based on this idea: {prompt}",
        },
    ]


def parse_story_response(full_response: str) -> GeneratedStory:
    """Split a model reply into title and story body.

    RULES:
    - Title: text after "TITLE:" up to the first newline or "---"
    - Body: everything after the first "---", stripped; without a
      separator, the whole reply minus the TITLE line
    """
    title_match = _TITLE_RE.search(full_response)
    title = title_match.group(1).strip() if title_match else DEFAULT_TITLE

    separator = full_response.find("---")
    if separator != -1:
        content = full_response[separator + 3:].strip()
    else:
        content = _TITLE_LINE_RE.sub("", full_response, count=1).strip()

    return GeneratedStory(title=title or DEFAULT_TITLE, content=content)


def estimate_reading_duration_s(content: str) -> int:
    """Rough bedtime read-aloud length at 120 words per minute."""
    word_count = len(content.split())
    return math.ceil(word_count * 60 / BEDTIME_WORDS_PER_MINUTE)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class StoryClient:
    """Async client for the chat-completions story generator.

    RULES:
    - Use as: async with StoryClient() as client: ...
    - api_key defaults to load_openai_api_key() from .env
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_openai_api_key()
        self._base_url = (base_url or OPENAI_BASE_URL).rstrip("/")
        self._model = model or OPENAI_MODEL
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> StoryClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(120.0, connect=30.0),
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
                "StoryClient must be used as an async context manager: "
                "async with StoryClient() as client: ..."
            )
        return self._client

    async def generate_story(
        self,
        prompt: str,
        child_name: str | None = None,
        age_group: AgeGroup = AgeGroup.PRESCHOOL,
        on_status: Callable[[str], None] | None = None,
    ) -> GeneratedStory:
        """Ask the model for a story and parse the reply.

        Args:
            prompt: The parent's story idea.
            child_name: Optional name to give the hero or a friend.
            age_group: Audience; selects the writing guidelines.
            on_status: Optional callback for status updates.

        Returns:
            GeneratedStory with title and content.
        """
        client = self._ensure_client()
        if on_status:
            on_status("Writing story ({})...".format(age_group.label.lower()))

        body = {
            "model": self._model,
            "messages": build_messages(prompt, age_group, child_name),
            "temperature": STORY_TEMPERATURE,
            "max_tokens": STORY_MAX_TOKENS,
        }
        resp = await client.post("/chat/completions", json=body)

        if resp.status_code != 200:
            raise StoryAPIError(resp.status_code, _error_message(resp))

        data = resp.json()
        choices = data.get("choices") or []
        full_response = ""
        if choices:
            full_response = (choices[0].get("message") or {}).get("content") or ""

        story = parse_story_response(full_response)
        if not story.content:
            raise StoryGenerationError("Story model returned no story text")

        if on_status:
            on_status("  \"{}\" ({} words)".format(story.title, len(story.content.split())))
        return story


def _error_message(resp: httpx.Response) -> str:
    """Pull error.message out of an OpenAI error body, else the raw text."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return resp.text
