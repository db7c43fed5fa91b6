"""Karaoke JSON formatter — per-word weights and estimated times.

WHY: Web and mobile players that schedule their own highlight changes
(instead of calling the mapper on every time update) need each word's
estimated start and end. A JSON file next to the MP3 is the simplest
hand-off.

HOW: estimate_word_times() turns the story's timeline into absolute
windows; each becomes one entry in ``words``. The document is validated
against the bundled karaoke_timeline_schema.json before it is returned.

RULES:
- Suffix: "-karaoke.json"; media type "application/json"
- Times are rounded to milliseconds; weights to 4 decimals
- speechStartOffset and totalWeight are included so a client can run
  the same mapping itself
- An empty story yields a valid document with an empty words list
- A NaN or infinite duration is written as 0 with collapsed word times
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, List, Optional

import jsonschema

from somni.core.ir import NarratedStory
from somni.core.sync import estimate_word_times
from somni.formatters.base import BaseFormatter, FormatterOutput

TIMELINE_VERSION = "1.0"

_SCHEMA_PATH = Path(__file__).resolve().parent / "karaoke_timeline_schema.json"

_CACHED_SCHEMA: Optional[dict] = None


def _get_schema() -> dict:
    """Load and cache the karaoke timeline JSON schema."""
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        with open(_SCHEMA_PATH, encoding="utf-8") as f:
            _CACHED_SCHEMA = json.load(f)
    return _CACHED_SCHEMA


def build_timeline_document(story: NarratedStory) -> dict[str, Any]:
    """Build the karaoke timeline dict (unvalidated)."""
    duration_s = story.duration_s if math.isfinite(story.duration_s) else 0.0
    timings = estimate_word_times(story.timeline, duration_s, story.tuning)
    words: List[dict[str, Any]] = [
        {
            "index": t.index,
            "text": t.text,
            "weight": round(t.weight, 4),
            "start": round(t.start_s, 3),
            "end": round(t.end_s, 3),
        }
        for t in timings
    ]
    return {
        "version": TIMELINE_VERSION,
        "title": story.title,
        "duration": round(max(duration_s, 0.0), 3),
        "speechStartOffset": story.tuning.speech_start_offset_s,
        "totalWeight": round(story.timeline.total_weight, 4),
        "words": words,
    }


class KaraokeJSONFormatter(BaseFormatter):
    """Formatter producing one schema-validated karaoke timeline JSON file."""

    @property
    def name(self) -> str:
        return "Karaoke JSON"

    @property
    def suffix(self) -> str:
        return "-karaoke.json"

    def format(self, story: NarratedStory) -> List[FormatterOutput]:
        """Raises jsonschema.ValidationError if the document is malformed."""
        document = build_timeline_document(story)
        jsonschema.validate(instance=document, schema=_get_schema())

        return [FormatterOutput(
            suffix=self.suffix,
            content=json.dumps(document, indent=2, ensure_ascii=False),
            media_type="application/json",
        )]
