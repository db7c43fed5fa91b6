"""Shared test fixtures for the somni test suite.

WHY: The weight, sync, playback, formatter, and API tests all need the
same short story texts with hand-checked weights. Centralizing them here
keeps every module testing against the same numbers.

HOW: Module constants hold the texts and their expected weights; pytest
fixtures hand out timelines and NarratedStory objects built from them
with the stock tuning.

RULES:
- TWO_SENTENCES weights are hand-computed from the stock tuning:
  every word is under 5 chars so the base sits on the 0.5 floor;
  "sat."/"ran!" add the 0.8 sentence bonus → 1.3; total 4.6
- Provider-backed tests never touch the network (MockTransport or patches)
"""

from __future__ import annotations

import pytest

from somni.core.ir import DEFAULT_TUNING, NarratedStory, WordTimeline
from somni.core.weights import build_timeline

# ---------------------------------------------------------------------------
# Hand-checked sample texts
# ---------------------------------------------------------------------------

TWO_SENTENCES = "The cat sat. The dog ran!"
"""Six words; see module RULES for the expected weights."""

BEDTIME_STORY = (
    "Once upon a time, a sleepy owl named Pip lived in an old oak tree.\n\n"
    "Every night Pip said, \"Goodnight, stars!\" and the stars twinkled back.\n\n"
    "The end."
)


@pytest.fixture
def two_sentence_timeline() -> WordTimeline:
    """Timeline for "The cat sat. The dog ran!" with the stock tuning."""
    return build_timeline(TWO_SENTENCES, DEFAULT_TUNING)


@pytest.fixture
def bedtime_timeline() -> WordTimeline:
    return build_timeline(BEDTIME_STORY, DEFAULT_TUNING)


@pytest.fixture
def narrated_story() -> NarratedStory:
    """The two-sentence story narrated over 10.5 s (10 s of speech)."""
    return NarratedStory(
        title="The Cat and the Dog",
        text=TWO_SENTENCES,
        timeline=build_timeline(TWO_SENTENCES, DEFAULT_TUNING),
        duration_s=10.5,
    )


@pytest.fixture
def empty_story() -> NarratedStory:
    return NarratedStory(
        title="Nothing Yet",
        text="",
        timeline=WordTimeline(),
        duration_s=0.0,
    )
