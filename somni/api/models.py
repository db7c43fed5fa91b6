"""Provider request and response dataclasses.

WHY: The story and voice providers return plain JSON. Typed dataclasses
make the handful of fields Somni actually uses explicit and catch
field mismatches early.

HOW: Each dataclass maps to one provider object, with a from_dict()
factory for parsing raw responses. AgeGroup is the closed set of
audiences the story prompt is tuned for.

RULES:
- Only fields Somni consumes are modeled; unknown fields are ignored
- VoiceSettings.merged() layers caller overrides on the defaults
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional


class AgeGroup(str, enum.Enum):
    """Audience the story is written for."""

    TODDLER = "TODDLER"
    PRESCHOOL = "PRESCHOOL"
    EARLY_READER = "EARLY_READER"
    CHAPTER_BOOK = "CHAPTER_BOOK"

    @property
    def label(self) -> str:
        """Human-readable form used in the prompt, e.g. "EARLY READER"."""
        return self.value.replace("_", " ")


@dataclass(frozen=True)
class GeneratedStory:
    """A story parsed out of the text-generation response."""

    title: str
    content: str


@dataclass
class ClonedVoice:
    """A voice known to the speech provider."""

    voice_id: str
    name: str
    category: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> ClonedVoice:
        return cls(
            voice_id=data["voice_id"],
            name=data.get("name", ""),
            category=data.get("category"),
        )


@dataclass(frozen=True)
class VoiceSettings:
    """Speech synthesis settings.

    RULES:
    - Defaults: stability 0.5, similarity_boost 0.75, style 0.5,
      use_speaker_boost True
    - STORYTELLING is slightly steadier and more expressive than default
    """

    stability: float = 0.5
    similarity_boost: float = 0.75
    style: float = 0.5
    use_speaker_boost: bool = True

    def merged(self, overrides: Optional[Dict[str, Any]] = None) -> VoiceSettings:
        """Return a copy with any non-None overrides applied."""
        if not overrides:
            return self
        known = {k: v for k, v in overrides.items() if k in asdict(self) and v is not None}
        return replace(self, **known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


STORYTELLING_SETTINGS = VoiceSettings(stability=0.6, similarity_boost=0.85, style=0.4)
